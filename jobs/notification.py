"""
Notification job — delivers a message to a user over one channel.

Example payload:
    {
        "type": "Notification",
        "recipient_id": "7d4c...",
        "notification_type": "Reminder",
        "message": "Your appointment is tomorrow at 9:00",
        "channel": "Email",
        "priority": "Normal"
    }

Example result data:
    {
        "recipient_id": "7d4c...",
        "message": "Your appointment is tomorrow at 9:00",
        "channel": "Email",
        "priority": "Normal",
        "notification_type": "Reminder",
        "delivered_at": "2026-10-19T08:00:01.120000+00:00"
    }

Delivery is simulated: each channel blocks for a fixed latency, the way
a call to the mail relay / SMS gateway / push service would. Pass your own
latencies (e.g. all zeros in tests) to the constructor.

Deferred delivery is the queue's job: Worker.submit() holds a notification
with a future scheduled_for back until it is due. If one still reaches the
handler early (more than SCHEDULE_TOLERANCE_SECONDS ahead of its schedule,
say because it was enqueued by hand), it is rejected with ValidationError
rather than delivered early.

Retry safety: if delivery succeeds but the worker dies before recording it,
the job is redelivered and the user gets the message twice. That's the
accepted at-least-once trade-off.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from jobs.base import AbstractJobHandler
from jobs.context import JobContext
from jobs.errors import ValidationError
from jobs.payloads import NotificationJob
from jobs.result import JobExecutionResult
from models.enums import JobType, NotificationChannel

logger = logging.getLogger(__name__)


class NotificationHandler(AbstractJobHandler):

    DEFAULT_LATENCIES: dict[NotificationChannel, float] = {
        NotificationChannel.EMAIL: 1.0,
        NotificationChannel.SMS: 0.5,
        NotificationChannel.PUSH: 0.2,
        NotificationChannel.IN_APP: 0.1,
    }

    DELIVERY_MESSAGES: dict[NotificationChannel, str] = {
        NotificationChannel.EMAIL: "Email sent successfully",
        NotificationChannel.SMS: "SMS sent successfully",
        NotificationChannel.PUSH: "Push notification sent successfully",
        NotificationChannel.IN_APP: "In-app notification sent successfully",
    }

    # Clock skew between the submitting host and this one
    SCHEDULE_TOLERANCE_SECONDS = 5.0

    def __init__(self, latencies: Optional[dict[NotificationChannel, float]] = None):
        self._latencies = {**self.DEFAULT_LATENCIES, **(latencies or {})}

    def execute(self, payload: NotificationJob, context: JobContext) -> JobExecutionResult:
        logger.info(
            f"Job {context.job_id}: notifying {payload.recipient_id} "
            f"via {payload.channel.value} ({payload.notification_type.value}, "
            f"priority={payload.priority.value})"
        )

        due_in = payload.seconds_until_due()
        if due_in > self.SCHEDULE_TOLERANCE_SECONDS:
            raise ValidationError(
                f"Notification is scheduled for {payload.scheduled_for.isoformat()}, "
                f"{due_in:.0f}s from now; it reached the worker before its due time"
            )

        start = time.monotonic()
        delivery_message = self._deliver(payload.channel)
        delivery_ms = (time.monotonic() - start) * 1000

        data = {
            "recipient_id": str(payload.recipient_id),
            "message": payload.message,
            "channel": payload.channel.value,
            "priority": payload.priority.value,
            "notification_type": payload.notification_type.value,
            "delivered_at": datetime.now(timezone.utc).isoformat(),
        }

        return (
            JobExecutionResult.succeeded_with_data(delivery_message, data)
            .with_metric("delivery_time_ms", round(delivery_ms, 3))
        )

    def _deliver(self, channel: NotificationChannel) -> str:
        """Hand the message to the channel's transport. Returns the delivery message."""
        time.sleep(self._latencies[channel])
        return self.DELIVERY_MESSAGES[channel]

    @property
    def name(self) -> str:
        return "notification"

    @property
    def job_type(self) -> str:
        return JobType.NOTIFICATION.value
