"""
FastAPI dependency injection.

How this works:
- An endpoint declares `worker: Worker = Depends(get_worker)`
- FastAPI calls get_worker() before your endpoint runs
- Your endpoint receives the Worker that create_app() was built around

Tests swap in their own Worker through app.dependency_overrides, or simply
build the app around a Worker wired to fakeredis and SQLite.
"""

from fastapi import Request

from worker.worker import Worker


def get_worker(request: Request) -> Worker:
    """Returns the Worker stored on the app by create_app()."""
    return request.app.state.worker
