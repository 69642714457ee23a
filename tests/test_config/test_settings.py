"""
Tests for configuration loading.

Each test clears JOBS_* variables first and runs from an empty temp
directory, so a developer's .env or jobs.toml can't leak in.
"""

import os

import pytest

from config.settings import load_settings
from jobs.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("JOBS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    settings = load_settings()
    assert settings.database.url == "postgresql://localhost/emr_jobs"
    assert settings.database.max_connections == 10
    assert settings.database.min_connections == 1
    assert settings.database.connection_timeout == 30
    assert settings.redis.url == "redis://localhost:6379"
    assert settings.worker.max_workers == 4
    assert settings.worker.max_retries == 3
    assert settings.worker.retry_delay == 30
    assert settings.worker.job_timeout == 300
    assert settings.worker.poll_interval == 5
    assert settings.monitoring.enabled is True
    assert settings.monitoring.metrics_port == 9090
    assert settings.monitoring.health_check_interval == 30
    assert settings.log_level == "INFO"


def test_nested_env_vars(monkeypatch):
    monkeypatch.setenv("JOBS_WORKER__MAX_WORKERS", "8")
    monkeypatch.setenv("JOBS_REDIS__URL", "redis://cache:6379/2")
    monkeypatch.setenv("JOBS_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.worker.max_workers == 8
    assert settings.redis.url == "redis://cache:6379/2"
    assert settings.log_level == "DEBUG"


def test_toml_file(monkeypatch, tmp_path):
    config = tmp_path / "custom.toml"
    config.write_text(
        "[worker]\n"
        "poll_interval = 2\n"
        "max_workers = 6\n"
        "\n"
        "[monitoring]\n"
        "enabled = false\n"
    )
    monkeypatch.setenv("JOBS_CONFIG_PATH", str(config))

    settings = load_settings()
    assert settings.worker.poll_interval == 2
    assert settings.worker.max_workers == 6
    assert settings.monitoring.enabled is False


def test_env_overrides_toml(monkeypatch, tmp_path):
    (tmp_path / "jobs.toml").write_text("[worker]\nmax_workers = 6\n")
    monkeypatch.setenv("JOBS_WORKER__MAX_WORKERS", "12")
    assert load_settings().worker.max_workers == 12


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("JOBS_WORKER__JOB_TIMEOUT=45\n")
    assert load_settings().worker.job_timeout == 45


def test_explicit_overrides():
    settings = load_settings(worker={"max_workers": 2, "poll_interval": 0.5})
    assert settings.worker.max_workers == 2
    assert settings.worker.poll_interval == 0.5


@pytest.mark.parametrize("overrides", [
    {"worker": {"max_workers": 0}},
    {"worker": {"job_timeout": 0}},
    {"database": {"url": ""}},
    {"redis": {"url": ""}},
    {"database": {"min_connections": 20, "max_connections": 10}},
    {"monitoring": {"enabled": True, "metrics_port": 0}},
    {"log_level": "LOUD"},
])
def test_invalid_values_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError):
        load_settings(**overrides)


def test_disabled_monitoring_allows_port_zero():
    settings = load_settings(monitoring={"enabled": False, "metrics_port": 0})
    assert settings.monitoring.metrics_port == 0


def test_error_message_names_the_field():
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(worker={"max_workers": 0})
    assert "worker.max_workers" in exc_info.value.message
