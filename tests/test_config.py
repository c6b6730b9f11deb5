"""Options resolution tests."""

import pytest
from structlog.testing import capture_logs

from appflags import AppFlagsError, AppFlagsErrorCodes, ClientOptions, EventQueueOptions
from appflags.config import ConfigurationOptions


def test_event_queue_defaults() -> None:
    resolved = EventQueueOptions().resolve()
    assert resolved.queue_max_size == 20000
    assert resolved.flush_interval_ms == 30000
    assert resolved.queue_flush_size == 1000


def test_event_queue_floors_are_enforced() -> None:
    resolved = EventQueueOptions(
        queue_max_size=10, flush_interval_ms=5, queue_flush_size=-3
    ).resolve()
    assert resolved.flush_interval_ms == 1000
    assert resolved.queue_flush_size == 1
    assert resolved.queue_max_size == 10


def test_flush_size_equal_to_max_size_is_rejected() -> None:
    with pytest.raises(AppFlagsError) as exc_info:
        EventQueueOptions(queue_flush_size=1000, queue_max_size=1000).resolve()
    assert exc_info.value.code == AppFlagsErrorCodes.INVALID_CONFIG


def test_zero_max_size_is_rejected_with_default_flush_size() -> None:
    with pytest.raises(AppFlagsError):
        EventQueueOptions(queue_max_size=-1).resolve()


def test_explicit_options_are_logged() -> None:
    with capture_logs() as logs:
        EventQueueOptions(queue_max_size=50, queue_flush_size=5).resolve()
    events = [entry["event"] for entry in logs]
    assert "Event queue max size set" in events
    assert "Event queue flush size set" in events
    assert "Event queue flush interval set" not in events


def test_polling_period_default_and_floor() -> None:
    assert ConfigurationOptions().resolve_polling_period_ms() == 600000
    assert ConfigurationOptions(polling_period_ms=1000).resolve_polling_period_ms() == 60000
    assert ConfigurationOptions(polling_period_ms=120000).resolve_polling_period_ms() == 120000


def test_client_options_from_env() -> None:
    options = ClientOptions.from_env(
        {
            "APPFLAGS_EDGE_URL": "http://localhost:9000",
            "APPFLAGS_POLLING_PERIOD_MS": "90000",
            "APPFLAGS_QUEUE_FLUSH_SIZE": "10",
            "APPFLAGS_TIMEOUT_SECONDS": "2.5",
            "APPFLAGS_LOG_LEVEL": "DEBUG",
        }
    )
    assert options.base_url == "http://localhost:9000"
    assert options.configuration.polling_period_ms == 90000
    assert options.event_queue.queue_flush_size == 10
    assert options.event_queue.queue_max_size is None
    assert options.timeout_seconds == 2.5
    assert options.log_level == "DEBUG"


def test_client_options_from_empty_env_uses_defaults() -> None:
    options = ClientOptions.from_env({})
    assert options.base_url == "https://edge.appflags.net"
    assert options.timeout_seconds is None
    assert options.configuration.polling_period_ms is None


def test_client_options_from_env_rejects_non_integer() -> None:
    with pytest.raises(AppFlagsError) as exc_info:
        ClientOptions.from_env({"APPFLAGS_QUEUE_MAX_SIZE": "lots"})
    assert exc_info.value.code == AppFlagsErrorCodes.INVALID_CONFIG
