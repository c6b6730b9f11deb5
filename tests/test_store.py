"""ConfigurationStore と ChangeSignal のユニットテスト"""

from datetime import UTC, datetime, timedelta

import pytest
from structlog.testing import capture_logs

from appflags import AppFlagsError, AppFlagsErrorCodes, ChangeSignal, Configuration, ConfigurationStore

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def make_config(offset_minutes: int, environment_id: str | None = "env-1") -> Configuration:
    return Configuration(
        published=T0 + timedelta(minutes=offset_minutes),
        environment_id=environment_id,
    )


def test_get_before_initial_load_fails_fast() -> None:
    """初回ロード前の読み取りは NOT_INITIALIZED。"""
    store = ConfigurationStore()
    assert store.is_ready is False
    with pytest.raises(AppFlagsError) as exc_info:
        store.get()
    assert exc_info.value.code == AppFlagsErrorCodes.NOT_INITIALIZED


def test_set_initial_accepts_anything() -> None:
    store = ConfigurationStore()
    config = Configuration()
    store.set_initial(config)
    assert store.is_ready is True
    assert store.get() is config


def test_replace_before_initial_load_is_a_logic_error() -> None:
    store = ConfigurationStore()
    with pytest.raises(AppFlagsError) as exc_info:
        store.replace_if_newer(make_config(1))
    assert exc_info.value.code == AppFlagsErrorCodes.NOT_INITIALIZED


def test_strictly_newer_snapshot_replaces() -> None:
    store = ConfigurationStore()
    store.set_initial(make_config(0))
    newer = make_config(1)
    assert store.replace_if_newer(newer) is True
    assert store.get() is newer


@pytest.mark.parametrize("offset", [0, -1, -60])
def test_equal_or_older_snapshot_is_dropped(offset: int) -> None:
    """同時刻以前のスナップショットは無視されること。"""
    store = ConfigurationStore()
    current = make_config(0)
    store.set_initial(current)
    assert store.replace_if_newer(make_config(offset)) is False
    assert store.get() is current


def test_published_never_moves_backwards() -> None:
    store = ConfigurationStore()
    store.set_initial(make_config(5))
    seen = []
    for offset in [3, 7, 6, 7, 10, 1, 9]:
        store.replace_if_newer(make_config(offset))
        seen.append(store.get().published)
    assert seen == sorted(seen)
    assert store.get().published == T0 + timedelta(minutes=10)


def test_candidate_missing_published_is_rejected() -> None:
    store = ConfigurationStore()
    store.set_initial(make_config(0))
    with pytest.raises(AppFlagsError) as exc_info:
        store.replace_if_newer(Configuration(environment_id="env-1"))
    assert exc_info.value.code == AppFlagsErrorCodes.MISSING_PUBLISHED


def test_current_missing_published_is_rejected() -> None:
    store = ConfigurationStore()
    store.set_initial(Configuration())
    with pytest.raises(AppFlagsError) as exc_info:
        store.replace_if_newer(make_config(1))
    assert exc_info.value.code == AppFlagsErrorCodes.MISSING_PUBLISHED


def test_change_signal_subscribe_and_unsubscribe() -> None:
    signal = ChangeSignal()
    calls: list[str] = []

    def first() -> None:
        calls.append("first")

    def second() -> None:
        calls.append("second")

    signal.subscribe(first)
    signal.subscribe(second)
    signal.subscribe(first)
    assert len(signal) == 2

    signal.emit()
    assert sorted(calls) == ["first", "second"]

    signal.unsubscribe(first)
    signal.unsubscribe(first)
    calls.clear()
    signal.emit()
    assert calls == ["second"]


def test_handler_may_unsubscribe_while_emitting() -> None:
    signal = ChangeSignal()
    calls: list[int] = []

    def once() -> None:
        calls.append(1)
        signal.unsubscribe(once)

    signal.subscribe(once)
    signal.emit()
    signal.emit()
    assert calls == [1]


def test_failing_handler_does_not_stop_the_others() -> None:
    """例外を投げるハンドラーはログに残し、残りのハンドラーは呼ばれる。"""
    signal = ChangeSignal()
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("boom")

    signal.subscribe(broken)
    signal.subscribe(lambda: calls.append("after"))

    with capture_logs() as logs:
        signal.emit()

    assert calls == ["after"]
    assert [entry["event"] for entry in logs] == ["Change handler failed"]
