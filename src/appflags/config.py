"""Client configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from .exceptions import AppFlagsError, AppFlagsErrorCodes

logger = structlog.get_logger(__name__)

DEFAULT_EDGE_URL = "https://edge.appflags.net"

ONE_SECOND_MS = 1000
ONE_MIN_MS = 60 * ONE_SECOND_MS

DEFAULT_POLLING_PERIOD_MS = 10 * ONE_MIN_MS
MIN_POLLING_PERIOD_MS = ONE_MIN_MS

DEFAULT_QUEUE_MAX_SIZE = 20000
MIN_QUEUE_MAX_SIZE = 0
DEFAULT_FLUSH_INTERVAL_MS = 30 * ONE_SECOND_MS
MIN_FLUSH_INTERVAL_MS = ONE_SECOND_MS
DEFAULT_QUEUE_FLUSH_SIZE = 1000
MIN_QUEUE_FLUSH_SIZE = 1


@dataclass
class EdgeConfig:
    """Connection settings for the edge server."""

    sdk_key: str
    base_url: str = DEFAULT_EDGE_URL
    # None disables the request timeout entirely
    timeout_seconds: float | None = None


@dataclass
class ConfigurationOptions:
    """Configuration synchronizer options. None selects the default."""

    polling_period_ms: int | None = None

    def resolve_polling_period_ms(self) -> int:
        if self.polling_period_ms is None:
            return DEFAULT_POLLING_PERIOD_MS
        period = max(MIN_POLLING_PERIOD_MS, self.polling_period_ms)
        logger.info("Configuration polling period set", polling_period_ms=period)
        return period


@dataclass(frozen=True)
class ResolvedEventQueueOptions:
    """Event queue options after defaults and floors are applied."""

    queue_max_size: int
    flush_interval_ms: int
    queue_flush_size: int


@dataclass
class EventQueueOptions:
    """Event queue options. None selects the default."""

    queue_max_size: int | None = None
    flush_interval_ms: int | None = None
    queue_flush_size: int | None = None

    def resolve(self) -> ResolvedEventQueueOptions:
        """Apply defaults and floors.

        Raises:
            AppFlagsError: queue_flush_size is not smaller than queue_max_size
        """
        queue_max_size = DEFAULT_QUEUE_MAX_SIZE
        if self.queue_max_size is not None:
            queue_max_size = max(MIN_QUEUE_MAX_SIZE, self.queue_max_size)
            logger.info("Event queue max size set", queue_max_size=queue_max_size)

        flush_interval_ms = DEFAULT_FLUSH_INTERVAL_MS
        if self.flush_interval_ms is not None:
            flush_interval_ms = max(MIN_FLUSH_INTERVAL_MS, self.flush_interval_ms)
            logger.info("Event queue flush interval set", flush_interval_ms=flush_interval_ms)

        queue_flush_size = DEFAULT_QUEUE_FLUSH_SIZE
        if self.queue_flush_size is not None:
            queue_flush_size = max(MIN_QUEUE_FLUSH_SIZE, self.queue_flush_size)
            logger.info("Event queue flush size set", queue_flush_size=queue_flush_size)

        if queue_flush_size >= queue_max_size:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_CONFIG,
                message=(
                    f"Event queue flush size [{queue_flush_size}] must be smaller "
                    f"than max queue size [{queue_max_size}]"
                ),
            )

        return ResolvedEventQueueOptions(
            queue_max_size=queue_max_size,
            flush_interval_ms=flush_interval_ms,
            queue_flush_size=queue_flush_size,
        )


@dataclass
class ClientOptions:
    """Top-level client options."""

    base_url: str = DEFAULT_EDGE_URL
    timeout_seconds: float | None = None
    log_level: str = "INFO"
    log_format: str = "json"
    configure_logging: bool = False
    configuration: ConfigurationOptions = field(default_factory=ConfigurationOptions)
    event_queue: EventQueueOptions = field(default_factory=EventQueueOptions)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientOptions:
        """APPFLAGS_* 環境変数からオプションを組み立てる。

        Raises:
            AppFlagsError: 数値であるべき変数が数値でない場合
        """
        env = os.environ if environ is None else environ

        def _int(name: str) -> int | None:
            raw = env.get(name)
            if raw is None or raw == "":
                return None
            try:
                return int(raw)
            except ValueError as e:
                raise AppFlagsError(
                    code=AppFlagsErrorCodes.INVALID_CONFIG,
                    message=f"{name} must be an integer, got {raw!r}",
                    cause=e,
                ) from e

        timeout = env.get("APPFLAGS_TIMEOUT_SECONDS")
        try:
            timeout_seconds = float(timeout) if timeout else None
        except ValueError as e:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_CONFIG,
                message=f"APPFLAGS_TIMEOUT_SECONDS must be a number, got {timeout!r}",
                cause=e,
            ) from e

        return cls(
            base_url=env.get("APPFLAGS_EDGE_URL") or DEFAULT_EDGE_URL,
            timeout_seconds=timeout_seconds,
            log_level=env.get("APPFLAGS_LOG_LEVEL", "INFO"),
            log_format=env.get("APPFLAGS_LOG_FORMAT", "json"),
            configuration=ConfigurationOptions(
                polling_period_ms=_int("APPFLAGS_POLLING_PERIOD_MS"),
            ),
            event_queue=EventQueueOptions(
                queue_max_size=_int("APPFLAGS_QUEUE_MAX_SIZE"),
                flush_interval_ms=_int("APPFLAGS_FLUSH_INTERVAL_MS"),
                queue_flush_size=_int("APPFLAGS_QUEUE_FLUSH_SIZE"),
            ),
        )
