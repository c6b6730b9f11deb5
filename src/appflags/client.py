"""AppFlagsClient: lifecycle object wiring synchronization, evaluation and events."""

from __future__ import annotations

import asyncio
import atexit
from types import TracebackType

import structlog

from .codec import Codec, JsonCodec
from .config import ClientOptions, EdgeConfig
from .edge import EdgeClient
from .engine import EvaluationEngine
from .event_queue import EventQueue
from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .http_client import HttpEdgeClient
from .logger import new_logger
from .models import Configuration, Flag, User
from .realtime import AblyRealtimeSubscriber, RealtimeSubscriber
from .scheduler import AsyncioScheduler, Scheduler
from .signals import ChangeSignal
from .synchronizer import ConfigurationSynchronizer

logger = structlog.get_logger(__name__)


class AppFlagsClient:
    """AppFlags クライアント。

    アプリケーションが所有するライフサイクルオブジェクト。``initialize`` で
    設定を読み込み、``close`` でタイマーを止めて残りのイベントを送信する。
    プロセス終了時の自動クローズは ``register_exit_hook`` で明示的に登録する。
    """

    def __init__(
        self,
        sdk_key: str,
        engine: EvaluationEngine,
        options: ClientOptions | None = None,
        *,
        edge_client: EdgeClient | None = None,
        realtime: RealtimeSubscriber | None = None,
        scheduler: Scheduler | None = None,
        codec: Codec | None = None,
    ) -> None:
        options = options or ClientOptions()
        if options.configure_logging:
            new_logger(level=options.log_level, format=options.log_format)

        self._codec = codec or JsonCodec()
        self._scheduler = scheduler or AsyncioScheduler()
        self._edge_client = edge_client or HttpEdgeClient(
            EdgeConfig(
                sdk_key=sdk_key,
                base_url=options.base_url,
                timeout_seconds=options.timeout_seconds,
            ),
            codec=self._codec,
        )
        self._engine = engine
        self._synchronizer = ConfigurationSynchronizer(
            self._edge_client,
            self._scheduler,
            realtime=realtime or AblyRealtimeSubscriber(options.base_url),
            options=options.configuration,
        )
        self._event_queue = EventQueue(self._edge_client, self._scheduler, options.event_queue)
        self._initialized = False
        self._closed = False
        self.on_flags_changed = ChangeSignal()
        self._synchronizer.on_change.subscribe(self._handle_configuration_changed)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def configuration(self) -> Configuration:
        return self._synchronizer.configuration

    @property
    def event_queue(self) -> EventQueue:
        return self._event_queue

    @property
    def synchronizer(self) -> ConfigurationSynchronizer:
        return self._synchronizer

    async def initialize(self) -> None:
        """Load the configuration and start background work.

        Calling it again on an initialized client does nothing. When it fails,
        any polling or push subscription already armed is torn down again.

        Raises:
            AppFlagsError: the initial configuration load failed, or the client is closed
        """
        if self._closed:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.NOT_INITIALIZED,
                message="Cannot initialize a closed AppFlags client",
            )
        if self._initialized:
            logger.warning("AppFlags client is already initialized")
            return
        try:
            await self._synchronizer.initialize()
            self._engine.set_configuration(
                self._codec.encode_configuration(self._synchronizer.configuration)
            )
        except Exception as e:
            logger.error("Unable to initialize the AppFlags client", error=str(e))
            await self._synchronizer.close()
            raise
        self._event_queue.start()
        self._initialized = True
        logger.info("Initialized AppFlags client")

    def _ensure_ready(self) -> None:
        # raises NOT_INITIALIZED before the first successful load
        self._synchronizer.store.get()

    def _handle_configuration_changed(self) -> None:
        self._engine.set_configuration(
            self._codec.encode_configuration(self._synchronizer.configuration)
        )
        self.on_flags_changed.emit()

    def get_all_flags(self, user: User) -> list[Flag]:
        """Compute every flag for ``user`` and record the access.

        Raises:
            AppFlagsError: called before initialization, or the engine returned an invalid flag
        """
        self._ensure_ready()
        result = self._codec.decode_bucketing_result(
            self._engine.bucket(self._codec.encode_user(user))
        )
        flags = [computed.to_flag() for computed in result.flags]
        self._event_queue.enqueue(user.key)
        logger.debug("Determined flags for user", user_key=user.key, flag_count=len(flags))
        return flags

    def get_flag(self, user: User, flag_key: str) -> Flag | None:
        self._ensure_ready()
        result = self._codec.decode_bucketing_result(
            self._engine.bucket_one_flag(self._codec.encode_user(user), flag_key)
        )
        self._event_queue.enqueue(user.key)
        for computed in result.flags:
            flag = computed.to_flag()
            if flag.key == flag_key:
                return flag
        return None

    async def close(self) -> None:
        """Stop synchronization and flush the remaining events."""
        if self._closed:
            return
        self._closed = True
        await self._synchronizer.close()
        await self._event_queue.close()
        logger.info("Closed AppFlags client")

    def register_exit_hook(self) -> None:
        """Close the client at interpreter exit if the application did not."""
        atexit.register(self._close_at_exit)

    def _close_at_exit(self) -> None:
        if self._closed:
            return
        try:
            asyncio.run(self.close())
        except Exception as e:
            logger.error("Failed to close AppFlags client at exit", error=str(e))

    async def __aenter__(self) -> AppFlagsClient:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
