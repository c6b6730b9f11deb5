"""Configuration synchronizer.

Keeps the :class:`ConfigurationStore` current with a hybrid pull/push
strategy: one mandatory initial load, a fixed-interval periodic reload, and
reloads triggered by push notifications. Every reload after the first goes
through :meth:`ConfigurationStore.replace_if_newer`, so loads that complete
out of order can never move the store backwards.
"""

from __future__ import annotations

import structlog

from . import metrics
from .config import ConfigurationOptions
from .edge import EdgeClient
from .models import Configuration, ConfigurationLoadType, ConfigurationNotification
from .realtime import RealtimeSubscriber, channel_name_for
from .scheduler import PeriodicTask, Scheduler
from .signals import ChangeSignal
from .store import ConfigurationStore

logger = structlog.get_logger(__name__)


class ConfigurationSynchronizer:
    """Fetches configuration and keeps it fresh."""

    def __init__(
        self,
        edge_client: EdgeClient,
        scheduler: Scheduler,
        realtime: RealtimeSubscriber | None = None,
        options: ConfigurationOptions | None = None,
        store: ConfigurationStore | None = None,
    ) -> None:
        self._edge_client = edge_client
        self._scheduler = scheduler
        self._realtime = realtime
        self._store = store or ConfigurationStore()
        self._polling_period_ms = (options or ConfigurationOptions()).resolve_polling_period_ms()
        self._polling_task: PeriodicTask | None = None
        self._subscribed = False
        self._initializing = False
        self.on_change = ChangeSignal()

    @property
    def store(self) -> ConfigurationStore:
        return self._store

    @property
    def configuration(self) -> Configuration:
        return self._store.get()

    @property
    def polling_period_ms(self) -> int:
        return self._polling_period_ms

    @property
    def is_polling(self) -> bool:
        return self._polling_task is not None and not self._polling_task.cancelled

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    async def initialize(self) -> None:
        """Perform the initial load, subscribe for pushes and start polling.

        A no-op while polling is already armed. After :meth:`close` the
        synchronizer can be initialized again; the reloaded snapshot then goes
        through the freshness check like any other reload.

        Raises:
            AppFlagsError: the initial load failed. Nothing is armed in that case.
        """
        if self.is_polling or self._initializing:
            logger.warning("Configuration synchronizer is already initialized")
            return

        self._initializing = True
        try:
            configuration = await self._load(ConfigurationLoadType.INITIAL_LOAD)
        finally:
            self._initializing = False
        if self._store.is_ready:
            self.apply(configuration)
        else:
            self._store.set_initial(configuration)
        configuration = self._store.get()

        if configuration.environment_id is None:
            logger.warning(
                "Unable to subscribe to realtime configuration changes because "
                "configuration is missing `environment_id`"
            )
        elif self._realtime is None:
            logger.warning("No realtime subscriber configured, polling only")
        else:
            await self._subscribe(self._realtime, configuration.environment_id)

        self._polling_task = self._scheduler.schedule_periodic(
            self._polling_period_ms / 1000,
            self._reload_periodic,
            name="configuration-poll",
        )
        logger.debug(
            "Will poll for new configurations",
            polling_period_ms=self._polling_period_ms,
        )

    async def _subscribe(self, realtime: RealtimeSubscriber, environment_id: str) -> None:
        channel_name = channel_name_for(environment_id)
        try:
            await realtime.subscribe(channel_name, self._on_notification)
        except Exception as e:
            logger.warning(
                "Realtime subscription failed, polling only",
                channel=channel_name,
                error=str(e),
            )
            return
        self._subscribed = True

    async def _load(
        self, load_type: ConfigurationLoadType, get_update_at: int | None = None
    ) -> Configuration:
        try:
            configuration = await self._edge_client.load_configuration(load_type, get_update_at)
        except Exception:
            metrics.configuration_reloads_total.add(
                1, {"load_type": str(load_type), "outcome": "error"}
            )
            raise
        metrics.configuration_reloads_total.add(
            1, {"load_type": str(load_type), "outcome": "success"}
        )
        return configuration

    def apply(self, candidate: Configuration) -> bool:
        """Freshness-checked replace; fires ``on_change`` when accepted."""
        if not self._store.replace_if_newer(candidate):
            return False
        self.on_change.emit()
        return True

    async def _reload_periodic(self) -> None:
        logger.debug("Performing periodic reload of configuration")
        try:
            candidate = await self._load(ConfigurationLoadType.PERIODIC_RELOAD)
            self.apply(candidate)
        except Exception as e:
            logger.error("Periodic configuration reload failed", error=str(e))

    async def reload_realtime(self, published: int | None) -> None:
        logger.debug("Notified of configuration change, retrieving updated configuration")
        try:
            candidate = await self._load(ConfigurationLoadType.REALTIME_RELOAD, published)
            self.apply(candidate)
        except Exception as e:
            logger.error("Realtime configuration reload failed", error=str(e))

    def _on_notification(self, notification: ConfigurationNotification) -> None:
        self._scheduler.spawn(
            self.reload_realtime(notification.published),
            name="configuration-realtime-reload",
        )

    async def close(self) -> None:
        """Stop polling and detach from the push channel.

        A load already in flight is left to complete.
        """
        if self._polling_task is not None:
            self._polling_task.cancel()
            self._polling_task = None
        if self._realtime is not None and self._subscribed:
            self._subscribed = False
            await self._realtime.close()
