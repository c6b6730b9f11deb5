"""Push-notification channel for configuration changes."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import ValidationError

from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .models import ConfigurationNotification

logger = structlog.get_logger(__name__)

CHANNEL_PREFIX = "new-config-alert:"
REALTIME_TOKEN_PATH = "/realtimeToken"

NotificationHandler = Callable[[ConfigurationNotification], None]


def channel_name_for(environment_id: str) -> str:
    return CHANNEL_PREFIX + environment_id


def parse_notification(data: Any) -> ConfigurationNotification | None:
    """Parse a message payload, returning None when it is malformed."""
    try:
        if isinstance(data, (str, bytes)):
            data = json.loads(data)
        return ConfigurationNotification.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.warning("Ignoring malformed configuration notification", error=str(e))
        return None


class RealtimeSubscriber(ABC):
    """Abstract push-notification subscriber."""

    @abstractmethod
    async def subscribe(self, channel_name: str, handler: NotificationHandler) -> None:
        """Connect and deliver every notification on ``channel_name`` to ``handler``.

        Raises:
            AppFlagsError: the connection or subscription failed (REALTIME_ERROR)
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class AblyRealtimeSubscriber(RealtimeSubscriber):
    """Ably realtime を使ったサブスクライバー。

    トークンはエッジサーバーの ``/realtimeToken`` から取得する。``ably`` は
    オプション依存 (``appflags-sdk[realtime]``)。
    """

    def __init__(self, base_url: str) -> None:
        self._auth_url = base_url.rstrip("/") + REALTIME_TOKEN_PATH
        self._client: Any = None

    def _get_client(self) -> Any:  # noqa: ANN401
        if self._client is None:
            from ably import AblyRealtime

            self._client = AblyRealtime(auth_url=self._auth_url)
        return self._client

    async def subscribe(self, channel_name: str, handler: NotificationHandler) -> None:
        def _listener(message: Any) -> None:  # noqa: ANN401
            notification = parse_notification(message.data)
            if notification is not None:
                handler(notification)

        try:
            channel = self._get_client().channels.get(channel_name)
            await channel.subscribe(_listener)
        except Exception as e:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.REALTIME_ERROR,
                message=f"Failed to subscribe to {channel_name}: {e}",
                cause=e,
            ) from e
        logger.debug("Subscribed to realtime channel", channel=channel_name)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class InMemoryRealtimeSubscriber(RealtimeSubscriber):
    """In-memory subscriber for testing."""

    def __init__(self, fail_subscribe: bool = False) -> None:
        self._fail_subscribe = fail_subscribe
        self._handlers: dict[str, list[NotificationHandler]] = {}
        self.closed = False

    @property
    def channels(self) -> list[str]:
        return list(self._handlers)

    async def subscribe(self, channel_name: str, handler: NotificationHandler) -> None:
        if self._fail_subscribe:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.REALTIME_ERROR,
                message=f"Failed to subscribe to {channel_name}",
            )
        self._handlers.setdefault(channel_name, []).append(handler)

    def publish(self, channel_name: str, data: Any) -> None:  # noqa: ANN401
        """Deliver a raw payload as the push service would."""
        if self.closed:
            return
        notification = parse_notification(data)
        if notification is None:
            return
        for handler in self._handlers.get(channel_name, []):
            handler(notification)

    async def close(self) -> None:
        self.closed = True
        self._handlers.clear()
