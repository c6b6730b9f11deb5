"""InMemoryEdgeClient 実装"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .edge import EdgeClient
from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .models import BucketEvent, Configuration, ConfigurationLoadType


@dataclass
class LoadRequest:
    """記録された設定ロード要求。"""

    load_type: ConfigurationLoadType
    get_update_at: int | None = None


class InMemoryEdgeClient(EdgeClient):
    """テスト用インメモリエッジクライアント。

    ``queue_configuration`` / ``queue_load_error`` で次の応答を積む。応答が
    積まれていない場合は最後に返した設定を返す。
    """

    def __init__(self, configuration: Configuration | None = None) -> None:
        self._responses: list[Configuration | Exception] = []
        self._last: Configuration | None = configuration
        self._send_errors: list[Exception] = []
        self.loads: list[LoadRequest] = []
        self.batches: list[list[BucketEvent]] = []
        self.send_attempts: list[list[BucketEvent]] = []

    def queue_configuration(self, configuration: Configuration) -> None:
        self._responses.append(configuration)

    def queue_load_error(self, error: Exception) -> None:
        self._responses.append(error)

    def fail_next_send(self, error: Exception | None = None) -> None:
        self._send_errors.append(
            error
            or AppFlagsError(
                code=AppFlagsErrorCodes.SEND_FAILED,
                message="send_event_batch: HTTP 500",
            )
        )

    async def load_configuration(
        self,
        load_type: ConfigurationLoadType,
        get_update_at: int | None = None,
    ) -> Configuration:
        self.loads.append(LoadRequest(load_type=load_type, get_update_at=get_update_at))
        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, Exception):
                raise response
            self._last = response
        if self._last is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.LOAD_FAILED,
                message="load_configuration: no configuration available",
            )
        return self._last

    async def send_event_batch(self, events: Sequence[BucketEvent]) -> None:
        self.send_attempts.append(list(events))
        if self._send_errors:
            raise self._send_errors.pop(0)
        self.batches.append(list(events))

    @property
    def sent_user_keys(self) -> list[list[str]]:
        return [[e.user_key for e in batch] for batch in self.batches]
