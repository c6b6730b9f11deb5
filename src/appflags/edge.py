"""EdgeClient 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .models import BucketEvent, Configuration, ConfigurationLoadType


class EdgeClient(ABC):
    """エッジサーバークライアント抽象基底クラス。"""

    @abstractmethod
    async def load_configuration(
        self,
        load_type: ConfigurationLoadType,
        get_update_at: int | None = None,
    ) -> Configuration:
        """設定を取得する。

        Args:
            load_type: ロード種別
            get_update_at: プッシュ通知の published (エポックミリ秒)。鮮度のヒント。

        Raises:
            AppFlagsError: INVALID_CREDENTIALS または LOAD_FAILED
        """
        ...

    @abstractmethod
    async def send_event_batch(self, events: Sequence[BucketEvent]) -> None:
        """イベントを 1 バッチとして送信する。

        Raises:
            AppFlagsError: INVALID_CREDENTIALS または SEND_FAILED
        """
        ...
