"""appflags データモデル"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import AppFlagsError, AppFlagsErrorCodes


class _WireModel(BaseModel):
    """エッジサーバーとやり取りする不変レコードの基底クラス。"""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ConfigurationLoadType(StrEnum):
    """設定ロード種別。"""

    INITIAL_LOAD = "INITIAL_LOAD"
    PERIODIC_RELOAD = "PERIODIC_RELOAD"
    REALTIME_RELOAD = "REALTIME_RELOAD"


class FlagValueType(StrEnum):
    """フラグ値の型。"""

    BOOLEAN = "BOOLEAN"
    STRING = "STRING"
    DOUBLE = "DOUBLE"


class PlatformData(_WireModel):
    """実行環境の記述子。全リクエストに付与される。"""

    sdk: str
    sdk_type: str
    sdk_version: str
    platform: str
    platform_version: str


class ConfigurationLoadMetadata(_WireModel):
    """設定ロードリクエストのメタデータ。"""

    platform_data: PlatformData
    load_type: ConfigurationLoadType


class Configuration(_WireModel):
    """設定スナップショット。

    不変。更新は常に新しいインスタンスで置き換える。
    """

    published: datetime | None = None
    environment_id: str | None = None
    flags: tuple[dict[str, Any], ...] = ()


class ConfigurationNotification(_WireModel):
    """プッシュ通知。published はエポックミリ秒。"""

    published: int | None = None


class BucketEvent(_WireModel):
    """フラグアクセスの使用イベント。"""

    event_uuid: str
    timestamp: datetime
    user_key: str

    @classmethod
    def create(cls, user_key: str) -> BucketEvent:
        """新しい UUID と現在時刻でイベントを生成する。"""
        return cls(
            event_uuid=str(uuid.uuid4()),
            timestamp=datetime.now(UTC),
            user_key=user_key,
        )


class EventBatch(_WireModel):
    """イベントバッチ。"""

    platform_data: PlatformData
    bucket_events: tuple[BucketEvent, ...] = Field(default_factory=tuple)


class User(_WireModel):
    """評価対象ユーザー。"""

    key: str


class FlagValue(_WireModel):
    """評価エンジンが返すフラグ値。型ごとに 1 つだけ設定される。"""

    boolean_value: bool | None = None
    string_value: str | None = None
    double_value: float | None = None


class Flag(_WireModel):
    """呼び出し側に返すフラグ。"""

    key: str
    value: bool | str | float


class ComputedFlag(_WireModel):
    """評価エンジンが算出したユーザーごとのフラグ。"""

    key: str | None = None
    value_type: FlagValueType | None = None
    value: FlagValue | None = None

    def to_flag(self) -> Flag:
        """呼び出し側向けの Flag に変換する。

        Raises:
            AppFlagsError: キーまたは値が欠けている、または値が型と一致しない場合
        """
        if self.key is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_FLAG,
                message="Computed flag does not have a key",
            )
        if self.value is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_FLAG,
                message=f"Computed flag {self.key} does not have a value",
            )

        value: bool | str | float | None
        if self.value_type == FlagValueType.BOOLEAN:
            value = self.value.boolean_value
        elif self.value_type == FlagValueType.STRING:
            value = self.value.string_value
        elif self.value_type == FlagValueType.DOUBLE:
            value = self.value.double_value
        else:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_FLAG,
                message=f"Flag {self.key} has an unexpected value type: {self.value_type}",
            )
        if value is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_FLAG,
                message=f"{self.value_type} flag {self.key} does not have a {self.value_type} value",
            )
        return Flag(key=self.key, value=value)


class BucketingResult(_WireModel):
    """評価エンジンの結果。"""

    flags: tuple[ComputedFlag, ...] = ()
