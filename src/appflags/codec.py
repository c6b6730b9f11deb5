"""Wire codec for edge server and evaluation engine payloads."""

from __future__ import annotations

import base64
import binascii
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .models import (
    BucketingResult,
    Configuration,
    ConfigurationLoadMetadata,
    EventBatch,
    User,
)

_M = TypeVar("_M", bound=BaseModel)


class Codec(Protocol):
    """ドメインレコードとバイト列を相互変換するコーデック。"""

    def encode_load_metadata(self, metadata: ConfigurationLoadMetadata) -> bytes: ...

    def encode_configuration(self, configuration: Configuration) -> bytes: ...

    def decode_configuration(self, data: bytes) -> Configuration: ...

    def encode_event_batch(self, batch: EventBatch) -> bytes: ...

    def encode_user(self, user: User) -> bytes: ...

    def decode_bucketing_result(self, data: bytes) -> BucketingResult: ...


class JsonCodec:
    """pydantic の JSON シリアライズを使うデフォルトコーデック。"""

    def _encode(self, model: BaseModel) -> bytes:
        return model.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    def _decode(self, model_type: type[_M], data: bytes) -> _M:
        try:
            return model_type.model_validate_json(data)
        except ValidationError as e:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.DECODE_ERROR,
                message=f"Failed to decode {model_type.__name__}: {e}",
                cause=e,
            ) from e

    def encode_load_metadata(self, metadata: ConfigurationLoadMetadata) -> bytes:
        return self._encode(metadata)

    def encode_configuration(self, configuration: Configuration) -> bytes:
        return self._encode(configuration)

    def decode_configuration(self, data: bytes) -> Configuration:
        return self._decode(Configuration, data)

    def encode_event_batch(self, batch: EventBatch) -> bytes:
        return self._encode(batch)

    def encode_user(self, user: User) -> bytes:
        return self._encode(user)

    def decode_bucketing_result(self, data: bytes) -> BucketingResult:
        return self._decode(BucketingResult, data)


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def from_base64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AppFlagsError(
            code=AppFlagsErrorCodes.DECODE_ERROR,
            message=f"Invalid base64 payload: {e}",
            cause=e,
        ) from e
