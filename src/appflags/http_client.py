"""エッジサーバー HTTP クライアント実装"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from .codec import Codec, JsonCodec, from_base64, to_base64
from .config import EdgeConfig
from .edge import EdgeClient
from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .models import (
    BucketEvent,
    Configuration,
    ConfigurationLoadMetadata,
    ConfigurationLoadType,
    EventBatch,
    PlatformData,
)
from .platform import get_platform_data

logger = structlog.get_logger(__name__)

CONFIGURATION_PATH = "/configuration/v1/config"
EVENT_BATCH_PATH = "/configuration/v1/eventBatch"


class HttpEdgeClient(EdgeClient):
    """httpx を使ったエッジサーバー HTTP クライアント。"""

    def __init__(
        self,
        config: EdgeConfig,
        codec: Codec | None = None,
        platform_data: PlatformData | None = None,
    ) -> None:
        self._config = config
        self._codec = codec or JsonCodec()
        self._platform_data = platform_data or get_platform_data()
        # the edge server expects the "Bearer: " form
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer: {config.sdk_key}",
        }

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=self._headers,
            timeout=self._config.timeout_seconds,
        )

    def _handle_error(self, resp: httpx.Response, failure_code: str, context: str) -> None:
        if resp.status_code == 403:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.INVALID_CREDENTIALS,
                message=f"{context}: invalid SDK key",
            )
        if resp.status_code != 200:
            raise AppFlagsError(
                code=failure_code,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    async def load_configuration(
        self,
        load_type: ConfigurationLoadType,
        get_update_at: int | None = None,
    ) -> Configuration:
        metadata = ConfigurationLoadMetadata(
            platform_data=self._platform_data,
            load_type=load_type,
        )
        body = {"metadata": to_base64(self._codec.encode_load_metadata(metadata))}
        params: dict[str, Any] = {}
        if get_update_at is not None:
            params["getUpdateAt"] = get_update_at

        try:
            async with self._make_client() as client:
                resp = await client.post(CONFIGURATION_PATH, json=body, params=params)
            self._handle_error(resp, AppFlagsErrorCodes.LOAD_FAILED, "load_configuration")
            data: dict[str, Any] = resp.json()
            configuration = self._codec.decode_configuration(
                from_base64(data["configuration"])
            )
        except AppFlagsError:
            raise
        except Exception as e:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.LOAD_FAILED,
                message=f"Failed to load configuration from edge server: {e}",
                cause=e,
            ) from e

        logger.debug(
            "Loaded configuration",
            load_type=str(load_type),
            published=configuration.published.isoformat() if configuration.published else None,
            flag_count=len(configuration.flags),
        )
        return configuration

    async def send_event_batch(self, events: Sequence[BucketEvent]) -> None:
        batch = EventBatch(platform_data=self._platform_data, bucket_events=tuple(events))
        body = {"eventBatch": to_base64(self._codec.encode_event_batch(batch))}

        logger.debug("Sending event batch", event_count=len(events))
        try:
            async with self._make_client() as client:
                resp = await client.post(EVENT_BATCH_PATH, json=body)
            self._handle_error(resp, AppFlagsErrorCodes.SEND_FAILED, "send_event_batch")
        except AppFlagsError:
            raise
        except Exception as e:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.SEND_FAILED,
                message=f"Failed to send event batch: {e}",
                cause=e,
            ) from e
        logger.debug("Sent event batch", event_count=len(events))
