"""Configuration store."""

from __future__ import annotations

import structlog

from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .models import Configuration

logger = structlog.get_logger(__name__)


class ConfigurationStore:
    """Holds the current configuration snapshot.

    The first snapshot is accepted unconditionally. After that a candidate
    replaces the current snapshot only if its ``published`` time is strictly
    greater.
    """

    def __init__(self) -> None:
        self._configuration: Configuration | None = None

    @property
    def is_ready(self) -> bool:
        return self._configuration is not None

    def get(self) -> Configuration:
        """現在のスナップショットを返す。

        Raises:
            AppFlagsError: 初回ロード前に呼ばれた場合 (NOT_INITIALIZED)
        """
        if self._configuration is None:
            logger.error("Cannot use configuration before the client has been initialized")
            raise AppFlagsError(
                code=AppFlagsErrorCodes.NOT_INITIALIZED,
                message="Configuration has not been loaded yet",
            )
        return self._configuration

    def set_initial(self, configuration: Configuration) -> None:
        self._configuration = configuration

    def replace_if_newer(self, candidate: Configuration) -> bool:
        """Replace the snapshot if ``candidate`` is strictly newer.

        Returns:
            True if the candidate was accepted.

        Raises:
            AppFlagsError: the store is empty, or either snapshot lacks ``published``
        """
        current = self._configuration
        if current is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.NOT_INITIALIZED,
                message="Cannot replace configuration before the initial load",
            )
        if current.published is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.MISSING_PUBLISHED,
                message="Current configuration is missing `published` property",
            )
        if candidate.published is None:
            raise AppFlagsError(
                code=AppFlagsErrorCodes.MISSING_PUBLISHED,
                message="New configuration is missing `published` property",
            )

        if candidate.published > current.published:
            self._configuration = candidate
            logger.debug(
                "Updated configuration",
                published=candidate.published.isoformat(),
                flag_count=len(candidate.flags),
            )
            return True

        logger.debug(
            "Not updating configuration because the new configuration is not newer",
            current_published=current.published.isoformat(),
            candidate_published=candidate.published.isoformat(),
        )
        return False
