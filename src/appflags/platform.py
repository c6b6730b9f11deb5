"""Platform descriptor attached to every edge request."""

from __future__ import annotations

import platform
from functools import lru_cache

from ._version import __version__
from .models import PlatformData


@lru_cache(maxsize=1)
def get_platform_data() -> PlatformData:
    return PlatformData(
        sdk="Python",
        sdk_type="server",
        sdk_version=__version__,
        platform=platform.python_implementation(),
        platform_version=platform.python_version(),
    )
