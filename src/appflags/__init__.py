"""AppFlags SDK runtime."""

from ._version import __version__
from .client import AppFlagsClient
from .codec import Codec, JsonCodec
from .config import (
    ClientOptions,
    ConfigurationOptions,
    EdgeConfig,
    EventQueueOptions,
    ResolvedEventQueueOptions,
)
from .edge import EdgeClient
from .engine import EvaluationEngine
from .event_queue import EventQueue
from .exceptions import AppFlagsError, AppFlagsErrorCodes
from .http_client import HttpEdgeClient
from .logger import new_logger
from .memory import InMemoryEdgeClient, LoadRequest
from .models import (
    BucketEvent,
    BucketingResult,
    ComputedFlag,
    Configuration,
    ConfigurationLoadMetadata,
    ConfigurationLoadType,
    ConfigurationNotification,
    EventBatch,
    Flag,
    FlagValue,
    FlagValueType,
    PlatformData,
    User,
)
from .platform import get_platform_data
from .realtime import (
    AblyRealtimeSubscriber,
    InMemoryRealtimeSubscriber,
    RealtimeSubscriber,
    channel_name_for,
)
from .scheduler import AsyncioScheduler, ManualScheduler, PeriodicTask, Scheduler
from .signals import ChangeSignal
from .store import ConfigurationStore
from .synchronizer import ConfigurationSynchronizer

__all__ = [
    "__version__",
    "AblyRealtimeSubscriber",
    "AppFlagsClient",
    "AppFlagsError",
    "AppFlagsErrorCodes",
    "AsyncioScheduler",
    "BucketEvent",
    "BucketingResult",
    "ChangeSignal",
    "ClientOptions",
    "Codec",
    "ComputedFlag",
    "Configuration",
    "ConfigurationLoadMetadata",
    "ConfigurationLoadType",
    "ConfigurationNotification",
    "ConfigurationOptions",
    "ConfigurationStore",
    "ConfigurationSynchronizer",
    "EdgeClient",
    "EdgeConfig",
    "EvaluationEngine",
    "EventBatch",
    "EventQueue",
    "EventQueueOptions",
    "Flag",
    "FlagValue",
    "FlagValueType",
    "HttpEdgeClient",
    "InMemoryEdgeClient",
    "InMemoryRealtimeSubscriber",
    "JsonCodec",
    "LoadRequest",
    "ManualScheduler",
    "PeriodicTask",
    "PlatformData",
    "RealtimeSubscriber",
    "ResolvedEventQueueOptions",
    "Scheduler",
    "User",
    "channel_name_for",
    "get_platform_data",
    "new_logger",
]
