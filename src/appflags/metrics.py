"""OpenTelemetry メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

from ._version import __version__

_meter = metrics.get_meter("appflags", version=__version__)

events_enqueued_total = _meter.create_counter(
    name="appflags_events_enqueued_total",
    description="Total number of bucket events accepted by the event queue",
    unit="1",
)

events_dropped_total = _meter.create_counter(
    name="appflags_events_dropped_total",
    description="Total number of bucket events dropped because the queue was full",
    unit="1",
)

events_flushed_total = _meter.create_counter(
    name="appflags_events_flushed_total",
    description="Total number of bucket events delivered to the edge server",
    unit="1",
)

flush_failures_total = _meter.create_counter(
    name="appflags_flush_failures_total",
    description="Total number of failed event batch deliveries",
    unit="1",
)

configuration_reloads_total = _meter.create_counter(
    name="appflags_configuration_reloads_total",
    description="Total number of configuration loads by load type and outcome",
    unit="1",
)
