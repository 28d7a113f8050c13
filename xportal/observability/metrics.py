"""Prometheus metrics for the trace pipeline.

All collectors live on the default registry so ``/metrics`` can expose them
with ``prometheus_client.generate_latest()``.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

trace_requests_total = Counter(
    "xportal_trace_requests_total",
    "Trace assemblies by outcome",
    ["outcome"],  # success | error
)

trace_duration_seconds = Histogram(
    "xportal_trace_duration_seconds",
    "Wall-clock time to assemble one claim trace",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

resource_fetches_total = Counter(
    "xportal_resource_fetches_total",
    "Gateway fetches issued by the trace assembler",
    ["outcome"],  # ok | not_found | error
)

absorbed_failures_total = Counter(
    "xportal_absorbed_failures_total",
    "Sub-fetch failures degraded to a default value",
    ["reason"],
)
