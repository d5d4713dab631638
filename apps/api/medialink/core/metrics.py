"""Prometheus metrics for the resolution pipeline and audio delivery.

Provides counters and histograms for tracking:
- Strategy attempt outcomes and latency
- Resolution outcomes per reference kind
- Stream delivery terminal states
"""

from prometheus_client import Counter, Histogram

strategy_attempts_total = Counter(
    "strategy_attempts_total",
    "Total resolution strategy attempts",
    ["strategy", "outcome"],  # success/soft_failure/hard_failure
)

strategy_duration_seconds = Histogram(
    "strategy_duration_seconds",
    "Strategy attempt duration in seconds",
    ["strategy"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

resolutions_total = Counter(
    "resolutions_total",
    "Total resolver invocations",
    ["kind", "status"],  # status: success/exhausted
)

stream_deliveries_total = Counter(
    "stream_deliveries_total",
    "Total audio stream deliveries by terminal state",
    ["state"],  # completed/aborted/failed_before_headers
)

stream_bytes_total = Counter(
    "stream_bytes_total",
    "Total transcoded audio bytes written to callers",
)
