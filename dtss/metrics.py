"""Prometheus metrics for the dynamic-threshold engine.

Engines in the same process share these collectors; prometheus_client
counters and histograms are thread-safe, so engines running in a worker
pool can record concurrently.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram, generate_latest

OPERATIONS = Counter(
    "dtss_engine_operations_total",
    "Completed engine operations",
    ["operation"],  # initialize, increase, decrease, adjust_up, refresh_working, refresh_main, recover
)

OPERATION_DURATION = Histogram(
    "dtss_engine_operation_duration_seconds",
    "Wall-clock duration of engine operations",
    ["operation"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

ERRORS = Counter(
    "dtss_engine_errors_total",
    "Engine operations that raised",
    ["reason"],  # invalid_threshold, insufficient_participants, invalid_participant, division_by_zero, ...
)

SEEDS_DRAWN = Counter(
    "dtss_seed_chain_draws_total",
    "Seeds consumed by proactive refresh rounds",
)


def metrics_response() -> bytes:
    """Generate Prometheus-compatible metrics text."""
    return generate_latest()
