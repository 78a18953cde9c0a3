"""
Prometheus metrics for relay connections.

Module-level metric objects (singletons, thread-safe) registered on the
``prometheus_client`` default registry. Connections and the pool update
them as frames arrive; exposing the registry over HTTP is left to the
application (``prometheus_client.start_http_server`` or its own endpoint).

Architecture:
    RELAY_COUNTER:  Cumulative per-relay totals (monotonically increasing).
    RELAY_GAUGE:    Point-in-time per-relay state.

Labels:
    counter: events_received, events_invalid, notices, protocol_errors,
        connect_failures, reconnects, publishes_<status>
    gauge: open, subscriptions, pending_publishes
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge


RELAY_COUNTER = Counter(
    "nostrpool_relay_counter",
    "Per-relay cumulative totals",
    ["relay", "name"],
)

RELAY_GAUGE = Gauge(
    "nostrpool_relay_gauge",
    "Per-relay point-in-time values",
    ["relay", "name"],
)


def inc_counter(relay: str, name: str, value: float = 1) -> None:
    """Increment the *name* counter for *relay*."""
    RELAY_COUNTER.labels(relay=relay, name=name).inc(value)


def set_gauge(relay: str, name: str, value: float) -> None:
    """Set the *name* gauge for *relay*."""
    RELAY_GAUGE.labels(relay=relay, name=name).set(value)
