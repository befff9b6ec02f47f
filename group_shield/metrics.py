"""Prometheus counters shared across the pipeline.

Counters are always updated; the scrape endpoint is only started when
``METRICS_ENABLED`` is set.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, start_http_server

EVENTS_TOTAL = Counter(
    "shield_events_total",
    "Inbound events processed",
    ["kind"],
)
ACTIONS_TOTAL = Counter(
    "shield_actions_total",
    "Moderation actions by kind and outcome",
    ["kind", "outcome"],
)
SCAM_DECISIONS_TOTAL = Counter(
    "shield_scam_decisions_total",
    "Scam pipeline decisions by severity",
    ["severity"],
)
AUDIT_SENDS_TOTAL = Counter(
    "shield_audit_sends_total",
    "Audit-log deliveries by route",
    ["route"],
)
TRACKER_SIZE = Gauge(
    "shield_tracker_entries",
    "Entries held by in-memory trackers",
    ["tracker"],
)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
