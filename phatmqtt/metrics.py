"""
Prometheus metrics for the server.

Each application gets its own CollectorRegistry so several apps (in tests,
for example) can coexist in one process.
"""

from typing import Dict, Optional, Set

from prometheus_client import CollectorRegistry, Counter, Gauge

NAMESPACE = "phatmqtt"
SUBSYSTEM = "server"


class ServerMetrics:
    """Counters and gauges updated by the coordinator and notifier."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.clients_online = Gauge(
            "online_clients",
            "Display clients by last reported status",
            ["status"],
            namespace=NAMESPACE,
            subsystem=SUBSYSTEM,
            registry=self.registry,
        )
        self.images_put = Counter(
            "images_posted",
            "Images accepted for display",
            namespace=NAMESPACE,
            subsystem=SUBSYSTEM,
            registry=self.registry,
        )
        self.images_get = Counter(
            "images_downloaded",
            "Cached image downloads",
            namespace=NAMESPACE,
            subsystem=SUBSYSTEM,
            registry=self.registry,
        )
        self.last_upload = Gauge(
            "last_upload_at",
            "Unix time of the last accepted upload",
            namespace=NAMESPACE,
            subsystem=SUBSYSTEM,
            registry=self.registry,
        )
        self.announce_failures = Counter(
            "announce_failures",
            "Image announcements the broker did not accept",
            namespace=NAMESPACE,
            subsystem=SUBSYSTEM,
            registry=self.registry,
        )

        self._statuses_seen: Set[str] = set()

    def set_client_counts(self, counts: Dict[str, int]) -> None:
        """Publish per-status client counts; statuses no longer held drop to 0."""
        self._statuses_seen.update(counts)
        for status in self._statuses_seen:
            self.clients_online.labels(status=status).set(counts.get(status, 0))
