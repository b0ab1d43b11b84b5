from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.whtransfers.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._transfer_replay_total = None
        self._lock_wait_timeout_total = None
        self._erp_commit_total = None
        self._ecommerce_sync_total = None
        self._reconciliation_total = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._transfer_replay_total = Counter(
            "transfer_replay_total",
            "Transfer submissions answered from an existing record.",
            registry=self._registry,
        )
        self._lock_wait_timeout_total = Counter(
            "lock_wait_timeout_total",
            "Lock wait timeout occurrences.",
            registry=self._registry,
        )
        self._erp_commit_total = Counter(
            "erp_commit_total",
            "ERP movement commits by outcome.",
            ["result"],
            registry=self._registry,
        )
        self._ecommerce_sync_total = Counter(
            "ecommerce_sync_total",
            "E-commerce propagation runs by final status.",
            ["final_status"],
            registry=self._registry,
        )
        self._reconciliation_total = Counter(
            "reconciliation_total",
            "Inbound transfer webhooks by outcome.",
            ["outcome"],
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_transfer_replay(self) -> None:
        if not self.enabled:
            return
        self._transfer_replay_total.inc()

    def increment_lock_wait_timeout(self) -> None:
        if not self.enabled:
            return
        self._lock_wait_timeout_total.inc()

    def record_erp_commit(self, result: str) -> None:
        if not self.enabled:
            return
        self._erp_commit_total.labels(result=result).inc()

    def record_ecommerce_sync(self, final_status: str) -> None:
        if not self.enabled:
            return
        self._ecommerce_sync_total.labels(final_status=final_status).inc()

    def record_reconciliation(self, outcome: str) -> None:
        if not self.enabled:
            return
        self._reconciliation_total.labels(outcome=outcome).inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
