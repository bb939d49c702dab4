"""Prometheus metrics for retrieval, quota and ingestion."""

from prometheus_client import Counter, Histogram

# Retrieval metrics
search_requests_total = Counter(
    "search_requests_total",
    "Total segment searches by the tier that answered",
    ["tier"],
)

search_latency_ms = Histogram(
    "search_latency_ms",
    "Segment search latency in milliseconds",
    ["tier"],
    buckets=[5, 10, 25, 50, 100, 200, 500, 1000, 2000],
)

ranked_search_failures_total = Counter(
    "ranked_search_failures_total",
    "Ranked search attempts that fell back because the tier was unavailable",
    ["reason"],
)

# Quota metrics
quota_decisions_total = Counter(
    "quota_decisions_total",
    "Quota admission decisions",
    ["resource", "plan", "outcome"],
)

# Ingestion metrics
segments_ingested_total = Counter(
    "segments_ingested_total",
    "Total document segments persisted",
)


class PrometheusServiceMetrics:
    """Prometheus-based service metrics implementation."""

    def record_search(self, tier: str, latency_ms: float) -> None:
        """Record a completed search."""
        search_requests_total.labels(tier=tier).inc()
        search_latency_ms.labels(tier=tier).observe(latency_ms)

    def inc_ranked_failure(self, reason: str) -> None:
        """Increment ranked-tier failure counter."""
        ranked_search_failures_total.labels(reason=reason).inc()

    def record_quota_decision(self, resource: str, plan: str, allowed: bool) -> None:
        """Record an admission outcome."""
        outcome = "allowed" if allowed else "denied"
        quota_decisions_total.labels(resource=resource, plan=plan, outcome=outcome).inc()

    def add_segments(self, count: int) -> None:
        """Count persisted segments."""
        segments_ingested_total.inc(count)
