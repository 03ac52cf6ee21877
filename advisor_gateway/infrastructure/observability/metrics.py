"""Prometheus metrics for monitoring recommendation outcomes, cache efficiency, and model performance"""

from prometheus_client import Counter, Histogram

# Recommendation metrics
recommendation_counter = Counter(
    "advisor_recommendation_total",
    "Total recommendation requests handled",
    ["type", "outcome"],  # outcome: success | failure
)

# Cache metrics
cache_hit_counter = Counter(
    "advisor_cache_hits_total",
    "Advice cache hits",
    ["type"],
)

cache_miss_counter = Counter(
    "advisor_cache_misses_total",
    "Advice cache misses",
    ["type"],
)

cache_eviction_counter = Counter(
    "advisor_cache_evictions_total",
    "Advice cache entries evicted by capacity pressure",
)

# Advice model metrics
model_latency_histogram = Histogram(
    "advice_model_latency_seconds",
    "Advice model response time",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 45.0],
)

model_failure_counter = Counter(
    "advice_model_failures_total",
    "Failed advice model calls",
)

# Record store metrics
record_store_failures_counter = Counter(
    "record_store_failures_total",
    "Failed financial record store reads",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def metric_label(recommendation_type: str) -> str:
    """Collapse caller-chosen custom labels into one series"""
    if recommendation_type.startswith("custom:"):
        return "custom"
    return recommendation_type


def record_recommendation(recommendation_type: str, success: bool) -> None:
    """Record recommendation outcome for monitoring failure rates per type"""
    outcome = "success" if success else "failure"
    recommendation_counter.labels(type=metric_label(recommendation_type), outcome=outcome).inc()
