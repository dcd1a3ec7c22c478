"""Prometheus metrics for ingestion outcomes, detection confidence and listener health"""

from typing import Optional

from prometheus_client import Counter, Histogram

# Ingestion metrics
ingestion_counter = Counter(
    "finance_ingest_messages_total",
    "Messages processed by ingest()",
    ["source_type", "outcome"],  # recorded | duplicate | low_confidence | not_detected | disabled | error
)

detection_confidence_histogram = Histogram(
    "finance_ingest_detection_confidence",
    "Confidence of detected transaction candidates",
    buckets=[0.3, 0.5, 0.6, 0.7, 0.8, 0.85, 0.9, 0.95, 1.0],
)

duplicate_counter = Counter(
    "finance_ingest_duplicates_total",
    "Candidates rejected as duplicates",
    ["mechanism"],  # hash | similarity
)

# Listener metrics
listener_error_counter = Counter(
    "finance_ingest_listener_errors_total",
    "Listener registration or permission failures",
    ["source"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)

_REASON_OUTCOMES = {
    "duplicate": "duplicate",
    "low-confidence": "low_confidence",
    "no transaction detected": "not_detected",
    "source-disabled": "disabled",
    "auto-detection-disabled": "disabled",
}


def record_ingestion(source_type: str, success: bool, reason: Optional[str] = None) -> None:
    """Bucket one ingest() result by outcome"""
    if success:
        outcome = "recorded"
    else:
        outcome = _REASON_OUTCOMES.get(reason or "", "error")
    ingestion_counter.labels(source_type=source_type, outcome=outcome).inc()


def record_detection(confidence: float) -> None:
    detection_confidence_histogram.observe(confidence)


def record_duplicate(mechanism: str) -> None:
    duplicate_counter.labels(mechanism=mechanism).inc()
