"""Monitoring configuration for the vocabulary trainer."""
from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Quiz metrics
answers = Counter(
    "phrasedrill_answers_total",
    "Number of finished questions by outcome",
    ["result"],
)

xp_awarded = Counter(
    "phrasedrill_xp_awarded_total",
    "Total XP awarded for correct answers",
)

practice_backlog = Gauge(
    "phrasedrill_practice_backlog",
    "Number of phrases currently flagged for practice",
)

explanation_requests = Counter(
    "phrasedrill_explanation_requests_total",
    "Explanation requests by outcome",
    ["status"],
)

# API metrics
api_requests = Counter(
    "phrasedrill_api_requests_total",
    "Total number of API requests",
    ["endpoint"],
)

request_duration = Histogram(
    "phrasedrill_request_duration_seconds",
    "Duration of API requests in seconds",
    ["endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# Database metrics
db_operations = Counter(
    "phrasedrill_db_operations_total",
    "Total number of database operations",
    ["operation_type"],
)

# Error metrics
error_count = Counter(
    "phrasedrill_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
