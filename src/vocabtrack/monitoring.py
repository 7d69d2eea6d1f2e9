"""Monitoring configuration for the progress engine."""
from prometheus_client import Counter, start_http_server

# Review metrics
reviews = Counter(
    "vocabtrack_reviews_total",
    "Total number of review answers applied",
    ["outcome"],
)

points_awarded = Counter(
    "vocabtrack_points_awarded_total",
    "Total number of points awarded for correct reviews",
)

# Enrollment metrics
enrollments = Counter(
    "vocabtrack_enrollments_total",
    "Total number of words put into review",
)

unenrollments = Counter(
    "vocabtrack_unenrollments_total",
    "Total number of words taken out of review",
)

# Reset metrics
resets = Counter(
    "vocabtrack_resets_total",
    "Total number of progress reset attempts",
    ["result"],
)

# Storage metrics
snapshot_errors = Counter(
    "vocabtrack_snapshot_errors_total",
    "Total number of snapshot load/save failures",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
