"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import and update them at the point of action.  Counters
only go up, so dashboards read them through ``rate()``; the histogram
feeds latency percentiles via ``histogram_quantile()``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress engine
# ---------------------------------------------------------------------------

LESSON_TOGGLES = Counter(
    "lesson_toggles_total",
    "Lesson completion toggles by outcome",
    ["outcome"],  # completed|uncompleted|locked|not_found
)

LESSONS_UNLOCKED_BY_PROGRESS = Counter(
    "lessons_unlocked_by_progress_total",
    "Lessons unlocked because the previous lesson was completed",
)

COURSE_COMPLETIONS = Counter(
    "course_completions_total",
    "Toggles that brought a progress record to 100 percent",
)

FANOUT_RECORDS = Counter(
    "progress_fanout_records_total",
    "Progress records touched by course-wide fan-out operations",
    ["operation", "result"],  # operation: unlock|lock|delete|reconcile
)

PROGRESS_LOCK_WAIT = Histogram(
    "progress_lock_wait_seconds",
    "Time spent waiting for the per-(user, course) progress lock",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# ---------------------------------------------------------------------------
# Supporting infrastructure
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit|miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
