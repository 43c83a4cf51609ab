from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

APPOINTMENTS_BOOKED = Counter(
    "appointments_booked_total",
    "Appointments created through booking confirmation",
)

SLOT_CONFLICTS = Counter(
    "slot_conflicts_total",
    "Booking, hold or reschedule attempts rejected because the slot was taken",
    ["operation"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
