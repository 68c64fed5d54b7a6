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

CALCOM_REQUEST_COUNT = Counter(
    "calcom_requests_total",
    "Outbound requests to the scheduling provider",
    ["operation", "outcome"],
)

BOOKING_COUNT = Counter(
    "pwyc_bookings_total",
    "Pay-what-you-can bookings by confirmation status",
    ["status"],
)

PAYMENT_GATE_DECISIONS = Counter(
    "payment_gate_decisions_total",
    "Payment gate outcomes for guarded routes",
    ["outcome"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
