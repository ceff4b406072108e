"""Prometheus metrics for monitoring."""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, generate_latest

# Request metrics
gateway_requests_total = Counter(
    "gateway_requests_total", "Total gateway requests", ["method", "route", "status"]
)

gateway_request_duration_seconds = Histogram(
    "gateway_request_duration_seconds",
    "Gateway request duration in seconds",
    ["method", "route"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Rate limiting
rate_limit_rejections_total = Counter(
    "gateway_rate_limit_rejections_total", "Requests rejected by the rate limiter", ["request_class"]
)

# Streaming sessions
active_sessions = Gauge("gateway_active_sessions", "Open tool-protocol sessions")

session_terminations_total = Counter(
    "gateway_session_terminations_total", "Closed tool-protocol sessions", ["reason"]
)

# Tool calls
tool_calls_total = Counter("gateway_tool_calls_total", "Tool calls dispatched", ["tool", "outcome"])

# Audit
audit_write_failures_total = Counter(
    "gateway_audit_write_failures_total", "Audit records that could not be written"
)


def record_http_request(method: str, route: str, status_code: int, duration: float):
    """Record HTTP request metrics."""
    status = f"{status_code // 100}xx"
    gateway_requests_total.labels(method=method, route=route, status=status).inc()
    gateway_request_duration_seconds.labels(method=method, route=route).observe(duration)


def record_rate_limit_rejection(request_class: str):
    rate_limit_rejections_total.labels(request_class=request_class).inc()


def record_tool_call(tool: str, outcome: str):
    tool_calls_total.labels(tool=tool, outcome=outcome).inc()


def record_session_closed(reason: str):
    session_terminations_total.labels(reason=reason).inc()


def set_active_sessions(count: int):
    active_sessions.set(count)


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest(REGISTRY)
