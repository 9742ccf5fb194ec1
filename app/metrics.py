from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

OTP_VERIFICATIONS = Counter(
    "otp_verifications_total",
    "OTP verification attempts by outcome",
    ["outcome"],
)
CONTRACTS_SIGNED = Counter(
    "contracts_signed_total",
    "Signed contracts persisted",
    ["signature_type"],
)
LINKS_ISSUED = Counter(
    "secure_links_issued_total",
    "Secure links issued",
    ["source"],
)
AUDIT_WRITE_FAILURES = Counter(
    "audit_write_failures_total",
    "Audit log entries that could not be persisted",
)

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)
