API_VERSION_HEADER = "X-Calamansi-Version"
REQUEST_ID_HEADER = "X-Request-ID"

# Quota headers browsers may read on cross-origin responses
RATE_LIMIT_EXPOSED_HEADERS = [
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "Retry-After",
]

# Paths excluded from the per-request access log
SKIP_LOGGING_PATHS = {"/health", "/health/liveness"}
