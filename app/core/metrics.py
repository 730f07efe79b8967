"""
Prometheus metrics for monitoring.

Metrics collected:
- HTTP request duration (histogram)
- HTTP request count by status code (counter)
- Active requests (gauge)
- Subdomain resolution outcomes (counter)
- Orgname cache operations (counter)
- Onboarding and billing events (counters)
"""

import time
from functools import wraps

from prometheus_client import Counter, Gauge, Histogram, Info


# Application info
app_info = Info("orgspace_app", "Orgspace application information")

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
)

# Tenancy metrics
subdomain_resolutions_total = Counter(
    "subdomain_resolutions_total",
    "Subdomain resolution outcomes",
    ["outcome"],  # resolved, not_found, cache_not_found, not_tenant_scoped, exempt
)

orgname_cache_operations_total = Counter(
    "orgname_cache_operations_total",
    "Orgname availability cache operations",
    ["operation", "result"],
)

# Business metrics
organizations_registered_total = Counter(
    "organizations_registered_total",
    "Organizations created through phase 1",
)

emails_verified_total = Counter(
    "organization_emails_verified_total",
    "Organization email verifications",
    ["outcome"],  # verified, invalid, expired
)

orgname_claims_total = Counter(
    "orgname_claims_total",
    "Orgname claim attempts",
    ["outcome"],  # claimed, conflict, rejected
)

subscriptions_total = Counter(
    "subscriptions_total",
    "Subscription lifecycle events",
    ["event", "gateway"],  # order_created, activated, cancelled
)

payment_gateway_request_duration_seconds = Histogram(
    "payment_gateway_request_duration_seconds",
    "Payment gateway API call duration in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def track_time(metric: Histogram, labels: dict | None = None):
    """
    Decorator to track async function execution time.

    Usage:
        @track_time(http_request_duration_seconds, {"method": "GET", "endpoint": "/plans"})
        async def my_endpoint():
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                if labels:
                    metric.labels(**labels).observe(duration)
                else:
                    metric.observe(duration)
        return wrapper
    return decorator
