from .observability import ObservabilityMiddleware
from .rate_limit import RateLimitMiddleware, rate_limit
from .security_headers import SecurityHeadersMiddleware

__all__ = [
    "ObservabilityMiddleware",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "rate_limit",
]
