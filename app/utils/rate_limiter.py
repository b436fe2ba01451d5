"""
Rate Limiter Configuration
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from ..config import settings


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def create_limiter() -> Limiter:
    """In-memory limiter; one process serves the API."""
    return Limiter(
        key_func=get_real_client_ip,
        enabled=settings.rate_limit_enabled,
        default_limits=[settings.rate_limit_default]
    )


# Global rate limiter instance
limiter = create_limiter()
