# app/core/rate_limiter.py

from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Per-client limits for the endpoints that are worth hammering
LOGIN_LIMIT = "10/minute"
SCAN_LIMIT = "60/minute"


def get_real_ip(request) -> str:
    """
    Client IP for rate-limit keys. Gate scanners and student phones usually
    reach us through a proxy, so forwarded headers win over the socket address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or get_remote_address(request)


def redis_storage_uri() -> str | None:
    """REDIS_URL, upgraded to TLS (rediss://) outside dev."""
    uri = settings.REDIS_URL
    if uri and uri.startswith("redis://") and settings.ENV == "prod":
        uri = "rediss://" + uri[len("redis://"):]
    return uri


def build_limiter() -> Limiter:
    uri = redis_storage_uri()
    if not uri:
        logger.warning("REDIS_URL not set, rate limits are kept in memory")
        return Limiter(key_func=get_real_ip, enabled=settings.RATE_LIMIT_ENABLED)

    try:
        return Limiter(
            key_func=get_real_ip,
            storage_uri=uri,
            strategy="fixed-window",
            storage_options={"socket_connect_timeout": 5, "retry_on_timeout": True},
            enabled=settings.RATE_LIMIT_ENABLED,
        )
    except Exception as e:
        # Memory storage keeps the API up when Redis is misconfigured
        logger.error(f"Redis rate-limit storage unavailable ({e}); using memory")
        return Limiter(key_func=get_real_ip, enabled=settings.RATE_LIMIT_ENABLED)


limiter = build_limiter()
