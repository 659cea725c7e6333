"""Shared slowapi limiter, keyed by client address."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from app.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
    enabled=settings.RATE_LIMIT_ENABLED
)
