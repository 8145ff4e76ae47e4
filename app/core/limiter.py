# app/core/limiter.py
"""
Per-IP rate limits for the public booking endpoints.
Kept in its own module so endpoints and main can import it without cycles.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
