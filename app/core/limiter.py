"""
Shared rate limiter instance.

Imported by endpoint modules so they can apply @limiter.limit() decorators.
The limiter is attached to app.state in main.py. RATE_LIMIT_ENABLED=false
turns every limit into a no-op (local runs, test suites).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
