"""
Token utilities: JWT signing/verification, credential extraction and the
service-to-service guard for /internal routes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Request
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import AuthenticationError, AuthFailureReason, ForbiddenError

logger = logging.getLogger(__name__)

INTERNAL_ROLE = "system-internal"
AUTH_COOKIE = "auth"


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------


def create_token(claims: dict[str, Any], expires_in: timedelta | None = None) -> str:
    """Sign ``claims``. Used for internal service tokens and in tests."""
    payload = dict(claims)
    if expires_in is not None:
        payload["exp"] = datetime.now(timezone.utc) + expires_in
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry. Raises AuthenticationError(INVALID_TOKEN)."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise AuthenticationError(AuthFailureReason.INVALID_TOKEN, str(exc)) from exc
    if not isinstance(payload, dict):
        raise AuthenticationError(AuthFailureReason.INVALID_TOKEN, "payload is not an object")
    return payload


# ---------------------------------------------------------------------------
# Credential extraction
# ---------------------------------------------------------------------------


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


def extract_credential(request: Request) -> str | None:
    """Bearer header first, then the raw ``auth`` header, then the ``auth`` cookie."""
    return (
        bearer_token(request)
        or request.headers.get(AUTH_COOKIE)
        or request.cookies.get(AUTH_COOKIE)
    )


# ---------------------------------------------------------------------------
# Internal service guard
# ---------------------------------------------------------------------------


async def verify_internal_token(request: Request) -> dict[str, Any]:
    """FastAPI dependency: requires a bearer JWT with the ``system-internal`` role."""
    token = bearer_token(request)
    if not token:
        logger.warning("Internal API: missing Bearer token")
        raise ForbiddenError()

    try:
        payload = verify_token(token)
    except AuthenticationError as exc:
        logger.warning("Internal API: JWT verification failed: %s", exc)
        raise ForbiddenError() from exc

    roles = payload.get("roles")
    if not isinstance(roles, list) or INTERNAL_ROLE not in roles:
        logger.warning("Internal API: token missing %s role", INTERNAL_ROLE)
        raise ForbiddenError()

    return payload
