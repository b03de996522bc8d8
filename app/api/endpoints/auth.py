"""
Auth Endpoint — SSO proxy

POST /auth/register  →  register at the SSO, set the `auth` cookie
POST /auth/login     →  login at the SSO, set the `auth` cookie
POST /auth/refresh   →  exchange a refresh token for a new access token
POST /auth/logout    →  best-effort SSO logout, always clears the `auth` cookie

The access token returned by the SSO is the credential the auth dependency
verifies on every other route.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response

from app.core.config import settings
from app.core.exceptions import SsoError
from app.core.limiter import limiter
from app.core.security import AUTH_COOKIE
from app.models.schemas import (
    LoginRequest,
    LogoutResponse,
    RefreshRequest,
    RegisterRequest,
    SsoTokenResponse,
)
from app.services.sso_client import SsoClient, get_sso_client

router = APIRouter()


def _cookie_options() -> dict:
    options: dict = {"domain": settings.AUTH_COOKIE_DOMAIN or None}
    if not settings.is_development:
        options.update(secure=True, httponly=True, samesite="none")
    return options


def set_auth_cookie(response: Response, token: str, expires_at: int | None = None) -> None:
    """Write the `auth` cookie. ``expires_at`` is the SSO unix timestamp."""
    expires = datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None
    response.set_cookie(AUTH_COOKIE, token, expires=expires, **_cookie_options())


def remove_auth(response: Response) -> None:
    response.set_cookie(AUTH_COOKIE, "", expires=0, max_age=-1, **_cookie_options())
    response.headers["logout"] = "true"


@router.post(
    "/register",
    response_model=SsoTokenResponse,
    summary="Register through the SSO",
)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: RegisterRequest,
    response: Response,
    sso: SsoClient = Depends(get_sso_client),
) -> SsoTokenResponse:
    result = await sso.register(body.email, body.password, body.vcode, body.username)
    set_auth_cookie(response, result.access_data.access_token, result.access_data.expires_at)
    return result


@router.post(
    "/login",
    response_model=SsoTokenResponse,
    summary="Login through the SSO",
    description="Returns the SSO token payload and sets it as the `auth` cookie.",
)
@limiter.limit("5/minute")
async def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    sso: SsoClient = Depends(get_sso_client),
) -> SsoTokenResponse:
    result = await sso.login(body.email, body.password)
    set_auth_cookie(response, result.access_data.access_token, result.access_data.expires_at)
    return result


@router.post(
    "/refresh",
    response_model=SsoTokenResponse,
    summary="Refresh the access token",
    description="The refresh token is read from the body, or from the `refresh_token` cookie.",
)
@limiter.limit("30/minute")
async def refresh(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    refresh_token: Optional[str] = Cookie(default=None),
    sso: SsoClient = Depends(get_sso_client),
) -> SsoTokenResponse:
    token = (body.refresh_token if body else None) or refresh_token
    if not token:
        raise SsoError("Refresh token is required", status_code=400)
    result = await sso.refresh_token(token)
    set_auth_cookie(response, result.access_data.access_token, result.access_data.expires_at)
    return result


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Logout",
)
async def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None),
    sso: SsoClient = Depends(get_sso_client),
) -> LogoutResponse:
    if refresh_token:
        await sso.logout(refresh_token)
    remove_auth(response)
    return LogoutResponse(success=True)
