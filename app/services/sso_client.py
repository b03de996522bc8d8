"""
HTTP client for the external SSO service.

Register, login and refresh are proxied as-is and fail loudly with the
upstream's own message. Logout is best effort: the local cookie is cleared
whatever the SSO answers.

When ``SSO_AUTH_PASSWORD_SALT`` is ``sha1`` or ``md5`` the password is sent
as that hex digest instead of the typed value.
"""

import hashlib
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import ConfigurationError, SsoError
from app.models.schemas import SsoTokenResponse

logger = logging.getLogger(__name__)


class SsoClient:
    def __init__(
        self,
        base_url: str,
        password_salt: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._password_salt = password_salt
        self._timeout = timeout
        self._transport = transport

    def _password_wrap(self, value: str) -> str:
        if self._password_salt == "sha1":
            return hashlib.sha1(value.encode()).hexdigest()
        if self._password_salt == "md5":
            return hashlib.md5(value.encode()).hexdigest()
        return value

    def _url(self, path: str) -> str:
        if not self._base_url:
            raise ConfigurationError("SSO_AUTH_URL")
        return f"{self._base_url}{path}"

    async def _post(
        self,
        path: str,
        body: dict[str, Any],
    ) -> httpx.Response:
        url = self._url(path)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await client.post(url, json=body)

    async def _token_call(
        self, path: str, body: dict[str, Any], failure: str
    ) -> SsoTokenResponse:
        try:
            response = await self._post(path, body)
        except httpx.HTTPError as exc:
            raise SsoError(f"{failure}: SSO unreachable ({exc.__class__.__name__})") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_error or not data.get("success"):
            detail = data.get("detail") or data.get("message") or failure
            if response.is_client_error:
                status_code = response.status_code
            elif response.is_success:
                status_code = 400
            else:
                status_code = 502
            raise SsoError(str(detail), status_code=status_code)

        try:
            return SsoTokenResponse.model_validate(data)
        except ValidationError as exc:
            raise SsoError(f"{failure}: unexpected SSO response") from exc

    async def register(
        self,
        email: str,
        password: str,
        vcode: str,
        username: str | None = None,
    ) -> SsoTokenResponse:
        logger.info("Proxying registration to SSO for email: %s", email)
        return await self._token_call(
            "/register",
            {
                "email": email,
                "password": self._password_wrap(password),
                "vcode": vcode,
                "username": username,
            },
            "Registration failed at SSO",
        )

    async def login(self, email: str, password: str) -> SsoTokenResponse:
        logger.info("Proxying login to SSO for email: %s", email)
        return await self._token_call(
            "/login",
            {"email": email, "password": self._password_wrap(password)},
            "Login failed at SSO",
        )

    async def refresh_token(self, refresh_token: str) -> SsoTokenResponse:
        logger.info("Refreshing token via SSO")
        return await self._token_call(
            "/token-refresh",
            {"refresh_token": refresh_token},
            "Token refresh failed at SSO",
        )

    async def logout(self, refresh_token: str) -> None:
        logger.info("Logging out via SSO")
        url = self._url("/logout")
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                await client.post(url, headers={"Cookie": f"refresh_token={refresh_token}"})
        except httpx.HTTPError as exc:
            logger.warning("Logout call to SSO failed: %s", exc)


def get_sso_client() -> SsoClient:
    return SsoClient(
        settings.SSO_AUTH_URL,
        password_salt=settings.SSO_AUTH_PASSWORD_SALT,
        timeout=settings.SSO_TIMEOUT_SECONDS,
    )
