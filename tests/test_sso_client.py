import hashlib
import json

import httpx
import pytest

from app.core.exceptions import ConfigurationError, SsoError
from app.services.sso_client import SsoClient

SSO_URL = "https://sso.example.com/api"

TOKEN_PAYLOAD = {
    "success": True,
    "access_data": {"access_token": "jwt-abc", "expires_at": 1893456000, "token_type": "Bearer"},
    "user": {"id": "sso-42", "email": "ada@example.com", "username": "ada"},
}


def _client(handler, **kwargs):
    return SsoClient(SSO_URL, transport=httpx.MockTransport(handler), **kwargs)


def _recording(status_code=200, payload=TOKEN_PAYLOAD):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, json=payload)

    return handler, seen


@pytest.mark.asyncio
async def test_login_posts_credentials():
    handler, seen = _recording()

    result = await _client(handler).login("ada@example.com", "s3cret")

    assert result.access_data.access_token == "jwt-abc"
    assert result.user.id == "sso-42"
    assert str(seen[0].url) == f"{SSO_URL}/login"
    assert json.loads(seen[0].content) == {"email": "ada@example.com", "password": "s3cret"}


@pytest.mark.asyncio
@pytest.mark.parametrize("salt, digest", [("sha1", hashlib.sha1), ("md5", hashlib.md5)])
async def test_password_is_hashed_when_salt_is_set(salt, digest):
    handler, seen = _recording()

    await _client(handler, password_salt=salt).register("ada@example.com", "s3cret", "1234", "ada")

    body = json.loads(seen[0].content)
    assert body["password"] == digest(b"s3cret").hexdigest()
    assert body["vcode"] == "1234"
    assert body["username"] == "ada"
    assert str(seen[0].url) == f"{SSO_URL}/register"


@pytest.mark.asyncio
async def test_refresh_uses_token_refresh_path():
    handler, seen = _recording()

    await _client(handler).refresh_token("refresh-xyz")

    assert str(seen[0].url) == f"{SSO_URL}/token-refresh"
    assert json.loads(seen[0].content) == {"refresh_token": "refresh-xyz"}


@pytest.mark.asyncio
async def test_rejection_keeps_upstream_status_and_message():
    handler, _ = _recording(401, {"success": False, "message": "Invalid credentials"})

    with pytest.raises(SsoError) as excinfo:
        await _client(handler).login("ada@example.com", "wrong")

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Invalid credentials"


@pytest.mark.asyncio
async def test_unsuccessful_200_is_a_bad_request():
    handler, _ = _recording(200, {"success": False, "detail": "Verification code expired"})

    with pytest.raises(SsoError) as excinfo:
        await _client(handler).register("ada@example.com", "pw", "0000")

    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "Verification code expired"


@pytest.mark.asyncio
async def test_upstream_server_error_is_bad_gateway():
    def handler(request):
        return httpx.Response(503, text="maintenance")

    with pytest.raises(SsoError) as excinfo:
        await _client(handler).login("ada@example.com", "pw")

    assert excinfo.value.status_code == 502
    assert excinfo.value.detail == "Login failed at SSO"


@pytest.mark.asyncio
async def test_unreachable_sso():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SsoError) as excinfo:
        await _client(handler).login("ada@example.com", "pw")

    assert excinfo.value.status_code == 502
    assert "unreachable" in excinfo.value.detail


@pytest.mark.asyncio
async def test_missing_base_url_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as excinfo:
        await SsoClient("").login("ada@example.com", "pw")
    assert excinfo.value.setting == "SSO_AUTH_URL"


@pytest.mark.asyncio
async def test_logout_forwards_refresh_cookie():
    handler, seen = _recording(200, {"success": True})

    await _client(handler).logout("refresh-xyz")

    assert str(seen[0].url) == f"{SSO_URL}/logout"
    assert seen[0].headers["cookie"] == "refresh_token=refresh-xyz"


@pytest.mark.asyncio
async def test_logout_swallows_transport_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    # Must not raise
    await _client(handler).logout("refresh-xyz")
