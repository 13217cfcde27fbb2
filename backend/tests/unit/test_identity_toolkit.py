import json

import httpx
import pytest

from nightvibe.infra.identity_toolkit import (
    AuthProviderError,
    IdentityToolkitClient,
    email_for,
    login_message,
    register_message,
)


def _client(handler):
    return IdentityToolkitClient(
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        api_key="test-key",
        base_url="https://auth.test/v1",
        token_url="https://token.test/v1",
    )


def test_messages_for_known_and_unknown_codes():
    assert login_message("INVALID_PASSWORD") == "Incorrect password. Please try again."
    assert login_message("SOMETHING_NEW") == "Login failed. SOMETHING_NEW"
    assert register_message("EMAIL_EXISTS") == "Username already exists. Please choose another."
    assert email_for("nightowl") == "nightowl@nightvibe.com"


@pytest.mark.asyncio
async def test_sign_in_returns_provider_session():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/accounts:signInWithPassword"
        assert request.url.params["key"] == "test-key"
        body = json.loads(request.content)
        assert body["email"] == "a@nightvibe.com"
        return httpx.Response(200, json={"localId": "uid-1", "idToken": "id", "refreshToken": "refresh"})

    session = await _client(handler).sign_in("a@nightvibe.com", "secret123")

    assert session.uid == "uid-1"
    assert session.refresh_token == "refresh"


@pytest.mark.asyncio
async def test_error_code_is_taken_from_message_prefix():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"error": {"message": "WEAK_PASSWORD : Password should be at least 6 characters"}}
        )

    with pytest.raises(AuthProviderError) as excinfo:
        await _client(handler).sign_up("a@nightvibe.com", "123")

    assert excinfo.value.code == "WEAK_PASSWORD"


@pytest.mark.asyncio
async def test_refresh_uses_token_endpoint_with_form_body():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "token.test"
        assert b"grant_type=refresh_token" in request.content
        return httpx.Response(200, json={"user_id": "uid-1", "id_token": "fresh", "refresh_token": "r2"})

    session = await _client(handler).refresh("r1")

    assert session.id_token == "fresh"


@pytest.mark.asyncio
async def test_network_failure_maps_to_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(AuthProviderError) as excinfo:
        await _client(handler).sign_in("a@nightvibe.com", "secret123")

    assert excinfo.value.code == "NETWORK_ERROR"
