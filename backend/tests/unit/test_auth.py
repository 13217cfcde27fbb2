import pytest

from nightvibe.domain.exceptions import AuthFailed, PermissionDenied
from nightvibe.domain.identity import sessions
from nightvibe.infra import jwt as jwt_helper
from nightvibe.infra.auth import AuthenticatedUser, get_admin_user, get_current_user, resolve_token, verify_access_jwt
from nightvibe.settings import settings


def test_verify_rejects_garbage():
    with pytest.raises(AuthFailed) as excinfo:
        verify_access_jwt("not-a-jwt")
    assert excinfo.value.reason == "invalid_token"


def test_verify_requires_subject():
    token = jwt_helper.issue_access_token("", "s1")

    with pytest.raises(AuthFailed):
        verify_access_jwt(token)


@pytest.mark.asyncio
async def test_resolve_token_needs_live_session(bearer_for):
    headers = await bearer_for("u1")
    token = headers["Authorization"].split(" ", 1)[1]

    user = await resolve_token(token)
    assert user.id == "u1"

    await sessions.delete_user_sessions("u1")
    with pytest.raises(AuthFailed) as excinfo:
        await resolve_token(token)
    assert excinfo.value.reason == "session_expired"


@pytest.mark.asyncio
async def test_dev_header_only_honoured_in_dev(monkeypatch):
    user = await get_current_user(x_user_id="u1", credentials=None)
    assert user.id == "u1"

    monkeypatch.setattr(settings, "environment", "production")
    with pytest.raises(AuthFailed):
        await get_current_user(x_user_id="u1", credentials=None)


@pytest.mark.asyncio
async def test_admin_user_is_reread_from_store(seed_user):
    await seed_user("boss", isAdmin=True)
    await seed_user("pleb")

    admin = await get_admin_user(AuthenticatedUser(id="boss"))
    assert admin.is_admin is True

    with pytest.raises(PermissionDenied) as excinfo:
        await get_admin_user(AuthenticatedUser(id="pleb"))
    assert excinfo.value.reason == "admin_required"


@pytest.mark.asyncio
async def test_missing_user_record_is_not_admin():
    with pytest.raises(PermissionDenied):
        await get_admin_user(AuthenticatedUser(id="ghost"))
