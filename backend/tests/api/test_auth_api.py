import pytest

REGISTER = {
    "username": "nightowl",
    "password": "secret123",
    "real_name": "Night Owl",
    "phone": "5551234567",
    "age": 29,
    "position": "V",
    "relationship_status": "single",
    "interests": "techno",
}


@pytest.mark.asyncio
async def test_register_login_and_use_bearer(api_client):
    register = await api_client.post("/auth/register", json=REGISTER)
    assert register.status_code == 201
    user_id = register.json()["user_id"]
    assert register.json()["next"] == "upload-photos"

    login = await api_client.post("/auth/login", json={"username": "nightowl", "password": "secret123"})
    assert login.status_code == 200
    body = login.json()
    assert body["user_id"] == user_id
    assert body["token_type"] == "bearer"
    headers = {"Authorization": f"Bearer {body['access_token']}"}

    me = await api_client.get("/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["username"] == "nightowl"

    logout = await api_client.post("/auth/logout", headers=headers)
    assert logout.status_code == 204

    after = await api_client.get("/me", headers=headers)
    assert after.status_code == 401
    assert after.json()["redirect"] == "/"


@pytest.mark.asyncio
async def test_wrong_password_is_reported(api_client):
    await api_client.post("/auth/register", json=REGISTER)

    response = await api_client.post("/auth/login", json={"username": "nightowl", "password": "nope-nope"})

    assert response.status_code == 401
    assert response.json()["message"]


@pytest.mark.asyncio
async def test_missing_credentials_error_shape(api_client):
    response = await api_client.get("/me")

    assert response.status_code == 401
    body = response.json()
    assert body["detail"] == "invalid_token"
    assert body["redirect"] == "/"
    assert body["message"]
    assert "request_id" in body


@pytest.mark.asyncio
async def test_data_export_is_an_attachment(api_client, seed_user):
    await seed_user("u1")

    response = await api_client.get("/me/export", headers={"X-User-Id": "u1"})

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="nightvibe-data-u1.json"'
    assert response.json()["userData"]["username"] == "u1"


@pytest.mark.asyncio
async def test_delete_account_requires_phrase(api_client, seed_user, auth_provider, bearer_for):
    await seed_user("u1")
    auth_provider.add("u1@nightvibe.app", password="secret123", uid="u1")
    headers = await bearer_for("u1")

    refused = await api_client.request("DELETE", "/me", json={"confirmation": "delete", "confirm": True}, headers=headers)
    assert refused.status_code == 400
    assert refused.json()["detail"] == "confirmation_required"

    accepted = await api_client.request("DELETE", "/me", json={"confirmation": "DELETE", "confirm": True}, headers=headers)
    assert accepted.status_code == 200
    assert accepted.json() == {"status": "deleted", "messages_deleted": 0, "next": "/"}
