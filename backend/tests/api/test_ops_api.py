import pytest

from nightvibe.settings import settings


@pytest.mark.asyncio
async def test_liveness(api_client):
    response = await api_client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_metrics_admin_only(api_client, seed_user, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", False)
    await seed_user("boss", isAdmin=True)
    await seed_user("pleb")

    refused = await api_client.get("/metrics", headers={"X-User-Id": "pleb"})
    assert refused.status_code == 403

    allowed = await api_client.get("/metrics", headers={"X-User-Id": "boss"})
    assert allowed.status_code == 200
    assert "text/plain" in allowed.headers["content-type"]


@pytest.mark.asyncio
async def test_metrics_can_be_public(api_client, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", True)

    response = await api_client.get("/metrics")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_readiness_reports_dependencies(api_client):
    response = await api_client.get("/health/ready")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["redis"]["ok"] is True
    assert body["store"]["ok"] is True


@pytest.mark.asyncio
async def test_readiness_degrades_without_store(api_client, memory_store):
    from nightvibe.infra.store import set_store

    set_store(None)

    response = await api_client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["store"]["ok"] is False
