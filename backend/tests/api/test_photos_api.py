import pytest

U1 = {"X-User-Id": "u1"}


def _jpeg(name: str):
    return ("files", (name, b"\xff\xd8\xff\xe0fake", "image/jpeg"))


@pytest.mark.asyncio
async def test_onboarding_upload_reports_each_file(api_client, seed_user, image_host):
    await seed_user("u1")

    response = await api_client.post(
        "/onboarding/photos",
        files=[_jpeg("a.jpg"), ("files", ("notes.txt", b"hello", "text/plain"))],
        headers=U1,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["can_complete"] is False
    assert [result["ok"] for result in body["results"]] == [True, False]
    assert body["results"][1]["error"]
    assert body["photos"][0]["url"] == "https://img.test/a.jpg"
    assert image_host.uploaded == ["a.jpg"]


@pytest.mark.asyncio
async def test_onboarding_completion_needs_five_photos(api_client, seed_user):
    await seed_user("u1")
    await api_client.post("/onboarding/photos", files=[_jpeg(f"p{index}.jpg") for index in range(4)], headers=U1)

    early = await api_client.post("/onboarding/complete", headers=U1)
    assert early.status_code == 400

    await api_client.post("/onboarding/photos", files=[_jpeg("p4.jpg")], headers=U1)
    done = await api_client.post("/onboarding/complete", headers=U1)
    assert done.status_code == 200
    assert done.json()["count"] == 5


@pytest.mark.asyncio
async def test_manager_primary_and_delete(api_client, seed_user):
    await seed_user("u1")
    await api_client.post("/me/photos", files=[_jpeg("a.jpg"), _jpeg("b.jpg")], headers=U1)

    primary = await api_client.post("/me/photos/1/primary", headers=U1)
    assert [photo["url"] for photo in primary.json()["photos"]] == ["https://img.test/b.jpg", "https://img.test/a.jpg"]

    removed = await api_client.delete("/me/photos/0", headers=U1)
    assert [photo["url"] for photo in removed.json()["photos"]] == ["https://img.test/a.jpg"]
