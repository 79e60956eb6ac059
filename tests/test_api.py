import asyncio

import pytest
from fastapi.testclient import TestClient

from db import close_db
from main import app

ADMIN = ("admin", "s3cret")


def configure_store(tmp_path, monkeypatch, policy):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "storage"))
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://testserver")
    monkeypatch.setenv("FALLBACK_LISTINGS_PATH", str(tmp_path / "cameraListings.json"))
    monkeypatch.setenv("ADMIN_USERNAME", ADMIN[0])
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN[1])
    monkeypatch.setenv("ORPHAN_IMAGE_POLICY", policy)


def running_client():
    asyncio.run(close_db())
    with TestClient(app) as test_client:
        yield test_client
    asyncio.run(close_db())


@pytest.fixture()
def client(tmp_path, monkeypatch):
    configure_store(tmp_path, monkeypatch, "retain")
    yield from running_client()


@pytest.fixture()
def purging_client(tmp_path, monkeypatch):
    configure_store(tmp_path, monkeypatch, "purge")
    yield from running_client()


FORM = {
    "title": "Canon AE-1 Program",
    "description": "Classic 35mm SLR",
    "brand": "Canon",
    "condition": "Excellent",
    "price": 1100,
    "year": "1981",
}


def test_root_and_database_status(client):
    assert client.get("/").json()["status"] == "operational"
    assert client.get("/health/database").json() == {"connected": True}


def test_admin_requires_credentials(client):
    assert client.get("/admin/listings").status_code == 401
    assert client.post("/admin/login", auth=("admin", "wrong")).status_code == 401
    assert client.post("/admin/login", auth=ADMIN).status_code == 200


def test_listing_lifecycle(client):
    response = client.post(
        "/admin/listings",
        json={**FORM, "images": ["https://cdn.example.com/uploads/1-a.jpg"], "url_images": "https://a/1.jpg, https://a/2.jpg"},
        auth=ADMIN,
    )
    assert response.status_code == 201
    created = response.json()
    assert created["images"] == [
        "https://cdn.example.com/uploads/1-a.jpg",
        "https://a/1.jpg",
        "https://a/2.jpg",
    ]

    catalogue = client.get("/listings").json()
    assert catalogue["source"] == "backend"
    assert [item["id"] for item in catalogue["items"]] == [created["id"]]

    detail = client.get(f"/listings/{created['id']}").json()
    assert detail["listing"]["title"] == FORM["title"]
    assert detail["contact_url"].startswith("https://wa.me/")

    patched = client.patch(f"/admin/listings/{created['id']}", json={"price": 950}, auth=ADMIN)
    assert patched.status_code == 200
    assert patched.json()["price"] == 950

    form = client.get(f"/admin/listings/{created['id']}/form", auth=ADMIN).json()
    assert form["url_images"] == "https://cdn.example.com/uploads/1-a.jpg, https://a/1.jpg, https://a/2.jpg"

    assert client.delete(f"/admin/listings/{created['id']}", auth=ADMIN).json()["deleted"] is True
    assert client.get("/listings").json()["items"] == []
    assert client.get(f"/listings/{created['id']}").status_code == 404


def test_invalid_listing_payload_is_rejected(client):
    response = client.post("/admin/listings", json={**FORM, "price": -5}, auth=ADMIN)
    assert response.status_code == 422


def test_image_batch_upload_and_serving(client):
    response = client.post(
        "/admin/images",
        files=[
            ("files", ("front.png", b"png-bytes", "image/png")),
            ("files", ("notes.txt", b"text", "text/plain")),
        ],
        data={"existing": ["https://a/existing.jpg"]},
        auth=ADMIN,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["images"][0] == "https://a/existing.jpg"
    assert len(body["added"]) == 1
    assert body["notices"][-1]["description"] == "Successfully added 1 image(s)"

    stored_url = body["added"][0]
    served = client.get(stored_url.replace("http://testserver", ""))
    assert served.status_code == 200
    assert served.content == b"png-bytes"
    assert served.headers["cache-control"] == "max-age=3600"

    deleted = client.delete("/admin/images", params={"url": stored_url}, auth=ADMIN)
    assert deleted.json()["deleted"] is True


def test_image_batch_rejects_non_images(client):
    response = client.post(
        "/admin/images",
        files=[("files", ("notes.txt", b"text", "text/plain"))],
        auth=ADMIN,
    )
    assert response.status_code == 400
    assert response.json()["detail"][0]["title"] == "Invalid files"


def test_storage_route_serves_only_the_configured_bucket(client, tmp_path):
    (tmp_path / "secret.txt").write_text("top secret")
    other = tmp_path / "storage" / "other-bucket"
    other.mkdir(parents=True)
    (other / "a.png").write_bytes(b"png")

    assert client.get("/storage/%2E%2E/secret.txt").status_code == 404
    assert client.get("/storage/%2E%2E/api.db").status_code == 404
    assert client.get("/storage/other-bucket/a.png").status_code == 404
    assert client.get("/storage/camera-images/%2E%2E/%2E%2E/secret.txt").status_code == 404


def test_patch_rejects_null_for_required_fields(client):
    created = client.post("/admin/listings", json=FORM, auth=ADMIN).json()

    for field in ("title", "price", "description", "brand", "condition"):
        response = client.patch(f"/admin/listings/{created['id']}", json={field: None}, auth=ADMIN)
        assert response.status_code == 422, field

    cleared = client.patch(f"/admin/listings/{created['id']}", json={"year": None}, auth=ADMIN)
    assert cleared.status_code == 200
    assert cleared.json()["year"] is None
    assert client.get(f"/listings/{created['id']}").json()["listing"]["title"] == FORM["title"]


def upload_one(test_client) -> str:
    response = test_client.post(
        "/admin/images",
        files=[("files", ("front.png", b"png-bytes", "image/png"))],
        auth=ADMIN,
    )
    assert response.status_code == 200
    return response.json()["added"][0]


def settle_events(test_client) -> None:
    test_client.portal.call(test_client.app.state.event_bus.drain)


def test_widget_removal_is_purged_under_purge_policy(purging_client):
    stored_url = upload_one(purging_client)

    response = purging_client.post(
        "/admin/images/remove",
        json={"images": [stored_url, "https://a/external.jpg"], "index": 0},
        auth=ADMIN,
    )
    settle_events(purging_client)

    assert response.status_code == 200
    body = response.json()
    assert body["images"] == ["https://a/external.jpg"]
    assert body["discarded"] == [stored_url]
    assert body["notices"][-1]["title"] == "Image removed"
    assert purging_client.get(stored_url.replace("http://testserver", "")).status_code == 404


def test_widget_removal_keeps_images_of_saved_listing(purging_client):
    stored_url = upload_one(purging_client)
    created = purging_client.post("/admin/listings", json={**FORM, "images": [stored_url]}, auth=ADMIN).json()

    response = purging_client.post(
        "/admin/images/remove",
        json={"images": [stored_url], "listing_id": created["id"]},
        auth=ADMIN,
    )
    settle_events(purging_client)

    assert response.json()["images"] == []
    assert response.json()["discarded"] == []
    assert purging_client.get(stored_url.replace("http://testserver", "")).status_code == 200


def test_widget_removal_is_retained_by_default(client):
    stored_url = upload_one(client)

    response = client.post("/admin/images/remove", json={"images": [stored_url]}, auth=ADMIN)
    settle_events(client)

    assert response.json()["discarded"] == [stored_url]
    assert client.get(stored_url.replace("http://testserver", "")).status_code == 200
    assert client.post("/admin/images/remove", json={"images": [], "index": 0}, auth=ADMIN).status_code == 400
