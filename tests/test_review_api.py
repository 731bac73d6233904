import requests

from asset_review.models.schemas import AssetType, GhostModeSettings
from asset_review.routes import health as health_route
from asset_review.services.vision_client import VisionAPIError

from conftest import PNG_BYTES


def _post(client, data=None, files=None):
    if files is None:
        files = {"file": ("logo.png", PNG_BYTES, "image/png")}
    return client.post("/api/review", data=data if data is not None else {"assetType": "logo"}, files=files)


def test_root(client):
    assert client.get("/").json() == {"service": "asset-review", "status": "ok"}


def test_review_pass(client, store, upload_dir):
    r = _post(client)

    assert r.status_code == 200
    body = r.json()
    assert body["ghostMode"] is False
    assert body["result"]["pass"] is True
    assert body["result"]["confidence"] == 92
    assert body["result"]["customMessage"] == "Logo approved for use."
    assert len(store.submissions) == 1
    assert list(upload_dir.iterdir()) == []


def test_review_in_ghost_mode(client, store):
    store.ghost = GhostModeSettings(enabled=True)

    r = _post(client)

    assert r.status_code == 200
    assert r.json() == {"ghostMode": True, "message": "Submission received and is under review."}


def test_review_without_file(client):
    r = client.post("/api/review", data={"assetType": "logo"})

    assert r.status_code == 400
    assert r.json() == {"error": "No image file provided"}


def test_review_without_asset_type(client, vision):
    r = _post(client, data={})

    assert r.status_code == 400
    assert r.json()["error"] == "Asset type is required"
    assert vision.calls == []


def test_review_unknown_asset_type(client, vision):
    r = _post(client, data={"assetType": "banner"})

    assert r.status_code == 400
    assert r.json() == {"error": 'Asset type "banner" not found'}
    assert vision.calls == []


def test_review_rejects_non_image(client, vision):
    r = _post(client, files={"file": ("notes.txt", b"hello", "text/plain")})

    assert r.status_code == 400
    assert "Invalid file type" in r.json()["error"]
    assert vision.calls == []


def test_review_rejects_oversized_upload(client, vision, upload_dir, monkeypatch):
    monkeypatch.setattr("asset_review.routes.review.MAX_UPLOAD_BYTES", 16)

    r = _post(client)

    assert r.status_code == 413
    assert r.json()["error"].startswith("File too large")
    assert vision.calls == []
    assert list(upload_dir.iterdir()) == []


def test_review_inference_failure(client, vision, store, upload_dir):
    vision.error = VisionAPIError("Vision API returned 500: boom", status_code=500)

    r = _post(client)

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to review asset", "details": "Vision API returned 500: boom"}
    assert store.submissions == []
    assert list(upload_dir.iterdir()) == []


def test_review_store_outage_on_lookup(client, store):
    store.fail.add("get_asset_type")

    r = _post(client)

    assert r.status_code == 500
    assert r.json()["error"] == "Failed to review asset"


def test_public_asset_types(client, store):
    store.create_asset_type(AssetType(name="banner", description="Web banners", guidelines="g"))

    r = client.get("/api/asset-types")

    assert r.status_code == 200
    assert r.json() == [
        {"name": "banner", "description": "Web banners"},
        {"name": "logo", "description": "Brand logos and marks"},
    ]


class _Resp:
    def __init__(self, status_code):
        self.status_code = status_code


def test_health_reports_components(client, monkeypatch):
    monkeypatch.setattr(health_route, "VISION_API_URL", "https://vision.test/v1")
    monkeypatch.setattr(health_route, "VISION_API_KEY", "sk-test")
    monkeypatch.setattr(health_route.requests, "get", lambda *a, **kw: _Resp(200))
    monkeypatch.setattr(health_route.supabase_client, "is_configured", lambda: False)

    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["vision"] == "ok"
    assert body["supabase"] == "not_configured"
    assert "timestamp" in body


def test_health_vision_unreachable(client, monkeypatch):
    def down(*a, **kw):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(health_route, "VISION_API_URL", "https://vision.test/v1")
    monkeypatch.setattr(health_route, "VISION_API_KEY", "sk-test")
    monkeypatch.setattr(health_route.requests, "get", down)
    monkeypatch.setattr(health_route.supabase_client, "is_configured", lambda: False)

    body = client.get("/api/health").json()

    assert body["vision"] == "down"
