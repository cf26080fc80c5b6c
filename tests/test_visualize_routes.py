"""Integration tests for the upload flow and quota reporting.

The generation service is replaced through FastAPI dependency overrides;
the usage ledger runs for real against a per-test JSON file.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from app.api.routes.visualize import get_visualizer_service
from app.core.config import settings
from app.core.errors import RelayAppError
from app.main import app
from conftest import JPEG_BYTES, PNG_BYTES


class FakeVisualizer:
    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.error: Exception | None = None

    async def generate(self, prompt, *, room, room_type, rug, rug_type) -> str:
        self.calls.append({"prompt": prompt, "room_type": room_type, "rug_type": rug_type})
        if self.error:
            raise self.error
        return "QUJD"


@pytest.fixture
def visualizer():
    fake = FakeVisualizer()
    app.dependency_overrides[get_visualizer_service] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_visualizer_service, None)


@pytest.fixture
def client(usage_store_path, visualizer, monkeypatch) -> TestClient:
    monkeypatch.setattr(settings.usage, "daily_limit", 3)
    monkeypatch.setattr(settings.usage, "identity_mode", "both")
    monkeypatch.setattr(settings.usage, "enabled", True)
    return TestClient(app)


def upload_files(room=(JPEG_BYTES, "image/jpeg"), rug=(PNG_BYTES, "image/png")) -> dict:
    files = {}
    if room is not None:
        files["room"] = ("room.jpg", room[0], room[1])
    if rug is not None:
        files["rug"] = ("rug.png", rug[0], rug[1])
    return files


def read_store(path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_successful_generation_is_charged(client, visualizer, usage_store_path) -> None:
    resp = client.post("/upload", files=upload_files(), data={"prompt": "cozy"})

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "image": "QUJD",
        "message": "OK",
        "usage": {"count": 1, "limit": 3, "remaining": 2},
    }
    assert visualizer.calls == [{"prompt": "cozy", "room_type": "jpeg", "rug_type": "png"}]

    token = resp.cookies.get("tv_user")
    assert token
    store = read_store(usage_store_path)
    assert len(store) == 2
    assert any(key.startswith(f"cookie:{token}_") for key in store)
    assert all(count == 1 for count in store.values())


def test_identity_cookie_flags(client) -> None:
    resp = client.get("/api/usage")

    set_cookie = resp.headers["set-cookie"].lower()
    assert set_cookie.startswith("tv_user=")
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "max-age=2592000" in set_cookie


def test_existing_cookie_is_not_reissued(client) -> None:
    first = client.get("/api/usage")
    assert "set-cookie" in first.headers

    second = client.get("/api/usage")
    assert "set-cookie" not in second.headers


def test_quota_exhaustion_returns_429_without_generation(client, visualizer) -> None:
    for expected in (1, 2, 3):
        resp = client.post("/upload", files=upload_files())
        assert resp.status_code == 200
        assert resp.json()["usage"]["count"] == expected

    resp = client.post("/upload", files=upload_files())

    assert resp.status_code == 429
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "rate_limit"
    assert "3" in body["message"]
    assert body["details"] == {"limit": 3, "count": 3}
    assert len(visualizer.calls) == 3
    assert "set-cookie" not in resp.headers


def test_refused_first_visit_still_gets_identity_cookie(client, visualizer) -> None:
    headers = {"X-Forwarded-For": "203.0.113.7"}
    for _ in range(3):
        assert TestClient(app).post("/upload", files=upload_files(), headers=headers).status_code == 200

    resp = TestClient(app).post("/upload", files=upload_files(), headers=headers)

    assert resp.status_code == 429
    assert resp.headers["set-cookie"].startswith("tv_user=")
    assert "httponly" in resp.headers["set-cookie"].lower()
    assert len(visualizer.calls) == 3


def test_relay_failure_is_not_charged(client, visualizer, usage_store_path) -> None:
    visualizer.error = RelayAppError(
        code="relay_bad_status",
        message="Image generation service returned HTTP 500",
        details={"http_status": 500},
    )

    resp = client.post("/upload", files=upload_files())

    assert resp.status_code == 502
    assert resp.json()["code"] == "relay_bad_status"
    assert read_store(usage_store_path) == {}
    assert client.get("/api/usage").json()["usage"]["count"] == 0


def test_failed_first_visit_still_gets_identity_cookie(client, visualizer, usage_store_path) -> None:
    visualizer.error = RelayAppError(code="relay_timeout", message="Image generation timed out")

    resp = TestClient(app).post("/upload", files=upload_files())

    assert resp.status_code == 502
    token = resp.cookies.get("tv_user")
    assert token
    assert read_store(usage_store_path) == {}


def test_missing_file_is_rejected(client, visualizer) -> None:
    resp = client.post("/upload", files=upload_files(rug=None))

    assert resp.status_code == 400
    assert resp.json()["code"] == "missing_file"
    assert resp.json()["details"]["field"] == "rug"
    assert visualizer.calls == []


def test_unsupported_type_is_rejected(client, visualizer, usage_store_path) -> None:
    resp = client.post("/upload", files=upload_files(room=(b"GIF89a....", "image/gif")))

    assert resp.status_code == 400
    assert resp.json()["code"] == "unsupported_file_type"
    assert visualizer.calls == []
    assert read_store(usage_store_path) == {}


def test_content_must_match_declared_type(client, visualizer) -> None:
    resp = client.post("/upload", files=upload_files(rug=(b"%PDF-1.7 not an image", "image/png")))

    assert resp.status_code == 400
    assert resp.json()["code"] == "file_signature_mismatch"
    assert visualizer.calls == []


def test_oversized_rug_is_rejected(client, visualizer, monkeypatch) -> None:
    monkeypatch.setattr(settings.app, "max_rug_upload_mb", 1)
    big_rug = PNG_BYTES + b"\x00" * (1024 * 1024)

    resp = client.post("/upload", files=upload_files(rug=(big_rug, "image/png")))

    assert resp.status_code == 413
    assert resp.json()["code"] == "file_too_large"
    assert resp.json()["message"] == "Rug image exceeds 1MB"
    assert visualizer.calls == []


def test_forwarded_for_identity_is_charged(client, usage_store_path) -> None:
    resp = client.post(
        "/upload",
        files=upload_files(),
        headers={"X-Forwarded-For": "10.0.0.5, 203.0.113.9"},
    )

    assert resp.status_code == 200
    assert any(key.startswith("ip:203.0.113.9_") for key in read_store(usage_store_path))


def test_usage_reports_remaining(client) -> None:
    client.post("/upload", files=upload_files())

    resp = client.get("/api/usage")

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "usage": {"count": 1, "limit": 3, "remaining": 2}}


def test_disabled_quota_is_not_enforced(client, visualizer, monkeypatch) -> None:
    monkeypatch.setattr(settings.usage, "daily_limit", 1)
    monkeypatch.setattr(settings.usage, "enabled", False)

    for _ in range(3):
        assert client.post("/upload", files=upload_files()).status_code == 200

    assert len(visualizer.calls) == 3
