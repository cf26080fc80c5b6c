"""Tests for the visualizer service and temp directory housekeeping."""

from __future__ import annotations

import os
import time
from unittest.mock import AsyncMock

import pytest

from app.adapters.relay.base import AbstractImageRelay
from app.core.errors import RelayAppError
from app.services.visualizer_service import (
    DEFAULT_PROMPT,
    VisualizerService,
    cleanup_old_temp_files,
)
from conftest import JPEG_BYTES, PNG_BYTES


class RecordingRelay(AbstractImageRelay):
    """Relay double that checks the staged files are reachable on disk."""

    def __init__(self, temp_dir, result: str = "QUJD", error: Exception | None = None) -> None:
        self.temp_dir = temp_dir
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, prompt: str, *, room_url: str, rug_url: str) -> str:
        staged = sorted(p.name for p in self.temp_dir.iterdir())
        self.calls.append(
            {"prompt": prompt, "room_url": room_url, "rug_url": rug_url, "staged": staged}
        )
        if self.error:
            raise self.error
        return self.result


def make_service(relay, temp_dir, **kwargs) -> VisualizerService:
    return VisualizerService(
        relay,
        temp_dir=temp_dir,
        public_base_url="https://visualizer.example.com/",
        clock=lambda: 1700000000.123,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_generate_stages_uploads_and_cleans_up(tmp_path) -> None:
    relay = RecordingRelay(tmp_path)
    service = make_service(relay, tmp_path)

    image = await service.generate(
        "custom prompt", room=JPEG_BYTES, room_type="jpeg", rug=PNG_BYTES, rug_type="png"
    )

    assert image == "QUJD"
    [call] = relay.calls
    assert call["prompt"] == "custom prompt"
    assert call["room_url"].startswith("https://visualizer.example.com/temp/room_1700000000123_")
    assert call["room_url"].endswith(".jpg")
    assert call["rug_url"].startswith("https://visualizer.example.com/temp/rug_1700000000123_")
    assert call["rug_url"].endswith(".png")
    assert len(call["staged"]) == 2
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_staged_files_hold_upload_bytes(tmp_path) -> None:
    captured: dict[str, bytes] = {}

    async def capture(prompt, *, room_url, rug_url):
        for url in (room_url, rug_url):
            name = url.rsplit("/", 1)[-1]
            captured[name.split("_", 1)[0]] = (tmp_path / name).read_bytes()
        return "QUJD"

    relay = AsyncMock(spec=AbstractImageRelay)
    relay.generate.side_effect = capture
    service = make_service(relay, tmp_path)

    await service.generate(None, room=JPEG_BYTES, room_type="jpeg", rug=PNG_BYTES, rug_type="png")

    assert captured == {"room": JPEG_BYTES, "rug": PNG_BYTES}


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", [None, "", "   "])
async def test_blank_prompt_uses_default(tmp_path, prompt) -> None:
    relay = RecordingRelay(tmp_path)
    service = make_service(relay, tmp_path)

    await service.generate(prompt, room=JPEG_BYTES, room_type="jpeg", rug=PNG_BYTES, rug_type="png")

    assert relay.calls[0]["prompt"] == DEFAULT_PROMPT


@pytest.mark.asyncio
async def test_configured_default_prompt(tmp_path) -> None:
    relay = RecordingRelay(tmp_path)
    service = make_service(relay, tmp_path, default_prompt="house prompt")

    await service.generate(None, room=JPEG_BYTES, room_type="jpeg", rug=PNG_BYTES, rug_type="png")

    assert relay.calls[0]["prompt"] == "house prompt"


@pytest.mark.asyncio
async def test_relay_failure_still_removes_staged_files(tmp_path) -> None:
    error = RelayAppError(code="relay_bad_status", message="HTTP 500")
    relay = RecordingRelay(tmp_path, error=error)
    service = make_service(relay, tmp_path)

    with pytest.raises(RelayAppError):
        await service.generate(
            None, room=JPEG_BYTES, room_type="jpeg", rug=PNG_BYTES, rug_type="png"
        )

    assert len(relay.calls[0]["staged"]) == 2
    assert list(tmp_path.iterdir()) == []


def test_stage_upload_creates_temp_dir(tmp_path) -> None:
    temp_dir = tmp_path / "missing" / "temp"
    service = make_service(AsyncMock(spec=AbstractImageRelay), temp_dir)

    staged = service.stage_upload("room", JPEG_BYTES, "heic")

    assert staged.path.parent == temp_dir
    assert staged.path.suffix == ".heic"
    assert staged.path.read_bytes() == JPEG_BYTES


class TestCleanupOldTempFiles:
    def test_removes_only_old_files(self, tmp_path) -> None:
        now = time.time()
        old = tmp_path / "room_old.jpg"
        fresh = tmp_path / "rug_fresh.png"
        old.write_bytes(b"x")
        fresh.write_bytes(b"y")
        os.utime(old, (now - 7200, now - 7200))
        os.utime(fresh, (now - 60, now - 60))

        removed = cleanup_old_temp_files(tmp_path, 3600, now=now)

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()

    def test_skips_directories(self, tmp_path) -> None:
        sub = tmp_path / "nested"
        sub.mkdir()
        os.utime(sub, (0, 0))

        assert cleanup_old_temp_files(tmp_path, 1) == 0
        assert sub.exists()

    def test_missing_directory(self, tmp_path) -> None:
        assert cleanup_old_temp_files(tmp_path / "nope", 3600) == 0
