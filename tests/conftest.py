"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set here, before anything imports
``app.core.config``, so settings never point at the real storage
directory or a real webhook.
"""

import os
import tempfile

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")

_TEST_ROOT = tempfile.mkdtemp(prefix="rug-visualizer-tests-")

os.environ.setdefault("USAGE_STORE_PATH", os.path.join(_TEST_ROOT, "usage.json"))
os.environ.setdefault("APP_STORAGE_DIR", os.path.join(_TEST_ROOT, "storage"))
os.environ.setdefault("APP_TEMP_DIR", os.path.join(_TEST_ROOT, "temp"))
os.environ.setdefault("APP_IMAGES_DIR", os.path.join(_TEST_ROOT, "images"))
os.environ.setdefault("APP_PUBLIC_DIR", os.path.join(_TEST_ROOT, "public"))
os.environ.setdefault("RELAY_WEBHOOK_URL", "https://relay.test/webhook")
os.environ.setdefault("RELAY_PUBLIC_BASE_URL", "http://testserver")
os.environ.setdefault("ADMIN_USERNAME", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "s3cret-pass")


# Minimal byte strings carrying valid image signatures
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 64
HEIC_BYTES = b"\x00\x00\x00\x18ftypheic" + b"\x00" * 64


@pytest.fixture
def usage_store_path(tmp_path, monkeypatch):
    """Point the process-wide usage ledger at a fresh JSON file."""
    from app.core.config import settings

    path = tmp_path / "usage.json"
    monkeypatch.setattr(settings.usage, "store_path", path)
    return path
