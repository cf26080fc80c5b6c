"""Helpers for reading generated images out of webhook responses.

The generation webhook is a workflow tool whose response shape has varied
over time: a bare object, an array of items, or items wrapped in ``json``.
Images come back as plain base64 or as ``data:image/...;base64,`` URIs.
"""

from __future__ import annotations

from typing import Any

_CANDIDATE_PATHS: tuple[tuple[str, ...], ...] = (
    ("data",),
    ("image",),
    ("json", "data"),
    ("json", "image"),
)


def _dig(payload: Any, path: tuple[str, ...]) -> Any:
    current = payload
    for part in path:
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def extract_image_base64(payload: Any) -> str | None:
    """Return the first non-empty base64 image found in ``payload``.

    Arrays are searched item by item (recursively). For objects the
    candidates are ``data``, ``image``, ``json.data`` and ``json.image``.
    A data URI prefix is stripped.

    Examples:
        >>> extract_image_base64({"image": "data:image/png;base64,AAAA"})
        'AAAA'
        >>> extract_image_base64([{"json": {"data": " QUJD "}}])
        'QUJD'
        >>> extract_image_base64({"message": "queued"}) is None
        True
    """
    if payload is None:
        return None

    if isinstance(payload, list):
        for item in payload:
            extracted = extract_image_base64(item)
            if extracted:
                return extracted
        return None

    for path in _CANDIDATE_PATHS:
        candidate = _dig(payload, path)
        if not isinstance(candidate, str):
            continue
        trimmed = candidate.strip()
        if not trimmed:
            continue

        if trimmed.startswith("data:image") and "," in trimmed:
            base64_part = trimmed.split(",", 1)[1].strip()
            if base64_part:
                return base64_part
            continue

        return trimmed

    return None


def summarize_response(payload: Any, extracted: str | None = None) -> dict[str, Any]:
    """Describe a response's shape without including its content."""
    if isinstance(payload, list):
        first = payload[0] if payload else None
        summary: dict[str, Any] = {
            "type": "array",
            "length": len(payload),
            "first_item_keys": sorted(first.keys()) if isinstance(first, dict) else None,
        }
    elif isinstance(payload, dict):
        summary = {"type": "object", "keys": sorted(payload.keys())}
    elif payload is None:
        summary = {"type": "null"}
    else:
        summary = {"type": type(payload).__name__}

    summary["extracted_image_length"] = len(extracted) if extracted else 0
    return summary
