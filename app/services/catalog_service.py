"""Browsable rug and room catalog.

The admin import writes ``rugs.csv`` (``id,name,code,path``) and
``rooms.csv`` (``id,room,style,tone,path``) plus ``options.json`` into the
storage directory. When the CSV files are absent the catalog falls back to
scanning ``images/rugs`` and ``images/rooms/<room-type>/``.
"""

from __future__ import annotations

import csv
import json
import logging
import re
import unicodedata
from pathlib import Path

from app.schemas.catalog import CatalogOptions, RoomImage, RugImage

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp"}

DEFAULT_OPTIONS = CatalogOptions(
    rooms=["Phòng khách", "Phòng ngủ", "Phòng làm việc", "Phòng bếp"],
    styles=["Hiện đại", "Cổ điển", "Tối giản", "Scandinavian"],
    tones=["Trắng", "Xám", "Nâu", "Xanh", "Hồng", "Khác"],
)

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^\w-]+", re.ASCII)


def normalize_slug(value: str | None) -> str:
    """Turn a display label into a comparison slug.

    Examples:
        >>> normalize_slug("Phòng Khách")
        'phong-khach'
        >>> normalize_slug("  Hiện đại ")
        'hien-ai'
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFD", value.strip())
    text = _COMBINING_MARKS.sub("", text).lower()
    text = _WHITESPACE.sub("-", text)
    return _NON_SLUG.sub("", text)


def _read_csv_rows(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as fh:
        rows = [row for row in csv.reader(fh) if any(cell.strip() for cell in row)]
    # First row is the header
    return rows[1:]


def _scan_images(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
    )


class CatalogService:
    """Read-only access to the rug/room catalog on disk."""

    def __init__(self, *, storage_dir: Path, images_dir: Path) -> None:
        self._storage_dir = Path(storage_dir)
        self._images_dir = Path(images_dir)

    def _check_image_exists(self, url: str) -> None:
        if not url.startswith("/images/"):
            return
        local = self._images_dir / url[len("/images/"):]
        if not local.exists():
            logger.warning("catalog.missing_file", extra={"url": url, "path": str(local)})

    def list_rugs(self) -> list[RugImage]:
        csv_path = self._storage_dir / "rugs.csv"
        if csv_path.is_file():
            rugs: list[RugImage] = []
            for row in _read_csv_rows(csv_path):
                if len(row) < 4:
                    continue
                name, code, url = row[1], row[2], row[3].strip()
                if not url:
                    continue
                self._check_image_exists(url)
                rugs.append(
                    RugImage(
                        filename=name or code or Path(url).name,
                        url=url,
                        name=name,
                        code=code,
                    )
                )
            return rugs

        return [
            RugImage(filename=p.name, url=f"/images/rugs/{p.name}")
            for p in _scan_images(self._images_dir / "rugs")
        ]

    def list_rooms(
        self,
        *,
        room_type: str | None = None,
        style: str | None = None,
        color: str | None = None,
    ) -> list[RoomImage]:
        """List room photos, filtered by slug-normalized room type, style and color."""
        room_slug = normalize_slug(room_type)
        style_slug = normalize_slug(style)
        color_slug = normalize_slug(color)

        csv_path = self._storage_dir / "rooms.csv"
        if csv_path.is_file():
            rooms: list[RoomImage] = []
            for row in _read_csv_rows(csv_path):
                if len(row) < 5:
                    continue
                url = row[4].strip()
                if not url:
                    continue
                rooms.append(
                    RoomImage(
                        filename=Path(url).name,
                        url=url,
                        roomType=normalize_slug(row[1]),
                        style=normalize_slug(row[2]),
                        color=normalize_slug(row[3]),
                    )
                )

            if room_slug:
                rooms = [r for r in rooms if r.roomType == room_slug]
            if style_slug:
                rooms = [r for r in rooms if r.style == style_slug]
            if color_slug:
                rooms = [r for r in rooms if r.color == color_slug]
            return rooms

        rooms_dir = self._images_dir / "rooms"
        if room_slug:
            subdirs = [rooms_dir / room_slug]
        elif rooms_dir.is_dir():
            subdirs = sorted(p for p in rooms_dir.iterdir() if p.is_dir())
        else:
            subdirs = []

        # Directory layout carries no style/color metadata; echo the request
        return [
            RoomImage(
                filename=p.name,
                url=f"/images/rooms/{subdir.name}/{p.name}",
                roomType=subdir.name,
                style=style_slug or None,
                color=color_slug or None,
            )
            for subdir in subdirs
            for p in _scan_images(subdir)
        ]

    def get_options(self) -> CatalogOptions:
        options_path = self._storage_dir / "options.json"
        if not options_path.is_file():
            return DEFAULT_OPTIONS

        try:
            raw = json.loads(options_path.read_text(encoding="utf-8"))
            return CatalogOptions(**raw)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning(
                "catalog.options_unreadable",
                extra={"path": str(options_path), "error": str(exc)},
            )
            return DEFAULT_OPTIONS
