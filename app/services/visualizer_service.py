"""Rug-in-room generation orchestration.

Stages the two accepted uploads in the public temp directory, hands their
URLs to the image relay and always removes the staged files afterwards,
whether generation succeeded or not. Quota accounting is deliberately not
done here; the upload route charges the visitor only after this service
returns an image.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from app.adapters.relay.base import AbstractImageRelay
from app.utils.file_validators import EXTENSIONS, ImageType

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = """## TASK: Local image editing
## INPUT:
- Image 1 (room): [GEOMETRY_REFERENCE]. Keep 100% of the perspective, furniture placement, lighting and wall structure.
- Image 2 (rug): [MATERIAL_REFERENCE]. Take the rug's pattern and colors to cover the floor of Image 1.

## ACTION:
Replace the floor surface in Image 1 with the material from Image 2.
1. [PERSPECTIVE MATCH]: Warp the rug pattern to match the vanishing point and floor plane of Image 1.
2. [OCCLUSION HANDLING]: Detect foreground objects (table legs, chairs, sofa). Place the rug UNDER them. Never paint over furniture.
3. [LIGHTING INTEGRATION]: Keep the shadow map of Image 1 and cast furniture shadows naturally onto the new rug.

## CONSTRAINTS:
- Do NOT change the shape or position of any furniture.
- Do NOT change the camera angle.
- Output resolution: same as Image 1."""


@dataclass(frozen=True)
class StagedUpload:
    field: str
    path: Path
    url: str


class VisualizerService:
    """Generate a composite rug-in-room photo through the image relay."""

    def __init__(
        self,
        relay: AbstractImageRelay,
        *,
        temp_dir: Path,
        public_base_url: str,
        default_prompt: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._relay = relay
        self._temp_dir = Path(temp_dir)
        self._public_base_url = public_base_url.rstrip("/")
        self._default_prompt = default_prompt or DEFAULT_PROMPT
        self._clock = clock

    def stage_upload(self, field: str, data: bytes, image_type: ImageType) -> StagedUpload:
        """Write an upload to the temp directory and return its public URL."""
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        timestamp_ms = int(self._clock() * 1000)
        filename = f"{field}_{timestamp_ms}_{uuid.uuid4().hex[:8]}{EXTENSIONS[image_type]}"
        path = self._temp_dir / filename
        path.write_bytes(data)
        return StagedUpload(field=field, path=path, url=f"{self._public_base_url}/temp/{filename}")

    @staticmethod
    def _discard(staged: StagedUpload) -> None:
        try:
            staged.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(
                "visualizer.cleanup_failed",
                extra={"file": staged.path.name, "error": str(exc)},
            )

    async def generate(
        self,
        prompt: str | None,
        *,
        room: bytes,
        room_type: ImageType,
        rug: bytes,
        rug_type: ImageType,
    ) -> str:
        """Produce the composite image.

        Args:
            prompt: Client-supplied prompt; the default prompt is used when blank.
            room: Room photo bytes.
            room_type: Validated room image type.
            rug: Rug photo bytes.
            rug_type: Validated rug image type.

        Returns:
            Base64-encoded composite image.

        Raises:
            RelayAppError: If the remote generation fails.
        """
        staged: list[StagedUpload] = []
        try:
            staged.append(self.stage_upload("room", room, room_type))
            staged.append(self.stage_upload("rug", rug, rug_type))
            room_upload, rug_upload = staged

            started = time.perf_counter()
            image = await self._relay.generate(
                (prompt or "").strip() or self._default_prompt,
                room_url=room_upload.url,
                rug_url=rug_upload.url,
            )
            logger.info(
                "visualizer.generated",
                extra={
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "image_length": len(image),
                },
            )
            return image
        finally:
            for upload in staged:
                self._discard(upload)


def cleanup_old_temp_files(
    temp_dir: Path,
    max_age_seconds: int,
    *,
    now: float | None = None,
) -> int:
    """Delete files in ``temp_dir`` older than ``max_age_seconds``.

    Returns:
        Number of files removed.
    """
    temp_dir = Path(temp_dir)
    if not temp_dir.is_dir():
        return 0

    current = time.time() if now is None else now
    removed = 0
    for path in temp_dir.iterdir():
        try:
            if not path.is_file():
                continue
            if current - path.stat().st_mtime > max_age_seconds:
                path.unlink()
                removed += 1
        except OSError as exc:
            logger.warning(
                "temp_cleanup.file_failed",
                extra={"file": path.name, "error": str(exc)},
            )

    if removed:
        logger.info("temp_cleanup.removed", extra={"count": removed, "temp_dir": str(temp_dir)})
    return removed
