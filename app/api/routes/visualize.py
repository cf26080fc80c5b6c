from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from app.adapters.relay.factory import create_image_relay
from app.core.config import settings
from app.core.errors import RateLimitAppError, ValidationAppError
from app.core.file_validation import read_upload_file_limited, validate_image_upload
from app.core.usage import ensure_visitor_identity, get_usage_ledger
from app.schemas.visualize import GenerateResponse, UsageResponse, UsageSummary
from app.services.identity import RequestView
from app.services.usage_ledger import UsageLedger
from app.services.visualizer_service import VisualizerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Visualize"])

_MB = 1024 * 1024

_visualizer: VisualizerService | None = None


def get_visualizer_service() -> VisualizerService:
    """Return the process-wide visualizer, built lazily from settings."""
    global _visualizer
    if _visualizer is None:
        _visualizer = VisualizerService(
            create_image_relay(),
            temp_dir=settings.app.temp_dir,
            public_base_url=settings.relay.public_base_url,
            default_prompt=settings.relay.default_prompt,
        )
    return _visualizer


def _summary(ledger: UsageLedger, count: int) -> UsageSummary:
    return UsageSummary(count=count, limit=ledger.daily_limit, remaining=ledger.remaining_for(count))


@router.post("/upload", response_model=GenerateResponse)
async def upload_and_generate(
    room: UploadFile | None = File(None, description="Room photo (JPG/PNG/WEBP/HEIC, max 10MB)"),
    rug: UploadFile | None = File(None, description="Rug photo (JPG/PNG/WEBP/HEIC, max 5MB)"),
    prompt: str | None = Form(None, description="Optional generation prompt override"),
    view: RequestView = Depends(ensure_visitor_identity),
    ledger: UsageLedger = Depends(get_usage_ledger),
    visualizer: VisualizerService = Depends(get_visualizer_service),
) -> GenerateResponse:
    """Place the uploaded rug into the uploaded room photo.

    The visitor is charged one generation only after the relay returns an
    image. Refused, invalid and failed requests cost nothing.

    Raises:
        RateLimitAppError: 429 when today's quota is used up.
        ValidationAppError: 400 for missing or unsupported files.
        PayloadTooLargeAppError: 413 when a file exceeds its size limit.
        RelayAppError: 502 when the generation service fails.
    """
    # Step 1: Quota check before touching the uploads
    if settings.usage.enabled and not await run_in_threadpool(ledger.is_allowed, view):
        count = await run_in_threadpool(ledger.current_count, view)
        logger.info("upload.rate_limited", extra={"count": count, "limit": ledger.daily_limit})
        raise RateLimitAppError(
            code="rate_limit",
            message=(
                f"You have used all {ledger.daily_limit} generations for today. "
                "Please try again tomorrow."
            ),
            details={"limit": ledger.daily_limit, "count": count},
        )

    # Step 2: Both files are required
    missing = [name for name, upload in (("room", room), ("rug", rug)) if upload is None]
    if missing:
        raise ValidationAppError(
            code="missing_file",
            message="Both room and rug images are required",
            details={"field": ",".join(missing)},
        )

    # Step 3: Size limits, then type and signature
    room_bytes = await read_upload_file_limited(
        room,
        field="room",
        label="Room image",
        max_bytes=settings.app.max_room_upload_mb * _MB,
    )
    rug_bytes = await read_upload_file_limited(
        rug,
        field="rug",
        label="Rug image",
        max_bytes=settings.app.max_rug_upload_mb * _MB,
    )
    room_type = validate_image_upload(room, room_bytes, field="room")
    rug_type = validate_image_upload(rug, rug_bytes, field="rug")

    # Step 4: Generate; RelayAppError propagates uncharged
    image = await visualizer.generate(
        prompt,
        room=room_bytes,
        room_type=room_type,
        rug=rug_bytes,
        rug_type=rug_type,
    )

    # Step 5: Charge the confirmed success
    charge = await run_in_threadpool(ledger.record_use_result, view)
    if not charge.persisted:
        logger.warning("upload.charge_not_persisted", extra={"count": charge.count})

    return GenerateResponse(image=image, usage=_summary(ledger, charge.count))


@router.get("/api/usage", response_model=UsageResponse)
async def get_usage(
    view: RequestView = Depends(ensure_visitor_identity),
    ledger: UsageLedger = Depends(get_usage_ledger),
) -> UsageResponse:
    """Report today's generation count and remaining quota for the caller."""
    count = await run_in_threadpool(ledger.current_count, view)
    return UsageResponse(usage=_summary(ledger, count))
