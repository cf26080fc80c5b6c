from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.schemas.catalog import OptionsResponse, RoomListResponse, RugListResponse
from app.services.catalog_service import CatalogService

router = APIRouter(prefix="/api", tags=["Catalog"])


def get_catalog_service() -> CatalogService:
    return CatalogService(
        storage_dir=settings.app.storage_dir,
        images_dir=settings.app.images_dir,
    )


@router.get("/rugs", response_model=RugListResponse)
def list_rugs(catalog: CatalogService = Depends(get_catalog_service)) -> RugListResponse:
    """List the rug photos offered in the wizard."""
    return RugListResponse(images=catalog.list_rugs())


@router.get("/rooms", response_model=RoomListResponse)
def list_rooms(
    room_type: str | None = Query(None, alias="roomType"),
    style: str | None = Query(None),
    color: str | None = Query(None),
    catalog: CatalogService = Depends(get_catalog_service),
) -> RoomListResponse:
    """List sample room photos, optionally filtered by type, style and color."""
    return RoomListResponse(
        images=catalog.list_rooms(room_type=room_type, style=style, color=color)
    )


@router.get("/options", response_model=OptionsResponse)
def get_options(catalog: CatalogService = Depends(get_catalog_service)) -> OptionsResponse:
    return OptionsResponse(data=catalog.get_options())
