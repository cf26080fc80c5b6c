"""Pydantic schemas for the browsable rug and room catalog."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class RugImage(BaseModel):
    filename: str
    url: str
    name: str | None = None
    code: str | None = None


class RoomImage(BaseModel):
    filename: str
    url: str
    roomType: str = Field(..., description="Slug of the room type (e.g. 'phong-khach').")
    style: str | None = Field(default=None, description="Slug of the interior style.")
    color: str | None = Field(default=None, description="Slug of the color tone.")


class RugListResponse(BaseModel):
    success: bool = True
    images: List[RugImage] = Field(default_factory=list)


class RoomListResponse(BaseModel):
    success: bool = True
    images: List[RoomImage] = Field(default_factory=list)


class CatalogOptions(BaseModel):
    """Choices offered by the wizard's room/style/color steps."""

    rooms: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    tones: List[str] = Field(default_factory=list)


class OptionsResponse(BaseModel):
    success: bool = True
    data: CatalogOptions
