"""Pydantic schemas for rug visualization responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class UsageSummary(BaseModel):
    """Visitor's generation quota for the current day."""

    count: int = Field(..., ge=0, description="Successful generations charged today.")
    limit: int = Field(..., ge=1, description="Daily generation quota.")
    remaining: int = Field(..., ge=0, description="Generations left today.")


class GenerateResponse(BaseModel):
    """Successful composite image generation."""

    success: bool = Field(default=True)
    image: str = Field(..., description="Base64-encoded composite image (no data URI prefix).")
    message: str = Field(default="OK")
    usage: UsageSummary


class UsageResponse(BaseModel):
    """Quota status for the calling visitor."""

    success: bool = Field(default=True)
    usage: UsageSummary
