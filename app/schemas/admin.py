"""Pydantic schemas for admin login."""

from pydantic import BaseModel, Field


class AdminLoginRequest(BaseModel):
    username: str = Field(default="")
    password: str = Field(default="")


class AdminSessionResponse(BaseModel):
    success: bool = True
    username: str | None = None
