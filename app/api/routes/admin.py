from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from app.core.auth import authenticate_admin, require_admin
from app.core.config import settings
from app.schemas.admin import AdminLoginRequest, AdminSessionResponse

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/login", response_model=AdminSessionResponse)
def login(payload: AdminLoginRequest, response: Response) -> AdminSessionResponse:
    """Exchange admin credentials for a session cookie.

    Raises:
        ConfigurationAppError: 500 if no admin account is configured.
        AuthenticationAppError: 401 on wrong username or password.
    """
    token = authenticate_admin(payload.username, payload.password)
    response.set_cookie(
        key=settings.admin.cookie_name,
        value=token,
        max_age=settings.admin.token_max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
    )
    return AdminSessionResponse(username=settings.admin.username)


@router.post("/logout", response_model=AdminSessionResponse, response_model_exclude_none=True)
def logout(response: Response) -> AdminSessionResponse:
    response.delete_cookie(settings.admin.cookie_name, path="/", httponly=True, samesite="lax")
    return AdminSessionResponse()


@router.get("/me", response_model=AdminSessionResponse)
async def me(username: str = Depends(require_admin)) -> AdminSessionResponse:
    """Return the logged-in admin, 401 ``unauthorized`` otherwise."""
    return AdminSessionResponse(username=username)
