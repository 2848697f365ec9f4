"""
Settings API routes.

The scheduling engine reads two keys from here: weekly_cutoff_day and
weekly_cutoff_time. Other keys are stored as-is.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.settings import (
    SettingUpdate,
    SettingResponse,
    SettingListResponse,
    WeeklyCutoff,
)
from services.settings_service import get_settings_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/settings", tags=["Settings"])


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    logger.error("settings_route_failed", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}}
    )


@router.get("", response_model=SettingListResponse)
async def list_settings():
    try:
        settings = get_settings_service().get_all()
        return SettingListResponse(data=settings, total=len(settings))

    except Exception as e:
        return handle_error(e)


@router.get("/weekly-cutoff", response_model=WeeklyCutoff)
async def get_weekly_cutoff():
    """Cutoff that locks next week's orders (defaults apply when unset)."""
    try:
        return get_settings_service().get_weekly_cutoff()

    except Exception as e:
        return handle_error(e)


@router.get("/{key}", response_model=SettingResponse)
async def get_setting(key: str):
    try:
        return get_settings_service().get_by_key(key)

    except Exception as e:
        return handle_error(e)


@router.put("/{key}", response_model=SettingResponse)
async def upsert_setting(key: str, data: SettingUpdate):
    """
    Create or update a setting.

    Cutoff day and time are rejected with INVALID_SETTING when the
    date rules could not read them.
    """
    try:
        return get_settings_service().upsert(key, data)

    except Exception as e:
        return handle_error(e)
