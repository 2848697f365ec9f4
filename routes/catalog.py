"""
Catalog API routes.

Per-date default catalog, per-client overrides, propagation of the
effective catalog to scheduled orders, and realized orders for expired
catalog dates.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
from datetime import date, timedelta
import structlog

from models.catalog import (
    CatalogSaveRequest,
    EffectiveCatalogResponse,
    CatalogDatesResponse,
    PropagationResponse,
    ExpiredOrdersResponse,
)
from services.catalog_service import get_catalog_service
from exceptions import AppError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/expired-orders", response_model=ExpiredOrdersResponse)
async def create_expired_orders(
    expiration_date: Optional[date] = Query(None, alias="date", description="Expiration day (YYYY-MM-DD), defaults to today")
):
    """
    Create realized Food orders for every catalog date expiring on the day.

    Skipped clients and dates, and per-order failures, are reported in
    the response.
    """
    try:
        service = get_catalog_service()
        return service.create_expired_orders(expiration_date)

    except Exception as e:
        return handle_error(e)


@router.get("/dates", response_model=CatalogDatesResponse)
async def list_catalog_dates(
    start: date = Query(..., description="First date (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Last date, defaults to start + 30 days")
):
    """List dates that have a default catalog."""
    try:
        end = end or start + timedelta(days=30)
        if end < start:
            raise ValidationError(
                "end must not be before start",
                details={"start": start.isoformat(), "end": end.isoformat()}
            )

        service = get_catalog_service()
        return CatalogDatesResponse(dates=service.list_dates(start, end))

    except Exception as e:
        return handle_error(e)


@router.get("/{calendar_date}/effective", response_model=EffectiveCatalogResponse)
async def get_effective_catalog(
    calendar_date: date,
    client_id: Optional[str] = Query(None, description="Client whose overrides apply")
):
    """
    Effective catalog for a date.

    Client rows override default rows with the same name.
    """
    try:
        service = get_catalog_service()
        entries = service.effective(calendar_date, client_id)

        return EffectiveCatalogResponse(
            calendar_date=calendar_date,
            client_id=client_id,
            entries=entries
        )

    except Exception as e:
        return handle_error(e)


@router.put("/{calendar_date}", response_model=EffectiveCatalogResponse)
async def save_catalog(calendar_date: date, data: CatalogSaveRequest):
    """
    Replace the default catalog (or one client's overrides) for a date.

    Scheduled orders are not touched until the date is propagated.
    """
    try:
        service = get_catalog_service()
        entries = service.save_entries(calendar_date, data.client_id, data.entries, data.expiration_date)

        return EffectiveCatalogResponse(
            calendar_date=calendar_date,
            client_id=data.client_id,
            entries=entries
        )

    except Exception as e:
        return handle_error(e)


@router.post("/{calendar_date}/propagate", response_model=PropagationResponse)
async def propagate_catalog(
    calendar_date: date,
    updated_by: Optional[str] = Query(None, description="Audit actor")
):
    """
    Push the effective catalog to scheduled Food orders delivering on the date.

    Per-client failures are reported in the response.
    """
    try:
        service = get_catalog_service()
        return service.propagate(calendar_date, updated_by=updated_by)

    except Exception as e:
        return handle_error(e)
