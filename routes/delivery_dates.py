"""
Delivery date API routes.

Preview of the take-effect and delivery dates an order would get.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.order_config import ServiceType
from models.settings import DeliveryDatesResponse
from services.vendor_service import get_vendor_service
from services.settings_service import get_settings_service
from services.delivery_date_service import get_delivery_date_service, normalize_delivery_day
from exceptions import AppError, VendorNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/delivery-dates", tags=["Delivery Dates"])


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


@router.get("", response_model=DeliveryDatesResponse)
async def get_delivery_dates(
    service_type: ServiceType = Query(ServiceType.FOOD, description="Order kind"),
    delivery_day: Optional[str] = Query(None, description="Weekday or weekday_kind label, e.g. Thursday_Food"),
    vendor_ids: Optional[list[str]] = Query(None, description="Vendors of the order (default vendor if omitted)")
):
    """
    Compute the dates for an order partition.

    Without a delivery day, the earliest weekday shared by all the
    vendors is used.
    """
    try:
        vendor_service = get_vendor_service()
        date_service = get_delivery_date_service()

        weekday = normalize_delivery_day(delivery_day) if delivery_day else None

        if vendor_ids:
            vendors = vendor_service.get_vendors(vendor_ids)
        else:
            default_vendor = vendor_service.get_default_vendor()
            if default_vendor is None:
                raise VendorNotFoundError("default")
            vendors = [default_vendor]

        dates = date_service.compute_dates(service_type, weekday, vendors)
        cutoff = get_settings_service().get_weekly_cutoff()

        return DeliveryDatesResponse(
            service_type=service_type.value,
            delivery_day=dates.delivery_day,
            take_effect_date=dates.take_effect_date,
            scheduled_delivery_date=dates.scheduled_delivery_date,
            weekly_cutoff_day=cutoff.cutoff_day,
            weekly_cutoff_time=cutoff.cutoff_time,
        )

    except Exception as e:
        return handle_error(e)
