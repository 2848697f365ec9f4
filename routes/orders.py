"""
Upcoming order API routes.

Order numbers, reconciliation of a client's desired configuration,
client item edits and promotion of due orders.
"""

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse
from typing import Optional
from datetime import date
import structlog

from models.order_config import OrderConfig
from models.upcoming_order import (
    UpcomingOrderResponse,
    UpcomingOrderListResponse,
    ClientEditRequest,
    ReconcileResponse,
    PromotionResponse,
    OrderNumberRequest,
    OrderNumberResponse,
)
from services.order_number_service import get_order_number_service
from services.reconcile_service import get_reconcile_service
from services.promotion_service import get_promotion_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Upcoming Orders"])


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
# ORDER NUMBERS
# ===================

@router.post("/order-numbers", response_model=OrderNumberResponse)
async def allocate_order_numbers(data: Optional[OrderNumberRequest] = None):
    """
    Reserve order numbers.

    A batch is a contiguous block; numbers are never below 100000.
    """
    try:
        service = get_order_number_service()
        count = data.count if data else 1
        return OrderNumberResponse(numbers=service.allocate(count))

    except Exception as e:
        return handle_error(e)


# ===================
# RECONCILIATION
# ===================

@router.put("/clients/{client_id}/upcoming-order", response_model=ReconcileResponse)
async def reconcile_upcoming_order(client_id: str, config: OrderConfig = Body(...)):
    """
    Save a client's desired order configuration.

    Creates, replaces or merges one scheduled order per delivery day
    and deletes scheduled orders the configuration no longer covers.
    """
    try:
        service = get_reconcile_service()
        return service.reconcile(client_id, config)

    except Exception as e:
        return handle_error(e)


@router.get("/clients/{client_id}/upcoming-orders", response_model=UpcomingOrderListResponse)
async def list_upcoming_orders(client_id: str):
    """List a client's future orders with their line items and boxes."""
    try:
        service = get_reconcile_service()
        orders = service.list_upcoming(client_id)

        return UpcomingOrderListResponse(
            data=orders,
            total=len(orders)
        )

    except Exception as e:
        return handle_error(e)


@router.put("/upcoming-orders/{order_id}/items", response_model=UpcomingOrderResponse)
async def save_client_edits(order_id: str, data: ClientEditRequest):
    """
    Replace the named items of a scheduled order.

    The order becomes user-modified: later catalog propagation only
    adds and removes names, it never overwrites these quantities.
    """
    try:
        service = get_reconcile_service()
        return service.save_client_edits(order_id, data.items, updated_by=data.updated_by)

    except Exception as e:
        return handle_error(e)


# ===================
# PROMOTION
# ===================

@router.post("/upcoming-orders/promote", response_model=PromotionResponse)
async def promote_due_orders(
    today: Optional[date] = Query(None, description="Override today's date (YYYY-MM-DD)")
):
    """
    Promote every scheduled order whose take-effect date has arrived.

    Safe to re-run: already realized order numbers are only marked processed.
    """
    try:
        service = get_promotion_service()
        return service.promote_due(today)

    except Exception as e:
        return handle_error(e)
