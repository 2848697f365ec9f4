"""
Meal Delivery Scheduling API.

Serves order numbers, delivery date previews, reconciliation of client
order configurations, catalog overrides and promotion of due orders.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import structlog

from config import settings, check_connection
from exceptions import AppError
from utils.time_utils import now_in_app_tz

logging.basicConfig(format="%(message)s", level=settings.log_level)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def warm_vendor_cache() -> None:
    """Load the vendor directory once so the first reconcile does not pay for it."""
    from services.vendor_service import get_vendor_service

    try:
        vendors = get_vendor_service().list_vendors()
        logger.info("vendor_cache_warmed", vendors=len(vendors))
    except AppError as e:
        logger.warning("vendor_cache_warm_failed", code=e.code, error=e.message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: report database state and warm the vendor cache.
    Shutdown: log only.
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        timezone=settings.app_timezone,
        order_number_floor=settings.order_number_floor
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            clients=db_status["clients_count"],
            scheduled_orders=db_status["scheduled_orders_count"]
        )
        warm_vendor_cache()
    else:
        logger.error("database_connection_failed", error=db_status.get("error"))

    yield

    logger.info("application_stopped")


app = FastAPI(
    title="Meal Delivery Scheduling",
    description="Recurring order reconciliation, delivery dates and promotion",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


# ===================
# SERVICE ENDPOINTS
# ===================

@app.get("/health")
async def health_check():
    """
    Database state plus the clock the scheduling rules run on.

    "degraded" means the API is up but the store is unreachable.
    """
    db_status = check_connection()
    local_now = now_in_app_tz()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "scheduling_clock": {
            "timezone": settings.app_timezone,
            "local_time": local_now.isoformat(),
            "today": local_now.date().isoformat(),
        },
        "database": db_status
    }


@app.get("/")
async def root():
    """Service name and the entry points of each area."""
    return {
        "name": "Meal Delivery Scheduling API",
        "version": app.version,
        "docs": "/docs" if settings.debug else None,
        "health": "/health",
        "endpoints": {
            "order_numbers": "/api/order-numbers",
            "delivery_dates": "/api/delivery-dates",
            "upcoming_orders": "/api/clients/{client_id}/upcoming-orders",
            "promote": "/api/upcoming-orders/promote",
            "catalog": "/api/catalog",
            "expired_orders": "/api/catalog/expired-orders",
            "settings": "/api/settings"
        }
    }


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything a route did not turn into an error envelope itself."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }
    )


# ===================
# ROUTERS
# ===================
from routes import orders_router, delivery_dates_router, catalog_router, settings_router

for router in (orders_router, delivery_dates_router, catalog_router, settings_router):
    app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
