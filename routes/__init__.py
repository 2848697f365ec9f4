"""
HTTP routers. Every router carries its own /api prefix.
"""

from routes.orders import router as orders_router
from routes.delivery_dates import router as delivery_dates_router
from routes.catalog import router as catalog_router
from routes.settings import router as settings_router

__all__ = ["orders_router", "delivery_dates_router", "catalog_router", "settings_router"]
