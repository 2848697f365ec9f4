"""
Business logic services.

Each service handles one domain area.
"""

from services.order_repository import OrderRepository, Partition, get_order_repository
from services.settings_service import SettingsService, get_settings_service
from services.vendor_service import VendorService, VendorCache, get_vendor_service
from services.client_service import ClientService, get_client_service, merge_client_snapshot
from services.order_number_service import OrderNumberService, get_order_number_service
from services.delivery_date_service import DeliveryDateService, get_delivery_date_service
from services.reconcile_service import ReconcileService, get_reconcile_service
from services.catalog_service import CatalogService, get_catalog_service
from services.promotion_service import PromotionService, get_promotion_service

__all__ = [
    "OrderRepository",
    "Partition",
    "get_order_repository",
    "SettingsService",
    "get_settings_service",
    "VendorService",
    "VendorCache",
    "get_vendor_service",
    "ClientService",
    "get_client_service",
    "merge_client_snapshot",
    "OrderNumberService",
    "get_order_number_service",
    "DeliveryDateService",
    "get_delivery_date_service",
    "ReconcileService",
    "get_reconcile_service",
    "CatalogService",
    "get_catalog_service",
    "PromotionService",
    "get_promotion_service",
]
