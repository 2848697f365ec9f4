"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, AuditMixin
from models.order_config import (
    ServiceType,
    Weekday,
    DeliveryDayKey,
    VendorSelection,
    DeliveryDayOrder,
    BoxOrder,
    FoodOrderConfig,
    BoxesOrderConfig,
    CustomOrderConfig,
    ProduceOrderConfig,
    OrderConfig,
    parse_order_config,
)
from models.upcoming_order import (
    OrderStatus,
    LineItemResponse,
    VendorSelectionResponse,
    BoxSelectionResponse,
    UpcomingOrderResponse,
    UpcomingOrderListResponse,
    NamedItem,
    ClientEditRequest,
    PartitionOutcome,
    ReconcileResponse,
    PromotionError,
    PromotionResponse,
    OrderNumberRequest,
    OrderNumberResponse,
)
from models.vendor import Vendor, MenuItem, BoxType
from models.catalog import (
    CatalogEntry,
    CatalogSaveRequest,
    EffectiveCatalogResponse,
    CatalogDatesResponse,
    PropagationError,
    PropagationResponse,
    ExpiredOrdersResponse,
)
from models.settings import (
    SettingKey,
    SettingUpdate,
    SettingResponse,
    SettingListResponse,
    WeeklyCutoff,
    DeliveryDatesResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "AuditMixin",

    # Configuration
    "ServiceType",
    "Weekday",
    "DeliveryDayKey",
    "VendorSelection",
    "DeliveryDayOrder",
    "BoxOrder",
    "FoodOrderConfig",
    "BoxesOrderConfig",
    "CustomOrderConfig",
    "ProduceOrderConfig",
    "OrderConfig",
    "parse_order_config",

    # Orders
    "OrderStatus",
    "LineItemResponse",
    "VendorSelectionResponse",
    "BoxSelectionResponse",
    "UpcomingOrderResponse",
    "UpcomingOrderListResponse",
    "NamedItem",
    "ClientEditRequest",
    "PartitionOutcome",
    "ReconcileResponse",
    "PromotionError",
    "PromotionResponse",
    "OrderNumberRequest",
    "OrderNumberResponse",

    # Vendors
    "Vendor",
    "MenuItem",
    "BoxType",

    # Catalog
    "CatalogEntry",
    "CatalogSaveRequest",
    "EffectiveCatalogResponse",
    "CatalogDatesResponse",
    "PropagationError",
    "PropagationResponse",
    "ExpiredOrdersResponse",

    # Settings
    "SettingKey",
    "SettingUpdate",
    "SettingResponse",
    "SettingListResponse",
    "WeeklyCutoff",
    "DeliveryDatesResponse",
]
