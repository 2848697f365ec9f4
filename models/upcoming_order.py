"""
Order schemas for the future (upcoming) and realized partitions.

Both partitions share the same row shape; the future partition adds
take_effect_date and the processed back-reference.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import date, datetime
from decimal import Decimal

from models.base import BaseSchema, AuditMixin


class OrderStatus(str, Enum):
    """Order status values."""
    SCHEDULED = "scheduled"
    PROCESSED = "processed"
    PENDING = "pending"
    COMPLETED = "completed"
    BILLING_PENDING = "billing_pending"
    CANCELLED = "cancelled"


# ===================
# CHILD ROW SCHEMAS
# ===================

class LineItemResponse(BaseSchema):
    """Line item under a vendor selection (menu item or named/custom item)."""

    id: str
    order_id: str
    vendor_selection_id: Optional[str] = None
    menu_item_id: Optional[str] = None
    custom_name: Optional[str] = None
    custom_price: Optional[Decimal] = None
    unit_value: Decimal = Decimal("0")
    quantity: int = Field(..., gt=0)
    sort_order: Optional[int] = None


class VendorSelectionResponse(BaseSchema):
    """Vendor selection with its line items."""

    id: str
    order_id: str
    vendor_id: str
    items: list[LineItemResponse] = Field(default_factory=list)


class BoxSelectionResponse(BaseSchema):
    """Box selection. items is the stored id -> {quantity, price} map."""

    id: str
    order_id: str
    vendor_id: str
    box_type_id: Optional[str] = None
    quantity: int = 0
    items: dict = Field(default_factory=dict)
    total_value: Decimal = Decimal("0")


# ===================
# ORDER HEADER SCHEMAS
# ===================

class UpcomingOrderResponse(AuditMixin, BaseSchema):
    """Future-partition order with children."""

    id: str
    order_number: int = Field(..., ge=100000)
    client_id: str
    service_type: str
    case_id: Optional[str] = None
    status: OrderStatus
    scheduled_delivery_date: Optional[date] = None
    take_effect_date: Optional[date] = None
    delivery_day: Optional[str] = None
    total_items: int = 0
    total_value: Decimal = Decimal("0")
    vendor_id: Optional[str] = None
    notes: Optional[str] = None
    user_modified: bool = False
    processed_order_id: Optional[str] = None
    processed_at: Optional[datetime] = None

    vendor_selections: list[VendorSelectionResponse] = Field(default_factory=list)
    box_selections: list[BoxSelectionResponse] = Field(default_factory=list)


class UpcomingOrderListResponse(BaseSchema):
    """List of a client's future orders."""

    data: list[UpcomingOrderResponse]
    total: int


# ===================
# REQUEST / RESULT SCHEMAS
# ===================

class NamedItem(BaseSchema):
    """Item identified by display name (catalog entries, client edits)."""

    name: str = Field(default="", max_length=200)
    quantity: int = Field(..., ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    sort_order: Optional[int] = None


class ClientEditRequest(BaseSchema):
    """Client's manual edit of a scheduled order."""

    items: list[NamedItem] = Field(default_factory=list)
    updated_by: Optional[str] = Field(None, max_length=200)


class PartitionOutcome(BaseSchema):
    """What happened to one delivery-day partition."""

    delivery_day: Optional[str] = None
    order_id: Optional[str] = None
    order_number: Optional[int] = None
    action: str = Field(..., description="created, replaced, merged or placeholder")
    total_items: int = 0
    total_value: Decimal = Decimal("0")


class ReconcileResponse(BaseSchema):
    """Result of a reconcile call."""

    client_id: str
    service_type: str
    partitions: list[PartitionOutcome] = Field(default_factory=list)
    deleted_order_ids: list[str] = Field(default_factory=list)


class PromotionError(BaseSchema):
    """One order that failed to promote."""

    order_id: str
    order_number: Optional[int] = None
    error: str


class PromotionResponse(BaseSchema):
    """Result of a promotion run."""

    promoted_count: int = 0
    skipped_count: int = 0
    errors: list[PromotionError] = Field(default_factory=list)


class OrderNumberRequest(BaseSchema):
    """Request for one or more order numbers."""

    count: int = Field(default=1, ge=1, le=1000)


class OrderNumberResponse(BaseSchema):
    """Allocated order numbers."""

    numbers: list[int]
