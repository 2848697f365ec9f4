"""
Catalog schemas.

A catalog entry is keyed by (calendar date, client, item name). A null
client is the admin default; a client row overrides the default row
with the same name.
"""

from pydantic import Field
from typing import Optional
from datetime import date
from decimal import Decimal

from models.base import BaseSchema
from models.upcoming_order import NamedItem


class CatalogEntry(BaseSchema):
    """One effective catalog line."""

    name: str = Field(..., description="Display name (normalized)")
    quantity: int = Field(default=0, ge=0)
    price: Decimal = Field(default=Decimal("0"))
    sort_order: int = Field(default=0)
    client_id: Optional[str] = Field(None, description="Owning client, None for default rows")


class CatalogSaveRequest(BaseSchema):
    """Replace the entries of one scope for one date."""

    client_id: Optional[str] = Field(None, description="Omit to edit the default catalog")
    entries: list[NamedItem] = Field(default_factory=list)
    expiration_date: Optional[date] = Field(
        None,
        description="Day the default rows expire and realized orders are created; ignored for client rows"
    )


class EffectiveCatalogResponse(BaseSchema):
    """Effective catalog for one client and date."""

    calendar_date: date
    client_id: Optional[str] = None
    entries: list[CatalogEntry]


class CatalogDatesResponse(BaseSchema):
    """Dates that have default catalog entries."""

    dates: list[date]


class PropagationError(BaseSchema):
    """One client whose orders could not be synced."""

    client_id: str
    order_id: Optional[str] = None
    error: str


class PropagationResponse(BaseSchema):
    """Result of pushing a catalog date out to scheduled orders."""

    calendar_date: date
    updated: int = 0
    skipped: int = 0
    errors: list[PropagationError] = Field(default_factory=list)


class ExpiredOrdersResponse(BaseSchema):
    """Result of turning expired catalog dates into realized orders."""

    expiration_date: date
    expired_dates: list[date] = Field(default_factory=list)
    clients_processed: int = 0
    orders_created: int = 0
    order_numbers: list[int] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list, description="Why a client or date produced no order")
    errors: list[PropagationError] = Field(default_factory=list)
