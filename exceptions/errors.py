"""
Custom exception classes for the application.

Every error carries a stable code, a human-readable message, an HTTP
status and a details dict with enough context (vendor, item, weekday)
for the caller to show an actionable message.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "VENDOR_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.operation = operation
        self.reason = message
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# LOOKUP ERRORS
# ===================

class ClientNotFoundError(NotFoundError):
    """Client not found."""

    def __init__(self, client_id: str):
        super().__init__(
            resource="Client",
            identifier=client_id,
            code="CLIENT_NOT_FOUND"
        )


class VendorNotFoundError(NotFoundError):
    """Vendor referenced by a configuration does not exist."""

    def __init__(self, vendor_id: str):
        super().__init__(
            resource="Vendor",
            identifier=vendor_id,
            code="VENDOR_NOT_FOUND"
        )


class UpcomingOrderNotFoundError(NotFoundError):
    """Future-partition order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Upcoming order",
            identifier=order_id,
            code="UPCOMING_ORDER_NOT_FOUND"
        )


class SettingNotFoundError(NotFoundError):
    """Setting not found."""

    def __init__(self, key: str):
        super().__init__(
            resource="Setting",
            identifier=key,
            code="SETTING_NOT_FOUND"
        )


# ===================
# ORDER VALIDATION ERRORS
# ===================

class EmptyOrderError(ValidationError):
    """Configuration resolves to no vendors or no positive-quantity items."""

    def __init__(self, service_type: str, delivery_day: Optional[str] = None):
        super().__init__(
            code="ORDER_EMPTY",
            message=f"{service_type} order has no vendors or no items with a quantity above zero",
            details={"service_type": service_type, "delivery_day": delivery_day}
        )


class VendorMissingDeliveryDaysError(ValidationError):
    """Vendor has no configured delivery weekday."""

    def __init__(self, vendor_id: str, vendor_name: Optional[str] = None):
        super().__init__(
            code="VENDOR_NO_DELIVERY_DAYS",
            message=f"Vendor {vendor_name or vendor_id} has no delivery days configured",
            details={"vendor_id": vendor_id, "vendor_name": vendor_name}
        )


class VendorDeliveryDayMismatchError(ValidationError):
    """Vendor does not deliver on the requested weekday."""

    def __init__(self, vendor_id: str, vendor_name: Optional[str], delivery_day: str, valid_days: list[str]):
        super().__init__(
            code="VENDOR_DELIVERY_DAY_MISMATCH",
            message=f"Vendor {vendor_name or vendor_id} does not deliver on {delivery_day}",
            details={
                "vendor_id": vendor_id,
                "vendor_name": vendor_name,
                "delivery_day": delivery_day,
                "valid": valid_days,
            }
        )


class InvalidDeliveryDayError(ValidationError):
    """Delivery day key is not a weekday name."""

    def __init__(self, value: str):
        super().__init__(
            code="INVALID_DELIVERY_DAY",
            message=f"Unknown delivery day: {value}",
            details={"provided": value}
        )


class MenuItemNotFoundError(ValidationError):
    """Configuration references a menu item that does not exist."""

    def __init__(self, item_id: str, vendor_id: Optional[str] = None):
        super().__init__(
            code="MENU_ITEM_NOT_FOUND",
            message=f"Unknown menu item: {item_id}",
            details={"item_id": item_id, "vendor_id": vendor_id}
        )


class OrderNotEditableError(ValidationError):
    """Only scheduled future orders accept edits."""

    def __init__(self, order_id: str, status: str):
        super().__init__(
            code="ORDER_NOT_EDITABLE",
            message=f"Order is {status} and can no longer be edited",
            details={"order_id": order_id, "status": status}
        )


# ===================
# SCHEDULING ERRORS
# ===================

class DateComputationError(AppError):
    """Take-effect or delivery date could not be resolved (422)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="DATE_COMPUTATION_FAILED",
            message=message,
            status_code=422,
            details=details
        )


class AllocationExhaustedError(AppError):
    """No free order number after every fallback tier (503)."""

    def __init__(self, last_candidate: Optional[int], attempts: int):
        super().__init__(
            code="ORDER_NUMBER_ALLOCATION_EXHAUSTED",
            message="Could not allocate a unique order number",
            status_code=503,
            details={"last_candidate": last_candidate, "attempts": attempts}
        )


# ===================
# PERSISTENCE ERRORS
# ===================

class PersistenceError(DatabaseError):
    """Child row write failed; aborts the current delivery-day partition."""

    def __init__(
        self,
        operation: str,
        message: str,
        delivery_day: Optional[str] = None,
        vendor_id: Optional[str] = None,
        item: Optional[str] = None,
    ):
        super().__init__(
            operation=operation,
            message=message,
            details={
                "delivery_day": delivery_day,
                "vendor_id": vendor_id,
                "item": item,
            }
        )
        self.code = "PERSISTENCE_ERROR"


class ReconciliationFailedError(AppError):
    """One or more delivery-day partitions failed to persist."""

    def __init__(self, client_id: str, committed: list[Optional[str]], failed: list[dict]):
        super().__init__(
            code="RECONCILIATION_FAILED",
            message=f"{len(failed)} delivery day(s) failed to save",
            status_code=500,
            details={
                "client_id": client_id,
                "committed": committed,
                "failed": failed,
            }
        )
