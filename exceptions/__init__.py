"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Lookups
    ClientNotFoundError,
    VendorNotFoundError,
    UpcomingOrderNotFoundError,
    SettingNotFoundError,

    # Order validation
    EmptyOrderError,
    VendorMissingDeliveryDaysError,
    VendorDeliveryDayMismatchError,
    InvalidDeliveryDayError,
    MenuItemNotFoundError,
    OrderNotEditableError,

    # Scheduling
    DateComputationError,
    AllocationExhaustedError,

    # Persistence
    PersistenceError,
    ReconciliationFailedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Lookups
    "ClientNotFoundError",
    "VendorNotFoundError",
    "UpcomingOrderNotFoundError",
    "SettingNotFoundError",

    # Order validation
    "EmptyOrderError",
    "VendorMissingDeliveryDaysError",
    "VendorDeliveryDayMismatchError",
    "InvalidDeliveryDayError",
    "MenuItemNotFoundError",
    "OrderNotEditableError",

    # Scheduling
    "DateComputationError",
    "AllocationExhaustedError",

    # Persistence
    "PersistenceError",
    "ReconciliationFailedError",
]
