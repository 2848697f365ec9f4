"""
Text utilities for item names.

Catalog entries and named order items are matched by name, so every
comparison goes through the same normalization.
"""

from typing import Optional

DEFAULT_ITEM_NAME = "Item"


def clean_item_name(name: Optional[str], max_length: int = 200) -> str:
    """
    Clean an item name for storage and display.

    - Strips whitespace
    - Truncates to max length
    - Empty or missing names become "Item"

    Args:
        name: Raw item name
        max_length: Maximum characters to keep

    Returns:
        Cleaned display name
    """
    if not name:
        return DEFAULT_ITEM_NAME

    name = name.strip()

    if not name:
        return DEFAULT_ITEM_NAME

    if len(name) > max_length:
        name = name[:max_length]

    return name


def item_name_key(name: Optional[str]) -> str:
    """
    Comparison key for an item name.

    "  Milk " and "MILK" share a key; blank names share the "item" key.
    """
    return clean_item_name(name).casefold()
