"""
Shared pydantic bases.

Request, response and row schemas all derive from BaseSchema so string
trimming and assignment validation behave the same everywhere.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Strips strings, validates on assignment, reads attribute objects."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, from_attributes=True)


class AuditMixin(BaseModel):
    """Who last wrote an order header, and when."""
    last_updated: Optional[datetime] = Field(None, description="Time of the last write")
    updated_by: Optional[str] = Field(None, description="Actor behind the last write")
