"""
Shared schema primitives used across the API.

Success: {success: true, message, data}
Error:   {success: false, code, message, data?, errors?}
"""
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from app.core.clock import as_utc

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard success envelope."""
    success: bool = True
    message: str = ""
    data: Optional[T] = None


class ErrorDetail(BaseModel):
    """A single field-level validation error."""
    field: str
    message: str
    type: str


class ErrorResponse(BaseModel):
    """Standard error envelope returned for all 4xx/5xx responses."""
    success: bool = False
    code: str = Field(examples=["ALREADY_CHECKED_IN"])
    message: str
    data: Optional[dict[str, Any]] = None
    errors: Optional[list[ErrorDetail]] = None


def ok(data: Any = None, message: str = "") -> dict:
    return {"success": True, "message": message, "data": data}


def iso(instant: Optional[datetime]) -> Optional[str]:
    """UTC ISO-8601 string; naive values from the store are treated as UTC."""
    return as_utc(instant).isoformat() if instant else None


def ev(value: Any) -> Any:
    """Enum member → its value; plain values pass through."""
    return value.value if hasattr(value, "value") else value
