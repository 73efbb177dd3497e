"""Wire envelope wrapping every MLS REST response."""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class APIErrorPayload(BaseModel):
    """Error object carried by a failed envelope."""

    code: str
    message: str
    status: Optional[int] = None


class APIResponse(BaseModel, Generic[T]):
    """``{success, data, error}`` wrapper returned by the mobile namespace."""

    success: bool
    data: Optional[T] = None
    error: Optional[APIErrorPayload] = None


class WriteAcknowledgement(BaseModel):
    """Envelope shape accepted for write-only requests."""

    success: bool = Field(..., description="Whether the server applied the write.")
    error: Optional[APIErrorPayload] = None


__all__ = [
    "APIErrorPayload",
    "APIResponse",
    "WriteAcknowledgement",
]
