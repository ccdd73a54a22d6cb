"""Pydantic schemas for CashID requests and responses."""

from .request import (
    IssuedRequest,
    RequestDescriptor,
    RequestOrigin,
    ResponsePayload,
    StoredRequest,
    ValidationResult,
)

__all__ = [
    "IssuedRequest",
    "RequestDescriptor",
    "RequestOrigin",
    "ResponsePayload",
    "StoredRequest",
    "ValidationResult",
]
