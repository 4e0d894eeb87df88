# app/core/errors.py
"""
Typed failures raised by services.

Every error carries a stable `kind` plus a human-readable message. They
subclass HTTPException so FastAPI renders them without extra wiring:

    {"detail": {"kind": "not_found", "message": "Product not found"}}

Extra keyword arguments end up in the payload as context, e.g.
InsufficientStockError(..., available=3, requested=5).
"""
from typing import Any

from fastapi import HTTPException, status


class StoreError(HTTPException):
    kind: str = "internal_error"
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(
            status_code=self.http_status,
            detail={"kind": self.kind, "message": message, **context},
        )

    def __str__(self) -> str:
        return self.message


class ValidationError(StoreError):
    """Missing or malformed input (bad colour, too many images, rating range)."""

    kind = "validation_error"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFoundError(StoreError):
    kind = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class InsufficientStockError(StoreError):
    kind = "insufficient_stock"
    http_status = status.HTTP_400_BAD_REQUEST


class AuthorizationError(StoreError):
    kind = "not_authorized"
    http_status = status.HTTP_403_FORBIDDEN


class ConflictError(StoreError):
    """Duplicate review, SKU or category name."""

    kind = "conflict"
    http_status = status.HTTP_409_CONFLICT


class TransitionError(StoreError):
    kind = "invalid_transition"
    http_status = status.HTTP_400_BAD_REQUEST


class DeliveryError(StoreError):
    """Raised only when sending mail *is* the operation (contact replies)."""

    kind = "delivery_failed"
    http_status = status.HTTP_502_BAD_GATEWAY
