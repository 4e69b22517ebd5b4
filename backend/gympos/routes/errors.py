# Overview: Maps service-layer exceptions to JSON error responses.

from __future__ import annotations

from flask import current_app

from ..services.stock_ledger_service import (
    InsufficientStockError,
    NotFoundError,
    StockLedgerError,
    StoreError,
)
from ..validation import ConflictError, ValidationError


def error_response(exc: Exception):
    """
    Translate a known service exception into (body, status).

    Unknown exceptions are logged and reported as a generic 500.
    """
    if isinstance(exc, ValidationError):
        return {"error": str(exc)}, 400
    if isinstance(exc, ConflictError):
        return {"error": str(exc)}, 409
    if isinstance(exc, InsufficientStockError):
        return {"error": str(exc), **exc.details}, 400
    if isinstance(exc, NotFoundError):
        return {"error": str(exc), **exc.details}, 404
    if isinstance(exc, StoreError):
        return {"error": str(exc)}, 500
    if isinstance(exc, StockLedgerError):
        return {"error": str(exc), **exc.details}, 400

    current_app.logger.exception("Unhandled error in %s", type(exc).__name__)
    return {"error": "Internal server error"}, 500
