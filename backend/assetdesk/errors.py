# backend/assetdesk/errors.py
"""
Error taxonomy shared by services and routes.

Every error carries the HTTP status it maps to and renders itself as the
JSON body the API returns. Services raise; routes translate.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base exception for application errors."""
    status_code = 500
    code = "INTERNAL"

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        rv = {"error": self.message, "code": self.code, "status": self.status_code}
        if self.details:
            rv["details"] = self.details
        return rv


class ValidationError(AppError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION"


class NotFoundError(AppError, LookupError):
    """Referenced entity does not exist."""
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError, ValueError):
    """409-level business rule conflict (e.g., duplicate serial)."""
    status_code = 409
    code = "CONFLICT"


class DependencyError(AppError):
    """Backing store or PDF renderer unavailable. Safe to retry."""
    status_code = 503
    code = "DEPENDENCY"


class InvoiceError(AppError):
    """Invoice creation failed at a known engine stage."""

    def __init__(self, message: str, *, stage: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        details = dict(details or {})
        details.setdefault("stage", stage)
        super().__init__(message, status_code=status_code, details=details)
        self.stage = stage


class PartialApplicationError(InvoiceError):
    """
    Stock adjustment failed after the invoice row was written.

    When the unit of work could be rolled back, details["rolled_back"] is True
    and nothing was persisted; otherwise the invoice number in details is the
    record reconciliation has to look at.
    """
    status_code = 500
    code = "PARTIAL_APPLICATION"

    def __init__(
        self,
        message: str,
        *,
        invoice_number: str,
        item_index: int,
        asset_id: int | None,
        rolled_back: bool,
    ):
        super().__init__(
            message,
            stage="stock_applying",
            details={
                "invoice_number": invoice_number,
                "item_index": item_index,
                "asset_id": asset_id,
                "rolled_back": rolled_back,
            },
        )
        self.invoice_number = invoice_number
        self.item_index = item_index
        self.rolled_back = rolled_back


def register_error_handlers(app: Flask) -> None:
    """Render errors that escape a route as JSON for API paths."""

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        if error.status_code >= 500:
            logger.error("Application error: %s", error.message, extra={"status": error.status_code})
        else:
            logger.info("Application error: %s", error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        if not request.path.startswith("/api/"):
            return error
        return jsonify({"error": error.description, "status": error.code}), error.code
