"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Migration-specific exception classes
    • Fatal / non-fatal classification (fatal errors abort the whole run)
    • Consistent JSON error response format
    • Automatic logging of unhandled errors

Usage:
    from ualert.app.core.errors import (
        MigrationError,
        IntegrationConversionError,
        UnknownReceiverReferenceError,
        DuplicateReceiverNameError,
        register_error_handlers,
    )

    raise DuplicateReceiverNameError("ops-team", channel_ids=[3, 7])
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ualert.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class MigrationError(Exception):
    """Base exception for all migration errors."""

    fatal: bool = True

    def __init__(
        self,
        message: str = "Migration failed",
        *,
        status_code: int = 500,
        error_code: str = "MIGRATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class IntegrationConversionError(MigrationError):
    """A channel's settings cannot be turned into an integration (fatal)."""

    def __init__(self, channel: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Channel '{channel}' could not be converted: {message}",
            status_code=422,
            error_code="INTEGRATION_CONVERSION_ERROR",
            details={"channel": channel, **details},
        )


class DuplicateReceiverNameError(MigrationError):
    """Two distinct channels would produce the same receiver name (fatal)."""

    def __init__(self, name: str, **details: Any):
        super().__init__(
            message=f"Receiver name '{name}' is produced by more than one channel",
            status_code=409,
            error_code="DUPLICATE_RECEIVER_NAME",
            details={"receiver": name, **details},
        )


class UnknownReceiverReferenceError(MigrationError):
    """An alert references a channel that was never migrated (per-alert)."""

    fatal = False

    def __init__(self, alert_id: Any, reference: Any):
        super().__init__(
            message=(
                f"Alert {alert_id} references unknown notification "
                f"channel {reference!r}"
            ),
            status_code=422,
            error_code="UNKNOWN_RECEIVER_REFERENCE",
            details={"alert_id": alert_id, "reference": reference},
        )
        self.alert_id = alert_id
        self.reference = reference


class NotFoundError(MigrationError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(MigrationError)
    async def handle_migration_error(request: Request, exc: MigrationError):
        logger.error(
            "Migration error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(
            500, "INTERNAL_ERROR", message, request=request,
        )
