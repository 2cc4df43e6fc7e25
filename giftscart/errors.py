"""
Centralized API error types.
Routes raise these and the handlers registered here turn them into the
JSON envelope, so handlers stay thin and new error types are easy to add.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500
STATUS_BAD_GATEWAY = 502
STATUS_SERVICE_UNAVAILABLE = 503

MSG_INTERNAL_ERROR = "Internal server error"


class ApiError(Exception):
    status_code = STATUS_INTERNAL_ERROR
    default_message = MSG_INTERNAL_ERROR

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}

    def to_response(self) -> Tuple[Any, int]:
        body: Dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            body["details"] = self.details
        return jsonify(body), self.status_code


class ValidationError(ApiError):
    status_code = STATUS_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(ApiError):
    status_code = STATUS_UNAUTHORIZED
    default_message = "Authentication required"


class PermissionDenied(ApiError):
    status_code = STATUS_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(ApiError):
    status_code = STATUS_NOT_FOUND
    default_message = "Not found"


class ConflictError(ApiError):
    status_code = STATUS_CONFLICT
    default_message = "Resource already exists"


class UpstreamServiceError(ApiError):
    """A third-party API (geocoder, maps, payment gateway) failed."""

    status_code = STATUS_BAD_GATEWAY
    default_message = "Upstream service unavailable"


class ServiceNotConfigured(ApiError):
    status_code = STATUS_SERVICE_UNAVAILABLE
    default_message = "Service not configured"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _handle_api_error(exc: ApiError):
        if exc.status_code >= STATUS_INTERNAL_ERROR:
            logger.error("API error: %s", exc.message)
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        return jsonify({"success": False, "error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return jsonify({"success": False, "error": MSG_INTERNAL_ERROR}), STATUS_INTERNAL_ERROR
