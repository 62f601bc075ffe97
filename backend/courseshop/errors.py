# Overview: Error taxonomy shared by the order engine and the HTTP layer.

"""
Every failure the engine reports carries a human-readable message, an HTTP
status and an optional ``details`` dict. Routes turn them into
``{"error": ..., "details": ...}`` bodies; storage failures are reported
generically so no engine detail leaks across the boundary.
"""

from __future__ import annotations

from flask import current_app, jsonify


class ShopError(Exception):
    """Base class for errors raised by course shop services."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class Unauthorized(ShopError):
    """No or invalid caller identity."""
    status_code = 401


class Forbidden(ShopError):
    """Authenticated, but lacking the required role."""
    status_code = 403


class NotFoundError(ShopError):
    """An order, course or coupon reference does not resolve."""
    status_code = 404


class ValidationError(ShopError):
    """400-level input problem (empty cart, nothing to purchase, bad payload)."""
    status_code = 400


class InvalidTransitionError(ValidationError):
    """Requested order status change is not allowed from the current status."""


class ConflictError(ShopError):
    """409-level business rule conflict (concurrent status change, coupon in use)."""
    status_code = 409


class StorageFailure(ShopError):
    """The enclosing transaction could not be committed."""
    status_code = 500


def error_response(exc: ShopError, log_message: str = "Request failed"):
    """Build the JSON response for a service error."""
    if isinstance(exc, StorageFailure):
        current_app.logger.exception(log_message)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"error": str(exc), "details": exc.details}), exc.status_code
