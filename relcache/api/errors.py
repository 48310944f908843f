"""Standardized error handling for the relcache read API.

Provides consistent error responses and logging patterns
across all API endpoints.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import jsonify

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Usage:
        raise APIError("Invalid input", status_code=400, details={"field": "q"})
    """

    def __init__(self, message: str, status_code: int = 400, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_response(self) -> Tuple[Any, int]:
        """Convert to Flask JSON response."""
        response = {"error": self.message}
        if self.details:
            response["details"] = self.details
        return jsonify(response), self.status_code


class ValidationError(APIError):
    """Raised for input validation failures."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=400, details=details)


class NotFoundError(APIError):
    """Raised when a requested resource is not cached."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message, status_code=404)


def handle_api_errors(app):
    """Register error handlers with Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):
        return error.to_response()

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def handle_internal_error(error):
        logger.exception("Internal server error")
        return jsonify({"error": "Internal server error"}), 500


def safe_endpoint(operation_name: str):
    """Decorator for standardized error handling on API endpoints.

    Invalid keys (a ValueError) become 400 responses; anything unexpected
    is logged and returned as a 500 without details.

    Usage:
        @app.route("/items")
        @safe_endpoint("list items")
        def list_items():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except APIError:
                raise
            except ValueError as e:
                logger.warning("Validation error in %s: %s", operation_name, e)
                return jsonify({"error": str(e)}), 400
            except Exception as e:
                logger.error(
                    "Unexpected error in %s: %s: %s", operation_name, type(e).__name__, e, exc_info=True
                )
                return jsonify({"error": f"Error in {operation_name}"}), 500

        return wrapper

    return decorator
