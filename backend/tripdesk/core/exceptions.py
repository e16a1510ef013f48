"""
Service-level exceptions with structured error context.

Services raise these; the FastAPI handlers registered in ``main.py`` turn
them into the ``{"success": false, "error": ...}`` response shape.

Exception Hierarchy:
    TripDeskError (base, 400)
    ├── NotFoundError (404)
    ├── ValidationError (422)
    ├── ConflictError (409)
    └── DatabaseError (503)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class TripDeskError(Exception):
    """
    Base exception for all service errors.

    Attributes:
        message: Human-readable error message, shown to the user as-is
        context: Extra identifiers for logs (ids, field names, ...)
        status_code: HTTP status used when the error reaches the API layer
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        base_msg = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"
        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"
        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Result shape returned to API clients."""
        return {
            "success": False,
            "error": self.message,
        }


class NotFoundError(TripDeskError):
    """A referenced record does not exist."""
    status_code = 404

    def __init__(self, entity: str, entity_id: Any, context: Optional[Dict[str, Any]] = None):
        ctx = {"entity": entity, "id": entity_id}
        ctx.update(context or {})
        super().__init__(f"{entity} not found", ctx)


class ValidationError(TripDeskError):
    """
    Input rejected by a service rule.

    Context should include:
        - field: Name of the offending field (if applicable)
        - value: Rejected value (if applicable)
    """
    status_code = 422


class ConflictError(TripDeskError):
    """Operation not allowed in the record's current state."""
    status_code = 409


class DatabaseError(TripDeskError):
    """
    Database operation failed.

    Context should include:
        - operation: What was being attempted (insert, update, query)
    """
    status_code = 503
