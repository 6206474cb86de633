"""Application error taxonomy.

Service functions raise these; ``libs.common.error_handler`` turns them into
the standard response envelope. Routers never catch them.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for expected, user-visible failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, data: Any = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.status_code >= 500,
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class NotServiceable(AppError):
    """Valid coordinates that no active store delivers to."""

    status_code = 400
    code = "NOT_SERVICEABLE"
    default_message = "Sorry, we don't deliver to this location yet"


class InsufficientStock(AppError):
    """A deduction batch failed; ``failures`` lists every deficient item."""

    status_code = 400
    code = "INSUFFICIENT_STOCK"
    default_message = "Some items are not available in the requested quantity"

    def __init__(self, failures: list[dict[str, Any]], message: Optional[str] = None):
        self.failures = failures
        super().__init__(message, data={"failures": failures})


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Could not validate credentials"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You are not allowed to perform this action"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class InvalidStateTransition(Conflict):
    code = "INVALID_STATE_TRANSITION"
    default_message = "Status transition not allowed"


class TransactionAborted(AppError):
    """The data store aborted a transaction; nothing was committed."""

    status_code = 500
    code = "TRANSACTION_ABORTED"
    default_message = "The operation could not be completed, please retry"
