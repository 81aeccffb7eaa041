"""Domain errors raised by the service layer."""

from fastapi import status


class AppError(Exception):
    """Base class for errors rendered in the API error envelope."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(AppError):
    """Referenced profile, conversation, notification or submission does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ValidationFailed(AppError):
    """Input rejected before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class PermissionDenied(AppError):
    """Caller is not allowed to act on the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class Conflict(AppError):
    """Resource already exists."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class TransactionFailed(AppError):
    """The atomic update could not commit; the caller should retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "TRANSACTION_FAILED"


class DeliveryWarning(AppError):
    """
    A notification could not be delivered after its triggering change committed.

    Never raised to HTTP clients. Workflows collect these and return them
    alongside the successful result.
    """

    code = "DELIVERY_WARNING"
