"""
Engine error taxonomy.

Every failure the state engine reports has a stable ``kind`` the HTTP layer
maps to its status codes, plus a ``context`` dict carrying the current state
of the resource so a client can decide whether to refresh and retry.
"""
from typing import Dict, Optional

from rest_framework import status
from rest_framework.exceptions import APIException


class EngineError(APIException):
    """Base class for every error raised by the POS state engine"""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be completed"
    default_code = "engine_error"
    kind = "EngineError"
    # Terminal errors are stored against an idempotency key and replayed
    terminal = True

    def __init__(self, detail: Optional[str] = None, **context):
        super().__init__(detail or self.default_detail, self.default_code)
        self.message = str(detail or self.default_detail)
        self.context = context

    def as_body(self) -> Dict:
        body = {"error": self.kind, "detail": self.message}
        body.update(self.context)
        return body


class ValidationFailed(EngineError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"
    default_code = "validation_failed"
    kind = "ValidationFailed"


class NotFound(EngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"
    default_code = "not_found"
    kind = "NotFound"


class PermissionDenied(EngineError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Permission denied"
    default_code = "permission_denied"
    kind = "PermissionDenied"


class ConflictAlreadySeated(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Table is already seated by another request"
    default_code = "conflict_already_seated"
    kind = "ConflictAlreadySeated"


class ConflictAlreadyPaid(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Order is already paid"
    default_code = "conflict_already_paid"
    kind = "ConflictAlreadyPaid"


class ConflictKeyReuse(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Idempotency key reuse with different request"
    default_code = "conflict_key_reuse"
    kind = "ConflictKeyReuse"


class ConflictDiscountExists(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A discount is already applied"
    default_code = "conflict_discount_exists"
    kind = "ConflictDiscountExists"


class AmountMismatch(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Payment amount does not match the order total"
    default_code = "amount_mismatch"
    kind = "AmountMismatch"


class InvalidState(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource is not in a valid state for this action"
    default_code = "invalid_state"
    kind = "InvalidState"


class InvalidTransition(EngineError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Transition is not allowed"
    default_code = "invalid_transition"
    kind = "InvalidTransition"


class Timeout(EngineError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Operation timed out, retry with the same idempotency key"
    default_code = "timeout"
    kind = "Timeout"
    terminal = False


class StorageFailure(EngineError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Storage failure"
    default_code = "storage_failure"
    kind = "StorageFailure"
    terminal = False


class BillInvariantError(StorageFailure):
    default_detail = "Bill totals are inconsistent"
    default_code = "bill_invariant"
