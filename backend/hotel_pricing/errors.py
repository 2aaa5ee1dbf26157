"""
Error taxonomy for the pricing engine.

Every error carries two facts the callers need: whether retrying can help
(`retryable`), and which HTTP status the API should answer with.
The event queue uses `retryable` to decide between another attempt and
a terminal `failed` status.
"""


class PricingError(Exception):
    retryable = False
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RoomNotFoundError(PricingError):
    status_code = 404

    def __init__(self, room_id: str):
        super().__init__(f"Room not found: {room_id}")
        self.room_id = room_id


class PricingValidationError(PricingError):
    status_code = 400


class MalformedEventError(PricingValidationError):
    pass


class TransientStorageError(PricingError):
    retryable = True


class CalculationFailure(PricingError):
    retryable = True


class ApprovalNotFoundError(PricingError):
    status_code = 404

    def __init__(self, approval_id: int):
        super().__init__(f"Price approval not found: {approval_id}")
        self.approval_id = approval_id


class ApprovalExpiredError(PricingError):
    status_code = 409

    def __init__(self, approval_id: int):
        super().__init__(f"Price approval {approval_id} has expired")
        self.approval_id = approval_id


class ApprovalStateError(PricingError):
    status_code = 409


def is_retryable(exc: Exception) -> bool:
    """Unknown exceptions are treated as transient."""
    if isinstance(exc, PricingError):
        return exc.retryable
    return True
