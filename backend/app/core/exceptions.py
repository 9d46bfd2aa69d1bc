"""Domain exceptions mapped to the API error envelope.

Services raise these; the handlers registered in ``app.main`` turn them into
``{"error": ..., "code": ..., "details": ...}`` responses.
"""
from typing import Any, Optional


class PortalError(Exception):
    """Base exception for the payment portal."""

    status_code = 500
    code = "InternalError"
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class Unauthorized(PortalError):
    status_code = 401
    code = "Unauthorized"
    default_message = "Unauthorized"


class ValidationFailed(PortalError):
    status_code = 400
    code = "ValidationError"
    default_message = "Invalid input"


class InvalidSignature(ValidationFailed):
    code = "InvalidSignature"
    default_message = "Signature does not match the provided wallet address."


class InvalidChallenge(ValidationFailed):
    code = "InvalidChallenge"
    default_message = "Verification challenge is missing, expired, or does not match."


class NotFound(PortalError):
    status_code = 404
    code = "NotFound"
    default_message = "Not found"


class Conflict(PortalError):
    status_code = 409
    code = "Conflict"
    default_message = "Conflict"


class AlreadyReconciled(Conflict):
    """Raised when a terminal payment session receives a different outcome."""

    code = "AlreadyReconciled"
    default_message = "Payment session has already been reconciled."


class UpstreamFailure(PortalError):
    """Store, identity provider or signing library failure.

    The message is logged server-side; callers get the generic message.
    """

    code = "UpstreamFailure"

    def to_dict(self) -> dict:
        return {"error": self.default_message, "code": self.code}
