"""Error taxonomy for email verification.

Every error carries a machine-readable code, a stable human-readable
message and the HTTP status the API answers with. The app-level handler
in ``app.main`` renders them as ``{"success": false, "error", "message"}``.
"""

from typing import Optional


class VerificationError(Exception):
    """Base class for verification errors.

    Attributes:
        code: Machine-readable error code (e.g. "RATE_LIMITED").
        message: Stable message the UI can show or branch on.
        status_code: HTTP status code to return.
    """

    code = "VERIFICATION_ERROR"
    message = "Verification failed"
    status_code = 500

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class UserNotFound(VerificationError):
    code = "USER_NOT_FOUND"
    message = "User not found"
    status_code = 404


class AlreadyVerified(VerificationError):
    code = "ALREADY_VERIFIED"
    message = "Email already verified"
    status_code = 409


class RateLimited(VerificationError):
    code = "RATE_LIMITED"
    message = "Too many verification emails sent. Please wait before requesting another."
    status_code = 429


class InvalidOrExpiredToken(VerificationError):
    code = "INVALID_OR_EXPIRED_TOKEN"
    message = "Invalid or expired token"
    status_code = 400


class PersistenceError(VerificationError):
    """Transient storage fault (timeout, lock, lost connection). Safe to retry."""

    code = "PERSISTENCE_ERROR"
    message = "Temporary storage problem. Please try again."
    status_code = 503


class NotificationDeliveryFailed(VerificationError):
    """Outbound mail could not be delivered. Never fails a verification operation."""

    code = "NOTIFICATION_DELIVERY_FAILED"
    message = "Notification could not be delivered"
    status_code = 502
