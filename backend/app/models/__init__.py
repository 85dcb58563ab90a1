from app.core.database import Base
from app.models.user import User
from app.models.verification_token import EmailVerificationToken
from app.models.verification_log import VerificationAction, VerificationLog

__all__ = [
    "Base",
    "User",
    "EmailVerificationToken",
    "VerificationAction",
    "VerificationLog",
]
