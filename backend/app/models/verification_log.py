from sqlalchemy import Column, String, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.core.database import Base


class VerificationAction(str, enum.Enum):
    sent = "sent"
    resent = "resent"
    verified = "verified"
    failed = "failed"


SEND_ACTIONS = (VerificationAction.sent.value, VerificationAction.resent.value)


class VerificationLog(Base):
    """Append-only audit trail of verification actions per user."""

    __tablename__ = "email_verification_logs"
    __table_args__ = (
        CheckConstraint(
            "action IN ('sent', 'resent', 'verified', 'failed')",
            name="ck_email_verification_logs_action",
        ),
    )

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False)  # denormalized so lookups survive user deletion
    action = Column(String(20), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # relationships
    user = relationship("User", back_populates="verification_logs")
