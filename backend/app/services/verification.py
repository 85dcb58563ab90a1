"""
Email verification flow: request a code, verify it, report status.

States per user: unverified, code pending (an active token exists), verified.
Verified is terminal. Every verify attempt writes exactly one 'verified' or
'failed' audit entry; every successful send writes one 'sent' or 'resent'.
Notification delivery is best-effort and never changes an operation's outcome.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.errors import (
    AlreadyVerified,
    PersistenceError,
    RateLimited,
    UserNotFound,
    VerificationError,
)
from app.models.user import User
from app.models.verification_log import VerificationAction
from app.services.audit_log import AuditLog, ClientInfo
from app.services.email import dashboard_url, display_name, verification_url
from app.services.identity import IdentityDirectory
from app.services.notifier import KIND_VERIFICATION, KIND_WELCOME, Notifier
from app.services.rate_limiter import RateLimiter
from app.services.token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class RequestCodeResult:
    success: bool
    message: str
    code: Optional[str] = None  # only set in dev mode


@dataclass
class VerifyCodeResult:
    success: bool
    verified: bool
    message: str


@dataclass
class RecentAction:
    action: str
    timestamp: datetime


@dataclass
class VerificationStatus:
    email: str
    verified: bool
    email_confirmed_at: Optional[datetime] = None
    recent_actions: List[RecentAction] = field(default_factory=list)
    remaining_sends: int = 0


class VerificationService:
    def __init__(
        self,
        db: Session,
        identity: IdentityDirectory,
        notifier: Notifier,
        code_length: int = 6,
        code_lifetime_minutes: int = 10,
        rate_limit_max_sends: int = 3,
        rate_limit_window_minutes: int = 60,
        dev_mode: bool = False,
        recent_limit: int = 10,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.identity = identity
        self.notifier = notifier
        self.code_lifetime_minutes = code_lifetime_minutes
        self.dev_mode = dev_mode
        self.recent_limit = recent_limit
        self.audit_log = AuditLog(db, clock=clock)
        self.rate_limiter = RateLimiter(
            self.audit_log,
            max_sends=rate_limit_max_sends,
            window_minutes=rate_limit_window_minutes,
            clock=clock,
        )
        self.tokens = TokenStore(
            db,
            code_length=code_length,
            lifetime_minutes=code_lifetime_minutes,
            clock=clock,
        )

    def _resolve(self, email: str) -> User:
        user = self.identity.find_by_email(email)
        if user is None:
            logger.info("Verification requested for unknown email %s", email)
            raise UserNotFound()
        return user

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Commit failed: %s", e)
            raise PersistenceError() from e

    def _notify(self, address: str, kind: str, payload: Dict[str, Any]) -> bool:
        try:
            sent = self.notifier.send(address, kind, payload)
        except Exception as e:
            logger.exception("NotificationDeliveryFailed: %s to %s raised %s", kind, address, e)
            return False
        if not sent:
            logger.warning("NotificationDeliveryFailed: %s to %s not delivered", kind, address)
        return bool(sent)

    def _record_failure(self, user_id: str, email: str, client: Optional[ClientInfo]) -> None:
        try:
            self.audit_log.append(user_id, email, VerificationAction.failed, client)
            self._commit()
        except PersistenceError:
            logger.error("Could not record failed verification for user %s", user_id)

    def request_code(
        self,
        email: str,
        is_resend: bool = False,
        client: Optional[ClientInfo] = None,
    ) -> RequestCodeResult:
        user = self._resolve(email)
        if user.email_confirmed:
            raise AlreadyVerified()
        user_id, address, name = user.id, user.email, user.full_name

        # Hold the per-user lock across the limit check and the insert.
        self.tokens.lock_user(user_id)
        if not self.rate_limiter.can_send(user_id):
            self.db.rollback()
            logger.warning("Rate limit hit for user %s", user_id)
            raise RateLimited()

        token = self.tokens.issue(user_id)
        code = token.code
        action = VerificationAction.resent if is_resend else VerificationAction.sent
        self.audit_log.append(user_id, address, action, client)
        self._commit()

        if self.dev_mode:
            logger.info("Dev mode: verification code for %s is %s", address, code)
        self._notify(
            address,
            KIND_VERIFICATION,
            {
                "code": code,
                "name": display_name(address, name),
                "expire_minutes": self.code_lifetime_minutes,
                "verification_url": verification_url(address, code),
                "is_resend": is_resend,
            },
        )
        message = (
            "Verification email resent successfully"
            if is_resend
            else "Verification email sent successfully"
        )
        return RequestCodeResult(
            success=True,
            message=message,
            code=code if self.dev_mode else None,
        )

    def verify_code(
        self,
        email: str,
        code: str,
        client: Optional[ClientInfo] = None,
    ) -> VerifyCodeResult:
        """
        Already-verified is checked before the token lookup, so a verified user
        always gets AlreadyVerified even when presenting a valid code.
        """
        user = self._resolve(email)
        user_id, address, name = user.id, user.email, user.full_name
        if user.email_confirmed:
            self._record_failure(user_id, address, client)
            raise AlreadyVerified()

        try:
            self.tokens.consume(user_id, code)
        except VerificationError as e:
            logger.info("Verification failed for user %s: %s", user_id, e.code)
            self._record_failure(user_id, address, client)
            raise

        try:
            self.identity.set_email_confirmed(user_id)
            self.audit_log.append(user_id, address, VerificationAction.verified, client)
            self._commit()
        except PersistenceError:
            # Nothing from this attempt may stick except the failed entry.
            self.db.rollback()
            self._record_failure(user_id, address, client)
            raise
        logger.info("Email verified for user %s", user_id)

        self._notify(
            address,
            KIND_WELCOME,
            {"name": display_name(address, name), "dashboard_url": dashboard_url()},
        )
        return VerifyCodeResult(success=True, verified=True, message="Email verified successfully")

    def get_status(self, email: str) -> VerificationStatus:
        user = self._resolve(email)
        entries = self.audit_log.recent(user.id, self.recent_limit)
        return VerificationStatus(
            email=user.email,
            verified=user.email_confirmed,
            email_confirmed_at=user.email_confirmed_at,
            recent_actions=[RecentAction(action=e.action, timestamp=e.created_at) for e in entries],
            remaining_sends=self.rate_limiter.remaining(user.id),
        )
