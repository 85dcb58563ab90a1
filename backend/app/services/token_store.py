"""Email verification tokens: issue (one active per user) and single-use consume."""

import logging
import secrets
import uuid
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.errors import InvalidOrExpiredToken, PersistenceError
from app.models.user import User
from app.models.verification_token import EmailVerificationToken

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    """Keep ASCII digits only, so '042 517' and '042-517' match '042517'."""
    return "".join(c for c in (code or "") if c in "0123456789")


class TokenStore:
    """
    Owns email_verification_tokens. Writes only flush; the caller commits.

    Invariant: at most one token per user has used_at IS NULL (enforced here and by
    a partial unique index). Consumption is a conditional UPDATE guarded by
    used_at IS NULL AND expires_at > now, so two racing consumers cannot both win.
    """

    def __init__(
        self,
        db: Session,
        code_length: int = 6,
        lifetime_minutes: int = 10,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.code_length = code_length
        self.lifetime = timedelta(minutes=lifetime_minutes)
        self.clock = clock

    def _generate_code(self) -> str:
        return f"{secrets.randbelow(10 ** self.code_length):0{self.code_length}d}"

    def lock_user(self, user_id: str) -> None:
        """
        Take the per-user row lock for the rest of the transaction (SELECT ... FOR UPDATE).
        No-op on SQLite, which serializes writers anyway.
        """
        try:
            self.db.query(User.id).filter(User.id == user_id).with_for_update().first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Could not lock user %s: %s", user_id, e)
            raise PersistenceError() from e

    def issue(self, user_id: str) -> EmailVerificationToken:
        """
        Invalidate every unused token for the user and insert a fresh one.
        Concurrent issues for one user serialize on the user row lock; if they still
        collide, the unique index rejects the loser with PersistenceError.
        """
        now = self.clock()
        token = EmailVerificationToken(
            id=str(uuid.uuid4()),
            user_id=user_id,
            code=self._generate_code(),
            expires_at=now + self.lifetime,
            created_at=now,
        )
        self.lock_user(user_id)
        try:
            invalidated = (
                self.db.query(EmailVerificationToken)
                .filter(
                    EmailVerificationToken.user_id == user_id,
                    EmailVerificationToken.used_at.is_(None),
                )
                .update({EmailVerificationToken.used_at: now}, synchronize_session=False)
            )
            self.db.add(token)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Token issue failed for user %s: %s", user_id, e)
            raise PersistenceError() from e
        if invalidated:
            logger.info("Invalidated %s previous token(s) for user %s", invalidated, user_id)
        return token

    def _claim(self, token_id: str, now) -> bool:
        """Mark the token used if and only if it is still unused and unexpired."""
        claimed = (
            self.db.query(EmailVerificationToken)
            .filter(
                EmailVerificationToken.id == token_id,
                EmailVerificationToken.used_at.is_(None),
                EmailVerificationToken.expires_at > now,
            )
            .update({EmailVerificationToken.used_at: now}, synchronize_session=False)
        )
        return claimed == 1

    def _find_active(self, user_id: str, code: str, now):
        return (
            self.db.query(EmailVerificationToken.id)
            .filter(
                EmailVerificationToken.user_id == user_id,
                EmailVerificationToken.code == code,
                EmailVerificationToken.used_at.is_(None),
                EmailVerificationToken.expires_at > now,
            )
            .first()
        )

    def consume(self, user_id: str, code: str) -> EmailVerificationToken:
        """
        Mark the user's active token with this code as used and return it.
        Raises InvalidOrExpiredToken if there is none, or if another caller claimed it first.
        """
        code = normalize_code(code)
        if len(code) != self.code_length:
            raise InvalidOrExpiredToken()
        now = self.clock()
        try:
            candidate = self._find_active(user_id, code, now)
            if candidate is None or not self._claim(candidate.id, now):
                raise InvalidOrExpiredToken()
            return self.db.get(EmailVerificationToken, candidate.id, populate_existing=True)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Token consume failed for user %s: %s", user_id, e)
            raise PersistenceError() from e
