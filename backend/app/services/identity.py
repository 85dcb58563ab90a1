"""User lookup and the email-confirmed flag. The only part of the account store verification touches."""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.errors import PersistenceError
from app.models.user import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityDirectory(ABC):
    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        """Return the user for this email, or None."""

    @abstractmethod
    def set_email_confirmed(self, user_id: str) -> None:
        """Flip the user to confirmed. Never reverts."""


class SqlIdentityDirectory(IdentityDirectory):
    """IdentityDirectory backed by the users table; writes flush, the caller commits."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def find_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        if not email:
            return None
        try:
            return self.db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError() from e

    def set_email_confirmed(self, user_id: str) -> None:
        try:
            self.db.query(User).filter(
                User.id == user_id,
                User.email_confirmed_at.is_(None),
            ).update({User.email_confirmed_at: self.clock()}, synchronize_session=False)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError() from e
