"""Append-only audit trail for verification actions (sent, resent, verified, failed)."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.errors import PersistenceError
from app.models.verification_log import VerificationAction, VerificationLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata recorded with each audit entry."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLog:
    """
    Writes and reads email_verification_logs. Entries are never updated or deleted here;
    append() only flushes, the caller owns the transaction.
    """

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def append(
        self,
        user_id: str,
        email: str,
        action: VerificationAction,
        client: Optional[ClientInfo] = None,
    ) -> VerificationLog:
        client = client or ClientInfo()
        entry = VerificationLog(
            id=str(uuid.uuid4()),
            user_id=user_id,
            email=email,
            action=VerificationAction(action).value,
            ip_address=client.ip_address[:45] if client.ip_address else None,
            user_agent=client.user_agent,
            created_at=self.clock(),
        )
        try:
            self.db.add(entry)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Audit append failed for user %s (%s): %s", user_id, entry.action, e)
            raise PersistenceError() from e
        logger.info("Audit: user=%s action=%s", user_id, entry.action)
        return entry

    def count_since(self, user_id: str, actions: Iterable[str], since: datetime) -> int:
        """Entries for user with action in actions and created strictly after since."""
        try:
            return (
                self.db.query(func.count(VerificationLog.id))
                .filter(
                    VerificationLog.user_id == user_id,
                    VerificationLog.action.in_(list(actions)),
                    VerificationLog.created_at > since,
                )
                .scalar()
            ) or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError() from e

    def recent(self, user_id: str, limit: int = 10) -> List[VerificationLog]:
        """Newest first."""
        try:
            return (
                self.db.query(VerificationLog)
                .filter(VerificationLog.user_id == user_id)
                .order_by(VerificationLog.created_at.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError() from e
