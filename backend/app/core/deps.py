from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import SessionLocal
from app.services.identity import SqlIdentityDirectory
from app.services.email import smtp_configured
from app.services.notifier import Notifier, NullNotifier, SmtpNotifier
from app.services.verification import VerificationService


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_notifier() -> Notifier:
    if not smtp_configured():
        return NullNotifier()
    return SmtpNotifier()


def get_verification_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> VerificationService:
    return VerificationService(
        db,
        identity=SqlIdentityDirectory(db),
        notifier=notifier,
        code_length=settings.VERIFICATION_CODE_LENGTH,
        code_lifetime_minutes=settings.VERIFICATION_CODE_EXPIRE_MINUTES,
        rate_limit_max_sends=settings.VERIFICATION_RATE_LIMIT_MAX_SENDS,
        rate_limit_window_minutes=settings.VERIFICATION_RATE_LIMIT_WINDOW_MINUTES,
        dev_mode=settings.VERIFICATION_DEV_MODE,
        recent_limit=settings.VERIFICATION_STATUS_RECENT_LIMIT,
    )
