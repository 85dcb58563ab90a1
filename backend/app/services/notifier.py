"""Outbound notifications. Best-effort: callers log failures and carry on."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from app.core.errors import NotificationDeliveryFailed
from app.services.email import send_verification_code_email, send_welcome_email

logger = logging.getLogger(__name__)

KIND_VERIFICATION = "verification"
KIND_WELCOME = "welcome"


class Notifier(ABC):
    @abstractmethod
    def send(self, address: str, kind: str, payload: Dict[str, Any]) -> bool:
        """
        Deliver one notification. Returns True on success, False if it was not delivered.
        May raise NotificationDeliveryFailed; never assumed reliable.
        """


class SmtpNotifier(Notifier):
    """Email notifications through app.services.email."""

    def send(self, address: str, kind: str, payload: Dict[str, Any]) -> bool:
        if kind == KIND_VERIFICATION:
            return send_verification_code_email(
                address,
                payload["code"],
                expire_minutes=payload.get("expire_minutes", 10),
                name=payload.get("name", ""),
                link=payload.get("verification_url", ""),
                is_resend=payload.get("is_resend", False),
            )
        if kind == KIND_WELCOME:
            return send_welcome_email(
                address,
                name=payload.get("name", ""),
                link=payload.get("dashboard_url", ""),
            )
        raise NotificationDeliveryFailed(f"Unknown notification kind: {kind}")


class NullNotifier(Notifier):
    """Drops every notification. For local runs without SMTP and for tests."""

    def send(self, address: str, kind: str, payload: Dict[str, Any]) -> bool:
        logger.warning("NullNotifier: dropping %s notification for %s", kind, address)
        return True
