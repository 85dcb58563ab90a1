from datetime import timedelta

from app.core.clock import Clock, utc_now
from app.models.verification_log import SEND_ACTIONS
from app.services.audit_log import AuditLog


class RateLimiter:
    """
    Send limit over a trailing window, derived from the audit log on every call.
    No counters are stored: sent/resent entries newer than now - window are counted.
    """

    def __init__(
        self,
        audit_log: AuditLog,
        max_sends: int = 3,
        window_minutes: int = 60,
        clock: Clock = utc_now,
    ):
        self.audit_log = audit_log
        self.max_sends = max_sends
        self.window = timedelta(minutes=window_minutes)
        self.clock = clock

    def _sends_in_window(self, user_id: str) -> int:
        return self.audit_log.count_since(user_id, SEND_ACTIONS, self.clock() - self.window)

    def can_send(self, user_id: str) -> bool:
        return self._sends_in_window(user_id) < self.max_sends

    def remaining(self, user_id: str) -> int:
        return max(0, self.max_sends - self._sends_in_window(user_id))
