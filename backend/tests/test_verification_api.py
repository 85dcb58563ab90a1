"""HTTP tests for /email-verification and /health."""

import pytest
from fastapi.testclient import TestClient

from app.core.deps import get_db, get_verification_service
from app.main import app
from app.models import VerificationLog
from app.services.identity import SqlIdentityDirectory
from app.services.verification import VerificationService


@pytest.fixture
def client_factory(session_factory, clock, notifier):
    def _make(dev_mode=False):
        def override_service():
            session = session_factory()
            try:
                yield VerificationService(
                    session,
                    identity=SqlIdentityDirectory(session, clock=clock),
                    notifier=notifier,
                    dev_mode=dev_mode,
                    clock=clock,
                )
            finally:
                session.close()

        def override_db():
            session = session_factory()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_verification_service] = override_service
        app.dependency_overrides[get_db] = override_db
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def fixed_code(monkeypatch):
    monkeypatch.setattr("app.services.token_store.secrets.randbelow", lambda n: 42517)
    return "042517"


class TestSend:
    def test_send_omits_code_by_default(self, client_factory, user_id):
        resp = client_factory().post("/email-verification/send", json={"email": "a@example.com"})
        assert resp.status_code == 200
        body = resp.json()
        assert body == {"success": True, "message": "Verification email sent successfully"}
        assert "code" not in body

    def test_send_returns_code_in_dev_mode(self, client_factory, user_id, fixed_code):
        resp = client_factory(dev_mode=True).post(
            "/email-verification/send", json={"email": "a@example.com", "is_resend": True}
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Verification email resent successfully",
            "code": fixed_code,
        }

    def test_unknown_user_is_404(self, client_factory):
        resp = client_factory().post("/email-verification/send", json={"email": "nobody@example.com"})
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "USER_NOT_FOUND", "message": "User not found"}

    def test_fourth_send_is_429(self, client_factory, user_id):
        client = client_factory()
        for _ in range(3):
            assert client.post("/email-verification/send", json={"email": "a@example.com"}).status_code == 200
        resp = client.post("/email-verification/send", json={"email": "a@example.com"})
        assert resp.status_code == 429
        assert resp.json()["error"] == "RATE_LIMITED"

    def test_invalid_email_is_422(self, client_factory):
        resp = client_factory().post("/email-verification/send", json={"email": "not-an-email"})
        assert resp.status_code == 422

    def test_client_ip_and_agent_are_audited(self, client_factory, user_id, db):
        client_factory().post(
            "/email-verification/send",
            json={"email": "a@example.com"},
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1", "User-Agent": "test-browser/1.0"},
        )
        entry = db.query(VerificationLog).filter(VerificationLog.user_id == user_id).one()
        assert entry.ip_address == "203.0.113.9"
        assert entry.user_agent == "test-browser/1.0"


class TestVerify:
    def test_verify_flow(self, client_factory, user_id, clock, fixed_code):
        client = client_factory(dev_mode=True)
        code = client.post("/email-verification/send", json={"email": "a@example.com"}).json()["code"]
        clock.advance(minutes=1)

        resp = client.post("/email-verification/verify", json={"email": "a@example.com", "code": code})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "verified": True, "message": "Email verified successfully"}

        status = client.get("/email-verification/status", params={"email": "a@example.com"}).json()
        assert status["verified"] is True
        assert status["email"] == "a@example.com"
        assert status["email_confirmed_at"] is not None
        assert [a["action"] for a in status["recent_actions"]] == ["verified", "sent"]

        replay = client.post("/email-verification/verify", json={"email": "a@example.com", "code": code})
        assert replay.status_code == 409
        assert replay.json()["error"] == "ALREADY_VERIFIED"
        assert replay.json()["verified"] is False

    def test_wrong_code_is_400(self, client_factory, user_id, fixed_code):
        client = client_factory()
        client.post("/email-verification/send", json={"email": "a@example.com"})
        resp = client.post("/email-verification/verify", json={"email": "a@example.com", "code": "111111"})
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "verified": False,
            "error": "INVALID_OR_EXPIRED_TOKEN",
            "message": "Invalid or expired token",
        }


class TestStatus:
    def test_status_for_new_user(self, client_factory, user_id):
        resp = client_factory().get("/email-verification/status", params={"email": "A@example.com"})
        assert resp.status_code == 200
        assert resp.json() == {
            "email": "a@example.com",
            "verified": False,
            "email_confirmed_at": None,
            "recent_actions": [],
            "remaining_sends": 3,
        }

    def test_status_unknown_user(self, client_factory):
        resp = client_factory().get("/email-verification/status", params={"email": "nobody@example.com"})
        assert resp.status_code == 404


def test_health_reports_database(client_factory):
    resp = client_factory().get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "connected"}
