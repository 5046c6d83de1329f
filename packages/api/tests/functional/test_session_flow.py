# This project was developed with assistance from AI tools.
"""Functional tests: local account journey through the browser-facing API.

register -> me -> refresh -> logout, with CSRF enforced on every
state-changing call and the audit trail checked along the way.
"""

import pytest
from db.enums import AuditEventType, UserRole

pytestmark = pytest.mark.functional

_PASSWORD = "Tr@ining-Day-2026"


def _register(client, headers, email="new@x.com", **extra):
    return client.post(
        "/api/auth/register",
        json={"email": email, "password": _PASSWORD, "name": "New Person", **extra},
        headers=headers,
    )


class TestSelfService:
    """A facilitator signs up, uses the session and signs out."""

    def test_full_session_lifecycle(self, browser, csrf_headers, store, audit_recorder):
        client = browser()
        headers = csrf_headers(client)

        resp = _register(client, headers)
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "FACILITATOR"
        assert store.find_by_email("new@x.com") is not None

        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == "new@x.com"

        resp = client.post("/api/auth/refresh", headers=headers)
        assert resp.status_code == 200

        resp = client.post("/api/auth/logout", headers=headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/me").status_code == 401
        assert [e.event_type for e in audit_recorder.entries] == [AuditEventType.CREATE, AuditEventType.LOGOUT]

    def test_login_after_registration(self, browser, csrf_headers, audit_recorder):
        registering = browser()
        _register(registering, csrf_headers(registering))

        client = browser()
        headers = csrf_headers(client)
        resp = client.post("/api/auth/login", json={"email": "NEW@x.com", "password": _PASSWORD}, headers=headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me").json()["email"] == "new@x.com"
        [login] = audit_recorder.of_type(AuditEventType.LOGIN)
        assert login.user_email == "new@x.com"

    def test_wrong_password_is_audited(self, browser, csrf_headers, audit_recorder):
        client = browser()
        headers = csrf_headers(client)
        _register(client, headers)

        resp = client.post("/api/auth/login", json={"email": "new@x.com", "password": "Not-the-0ne!"}, headers=headers)

        assert resp.status_code == 401
        [failure] = audit_recorder.of_type(AuditEventType.AUTH_FAILURE)
        assert failure.user_email == "new@x.com"

    def test_duplicate_registration_conflicts(self, browser, csrf_headers):
        client = browser()
        headers = csrf_headers(client)
        _register(client, headers)

        other = browser()
        resp = _register(other, csrf_headers(other))

        assert resp.status_code == 409

    def test_change_password_then_login(self, browser, csrf_headers):
        client = browser()
        headers = csrf_headers(client)
        _register(client, headers)

        resp = client.post(
            "/api/auth/change-password",
            json={"current_password": _PASSWORD, "new_password": "Fresh-Passw0rd-26"},
            headers=headers,
        )
        assert resp.status_code == 200

        fresh = browser()
        fresh_headers = csrf_headers(fresh)
        old = fresh.post("/api/auth/login", json={"email": "new@x.com", "password": _PASSWORD}, headers=fresh_headers)
        new = fresh.post(
            "/api/auth/login",
            json={"email": "new@x.com", "password": "Fresh-Passw0rd-26"},
            headers=fresh_headers,
        )
        assert old.status_code == 401
        assert new.status_code == 200


class TestCsrfEnforcement:
    """State-changing calls without the double-submitted token never reach the service."""

    def test_login_without_csrf_cookie(self, browser, existing_admin, audit_recorder):
        resp = browser().post("/api/auth/login", json={"email": existing_admin.email, "password": "Adm1n-Passw0rd!"})

        assert resp.status_code == 401
        assert resp.json()["detail"] == "CSRF token not found in cookie"
        assert audit_recorder.entries == []

    def test_register_without_csrf_header(self, browser, store):
        client = browser()
        client.get("/api/csrf-token")

        resp = _register(client, headers={})

        assert resp.status_code == 401
        assert resp.json()["detail"] == "CSRF token not found in header"
        assert store.users == {}


class TestAdministration:
    """An admin provisions elevated accounts; role changes reach the next refresh."""

    def _login_admin(self, client, headers, admin):
        resp = client.post("/api/auth/login", json={"email": admin.email, "password": "Adm1n-Passw0rd!"}, headers=headers)
        assert resp.status_code == 200

    def test_admin_creates_coordinator_and_stays_signed_in(self, browser, csrf_headers, existing_admin, store):
        client = browser()
        headers = csrf_headers(client)
        self._login_admin(client, headers, existing_admin)

        resp = _register(client, headers, email="coord@x.com", role="COORDINATOR")

        assert resp.status_code == 201
        assert store.find_by_email("coord@x.com").role == UserRole.COORDINATOR
        assert client.get("/api/auth/me").json()["email"] == existing_admin.email

    def test_non_admin_cannot_read_audit_trail(self, browser, csrf_headers, audit_recorder):
        facilitator = browser()
        _register(facilitator, csrf_headers(facilitator))

        assert facilitator.get("/api/audit/stats").status_code == 403
        [denied] = audit_recorder.of_type(AuditEventType.AUTHORIZATION_DENIED)
        assert denied.user_email == "new@x.com"

    def test_role_change_applies_on_refresh(self, browser, csrf_headers, store, token_service):
        client = browser()
        headers = csrf_headers(client)
        _register(client, headers)

        store.find_by_email("new@x.com").role = UserRole.HR
        resp = client.post("/api/auth/refresh", headers=headers)

        assert resp.status_code == 200
        assert token_service.verify(resp.json()["access_token"]).role == UserRole.HR
        assert resp.json()["user"]["role"] == "HR"
