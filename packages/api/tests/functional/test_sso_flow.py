# This project was developed with assistance from AI tools.
"""Functional tests: SAML single sign-on with just-in-time provisioning.

The IdP's signature is not under test here; ``XMLVerifier`` is replaced with
a pass-through so the rest of the callback runs for real.
"""

from datetime import UTC, datetime, timedelta

import pytest
from db.enums import AuditEventType, UserRole

from src.services import saml

from ..conftest import build_settings
from ..factories import PassThroughVerifier, make_saml_response

pytestmark = pytest.mark.functional


@pytest.fixture
def sso_browser(browser, monkeypatch):
    monkeypatch.setattr(saml, "XMLVerifier", PassThroughVerifier)
    settings = build_settings(
        ENVIRONMENT="development",
        SAML_ENABLED=True,
        SAML_ENTRY_POINT="https://idp.example.com/sso/saml",
        SAML_CERT="MIIBfakeCertificateBody",
        API_URL="https://tms.example.com",
        FRONTEND_URL="https://app.tms.example.com",
    )
    return lambda: browser(settings)


def _callback(client, **kwargs):
    return client.post("/auth/saml/callback", data={"SAMLResponse": make_saml_response(**kwargs)})


class TestFirstSignIn:
    """An unknown IdP user arrives and is provisioned with the mapped role."""

    def test_new_admin_is_provisioned_and_signed_in(self, sso_browser, store, audit_recorder):
        client = sso_browser()

        resp = _callback(client, name_id="new@x.com", groups=("tms-admin-eu",))

        assert resp.status_code == 303
        assert resp.headers["location"] == "https://app.tms.example.com/admin/programs"

        user = store.find_by_email("new@x.com")
        assert user.role == UserRole.ADMIN
        assert user.sso_provider == "saml"
        assert user.password_hash is None

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["role"] == "ADMIN"
        [entry] = audit_recorder.of_type(AuditEventType.SSO_LOGIN)
        assert entry.user_id == user.id

    def test_no_matching_group_gets_lowest_privilege(self, sso_browser, store):
        _callback(sso_browser(), name_id="plain@x.com", groups=("engineering",))

        assert store.find_by_email("plain@x.com").role == UserRole.FACILITATOR


class TestReturningUser:
    def test_second_sign_in_reuses_account(self, sso_browser, store):
        client = sso_browser()
        _callback(client, name_id="new@x.com")
        first = store.find_by_email("new@x.com")

        _callback(client, name_id="new@x.com")

        assert len(store.users) == 1
        assert store.find_by_email("new@x.com") is first

    def test_group_change_updates_role(self, sso_browser, store):
        client = sso_browser()
        _callback(client, name_id="mover@x.com", groups=("tms-hr",))
        _callback(client, name_id="mover@x.com", groups=("tms-coordinator",))

        assert store.find_by_email("mover@x.com").role == UserRole.COORDINATOR

    def test_sso_account_cannot_use_password_login(self, sso_browser, csrf_headers):
        client = sso_browser()
        _callback(client, name_id="new@x.com")

        other = sso_browser()
        resp = other.post(
            "/api/auth/login",
            json={"email": "new@x.com", "password": "Guess-Passw0rd!"},
            headers=csrf_headers(other),
        )

        assert resp.status_code == 401


class TestRejectedAssertions:
    def test_expired_assertion_redirects_to_login(self, sso_browser, store, audit_recorder):
        past = datetime.now(UTC) - timedelta(hours=2)
        resp = _callback(sso_browser(), now=past)

        assert resp.status_code == 303
        assert resp.headers["location"] == "https://app.tms.example.com/login?error=saml_failed"
        assert store.users == {}
        [failure] = audit_recorder.of_type(AuditEventType.AUTH_FAILURE)
        assert failure.error_message == "SAML: SAML assertion has expired"

    def test_sso_logout_clears_session(self, sso_browser, audit_recorder):
        client = sso_browser()
        _callback(client, name_id="new@x.com")

        resp = client.post("/auth/saml/logout")

        assert resp.status_code == 303
        assert client.get("/api/auth/me").status_code == 401
        assert len(audit_recorder.of_type(AuditEventType.LOGOUT)) == 1
