# This project was developed with assistance from AI tools.
"""Tests for the SAML SSO endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from db.enums import AuditEventType, AuditOutcome, UserRole

from src.core.errors import UnauthorizedError, ValidationError

from .conftest import build_settings
from .factories import make_mock_user


@pytest.fixture
def saml_settings():
    return build_settings(
        SAML_ENABLED=True,
        SAML_ENTRY_POINT="https://idp.example.com/sso/saml",
        SAML_CERT="MIIBfakeCertificateBody",
        API_URL="https://tms.example.com",
        FRONTEND_URL="https://app.tms.example.com",
    )


@pytest.fixture
def saml_client(make_client, saml_settings):
    return make_client(AsyncMock(), app_settings=saml_settings, follow_redirects=False)


@pytest.mark.parametrize(
    "method,path",
    [("get", "/auth/saml/login"), ("get", "/auth/saml/metadata"), ("post", "/auth/saml/callback")],
)
def test_endpoints_answer_501_when_disabled(make_client, method, path):
    client = make_client(AsyncMock(), follow_redirects=False)

    resp = getattr(client, method)(path)

    assert resp.status_code == 501
    assert resp.json()["detail"] == "SAML SSO is not enabled on this server"


def test_login_redirects_to_identity_provider(saml_client):
    resp = saml_client.get("/auth/saml/login", params={"RelayState": "/admin/programs"})

    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith("https://idp.example.com/sso/saml?SAMLRequest=")
    assert "RelayState=%2Fadmin%2Fprograms" in location


def test_metadata_is_xml(saml_client):
    resp = saml_client.get("/auth/saml/metadata")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/xml")
    assert "https://tms.example.com/auth/saml/callback" in resp.text


def test_callback_provisions_and_signs_in(saml_client, audit_recorder):
    user = make_mock_user(id="u-sso", email="new@x.com", role=UserRole.ADMIN, sso_provider="saml")
    claims = {"nameID": "new@x.com", "groups": ["tms-admin-eu"]}

    with (
        patch("src.routes.saml.parse_saml_response", MagicMock(return_value=claims)),
        patch("src.routes.saml.on_assertion", AsyncMock(return_value=user)) as mock_assert,
    ):
        resp = saml_client.post("/auth/saml/callback", data={"SAMLResponse": "PHNhbWw+"})

    assert resp.status_code == 303
    assert resp.headers["location"] == "https://app.tms.example.com/admin/programs"
    assert "auth_token" in resp.cookies
    assert "refresh_token" in resp.cookies
    assert mock_assert.await_args.args[1] == claims
    assert mock_assert.await_args.kwargs["sync_role"] is True

    [entry] = audit_recorder.of_type(AuditEventType.SSO_LOGIN)
    assert entry.user_id == "u-sso"
    assert entry.user_role == "ADMIN"


def test_callback_honours_role_sync_setting(make_client):
    settings = build_settings(
        SAML_ENABLED=True,
        SAML_ENTRY_POINT="https://idp.example.com/sso/saml",
        SAML_CERT="MIIBfakeCertificateBody",
        SSO_SYNC_ROLE_ON_LOGIN=False,
    )
    client = make_client(AsyncMock(), app_settings=settings, follow_redirects=False)

    with (
        patch("src.routes.saml.parse_saml_response", MagicMock(return_value={"email": "a@x.com"})),
        patch("src.routes.saml.on_assertion", AsyncMock(return_value=make_mock_user())) as mock_assert,
    ):
        client.post("/auth/saml/callback", data={"SAMLResponse": "PHNhbWw+"})

    assert mock_assert.await_args.kwargs["sync_role"] is False


@pytest.mark.parametrize(
    "error",
    [UnauthorizedError("SAML signature verification failed"), ValidationError("Malformed SAML response")],
)
def test_callback_failure_redirects_to_login(saml_client, audit_recorder, error):
    with (
        patch("src.routes.saml.parse_saml_response", MagicMock(side_effect=error)),
        patch("src.routes.saml.on_assertion", AsyncMock()) as mock_assert,
    ):
        resp = saml_client.post("/auth/saml/callback", data={"SAMLResponse": "bogus"})

    assert resp.status_code == 303
    assert resp.headers["location"] == "https://app.tms.example.com/login?error=saml_failed"
    assert "auth_token" not in resp.cookies
    mock_assert.assert_not_awaited()
    [entry] = audit_recorder.of_type(AuditEventType.AUTH_FAILURE)
    assert entry.outcome == AuditOutcome.FAILURE
    assert entry.error_message == f"SAML: {error.message}"


def test_callback_without_email_claim_is_a_failed_login(saml_client, audit_recorder):
    with patch("src.routes.saml.parse_saml_response", MagicMock(return_value={"groups": ["tms-admin"]})):
        resp = saml_client.post("/auth/saml/callback", data={"SAMLResponse": "PHNhbWw+"})

    assert resp.status_code == 303
    assert resp.headers["location"].endswith("/login?error=saml_failed")
    [entry] = audit_recorder.of_type(AuditEventType.AUTH_FAILURE)
    assert "Email not provided" in entry.error_message


def test_logout_clears_cookies_and_audits_known_user(saml_client, bearer, audit_recorder):
    resp = saml_client.post("/auth/saml/logout", headers=bearer(user_id="u-sso"))

    assert resp.status_code == 303
    assert resp.headers["location"] == "https://app.tms.example.com"
    [entry] = audit_recorder.of_type(AuditEventType.LOGOUT)
    assert entry.user_id == "u-sso"


def test_logout_anonymous_is_not_audited(saml_client, audit_recorder):
    resp = saml_client.post("/auth/saml/logout")

    assert resp.status_code == 303
    assert audit_recorder.entries == []
