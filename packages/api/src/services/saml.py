# This project was developed with assistance from AI tools.
"""SAML 2.0 service-provider wire handling.

Builds HTTP-Redirect AuthnRequests, verifies HTTP-POST responses and renders
SP metadata. Claims are read only from the element covered by the verified
signature, never from the raw document.
"""

import base64
import binascii
import logging
import textwrap
import uuid
import zlib
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode
from xml.sax.saxutils import escape, quoteattr

from lxml import etree
from signxml import XMLVerifier
from signxml.exceptions import InvalidInput

from ..core.config import Settings
from ..core.errors import NotImplementedFeatureError, UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)

SAML_PROTOCOL_NS = "urn:oasis:names:tc:SAML:2.0:protocol"
SAML_ASSERTION_NS = "urn:oasis:names:tc:SAML:2.0:assertion"
XMLDSIG_NS = "http://www.w3.org/2000/09/xmldsig#"
NAMEID_FORMAT_EMAIL = "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress"
BINDING_HTTP_POST = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"

_NS = {"samlp": SAML_PROTOCOL_NS, "saml": SAML_ASSERTION_NS, "ds": XMLDSIG_NS}

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)


def _require_enabled(settings: Settings) -> None:
    if not settings.SAML_ENABLED:
        raise NotImplementedFeatureError("SAML SSO is not enabled on this server")


def _iso(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_instant(value: str | None) -> datetime | None:
    if not value or not value.strip():
        return None
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def pem_certificate(value: str) -> str:
    """Accept a full PEM block or a bare base64 body and return PEM."""
    body = "".join(
        line.strip()
        for line in value.strip().splitlines()
        if line.strip() and "CERTIFICATE" not in line
    )
    wrapped = "\n".join(textwrap.wrap(body, 64))
    return f"-----BEGIN CERTIFICATE-----\n{wrapped}\n-----END CERTIFICATE-----"


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------


def build_authn_request(settings: Settings, *, now: datetime | None = None) -> str:
    request_id = f"_{uuid.uuid4().hex}"
    issued = _iso(now or datetime.now(UTC))
    return (
        f'<samlp:AuthnRequest xmlns:samlp="{SAML_PROTOCOL_NS}" xmlns:saml="{SAML_ASSERTION_NS}"'
        f' ID="{request_id}" Version="2.0" IssueInstant="{issued}"'
        f" Destination={quoteattr(settings.SAML_ENTRY_POINT or '')}"
        f' ProtocolBinding="{BINDING_HTTP_POST}"'
        f" AssertionConsumerServiceURL={quoteattr(settings.saml_callback_url)}>"
        f"<saml:Issuer>{escape(settings.SAML_ISSUER)}</saml:Issuer>"
        f'<samlp:NameIDPolicy Format="{NAMEID_FORMAT_EMAIL}" AllowCreate="true"/>'
        "</samlp:AuthnRequest>"
    )


def build_login_url(settings: Settings, relay_state: str | None = None) -> str:
    """IdP URL carrying a deflated, base64-encoded AuthnRequest."""
    _require_enabled(settings)
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
    deflated = compressor.compress(build_authn_request(settings).encode()) + compressor.flush()
    params = {"SAMLRequest": base64.b64encode(deflated).decode()}
    if relay_state:
        params["RelayState"] = relay_state

    entry_point = settings.SAML_ENTRY_POINT or ""
    separator = "&" if "?" in entry_point else "?"
    return f"{entry_point}{separator}{urlencode(params)}"


def generate_metadata(settings: Settings) -> str:
    """SP descriptor for the IdP administrator."""
    _require_enabled(settings)
    return (
        '<?xml version="1.0"?>\n'
        '<EntityDescriptor xmlns="urn:oasis:names:tc:SAML:2.0:metadata"'
        f" entityID={quoteattr(settings.SAML_ISSUER)}>\n"
        '  <SPSSODescriptor AuthnRequestsSigned="false" WantAssertionsSigned="true"'
        f' protocolSupportEnumeration="{SAML_PROTOCOL_NS}">\n'
        f"    <NameIDFormat>{NAMEID_FORMAT_EMAIL}</NameIDFormat>\n"
        "    <AssertionConsumerService\n"
        f'      Binding="{BINDING_HTTP_POST}"\n'
        f"      Location={quoteattr(settings.saml_callback_url)}\n"
        '      index="0" />\n'
        "  </SPSSODescriptor>\n"
        "</EntityDescriptor>"
    )


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------


def _verify_signature(root: etree._Element, cert_pem: str) -> etree._Element:
    """Return the signed element: the whole Response, else the Assertion."""
    verifier = XMLVerifier()
    try:
        return verifier.verify(root, x509_cert=cert_pem, expect_references=1).signed_xml
    except InvalidInput as exc:
        assertion = root.find(".//saml:Assertion", _NS)
        if assertion is None or assertion.find(".//ds:Signature", _NS) is None:
            raise UnauthorizedError("SAML signature verification failed") from exc
        try:
            return verifier.verify(assertion, x509_cert=cert_pem, expect_references=1).signed_xml
        except InvalidInput as inner:
            raise UnauthorizedError("SAML signature verification failed") from inner


def _signed_assertion(signed: etree._Element) -> etree._Element:
    if signed.tag == f"{{{SAML_ASSERTION_NS}}}Assertion":
        return signed
    assertion = signed.find(".//saml:Assertion", _NS)
    if assertion is None:
        raise ValidationError("SAML response contains no assertion")
    return assertion


def _check_window(element: etree._Element, skew: timedelta, now: datetime) -> bool:
    """Apply NotBefore/NotOnOrAfter on ``element``; True when it carries an upper bound."""
    not_before = _parse_instant(element.get("NotBefore"))
    if not_before and now + skew < not_before:
        raise UnauthorizedError("SAML assertion is not yet valid")
    not_on_or_after = _parse_instant(element.get("NotOnOrAfter"))
    if not_on_or_after and now - skew >= not_on_or_after:
        raise UnauthorizedError("SAML assertion has expired")
    return not_on_or_after is not None


def _check_conditions(assertion: etree._Element, settings: Settings, now: datetime) -> None:
    """Validity window, recipient and audience checks.

    At least one NotOnOrAfter bound must be present, on ``Conditions`` or on a
    bearer ``SubjectConfirmationData``.
    """
    skew = timedelta(seconds=settings.SAML_CLOCK_SKEW_SECONDS)
    conditions = assertion.find("saml:Conditions", _NS)
    confirmations = assertion.findall(
        "saml:Subject/saml:SubjectConfirmation/saml:SubjectConfirmationData", _NS
    )

    bounded = False
    for element in ([conditions] if conditions is not None else []) + confirmations:
        bounded = _check_window(element, skew, now) or bounded
    if not bounded:
        raise UnauthorizedError("SAML assertion has no validity window")

    callback = settings.saml_callback_url.rstrip("/")
    for data in confirmations:
        recipient = data.get("Recipient")
        if recipient and recipient.rstrip("/") != callback:
            raise UnauthorizedError("SAML recipient mismatch")

    if conditions is None:
        return
    audiences = [a.text.strip() for a in conditions.iterfind(".//saml:Audience", _NS) if a.text]
    if audiences and settings.SAML_ISSUER not in audiences:
        raise UnauthorizedError("SAML audience mismatch")


def _attributes(assertion: etree._Element) -> dict[str, Any]:
    claims: dict[str, Any] = {}
    for attr in assertion.iterfind(".//saml:AttributeStatement/saml:Attribute", _NS):
        values = [(v.text or "").strip() for v in attr.iterfind("saml:AttributeValue", _NS)]
        value: Any = values[0] if len(values) == 1 else values
        for key in (attr.get("Name"), attr.get("FriendlyName")):
            if key:
                claims.setdefault(key, value)
    return claims


def parse_saml_response(saml_response: str, settings: Settings, *, now: datetime | None = None) -> dict[str, Any]:
    """Verify a base64 SAMLResponse and return its claims.

    The result maps attribute names to values (a list when multi-valued)
    and carries ``nameID`` from the assertion subject.

    Raises:
        ValidationError: payload is not base64 XML or has no assertion.
        UnauthorizedError: signature, destination, recipient, audience or validity
            window fails.
    """
    _require_enabled(settings)
    now = now or datetime.now(UTC)

    try:
        xml_payload = base64.b64decode(saml_response, validate=True)
        root = etree.fromstring(xml_payload, parser=_PARSER)
    except (binascii.Error, ValueError, etree.XMLSyntaxError) as exc:
        raise ValidationError("Malformed SAML response") from exc

    signed = _verify_signature(root, pem_certificate(settings.SAML_CERT or ""))

    destination = root.get("Destination")
    if destination and destination.rstrip("/") != settings.saml_callback_url.rstrip("/"):
        raise UnauthorizedError("SAML destination mismatch")

    assertion = _signed_assertion(signed)
    _check_conditions(assertion, settings, now)

    claims = _attributes(assertion)
    name_id = assertion.findtext("saml:Subject/saml:NameID", namespaces=_NS)
    if name_id:
        claims["nameID"] = name_id.strip()

    logger.debug("SAML assertion accepted for %s", claims.get("nameID"))
    return claims
