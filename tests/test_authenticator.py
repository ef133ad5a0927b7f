"""Tests for authentication error paths (no network, no MSAL round-trips)."""

from __future__ import annotations

import pytest

from m365_contact_sync.auth.authenticator import (
    Authenticator,
    AuthenticationError,
    load_certificate,
)
from m365_contact_sync.config import AuthConfig, CertificateAuth


async def test_unknown_mode_is_rejected():
    with pytest.raises(AuthenticationError, match="Unknown auth mode"):
        await Authenticator(AuthConfig(mode="secret")).acquire_token()


async def test_certificate_mode_requires_config():
    with pytest.raises(AuthenticationError, match="Certificate auth config"):
        await Authenticator(AuthConfig(mode="certificate")).acquire_token()


async def test_delegated_mode_requires_config():
    with pytest.raises(AuthenticationError, match="Delegated auth config"):
        await Authenticator(AuthConfig(mode="delegated")).acquire_token()


def test_missing_certificate_file(tmp_path):
    cert = CertificateAuth(
        tenant_id="t",
        client_id="c",
        certificate_path=str(tmp_path / "missing.txt"),
        certificate_password="secret",
    )
    with pytest.raises(AuthenticationError, match="not found"):
        load_certificate(cert)


def test_garbage_certificate_is_rejected(tmp_path):
    path = tmp_path / "base64.txt"
    path.write_text("bm90IGEgcGZ4")  # "not a pfx"
    cert = CertificateAuth(
        tenant_id="t", client_id="c", certificate_path=str(path), certificate_password="secret",
    )
    with pytest.raises(AuthenticationError, match="Failed to load certificate"):
        load_certificate(cert)


def test_required_permissions_cover_contacts_and_mail():
    perms = Authenticator.list_required_permissions()
    assert {"OrgContact.Read.All", "Contacts.ReadWrite", "Mail.Send"} <= set(perms)


def test_malformed_base64_is_an_authentication_error(tmp_path):
    path = tmp_path / "base64.txt"
    path.write_text("abc")  # bad padding
    cert = CertificateAuth(
        tenant_id="t", client_id="c", certificate_path=str(path), certificate_password="secret",
    )
    with pytest.raises(AuthenticationError, match="not valid base64"):
        load_certificate(cert)
