"""Shared fixtures: in-memory directory/mailbox fakes and record builders."""

from __future__ import annotations

import itertools
from typing import Any, Optional

import pytest

from m365_contact_sync.config import SyncConfig
from m365_contact_sync.graph.client import GraphAPIError
from m365_contact_sync.stores.base import DirectorySource, MailboxContactStore
from m365_contact_sync.sync.fields import to_payload
from m365_contact_sync.sync.models import (
    ContactBody,
    DirectoryRecord,
    MailboxContactRecord,
)

MAILBOX = "reception@contoso.com"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def org_contact(mail: str = "", **overrides: Any) -> dict:
    """Graph orgContact JSON."""
    data = {
        "id": overrides.pop("id", f"org-{mail or 'nomail'}"),
        "displayName": "Ada Lovelace",
        "givenName": "Ada",
        "surname": "Lovelace",
        "companyName": "Analytical Engines",
        "department": "Research",
        "jobTitle": "Engineer",
        "mail": mail,
        "phones": [],
        "addresses": [],
    }
    data.update(overrides)
    return data


def directory_record(mail: str = "", **overrides: Any) -> DirectoryRecord:
    return DirectoryRecord.from_graph(org_contact(mail, **overrides))


def mailbox_contact(mail: str = "", contact_id: Optional[str] = None, **overrides: Any) -> MailboxContactRecord:
    data = {
        "id": contact_id or f"mb-{mail or 'nomail'}",
        "displayName": "Ada Lovelace",
        "givenName": "Ada",
        "surname": "Lovelace",
        "companyName": "Analytical Engines",
        "department": "Research",
        "jobTitle": "Engineer",
        "businessPhones": [],
        "mobilePhone": None,
        "emailAddresses": [{"name": "Ada Lovelace", "address": mail}] if mail else [],
        "businessAddress": {},
        "imAddresses": [],
    }
    data.update(overrides)
    return MailboxContactRecord.from_graph(data)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeDirectory(DirectorySource):
    def __init__(self, records: Optional[list[DirectoryRecord]] = None, fail: bool = False):
        self.records = list(records or [])
        self.fail = fail

    async def list(self) -> list[DirectoryRecord]:
        if self.fail:
            raise GraphAPIError(403, "Insufficient privileges", "https://graph/contacts")
        return list(self.records)


class FakeMailbox(MailboxContactStore):
    """Keeps contacts as Graph JSON so writes round-trip like the real service."""

    def __init__(self, contacts: Optional[list[MailboxContactRecord]] = None):
        self._ids = itertools.count(1)
        self.contacts: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()   # contact ids or e-mail addresses
        self.fail_list = False
        for record in contacts or []:
            self.contacts[record.id] = _to_graph(record)

    def _maybe_fail(self, *keys: str):
        for key in keys:
            if key and key in self.fail_on:
                raise GraphAPIError(500, "Internal server error", f"https://graph/{key}")

    async def list(self, mailbox_id: str) -> list[MailboxContactRecord]:
        self.calls.append(("list", mailbox_id))
        if self.fail_list:
            raise GraphAPIError(404, "Mailbox not found", "https://graph/users")
        return [MailboxContactRecord.from_graph(c) for c in self.contacts.values()]

    async def create(self, mailbox_id: str, body: ContactBody) -> str:
        self.calls.append(("create", mailbox_id, body))
        email = body.email_addresses[0].address if body.email_addresses else ""
        self._maybe_fail(email)
        new_id = f"new-{next(self._ids)}"
        self.contacts[new_id] = {**to_payload(body), "id": new_id}
        return new_id

    async def update(self, mailbox_id: str, contact_id: str, patch: ContactBody) -> None:
        self.calls.append(("update", mailbox_id, contact_id, patch))
        self._maybe_fail(contact_id)
        self.contacts[contact_id].update(to_payload(patch))

    async def delete(self, mailbox_id: str, contact_id: str) -> None:
        self.calls.append(("delete", mailbox_id, contact_id))
        self._maybe_fail(contact_id)
        del self.contacts[contact_id]

    def calls_of(self, kind: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == kind]


def _to_graph(record: MailboxContactRecord) -> dict:
    return {
        "id": record.id,
        "displayName": record.display_name,
        "givenName": record.given_name,
        "surname": record.surname,
        "companyName": record.company_name,
        "department": record.department,
        "jobTitle": record.job_title,
        "businessPhones": list(record.business_phones),
        "mobilePhone": record.mobile_phone,
        "emailAddresses": [e.to_graph() for e in record.email_addresses],
        "businessAddress": record.business_address.to_graph() if record.business_address else {},
        "imAddresses": list(record.im_addresses),
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def sync_config() -> SyncConfig:
    return SyncConfig(mailbox_id=MAILBOX)


@pytest.fixture()
def profiles_home(tmp_path, monkeypatch):
    monkeypatch.setenv("M365_CONTACT_SYNC_HOME", str(tmp_path / "home"))
    return tmp_path / "home"
