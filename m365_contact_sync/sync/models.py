"""
Sync data models — Directory records, mailbox contacts, sparse contact bodies,
and the plan/summary types produced by a reconciliation pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Optional


def normalize(value: Any) -> str:
    """Trimmed string form of a value; None becomes ""."""
    if value is None:
        return ""
    return str(value).strip()


def email_key(address: Optional[str]) -> Optional[str]:
    """Lowercased, trimmed matching key, or None when the address is blank."""
    key = normalize(address).lower()
    return key or None


# ─── Graph value types ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Phone:
    """A directory phone entry: number plus Graph phone type."""
    number: str
    type: str = ""

    @classmethod
    def from_graph(cls, data: dict) -> "Phone":
        return cls(number=data.get("number") or "", type=data.get("type") or "")


@dataclass(frozen=True)
class PostalAddress:
    """Postal address with the five sub-fields Graph exposes on contacts."""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_or_region: str = ""

    @classmethod
    def from_graph(cls, data: Optional[dict]) -> Optional["PostalAddress"]:
        if not data:
            return None
        return cls(
            street=data.get("street") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            postal_code=data.get("postalCode") or "",
            country_or_region=data.get("countryOrRegion") or "",
        )

    def parts(self) -> tuple[str, str, str, str, str]:
        return (
            normalize(self.street),
            normalize(self.city),
            normalize(self.state),
            normalize(self.postal_code),
            normalize(self.country_or_region),
        )

    def is_empty(self) -> bool:
        return not any(self.parts())

    def to_graph(self) -> dict:
        street, city, state, postal_code, country = self.parts()
        return {
            "street": street,
            "city": city,
            "state": state,
            "postalCode": postal_code,
            "countryOrRegion": country,
        }


@dataclass(frozen=True)
class EmailAddress:
    """Outlook contact e-mail entry."""
    address: str
    name: str = ""

    @classmethod
    def from_graph(cls, data: dict) -> "EmailAddress":
        return cls(address=data.get("address") or "", name=data.get("name") or "")

    def to_graph(self) -> dict:
        return {"name": self.name, "address": self.address}


# ─── Source and target records ──────────────────────────────────────────────

@dataclass(frozen=True)
class DirectoryRecord:
    """An organizational contact (Graph orgContact) — the source of truth."""
    id: str = ""
    display_name: str = ""
    given_name: str = ""
    surname: str = ""
    company_name: str = ""
    department: str = ""
    job_title: str = ""
    mail: str = ""
    phones: tuple[Phone, ...] = ()
    addresses: tuple[PostalAddress, ...] = ()
    im_addresses: tuple[str, ...] = ()
    extra: dict = field(default_factory=dict, compare=False, hash=False)  # Unrecognized properties

    # orgContact has no imAddresses property; a raw one stays in extra and
    # im_addresses is only set by callers that build records directly.
    _KNOWN_KEYS = (
        "id", "displayName", "givenName", "surname", "companyName", "department",
        "jobTitle", "mail", "phones", "addresses",
    )

    @classmethod
    def from_graph(cls, data: dict) -> "DirectoryRecord":
        # Empty entries keep their position so "first address" stays first.
        addresses = [
            PostalAddress.from_graph(a) or PostalAddress()
            for a in data.get("addresses") or []
        ]
        return cls(
            id=data.get("id") or "",
            display_name=data.get("displayName") or "",
            given_name=data.get("givenName") or "",
            surname=data.get("surname") or "",
            company_name=data.get("companyName") or "",
            department=data.get("department") or "",
            job_title=data.get("jobTitle") or "",
            mail=data.get("mail") or "",
            phones=tuple(Phone.from_graph(p) for p in data.get("phones") or []),
            addresses=tuple(addresses),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS},
        )

    @property
    def key(self) -> Optional[str]:
        return email_key(self.mail)

    @property
    def label(self) -> str:
        """Identifier used in logs and summaries."""
        return normalize(self.mail) or normalize(self.display_name) or self.id


@dataclass(frozen=True)
class MailboxContactRecord:
    """An Outlook contact in the target mailbox."""
    id: str
    display_name: str = ""
    given_name: str = ""
    surname: str = ""
    company_name: str = ""
    department: str = ""
    job_title: str = ""
    business_phones: tuple[str, ...] = ()
    mobile_phone: str = ""
    email_addresses: tuple[EmailAddress, ...] = ()
    business_address: Optional[PostalAddress] = None
    im_addresses: tuple[str, ...] = ()

    @classmethod
    def from_graph(cls, data: dict) -> "MailboxContactRecord":
        return cls(
            id=data.get("id") or "",
            display_name=data.get("displayName") or "",
            given_name=data.get("givenName") or "",
            surname=data.get("surname") or "",
            company_name=data.get("companyName") or "",
            department=data.get("department") or "",
            job_title=data.get("jobTitle") or "",
            business_phones=tuple(data.get("businessPhones") or []),
            mobile_phone=data.get("mobilePhone") or "",
            email_addresses=tuple(
                EmailAddress.from_graph(e) for e in data.get("emailAddresses") or []
            ),
            business_address=PostalAddress.from_graph(data.get("businessAddress")),
            im_addresses=tuple(data.get("imAddresses") or []),
        )

    @property
    def primary_email(self) -> str:
        if not self.email_addresses:
            return ""
        return self.email_addresses[0].address

    @property
    def key(self) -> Optional[str]:
        return email_key(self.primary_email)

    @property
    def label(self) -> str:
        return normalize(self.primary_email) or normalize(self.display_name) or self.id


# ─── Sparse contact body ────────────────────────────────────────────────────

@dataclass
class ContactBody:
    """
    Sparse Outlook contact payload. Every field is optional; None means
    "not present" (do not touch), never "clear".
    Used both for the desired create body and for update patches.
    """
    display_name: Optional[str] = None
    given_name: Optional[str] = None
    surname: Optional[str] = None
    company_name: Optional[str] = None
    department: Optional[str] = None
    job_title: Optional[str] = None
    business_phones: Optional[list[str]] = None
    mobile_phone: Optional[str] = None
    email_addresses: Optional[list[EmailAddress]] = None
    business_address: Optional[PostalAddress] = None
    im_addresses: Optional[list[str]] = None

    def present_fields(self) -> list[str]:
        """Names of fields that carry a value, in declaration order."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def is_empty(self) -> bool:
        return not self.present_fields()


# ─── Plan and summary ───────────────────────────────────────────────────────

CREATE = "create"
UPDATE = "update"
SKIP = "skip"
DELETE = "delete"

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"
DELETED = "deleted"
ERRORED = "errored"


@dataclass
class PlannedAction:
    """One classified operation in a sync plan."""
    action: str                                       # create, update, skip, delete
    source: Optional[DirectoryRecord] = None          # None for deletes
    existing: Optional[MailboxContactRecord] = None   # None for creates
    body: Optional[ContactBody] = None                # Create body or update patch
    reason: str = ""                                  # Why a record was skipped

    @property
    def label(self) -> str:
        if self.source is not None:
            return self.source.label
        if self.existing is not None:
            return self.existing.label
        return ""


@dataclass
class SyncPlan:
    """Ordered actions for one pass: source order first, then deletes."""
    actions: list[PlannedAction] = field(default_factory=list)
    duplicates: list[MailboxContactRecord] = field(default_factory=list)
    source_count: int = 0
    target_count: int = 0

    def of(self, action: str) -> list[PlannedAction]:
        return [a for a in self.actions if a.action == action]


@dataclass
class SyncSummary:
    """Outcome counts and per-category identifier lists for one pass."""
    mailbox_id: str = ""
    dry_run: bool = False
    delete_enabled: bool = True
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_at: str = ""
    total: int = 0                     # Directory records seen
    target_total: int = 0              # Mailbox contacts listed
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    errored: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    def record(self, outcome: str, label: str):
        getattr(self, outcome).append(label)

    def record_error(self, label: str, operation: str, error: Exception):
        self.errored.append(label)
        self.errors.append({
            "identifier": label,
            "operation": operation,
            "error": f"{type(error).__name__}: {error}",
        })

    def complete(self):
        self.completed_at = datetime.now(timezone.utc).isoformat()

    @property
    def has_changes(self) -> bool:
        return bool(self.created or self.updated or self.deleted)

    def counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "created": len(self.created),
            "updated": len(self.updated),
            "skipped": len(self.skipped),
            "deleted": len(self.deleted),
            "errored": len(self.errored),
        }

    def to_dict(self) -> dict:
        return {
            "mailbox": self.mailbox_id,
            "dry_run": self.dry_run,
            "delete_enabled": self.delete_enabled,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "target_total": self.target_total,
            "counts": self.counts(),
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "errored": self.errored,
            "errors": self.errors,
            "duplicates": self.duplicates,
        }
