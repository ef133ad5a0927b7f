"""
Field projection — Maps a directory record onto the sparse Outlook contact body.

FIELD_SPECS is the single source of truth for which body field corresponds to
which Graph property and which attribute of an existing mailbox contact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Optional

from .models import (
    ContactBody,
    DirectoryRecord,
    EmailAddress,
    MailboxContactRecord,
    PostalAddress,
    normalize,
)

logger = logging.getLogger("m365_contact_sync.sync.fields")

SCALAR = "scalar"
LIST = "list"
EMAIL = "email"
ADDRESS = "address"

BUSINESS_PHONE_TYPE = "business"
MOBILE_PHONE_TYPE = "mobile"


class FieldMapError(Exception):
    """Raised when the body/record field map is incomplete or inconsistent."""
    pass


@dataclass(frozen=True)
class FieldSpec:
    name: str           # ContactBody attribute
    graph_name: str     # Outlook contact JSON property
    record_attr: str    # MailboxContactRecord attribute compared against
    kind: str = SCALAR


FIELD_SPECS: dict[str, FieldSpec] = {
    spec.name: spec
    for spec in (
        FieldSpec("display_name", "displayName", "display_name"),
        FieldSpec("given_name", "givenName", "given_name"),
        FieldSpec("surname", "surname", "surname"),
        FieldSpec("company_name", "companyName", "company_name"),
        FieldSpec("department", "department", "department"),
        FieldSpec("job_title", "jobTitle", "job_title"),
        FieldSpec("business_phones", "businessPhones", "business_phones", LIST),
        FieldSpec("mobile_phone", "mobilePhone", "mobile_phone"),
        FieldSpec("email_addresses", "emailAddresses", "email_addresses", EMAIL),
        FieldSpec("business_address", "businessAddress", "business_address", ADDRESS),
        FieldSpec("im_addresses", "imAddresses", "im_addresses", LIST),
    )
}


def validate_field_map(specs: Optional[dict[str, FieldSpec]] = None) -> None:
    """
    Check that every ContactBody field has a spec and that every spec points
    at a real MailboxContactRecord attribute. Raises FieldMapError otherwise.
    """
    specs = FIELD_SPECS if specs is None else specs
    body_fields = {f.name for f in fields(ContactBody)}
    record_fields = {f.name for f in fields(MailboxContactRecord)}

    unmapped = sorted(body_fields - set(specs))
    if unmapped:
        raise FieldMapError(f"Contact body fields without a mapping: {', '.join(unmapped)}")

    unknown = sorted(set(specs) - body_fields)
    if unknown:
        raise FieldMapError(f"Mappings for unknown contact body fields: {', '.join(unknown)}")

    for spec in specs.values():
        if spec.record_attr not in record_fields:
            raise FieldMapError(
                f"Field '{spec.name}' maps to unknown mailbox contact attribute "
                f"'{spec.record_attr}'"
            )
        if spec.kind not in (SCALAR, LIST, EMAIL, ADDRESS):
            raise FieldMapError(f"Field '{spec.name}' has unknown kind '{spec.kind}'")


# ─── Projection ─────────────────────────────────────────────────────────────

def _text(value: Any) -> Optional[str]:
    text = normalize(value)
    return text or None


def _non_empty(values) -> list[str]:
    return [normalize(v) for v in values if normalize(v)]


def _im_handles(record: DirectoryRecord) -> list[str]:
    handles = _non_empty(record.im_addresses)
    if handles:
        return handles
    raw = record.extra.get("imAddresses") or []
    if isinstance(raw, str):
        raw = [raw]
    return _non_empty(raw)


def project(record: DirectoryRecord) -> ContactBody:
    """
    Build the desired contact body for a directory record.
    Only non-empty values are set; everything else stays None.
    """
    body = ContactBody(
        display_name=_text(record.display_name),
        given_name=_text(record.given_name),
        surname=_text(record.surname),
        company_name=_text(record.company_name),
        department=_text(record.department),
        job_title=_text(record.job_title),
    )

    business = []
    mobile = None
    for phone in record.phones:
        number = normalize(phone.number)
        if not number:
            continue
        phone_type = normalize(phone.type).lower()
        if phone_type == BUSINESS_PHONE_TYPE:
            business.append(number)
        elif phone_type == MOBILE_PHONE_TYPE and mobile is None:
            mobile = number
    if business:
        body.business_phones = business
    body.mobile_phone = mobile

    mail = normalize(record.mail)
    if mail:
        body.email_addresses = [EmailAddress(address=mail, name=normalize(record.display_name))]

    if record.addresses:
        first = record.addresses[0]
        if not first.is_empty():
            body.business_address = PostalAddress(*first.parts())

    handles = _im_handles(record)
    if handles:
        body.im_addresses = handles

    return body


def to_payload(body: ContactBody) -> dict:
    """Graph JSON for the present fields of a contact body."""
    payload: dict[str, Any] = {}
    for name in body.present_fields():
        spec = FIELD_SPECS[name]
        value = getattr(body, name)
        if spec.kind == ADDRESS:
            payload[spec.graph_name] = value.to_graph()
        elif spec.kind == EMAIL:
            payload[spec.graph_name] = [e.to_graph() for e in value]
        elif spec.kind == LIST:
            payload[spec.graph_name] = list(value)
        else:
            payload[spec.graph_name] = value
    return payload
