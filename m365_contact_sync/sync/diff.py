"""
Diff engine — Reduces a desired contact body to the fields that actually differ
from an existing mailbox contact.
"""

from __future__ import annotations

from typing import Any

from .fields import ADDRESS, EMAIL, FIELD_SPECS, LIST, FieldSpec
from .models import ContactBody, MailboxContactRecord, PostalAddress, normalize


def _joined(values: Any) -> str:
    # Order matters: a reordered list compares as changed.
    return "".join(normalize(v) for v in values or ())


def _address_text(address: PostalAddress | None) -> str:
    if address is None:
        return ""
    return "".join(address.parts())


def _first_email(values: Any) -> str:
    if not values:
        return ""
    return normalize(values[0].address)


def comparable(spec: FieldSpec, value: Any) -> str:
    """Normalized string form of a body or record value for comparison."""
    if spec.kind == LIST:
        return _joined(value)
    if spec.kind == EMAIL:
        return _first_email(value)
    if spec.kind == ADDRESS:
        return _address_text(value)
    return normalize(value)


def diff(desired: ContactBody, existing: MailboxContactRecord) -> ContactBody:
    """
    Return a sparse patch holding only the desired fields whose normalized
    value differs from the existing contact. An empty patch means no update.
    """
    patch = ContactBody()
    for name in desired.present_fields():
        spec = FIELD_SPECS[name]
        wanted = getattr(desired, name)
        current = getattr(existing, spec.record_attr)
        if comparable(spec, wanted) != comparable(spec, current):
            setattr(patch, name, wanted)
    return patch
