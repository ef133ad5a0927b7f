"""Sync package — field projection, diff engine, and reconciliation."""

from .diff import diff
from .fields import FIELD_SPECS, FieldMapError, project, to_payload, validate_field_map
from .models import (
    ContactBody,
    DirectoryRecord,
    EmailAddress,
    MailboxContactRecord,
    Phone,
    PostalAddress,
    SyncPlan,
    SyncSummary,
)
from .reconciler import ContactReconciler, SyncAbortedError, build_plan, index_by_key

__all__ = [
    "diff",
    "FIELD_SPECS",
    "FieldMapError",
    "project",
    "to_payload",
    "validate_field_map",
    "ContactBody",
    "DirectoryRecord",
    "EmailAddress",
    "MailboxContactRecord",
    "Phone",
    "PostalAddress",
    "SyncPlan",
    "SyncSummary",
    "ContactReconciler",
    "SyncAbortedError",
    "build_plan",
    "index_by_key",
]
