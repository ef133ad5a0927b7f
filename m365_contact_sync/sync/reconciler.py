"""
Contact Reconciler — Plans and executes the create/update/delete operations
that bring a mailbox's contacts in line with the directory.

A pass has two phases:
  1. plan()    — pure classification of every record (no I/O)
  2. execute() — sequential writes, one record at a time; a failure is
                 recorded against that record and the pass continues
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import SyncConfig
from .diff import diff
from .fields import project, validate_field_map
from .models import (
    CREATE,
    CREATED,
    DELETE,
    DELETED,
    SKIP,
    SKIPPED,
    UPDATE,
    UPDATED,
    DirectoryRecord,
    MailboxContactRecord,
    PlannedAction,
    SyncPlan,
    SyncSummary,
)

if TYPE_CHECKING:
    from ..stores.base import DirectorySource, MailboxContactStore

logger = logging.getLogger("m365_contact_sync.sync")


class SyncAbortedError(Exception):
    """Raised when a pass cannot start, e.g. a side could not be listed."""
    pass


def index_by_key(
    records: list[MailboxContactRecord],
) -> tuple[dict[str, MailboxContactRecord], list[MailboxContactRecord]]:
    """
    Index mailbox contacts by primary e-mail key. The first record seen for a
    key wins; later ones are returned as duplicates. Records without an
    e-mail are left out of both.
    """
    index: dict[str, MailboxContactRecord] = {}
    duplicates: list[MailboxContactRecord] = []
    for record in records:
        key = record.key
        if key is None:
            continue
        if key in index:
            logger.warning(
                f"Duplicate mailbox contact for {key}: keeping {index[key].id}, "
                f"ignoring {record.id}"
            )
            duplicates.append(record)
            continue
        index[key] = record
    return index, duplicates


def build_plan(
    source: list[DirectoryRecord],
    target: list[MailboxContactRecord],
    enable_delete: bool,
) -> SyncPlan:
    """Classify every directory record, then every stale mailbox contact."""
    index, duplicates = index_by_key(target)
    plan = SyncPlan(
        duplicates=duplicates,
        source_count=len(source),
        target_count=len(target),
    )
    seen: set[str] = set()

    for record in source:
        key = record.key
        if key is None:
            plan.actions.append(PlannedAction(SKIP, source=record, reason="no e-mail address"))
            continue
        seen.add(key)
        desired = project(record)

        existing = index.get(key)
        if existing is None:
            plan.actions.append(PlannedAction(CREATE, source=record, body=desired))
            continue

        patch = diff(desired, existing)
        if patch.is_empty():
            plan.actions.append(
                PlannedAction(SKIP, source=record, existing=existing, reason="up to date")
            )
        else:
            plan.actions.append(
                PlannedAction(UPDATE, source=record, existing=existing, body=patch)
            )

    if enable_delete:
        # Walk the full listing: a duplicate of a stale key is stale too.
        for existing in target:
            key = existing.key
            if key is not None and key not in seen:
                plan.actions.append(PlannedAction(DELETE, existing=existing))

    return plan


class ContactReconciler:
    """
    Reconciles the contacts of one mailbox against the directory.

    The field map is validated on construction so a broken mapping fails the
    run before anything is listed or written.
    """

    def __init__(
        self,
        directory: "DirectorySource",
        mailbox: "MailboxContactStore",
        config: SyncConfig,
    ):
        if not config.mailbox_id:
            raise ValueError("SyncConfig.mailbox_id is required")
        validate_field_map()
        self.directory = directory
        self.mailbox = mailbox
        self.config = config

    async def run(self) -> SyncSummary:
        """List both sides in full, plan, then execute."""
        source, target = await self.fetch()
        plan = self.plan(source, target)
        return await self.execute(plan)

    async def fetch(self) -> tuple[list[DirectoryRecord], list[MailboxContactRecord]]:
        try:
            source = await self.directory.list()
        except Exception as e:
            raise SyncAbortedError(f"Listing directory contacts failed: {e}") from e
        try:
            target = await self.mailbox.list(self.config.mailbox_id)
        except Exception as e:
            raise SyncAbortedError(
                f"Listing contacts of {self.config.mailbox_id} failed: {e}"
            ) from e
        return source, target

    def plan(
        self,
        source: list[DirectoryRecord],
        target: list[MailboxContactRecord],
    ) -> SyncPlan:
        plan = build_plan(source, target, self.config.enable_delete)
        logger.info(
            f"Planned {len(plan.of(CREATE))} create, {len(plan.of(UPDATE))} update, "
            f"{len(plan.of(SKIP))} skip, {len(plan.of(DELETE))} delete "
            f"({plan.source_count} directory / {plan.target_count} mailbox contacts)"
        )
        return plan

    async def execute(self, plan: SyncPlan) -> SyncSummary:
        """Run every planned action in order and collect the outcomes."""
        summary = SyncSummary(
            mailbox_id=self.config.mailbox_id,
            dry_run=self.config.dry_run,
            delete_enabled=self.config.enable_delete,
            total=plan.source_count,
            target_total=plan.target_count,
            duplicates=[d.label for d in plan.duplicates],
        )
        mailbox_id = self.config.mailbox_id

        for action in plan.actions:
            label = action.label

            if action.action == SKIP:
                logger.debug(f"Skipped {label}: {action.reason}")
                summary.record(SKIPPED, label)
                continue

            if self.config.dry_run:
                logger.info(f"[dry-run] Would {action.action} {label}")
                summary.record(_OUTCOME[action.action], label)
                continue

            try:
                if action.action == CREATE:
                    new_id = await self.mailbox.create(mailbox_id, action.body)
                    logger.info(f"Created {label} ({new_id})")
                elif action.action == UPDATE:
                    await self.mailbox.update(mailbox_id, action.existing.id, action.body)
                    logger.info(
                        f"Updated {label}: {', '.join(action.body.present_fields())}"
                    )
                elif action.action == DELETE:
                    await self.mailbox.delete(mailbox_id, action.existing.id)
                    logger.info(f"Deleted {label} ({action.existing.id})")
            except Exception as e:
                logger.error(f"Failed to {action.action} {label}: {e}")
                summary.record_error(label, action.action, e)
                continue

            summary.record(_OUTCOME[action.action], label)

        summary.complete()
        counts = summary.counts()
        logger.info(
            f"Sync complete for {mailbox_id}: "
            + ", ".join(f"{k}={v}" for k, v in counts.items())
        )
        return summary


_OUTCOME = {
    CREATE: CREATED,
    UPDATE: UPDATED,
    DELETE: DELETED,
}
