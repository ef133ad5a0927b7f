"""Tests for planning and executing a reconciliation pass."""

from __future__ import annotations

import pytest

from m365_contact_sync.config import SyncConfig
from m365_contact_sync.sync import fields as fields_module
from m365_contact_sync.sync.fields import FieldMapError
from m365_contact_sync.sync.models import CREATE, DELETE, SKIP, UPDATE
from m365_contact_sync.sync.reconciler import (
    ContactReconciler,
    SyncAbortedError,
    build_plan,
    index_by_key,
)

from conftest import MAILBOX, FakeDirectory, FakeMailbox, directory_record, mailbox_contact


def _reconciler(source, mailbox, **config) -> ContactReconciler:
    return ContactReconciler(
        FakeDirectory(source),
        mailbox,
        SyncConfig(mailbox_id=MAILBOX, **config),
    )


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------

def test_index_uses_normalized_key_and_first_seen_wins():
    first = mailbox_contact(" Ada@Contoso.com ", contact_id="first")
    second = mailbox_contact("ada@contoso.com", contact_id="second")
    no_mail = mailbox_contact("", contact_id="blank")

    index, duplicates = index_by_key([first, no_mail, second])

    assert list(index) == ["ada@contoso.com"]
    assert index["ada@contoso.com"].id == "first"
    assert [d.id for d in duplicates] == ["second"]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def test_plan_classifies_each_record_once():
    source = [
        directory_record("new@contoso.com"),
        directory_record("same@contoso.com"),
        directory_record("changed@contoso.com", jobTitle="CTO"),
        directory_record(""),
        directory_record("   "),
    ]
    target = [
        mailbox_contact("same@contoso.com"),
        mailbox_contact("changed@contoso.com"),
        mailbox_contact("stale@contoso.com"),
    ]

    plan = build_plan(source, target, enable_delete=True)

    assert [(a.action, a.label) for a in plan.actions] == [
        (CREATE, "new@contoso.com"),
        (SKIP, "same@contoso.com"),
        (UPDATE, "changed@contoso.com"),
        (SKIP, "Ada Lovelace"),
        (SKIP, "Ada Lovelace"),
        (DELETE, "stale@contoso.com"),
    ]
    assert plan.source_count == 5
    assert plan.target_count == 3


def test_deletion_disabled_plans_no_deletes():
    plan = build_plan([], [mailbox_contact("stale@contoso.com")], enable_delete=False)
    assert plan.of(DELETE) == []


def test_mailbox_contact_without_email_is_never_deleted():
    plan = build_plan([], [mailbox_contact("", contact_id="blank")], enable_delete=True)
    assert plan.actions == []


def test_duplicates_are_neither_updated_nor_deleted():
    target = [
        mailbox_contact("ada@contoso.com", contact_id="first"),
        mailbox_contact("ada@contoso.com", contact_id="second", jobTitle="Old"),
    ]
    plan = build_plan([directory_record("ada@contoso.com")], target, enable_delete=True)

    assert [a.action for a in plan.actions] == [SKIP]
    assert [d.id for d in plan.duplicates] == ["second"]


def test_every_copy_of_a_removed_contact_is_deleted():
    target = [
        mailbox_contact("gone@contoso.com", contact_id="first"),
        mailbox_contact("kept@contoso.com", contact_id="kept"),
        mailbox_contact("Gone@Contoso.com", contact_id="second"),
    ]
    plan = build_plan([directory_record("kept@contoso.com")], target, enable_delete=True)

    assert [a.existing.id for a in plan.of(DELETE)] == ["first", "second"]
    assert [d.id for d in plan.duplicates] == ["second"]


def test_duplicates_are_kept_when_deletion_is_disabled():
    target = [
        mailbox_contact("gone@contoso.com", contact_id="first"),
        mailbox_contact("gone@contoso.com", contact_id="second"),
    ]
    plan = build_plan([], target, enable_delete=False)
    assert plan.of(DELETE) == []


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

async def test_scenario_a_missing_contact_is_created():
    mailbox = FakeMailbox()
    summary = await _reconciler([directory_record("a@x.com")], mailbox).run()

    assert summary.created == ["a@x.com"]
    creates = mailbox.calls_of("create")
    assert len(creates) == 1
    body = creates[0][2]
    assert body.email_addresses[0].address == "a@x.com"
    assert body.email_addresses[0].name == "Ada Lovelace"


async def test_scenario_b_matching_phones_skip():
    source = [directory_record("a@x.com", phones=[{"number": "111", "type": "business"}])]
    mailbox = FakeMailbox([mailbox_contact("a@x.com", businessPhones=["111"])])

    summary = await _reconciler(source, mailbox).run()

    assert summary.skipped == ["a@x.com"]
    assert mailbox.calls_of("update") == []


async def test_scenario_c_changed_phones_update_only_that_field():
    source = [directory_record("a@x.com", phones=[{"number": "111", "type": "business"}])]
    mailbox = FakeMailbox([mailbox_contact("a@x.com", contact_id="c1", businessPhones=["222"])])

    summary = await _reconciler(source, mailbox).run()

    assert summary.updated == ["a@x.com"]
    (_, mailbox_id, contact_id, patch), = mailbox.calls_of("update")
    assert mailbox_id == MAILBOX
    assert contact_id == "c1"
    assert patch.present_fields() == ["business_phones"]
    assert patch.business_phones == ["111"]


async def test_scenario_d_stale_contact_deleted_when_enabled():
    mailbox = FakeMailbox([mailbox_contact("b@x.com", contact_id="b1")])

    summary = await _reconciler([directory_record("a@x.com")], mailbox).run()

    assert summary.deleted == ["b@x.com"]
    assert mailbox.calls_of("delete") == [("delete", MAILBOX, "b1")]


async def test_scenario_e_stale_contact_kept_when_deletion_disabled():
    mailbox = FakeMailbox([mailbox_contact("b@x.com", contact_id="b1")])

    summary = await _reconciler([directory_record("a@x.com")], mailbox, enable_delete=False).run()

    assert "b@x.com" not in summary.deleted + summary.skipped + summary.errored
    assert summary.deleted == []
    assert mailbox.calls_of("delete") == []


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

async def test_records_without_email_are_skipped_without_calls():
    mailbox = FakeMailbox()
    summary = await _reconciler([directory_record(""), directory_record("  ")], mailbox).run()

    assert summary.counts()["skipped"] == 2
    assert mailbox.calls_of("create") == []
    assert mailbox.calls_of("update") == []


async def test_second_run_is_idempotent():
    source = [
        directory_record(
            "a@x.com",
            phones=[{"number": "111", "type": "business"}, {"number": "999", "type": "mobile"}],
            addresses=[{"street": "1 Main St", "city": "Seattle"}],
            imAddresses=["sip:a@x.com"],
        ),
        directory_record("b@x.com", jobTitle="CTO"),
    ]
    mailbox = FakeMailbox([mailbox_contact("b@x.com")])

    first = await _reconciler(source, mailbox).run()
    second = await _reconciler(source, mailbox).run()

    assert first.counts()["created"] == 1
    assert first.counts()["updated"] == 1
    assert second.counts()["created"] == 0
    assert second.counts()["updated"] == 0
    assert sorted(second.skipped) == ["a@x.com", "b@x.com"]


async def test_every_record_gets_exactly_one_outcome():
    source = [directory_record(f"user{i}@x.com") for i in range(5)] + [directory_record("")]
    mailbox = FakeMailbox([mailbox_contact("user1@x.com", jobTitle="Old")])
    mailbox.fail_on.add("user3@x.com")

    summary = await _reconciler(source, mailbox).run()

    outcomes = summary.created + summary.updated + summary.skipped + summary.errored
    assert len(outcomes) == summary.total == 6
    assert summary.errored == ["user3@x.com"]


async def test_per_record_failure_does_not_stop_the_pass():
    source = [directory_record("a@x.com"), directory_record("b@x.com", jobTitle="CTO")]
    mailbox = FakeMailbox([
        mailbox_contact("b@x.com", contact_id="b1"),
        mailbox_contact("c@x.com", contact_id="c1"),
    ])
    mailbox.fail_on.update({"a@x.com", "c1"})

    summary = await _reconciler(source, mailbox).run()

    assert summary.errored == ["a@x.com", "c@x.com"]
    assert summary.updated == ["b@x.com"]
    assert [e["operation"] for e in summary.errors] == ["create", "delete"]
    assert "GraphAPIError" in summary.errors[0]["error"]
    assert summary.completed_at


async def test_records_are_processed_in_source_order():
    source = [directory_record(m) for m in ("c@x.com", "a@x.com", "b@x.com")]
    mailbox = FakeMailbox()

    await _reconciler(source, mailbox).run()

    created = [call[2].email_addresses[0].address for call in mailbox.calls_of("create")]
    assert created == ["c@x.com", "a@x.com", "b@x.com"]


async def test_dry_run_reports_plan_without_writing():
    source = [directory_record("a@x.com"), directory_record("b@x.com", jobTitle="CTO")]
    mailbox = FakeMailbox([mailbox_contact("b@x.com"), mailbox_contact("c@x.com")])

    summary = await _reconciler(source, mailbox, dry_run=True).run()

    assert summary.dry_run
    assert summary.created == ["a@x.com"]
    assert summary.updated == ["b@x.com"]
    assert summary.deleted == ["c@x.com"]
    assert [c[0] for c in mailbox.calls] == ["list"]


async def test_duplicates_are_reported_in_summary():
    mailbox = FakeMailbox([
        mailbox_contact("a@x.com", contact_id="first"),
        mailbox_contact("A@x.com", contact_id="second"),
    ])
    summary = await _reconciler([directory_record("a@x.com")], mailbox).run()
    assert summary.duplicates == ["A@x.com"]
    assert mailbox.calls_of("delete") == []


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------

async def test_directory_listing_failure_aborts_before_any_write():
    mailbox = FakeMailbox([mailbox_contact("b@x.com")])
    reconciler = ContactReconciler(
        FakeDirectory(fail=True), mailbox, SyncConfig(mailbox_id=MAILBOX)
    )

    with pytest.raises(SyncAbortedError, match="directory"):
        await reconciler.run()
    assert mailbox.calls == []


async def test_mailbox_listing_failure_aborts():
    mailbox = FakeMailbox()
    mailbox.fail_list = True

    with pytest.raises(SyncAbortedError, match=MAILBOX):
        await _reconciler([directory_record("a@x.com")], mailbox).run()
    assert mailbox.calls_of("create") == []


def test_missing_mailbox_is_rejected():
    with pytest.raises(ValueError):
        ContactReconciler(FakeDirectory(), FakeMailbox(), SyncConfig())


def test_broken_field_map_fails_at_construction(monkeypatch):
    specs = dict(fields_module.FIELD_SPECS)
    del specs["surname"]
    monkeypatch.setattr(fields_module, "FIELD_SPECS", specs)

    with pytest.raises(FieldMapError):
        ContactReconciler(FakeDirectory(), FakeMailbox(), SyncConfig(mailbox_id=MAILBOX))
