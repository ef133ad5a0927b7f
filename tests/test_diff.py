"""Tests for the field-level diff between a desired body and an existing contact."""

from __future__ import annotations

from m365_contact_sync.sync.diff import diff
from m365_contact_sync.sync.fields import project
from m365_contact_sync.sync.models import ContactBody, EmailAddress, PostalAddress

from conftest import directory_record, mailbox_contact

ADDRESS = {
    "street": "1 Main St", "city": "Seattle", "state": "WA",
    "postalCode": "98101", "countryOrRegion": "US",
}


def test_identical_contact_yields_empty_patch():
    desired = project(directory_record("ada@contoso.com"))
    existing = mailbox_contact("ada@contoso.com")
    assert diff(desired, existing).is_empty()


def test_only_changed_scalars_are_patched():
    desired = project(directory_record("ada@contoso.com", jobTitle="Principal Engineer"))
    existing = mailbox_contact("ada@contoso.com")

    patch = diff(desired, existing)

    assert patch.present_fields() == ["job_title"]
    assert patch.job_title == "Principal Engineer"


def test_whitespace_differences_are_not_changes():
    desired = ContactBody(department="Research")
    existing = mailbox_contact("ada@contoso.com", department="  Research ")
    assert diff(desired, existing).is_empty()


def test_absent_desired_field_never_clears_existing_value():
    desired = ContactBody(display_name="Ada Lovelace")
    existing = mailbox_contact("ada@contoso.com", mobilePhone="555")
    assert diff(desired, existing).is_empty()


def test_business_phones_compared_in_order():
    desired = ContactBody(business_phones=["111", "222"])

    same = mailbox_contact("ada@contoso.com", businessPhones=["111", "222"])
    reordered = mailbox_contact("ada@contoso.com", businessPhones=["222", "111"])

    assert diff(desired, same).is_empty()
    assert diff(desired, reordered).business_phones == ["111", "222"]


def test_business_phones_changed():
    desired = ContactBody(business_phones=["111"])
    existing = mailbox_contact("ada@contoso.com", businessPhones=["222"])

    patch = diff(desired, existing)

    assert patch.present_fields() == ["business_phones"]
    assert patch.business_phones == ["111"]


def test_email_compares_first_address_only():
    desired = ContactBody(email_addresses=[EmailAddress("ada@contoso.com", "Ada")])
    existing = mailbox_contact(
        "ada@contoso.com",
        emailAddresses=[
            {"name": "Someone Else", "address": " ada@contoso.com "},
            {"name": "Alt", "address": "ada@personal.example"},
        ],
    )
    assert diff(desired, existing).is_empty()


def test_email_case_change_is_patched():
    desired = ContactBody(email_addresses=[EmailAddress("Ada@Contoso.com", "Ada")])
    existing = mailbox_contact("ada@contoso.com")
    assert diff(desired, existing).email_addresses == [EmailAddress("Ada@Contoso.com", "Ada")]


def test_address_compared_as_a_whole():
    desired = ContactBody(business_address=PostalAddress("1 Main St", "Seattle", "WA", "98101", "US"))

    same = mailbox_contact("ada@contoso.com", businessAddress=ADDRESS)
    moved = mailbox_contact("ada@contoso.com", businessAddress={**ADDRESS, "city": "Tacoma"})
    missing = mailbox_contact("ada@contoso.com", businessAddress=None)

    assert diff(desired, same).is_empty()
    assert diff(desired, moved).business_address == desired.business_address
    assert diff(desired, missing).business_address == desired.business_address


def test_im_addresses_added():
    desired = ContactBody(im_addresses=["sip:ada@contoso.com"])
    existing = mailbox_contact("ada@contoso.com")
    assert diff(desired, existing).im_addresses == ["sip:ada@contoso.com"]


def test_patch_never_contains_equal_values():
    desired = project(directory_record(
        "ada@contoso.com",
        department="Finance",
        phones=[{"number": "111", "type": "business"}, {"number": "999", "type": "mobile"}],
        addresses=[ADDRESS],
    ))
    existing = mailbox_contact(
        "ada@contoso.com",
        department="Research",
        businessPhones=["111"],
        mobilePhone="999",
        businessAddress=ADDRESS,
    )

    patch = diff(desired, existing)

    assert patch.present_fields() == ["department"]
