"""
M365 Mailbox Contact Sync
=========================
Keeps the contacts of a Microsoft 365 mailbox in line with the organization's
directory contacts: creates missing contacts, patches changed fields, and
(optionally) removes contacts that are no longer in the directory.

Writes are restricted to the target mailbox's contacts by the Safety Guardian.
"""

__version__ = "1.0.0"
__author__ = "M365 Mailbox Contact Sync"
