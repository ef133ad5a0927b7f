"""
Base store classes — Abstract interfaces for the two sides of a sync.
The reconciler only talks to these; Graph-backed implementations live beside them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..sync.models import ContactBody, DirectoryRecord, MailboxContactRecord


class DirectorySource(ABC):
    """Source of truth: the organization's directory contacts."""

    name: str = "directory"

    @abstractmethod
    async def list(self) -> list[DirectoryRecord]:
        """Return every directory record, fully fetched."""
        raise NotImplementedError


class MailboxContactStore(ABC):
    """Sync target: the contact collection of one mailbox."""

    name: str = "mailbox"

    @abstractmethod
    async def list(self, mailbox_id: str) -> list[MailboxContactRecord]:
        """Return every contact in the mailbox, fully fetched."""
        raise NotImplementedError

    @abstractmethod
    async def create(self, mailbox_id: str, body: ContactBody) -> str:
        """Create a contact and return its identifier."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, mailbox_id: str, contact_id: str, patch: ContactBody) -> None:
        """Apply a sparse patch to an existing contact."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, mailbox_id: str, contact_id: str) -> None:
        """Remove a contact."""
        raise NotImplementedError
