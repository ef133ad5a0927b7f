"""
Mailbox Contact Store
Lists, creates, updates and deletes Outlook contacts of one mailbox,
either in the default contacts folder or in a named contact folder.
"""

from __future__ import annotations

import logging
import time
from typing import Optional
from urllib.parse import quote

from ..config import CONTACTS_PAGE_SIZE, MAILBOX_CONTACT_SELECT
from ..graph.client import GraphClient
from ..sync.fields import to_payload
from ..sync.models import ContactBody, MailboxContactRecord
from .base import MailboxContactStore

logger = logging.getLogger("m365_contact_sync.stores.mailbox")


class ContactFolderNotFound(Exception):
    """Raised when the configured contact folder does not exist in the mailbox."""
    pass


class GraphMailboxStore(MailboxContactStore):
    name = "mailbox"

    def __init__(self, graph: GraphClient, contact_folder: str = ""):
        self.graph = graph
        self.contact_folder = contact_folder
        self._folder_ids: dict[str, str] = {}

    async def resolve_folder(self, mailbox_id: str) -> Optional[str]:
        """Return the id of the configured contact folder, or None for the default folder."""
        if not self.contact_folder:
            return None
        if mailbox_id in self._folder_ids:
            return self._folder_ids[mailbox_id]

        escaped = self.contact_folder.replace("'", "''")
        data = await self.graph.get(
            f"users/{_user(mailbox_id)}/contactFolders",
            params={"$filter": f"displayName eq '{escaped}'", "$select": "id,displayName"},
        )
        folders = data.get("value", [])
        if not folders:
            raise ContactFolderNotFound(
                f"Contact folder '{self.contact_folder}' not found in mailbox {mailbox_id}"
            )
        folder_id = folders[0]["id"]
        self._folder_ids[mailbox_id] = folder_id
        logger.info(f"[mailbox] Using contact folder '{self.contact_folder}' ({folder_id})")
        return folder_id

    async def _collection(self, mailbox_id: str) -> str:
        folder_id = await self.resolve_folder(mailbox_id)
        if folder_id:
            return f"users/{_user(mailbox_id)}/contactFolders/{quote(folder_id, safe='')}/contacts"
        return f"users/{_user(mailbox_id)}/contacts"

    async def list(self, mailbox_id: str) -> list[MailboxContactRecord]:
        started = time.time()
        logger.info(f"[mailbox] Listing contacts of {mailbox_id}...")
        raw = await self.graph.get_all_pages(
            await self._collection(mailbox_id),
            params={"$select": MAILBOX_CONTACT_SELECT},
            page_size=CONTACTS_PAGE_SIZE,
        )
        records = [MailboxContactRecord.from_graph(item) for item in raw]
        logger.info(
            f"[mailbox] {len(records)} contacts in {time.time() - started:.2f}s"
        )
        return records

    async def create(self, mailbox_id: str, body: ContactBody) -> str:
        created = await self.graph.post(await self._collection(mailbox_id), to_payload(body))
        return created.get("id", "")

    async def update(self, mailbox_id: str, contact_id: str, patch: ContactBody) -> None:
        await self.graph.patch(
            f"users/{_user(mailbox_id)}/contacts/{quote(contact_id, safe='')}",
            to_payload(patch),
        )

    async def delete(self, mailbox_id: str, contact_id: str) -> None:
        await self.graph.delete(
            f"users/{_user(mailbox_id)}/contacts/{quote(contact_id, safe='')}"
        )


def _user(mailbox_id: str) -> str:
    return quote(mailbox_id, safe="@")
