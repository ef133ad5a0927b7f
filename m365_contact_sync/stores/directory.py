"""
Directory Contact Source
Enumerates organizational contacts (orgContact) from Microsoft Graph.
"""

from __future__ import annotations

import logging
import time

from ..config import ORG_CONTACT_SELECT
from ..graph.client import GraphClient
from ..sync.models import DirectoryRecord
from .base import DirectorySource

logger = logging.getLogger("m365_contact_sync.stores.directory")


class GraphDirectorySource(DirectorySource):
    name = "directory"

    def __init__(self, graph: GraphClient):
        self.graph = graph

    async def list(self) -> list[DirectoryRecord]:
        started = time.time()
        logger.info("[directory] Listing organizational contacts...")
        raw = await self.graph.get_all_pages(
            "contacts",
            params={"$select": ORG_CONTACT_SELECT},
        )
        records = [DirectoryRecord.from_graph(item) for item in raw]
        logger.info(
            f"[directory] {len(records)} contacts in {time.time() - started:.2f}s"
        )
        return records
