"""
JSON exporter — Writes the sync summary and safety audit to disk.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .. import __version__
from ..sync.models import SyncSummary


def export_json(
    summary: SyncSummary,
    output_dir: Path,
    run_id: str,
    audit: Optional[dict] = None,
    graph_stats: Optional[dict] = None,
) -> Path:
    """
    Write the summary of one sync pass to a JSON file.

    Returns:
        Path to the created JSON file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        "metadata": {
            "tool": "M365 Mailbox Contact Sync",
            "version": __version__,
            "run_id": run_id,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
            "mode": "DRY-RUN" if summary.dry_run else "SYNC",
        },
        "summary": summary.to_dict(),
        "graph": graph_stats or {},
    }
    if audit:
        payload.update(audit)

    filepath = output_dir / f"contact_sync_{run_id}.json"
    with open(filepath, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str, ensure_ascii=False)

    return filepath
