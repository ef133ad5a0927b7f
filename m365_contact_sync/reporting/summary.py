"""
Summary rendering — Plain text for the console/log and HTML for e-mail.
"""

from __future__ import annotations

import html

from ..sync.models import SyncSummary

# Category order used by every renderer
SECTIONS = [
    ("created", "Created"),
    ("updated", "Updated"),
    ("deleted", "Deleted"),
    ("errored", "Errors"),
    ("skipped", "Skipped"),
]


def subject_line(summary: SyncSummary) -> str:
    c = summary.counts()
    prefix = "[DRY RUN] " if summary.dry_run else ""
    status = "with errors" if c["errored"] else "completed"
    return (
        f"{prefix}Contact sync {status} for {summary.mailbox_id}: "
        f"{c['created']} created, {c['updated']} updated, "
        f"{c['deleted']} deleted, {c['errored']} errors"
    )


def format_text(summary: SyncSummary, list_skipped: bool = False) -> str:
    c = summary.counts()
    lines = [
        f"  Mailbox:          {summary.mailbox_id}",
        f"  Mode:             {'DRY RUN' if summary.dry_run else 'SYNC'}"
        f"{'' if summary.delete_enabled else ' (deletion disabled)'}",
        f"  Directory total:  {c['total']}",
        f"  Mailbox total:    {summary.target_total}",
        f"  Created:          {c['created']}",
        f"  Updated:          {c['updated']}",
        f"  Skipped:          {c['skipped']}",
        f"  Deleted:          {c['deleted']}",
        f"  Errors:           {c['errored']}",
    ]
    for key, title in SECTIONS:
        if key == "skipped" and not list_skipped:
            continue
        if key == "errored":
            if summary.errors:
                lines.append(f"\n  {title}:")
                lines.extend(
                    f"    - {e['identifier']} ({e['operation']}): {e['error']}"
                    for e in summary.errors
                )
            continue
        entries = getattr(summary, key)
        if entries:
            lines.append(f"\n  {title}:")
            lines.extend(f"    - {label}" for label in entries)
    if summary.duplicates:
        lines.append("\n  Duplicate mailbox contacts (not matched):")
        lines.extend(f"    - {label}" for label in summary.duplicates)
    return "\n".join(lines)


def format_html(summary: SyncSummary) -> str:
    c = summary.counts()
    rows = "".join(
        f"<tr><td>{html.escape(k.capitalize())}</td><td>{v}</td></tr>"
        for k, v in c.items()
    )
    parts = [
        f"<h2>{html.escape(subject_line(summary))}</h2>",
        f"<table border='1' cellpadding='4' cellspacing='0'>{rows}</table>",
    ]
    for key, title in SECTIONS:
        if key == "skipped":
            continue
        if key == "errored":
            items = [
                f"{e['identifier']} ({e['operation']}): {e['error']}" for e in summary.errors
            ]
        else:
            items = getattr(summary, key)
        if items:
            parts.append(f"<h3>{title}</h3><ul>")
            parts.extend(f"<li>{html.escape(i)}</li>" for i in items)
            parts.append("</ul>")
    if summary.duplicates:
        parts.append("<h3>Duplicate mailbox contacts (not matched)</h3><ul>")
        parts.extend(f"<li>{html.escape(d)}</li>" for d in summary.duplicates)
        parts.append("</ul>")
    return "".join(parts)
