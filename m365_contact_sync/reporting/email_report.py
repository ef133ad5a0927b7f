"""
E-mail notifier — Sends the sync summary through Graph sendMail.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from ..config import NotificationConfig
from ..graph.client import GraphClient
from ..sync.models import SyncSummary
from .summary import format_html, subject_line

logger = logging.getLogger("m365_contact_sync.reporting.email")


def build_message(summary: SyncSummary, recipients: list[str]) -> dict:
    return {
        "message": {
            "subject": subject_line(summary),
            "body": {"contentType": "HTML", "content": format_html(summary)},
            "toRecipients": [
                {"emailAddress": {"address": addr}} for addr in recipients
            ],
        },
        "saveToSentItems": False,
    }


async def send_summary(
    graph: GraphClient,
    notification: NotificationConfig,
    summary: SyncSummary,
) -> bool:
    """
    Mail the summary to the configured recipients.
    Returns True if a message was sent. Failures are logged, never raised.
    """
    if not notification.enabled:
        return False
    if notification.only_on_changes and not summary.has_changes and not summary.errored:
        logger.info("No changes or errors; summary e-mail skipped.")
        return False

    try:
        await graph.post(
            f"users/{quote(notification.sender, safe='@')}/sendMail",
            build_message(summary, notification.recipients),
        )
    except Exception as e:
        logger.error(f"Failed to send summary e-mail from {notification.sender}: {e}")
        return False

    logger.info(f"Summary e-mailed to {', '.join(notification.recipients)}")
    return True
