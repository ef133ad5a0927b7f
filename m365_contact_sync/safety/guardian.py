"""
Safety Guardian — Restricts tenant writes to the target mailbox's contacts.
Validates all HTTP methods, blocks out-of-scope writes, and logs safety events.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import unquote, urlsplit

logger = logging.getLogger("m365_contact_sync.safety")

# ─── HTTP Methods ────────────────────────────────────────────────────────────

READ_METHODS = {"GET", "HEAD", "OPTIONS"}
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class SafetyViolation(Exception):
    """Raised when a write outside the allowed scope is attempted."""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SafetyGuardian:
    """
    Validates every outbound HTTP request before it reaches the tenant.

    Reads are always allowed. Writes are allowed only against
    ``/users/{mailbox}/contacts[/{id}]`` (optionally inside a contact folder)
    of the configured mailbox, and ``/users/{sender}/sendMail`` for the
    notification sender. In dry-run mode every contact write is blocked;
    the summary e-mail is still allowed.
    """

    def __init__(
        self,
        mailbox_id: str,
        notification_sender: str = "",
        dry_run: bool = False,
    ):
        self.mailbox_id = mailbox_id
        self.notification_sender = notification_sender
        self.dry_run = dry_run
        self.violations: list[dict] = []
        self.checks_performed: int = 0
        self.writes_allowed: int = 0
        self.started_at: str = _now()

        mailbox = re.escape(mailbox_id.lower())
        self._contact_patterns = [
            re.compile(rf"/users/{mailbox}/contacts(/[^/]+)?$"),
            re.compile(rf"/users/{mailbox}/contactfolders/[^/]+/contacts(/[^/]+)?$"),
        ]
        self._mail_pattern: Optional[re.Pattern] = None
        if notification_sender:
            sender = re.escape(notification_sender.lower())
            self._mail_pattern = re.compile(rf"/users/{sender}/sendmail$")

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate an outbound request.
        Returns True if allowed, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper in READ_METHODS:
            return True

        if method_upper not in WRITE_METHODS:
            self._record_violation(method_upper, url, "Unknown HTTP method")
            raise SafetyViolation(f"SAFETY VIOLATION: Unknown method: {method_upper} {url}")

        path = unquote(urlsplit(url).path).lower().rstrip("/")

        if method_upper == "POST" and self._mail_pattern and self._mail_pattern.search(path):
            self.writes_allowed += 1
            return True

        if self.dry_run:
            self._record_violation(method_upper, url, "Write blocked in dry-run mode")
            raise SafetyViolation(f"SAFETY VIOLATION: Dry run, write blocked: {method_upper} {url}")

        if method_upper in ("POST", "PATCH", "DELETE"):
            for pattern in self._contact_patterns:
                if pattern.search(path):
                    self.writes_allowed += 1
                    return True

        self._record_violation(method_upper, url, "Write outside the target mailbox contacts")
        raise SafetyViolation(
            f"SAFETY VIOLATION: Write outside allowed scope: {method_upper} {url}"
        )

    def _record_violation(self, method: str, url: str, reason: str):
        """Record a safety violation for audit."""
        violation = {
            "timestamp": _now(),
            "method": method,
            "url": url,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the full safety audit record."""
        return {
            "safety_guardian": {
                "mode": "DRY-RUN" if self.dry_run else "MAILBOX-CONTACTS-ONLY",
                "mailbox": self.mailbox_id,
                "started_at": self.started_at,
                "checks_performed": self.checks_performed,
                "writes_allowed": self.writes_allowed,
                "violations_detected": len(self.violations),
                "violations": self.violations,
                "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
            }
        }

    def print_banner(self):
        """Print the write-scope banner."""
        print("=" * 75)
        if self.dry_run:
            print("  DRY RUN -- NO CHANGES WILL BE MADE")
            print("  * Every contact write is blocked at the HTTP layer")
        else:
            print(f"  WRITE SCOPE: contacts of {self.mailbox_id}")
            print("  * Directory and all other mailboxes are read-only")
            print("  * Every request is validated before execution")
        print("=" * 75)
