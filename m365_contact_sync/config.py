"""
Configuration module for M365 Mailbox Contact Sync.
Defines all tunable parameters, API endpoints, and operational settings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Will be prompted if empty

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "OrgContact.Read.All",
        "Contacts.ReadWrite",
        "Mail.Send",
    ])

@dataclass
class AuthConfig:
    """Authentication configuration — supports both modes."""
    mode: str = "certificate"  # "certificate" or "delegated"
    certificate: Optional[CertificateAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
GRAPH_BETA_VERSION = "beta"

# Throttling
MAX_RETRIES = 5                   # Retry count for throttled requests
INITIAL_BACKOFF_SECONDS = 2.0     # First retry delay
MAX_BACKOFF_SECONDS = 120.0       # Cap on exponential backoff
BACKOFF_MULTIPLIER = 2.0          # Exponential factor

# Pagination
DEFAULT_PAGE_SIZE = 999           # orgContacts accept up to 999 per page
CONTACTS_PAGE_SIZE = 1000         # Outlook contacts accept up to 1000 per page
MAX_PAGES_PER_ENDPOINT = 10000    # Safety cap on pagination loops

# Properties requested from each side
ORG_CONTACT_SELECT = (
    "id,displayName,givenName,surname,companyName,department,jobTitle,"
    "mail,phones,addresses"
)
MAILBOX_CONTACT_SELECT = (
    "id,displayName,givenName,surname,companyName,department,jobTitle,"
    "businessPhones,mobilePhone,emailAddresses,businessAddress,imAddresses"
)


# ─── Sync Settings ──────────────────────────────────────────────────────────

@dataclass
class SyncConfig:
    """Controls for one reconciliation pass."""
    mailbox_id: str = ""                  # UPN or object id of the target mailbox
    contact_folder: str = ""              # Display name of a contact folder; empty = default folder
    enable_delete: bool = True            # Remove mailbox contacts absent from the directory
    dry_run: bool = False                 # Plan and report only


@dataclass
class NotificationConfig:
    """E-mail delivery of the sync summary."""
    sender: str = ""                      # Mailbox used for sendMail
    recipients: list[str] = field(default_factory=list)
    only_on_changes: bool = False         # Skip the mail when nothing changed and no errors

    @property
    def enabled(self) -> bool:
        return bool(self.sender and self.recipients)


# ─── Output Configuration ───────────────────────────────────────────────────

@dataclass
class OutputConfig:
    """Output directory and format settings."""
    base_dir: str = ""                    # Empty = no JSON summary written
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    @property
    def enabled(self) -> bool:
        return bool(self.base_dir)

    @property
    def report_dir(self) -> Path:
        return Path(self.base_dir)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for a sync run."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
                if d.get("scopes"):
                    config.auth.delegated.scopes = list(d["scopes"])
        for section in ("sync", "notification", "output"):
            if section in data:
                target = getattr(config, section)
                for k, v in data[section].items():
                    if hasattr(target, k):
                        setattr(target, k, v)
        config.verbose = data.get("verbose", False)
        return config


# ─── Required Graph API Permissions ────────────────────────────────────────

REQUIRED_PERMISSIONS = {
    "OrgContact.Read.All": "Read organizational (directory) contacts",
    "Contacts.ReadWrite": "Create, update and delete contacts in the target mailbox",
    "Mail.Send": "Send the sync summary (only when notification is enabled)",
}
