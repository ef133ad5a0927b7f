"""
M365 Mailbox Contact Sync — Main Orchestrator

Usage:
    python -m m365_contact_sync --mailbox reception@contoso.com      # default profile
    python -m m365_contact_sync --profile contoso --dry-run           # plan only
    python -m m365_contact_sync --config config.json --no-delete      # never remove contacts
    python -m m365_contact_sync --folder "Company Contacts" --report-dir ./reports
    python -m m365_contact_sync --notify-from it@contoso.com --notify-to admin@contoso.com

Profile management:
    python -m m365_contact_sync profile add <name> --tenant-id ... --client-id ... --mailbox ...
    python -m m365_contact_sync profile list
    python -m m365_contact_sync profile remove <name>
    python -m m365_contact_sync profile set-default <name>

Writes are limited to the contacts of the target mailbox.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import __version__
from .config import CertificateAuth, DelegatedAuth, EngineConfig
from .safety.guardian import SafetyGuardian
from .auth.authenticator import Authenticator, AuthenticationError
from .graph.client import GraphClient
from .stores import GraphDirectorySource, GraphMailboxStore
from .sync import ContactReconciler, FieldMapError, SyncAbortedError
from .reporting import export_json, format_text, send_summary
from .profiles import ProfileStore, TenantProfile, resolve_profile

logger = logging.getLogger("m365_contact_sync")


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    action = args.profile_action

    if action == "list":
        return _profile_list()
    elif action == "add":
        return _profile_add(args)
    elif action == "remove":
        return _profile_remove(args)
    elif action == "set-default":
        return _profile_set_default(args)
    return 0


def _profile_list() -> int:
    store = ProfileStore.load()
    profiles = store.list_profiles()
    if not profiles:
        print("No profiles configured. Add one with:\n")
        print("  python -m m365_contact_sync profile add <name> \\")
        print("    --tenant-id <GUID> --client-id <GUID> --mailbox <UPN>")
        return 0

    print(f"\n  {'Name':<20s} {'Tenant ID':<38s} {'Mailbox':<32s} {'Folder':<20s} {'Default'}")
    print(f"  {'-'*20} {'-'*38} {'-'*32} {'-'*20} {'-'*7}")
    for p in profiles:
        default_marker = "  *" if p.name == store.default_profile else ""
        print(
            f"  {p.name:<20s} {p.tenant_id:<38s} {p.mailbox_id:<32s} "
            f"{p.contact_folder or '(default)':<20s}{default_marker}"
        )
    print()
    return 0


def _profile_add(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    name = args.profile_name
    if store.get(name):
        print(f"  Profile '{name}' already exists. It will be overwritten.")

    profile = TenantProfile(
        name=name,
        tenant_id=args.tenant_id,
        client_id=args.client_id,
        cert_path=args.cert_path or "./base64.txt",
        mailbox_id=args.mailbox or "",
        contact_folder=args.folder or "",
        tenant_display_name=args.display_name or "",
        notes=args.notes or "",
    )
    set_as_default = args.set_default or not store.profiles
    store.add(profile, set_default=set_as_default)
    print(f"  Profile '{name}' saved to {store.path}.")
    if set_as_default:
        print("  Set as default profile.")
    return 0


def _profile_remove(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.remove(args.profile_name):
        print(f"  Profile '{args.profile_name}' removed.")
        return 0
    print(f"  Profile '{args.profile_name}' not found.")
    return 1


def _profile_set_default(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.set_default(args.profile_name):
        print(f"  Default profile set to '{args.profile_name}'.")
        return 0
    print(f"  Profile '{args.profile_name}' not found.")
    return 1


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="m365_contact_sync",
        description="Sync directory contacts into a Microsoft 365 mailbox",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # --- Sub-commands: profile management ---
    subparsers = parser.add_subparsers(dest="command", help="Management commands")

    prof_parser = subparsers.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")

    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID)")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--cert-path", default="./base64.txt", help="Path to base64-encoded PFX (default: ./base64.txt)")
    add_p.add_argument("--mailbox", help="Default target mailbox (UPN or object id)")
    add_p.add_argument("--folder", help="Default contact folder display name")
    add_p.add_argument("--display-name", help="Friendly tenant display name")
    add_p.add_argument("--notes", help="Optional admin notes")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")

    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name", help="Name of the profile to remove")

    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name", help="Name of the profile to set as default")

    # --- Sync options ---
    parser.add_argument("--profile", "-p", default=None, help="Tenant profile name to use")
    parser.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    parser.add_argument("--delegated", action="store_true", help="Use device-code authentication instead of certificate")
    parser.add_argument("--cert-path", type=Path, help="Path to base64-encoded certificate file (overrides profile)")
    parser.add_argument("--tenant-id", default=None, help="Tenant ID (overrides profile)")
    parser.add_argument("--client-id", default=None, help="Client ID (overrides profile)")
    parser.add_argument("--mailbox", "-m", default=None, help="Target mailbox (overrides profile/config)")
    parser.add_argument("--folder", default=None, help="Contact folder display name (overrides profile/config)")
    parser.add_argument("--no-delete", action="store_true", help="Never remove mailbox contacts missing from the directory")
    parser.add_argument("--dry-run", action="store_true", help="Plan and report without writing to the mailbox")
    parser.add_argument("--report-dir", "-o", type=Path, default=None, help="Write a JSON summary into this directory")
    parser.add_argument("--notify-from", default=None, help="Mailbox that sends the summary e-mail")
    parser.add_argument("--notify-to", nargs="+", default=None, help="Summary e-mail recipients")
    parser.add_argument("--notify-only-on-changes", action="store_true", help="Only e-mail when something changed or failed")
    parser.add_argument("--list-skipped", action="store_true", help="Include skipped records in the console summary")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build the run configuration from config file, profile, and CLI args."""
    if args.config:
        if not args.config.exists():
            print(f"\nConfig file not found: {args.config}")
            sys.exit(2)
        config = EngineConfig.from_file(args.config)
    else:
        config = EngineConfig()

    if args.delegated:
        config.auth.mode = "delegated"

    # --- Resolve tenant identity from profile or CLI flags ---
    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            print(f"\nProfile '{args.profile}' not found. Use 'profile list' to see available profiles.")
            sys.exit(2)
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    if profile:
        tenant_id = args.tenant_id or profile.tenant_id
        client_id = args.client_id or profile.client_id
        cert_path = str(args.cert_path) if args.cert_path else profile.resolve_cert_path()
        config.sync.mailbox_id = config.sync.mailbox_id or profile.mailbox_id
        config.sync.contact_folder = config.sync.contact_folder or profile.contact_folder
    elif args.tenant_id and args.client_id:
        tenant_id = args.tenant_id
        client_id = args.client_id
        cert_path = str(args.cert_path) if args.cert_path else "./base64.txt"
    elif config.auth.certificate:
        tenant_id = config.auth.certificate.tenant_id
        client_id = config.auth.certificate.client_id
        cert_path = str(args.cert_path) if args.cert_path else config.auth.certificate.certificate_path
    elif config.auth.delegated:
        tenant_id = config.auth.delegated.tenant_id
        client_id = config.auth.delegated.client_id
        cert_path = ""
    else:
        print("\nNo tenant credentials found. Use one of:")
        print("   --profile <name>             (from saved profiles)")
        print("   --tenant-id X --client-id Y  (ad-hoc)")
        print("   --config config.json         (JSON config file)")
        sys.exit(2)

    if config.auth.mode == "certificate":
        password = config.auth.certificate.certificate_password if config.auth.certificate else ""
        config.auth.certificate = CertificateAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            certificate_path=cert_path,
            certificate_password=password,
        )
    elif not config.auth.delegated or args.tenant_id or profile:
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)

    # --- Sync / output / notification overrides ---
    if args.mailbox:
        config.sync.mailbox_id = args.mailbox
    if args.folder is not None:
        config.sync.contact_folder = args.folder
    if args.no_delete:
        config.sync.enable_delete = False
    if args.dry_run:
        config.sync.dry_run = True
    if args.report_dir:
        config.output.base_dir = str(args.report_dir)
    if args.notify_from:
        config.notification.sender = args.notify_from
    if args.notify_to:
        config.notification.recipients = list(args.notify_to)
    if args.notify_only_on_changes:
        config.notification.only_on_changes = True
    config.verbose = config.verbose or args.verbose

    if not config.sync.mailbox_id:
        print("\nNo target mailbox. Pass --mailbox or set one on the profile/config.")
        sys.exit(2)

    return config


async def run_sync(config: EngineConfig, list_skipped: bool = False) -> int:
    """Authenticate, reconcile, report. Returns the process exit code."""
    run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]
    sync_config = config.sync

    guardian = SafetyGuardian(
        mailbox_id=sync_config.mailbox_id,
        notification_sender=config.notification.sender,
        dry_run=sync_config.dry_run,
    )
    guardian.print_banner()

    print("=" * 70)
    print(f" M365 Mailbox Contact Sync v{__version__}")
    print(f" Run ID:   {run_id}")
    print(f" Mailbox:  {sync_config.mailbox_id}")
    print(f" Folder:   {sync_config.contact_folder or '(default contacts folder)'}")
    print(f" Deletion: {'enabled' if sync_config.enable_delete else 'disabled'}")
    print("=" * 70)

    try:
        token = await Authenticator(config.auth).acquire_token()
    except AuthenticationError as e:
        logger.critical(f"Authentication failed: {e}")
        return 1

    async with GraphClient(access_token=token, guardian=guardian) as client:
        try:
            reconciler = ContactReconciler(
                directory=GraphDirectorySource(client),
                mailbox=GraphMailboxStore(client, contact_folder=sync_config.contact_folder),
                config=sync_config,
            )
            summary = await reconciler.run()
        except (SyncAbortedError, FieldMapError) as e:
            logger.critical(f"Sync aborted: {e}")
            return 1

        print("\n" + "=" * 70)
        print(" SYNC COMPLETE" + (" (DRY RUN)" if summary.dry_run else ""))
        print("=" * 70)
        print(format_text(summary, list_skipped=list_skipped))
        print()

        if config.output.enabled:
            path = export_json(
                summary,
                config.output.report_dir,
                run_id,
                audit=guardian.get_audit_record(),
                graph_stats=client.get_stats(),
            )
            print(f"  JSON summary: {path}")

        if config.notification.enabled:
            await send_summary(client, config.notification, summary)

    return 0


def main(argv: Optional[list[str]] = None):
    """Entry point for `python -m m365_contact_sync`."""
    args = parse_args(argv)

    if args.command == "profile":
        if not args.profile_action:
            print("Usage: python -m m365_contact_sync profile {add|list|remove|set-default}")
            sys.exit(0)
        sys.exit(_cmd_profile(args))

    config = build_config(args)
    configure_logging(config.verbose)
    sys.exit(asyncio.run(run_sync(config, list_skipped=args.list_skipped)))


if __name__ == "__main__":
    main()
