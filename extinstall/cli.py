"""
Command line entry point.

Bootstraps an Installer from a settings file and a registrations file, then
runs one command against a directory-backed host. Results are printed as
JSON so scripts can consume them.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from extinstall.config import configure_logging, load_registrations, load_settings
from extinstall.core.models import ExtensionKind
from extinstall.host import FilesystemHost
from extinstall.installer import Installer

logger = logging.getLogger(__name__)


def build_installer(config: Optional[str], registrations: Optional[str], user: Optional[str] = None) -> Installer:
    settings = load_settings(config)
    configure_logging(settings.log_level)
    # the operator running the CLI holds every capability
    grants = {user: ["*"]} if user else {}
    host = FilesystemHost(settings.plugins_dir, settings.themes_dir, settings.state_file, grants=grants)
    installer = Installer(host, settings)
    if registrations:
        installer.register_all(load_registrations(registrations))
    return installer


def _cmd_list(installer: Installer, args: argparse.Namespace) -> int:
    rows = []
    for descriptor in installer.get_plugins() + installer.get_themes():
        rows.append({
            "kind": descriptor.kind.value,
            "slug": descriptor.slug,
            "name": descriptor.display_name,
            "installed": installer.is_installed(descriptor.slug),
            "active": installer.is_active(descriptor.slug),
            "endpoint": installer.get_endpoint_name(descriptor.kind, descriptor.slug),
        })
    print(json.dumps(rows, indent=2))
    return 0


def _cmd_status(installer: Installer, args: argparse.Namespace) -> int:
    print(json.dumps({
        "slug": args.slug,
        "installed": installer.is_installed(args.slug),
        "active": installer.is_active(args.slug),
    }, indent=2))
    return 0


def _cmd_nonce(installer: Installer, args: argparse.Namespace) -> int:
    print(installer.get_nonce(args.user))
    return 0


def _cmd_request(installer: Installer, args: argparse.Namespace) -> int:
    kind = ExtensionKind(args.kind)
    endpoint = installer.get_endpoint_name(kind, args.slug)
    payload = {
        "nonce": installer.get_nonce(args.user),
        "user": args.user,
        "slug": args.slug,
        "request": args.command,
    }
    if endpoint is None:
        response = installer.dispatcher.dispatch("", payload)
    else:
        response = installer.handle_request(endpoint, payload)
    print(json.dumps(response, indent=2))
    return 0 if response["success"] else 1


COMMANDS = {
    "list": _cmd_list,
    "status": _cmd_status,
    "nonce": _cmd_nonce,
    "install": _cmd_request,
    "activate": _cmd_request,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extension installer")
    parser.add_argument("--config", help="Settings YAML file")
    parser.add_argument("--registrations", help="Registrations YAML file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List registered extensions and their state")

    status = sub.add_parser("status", help="Show installed/active state of a slug")
    status.add_argument("slug")

    nonce = sub.add_parser("nonce", help="Issue a nonce for a user")
    nonce.add_argument("--user", default="admin")

    for name in ("install", "activate"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} a registered extension")
        cmd.add_argument("slug")
        cmd.add_argument("--kind", choices=[k.value for k in ExtensionKind], default=ExtensionKind.PLUGIN.value)
        cmd.add_argument("--user", default="admin")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        installer = build_installer(args.config, args.registrations, getattr(args, "user", None))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return COMMANDS[args.command](installer, args)


if __name__ == "__main__":
    sys.exit(main())
