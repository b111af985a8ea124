"""
Command-line interfaces of the credential store and its broker.

- fqdncredmgr: list, add, update and delete registrar API credentials
- fqdncredmgrd: serve credentials to unprivileged tools over a Unix socket
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .audit_logger import AuditLogger
from .broker import CredentialBroker
from .config import load_system_config
from .credential_store import CredentialStore, create_schema
from .enums import LogLevel
from .exceptions import FqdnToolsError
from .providers import ProviderRegistry
from .registrar import normalize_registrar


def _store(args: argparse.Namespace) -> CredentialStore:
    if args.db:
        return CredentialStore(Path(args.db))
    return CredentialStore(load_system_config().paths.creds_db)


def _known_provider(name: str) -> str:
    """Canonical registrar name, provided a plugin for it is installed."""
    provider = normalize_registrar(name)
    ProviderRegistry().require(provider)
    return provider


def _read_key(args: argparse.Namespace, provider: str) -> str:
    if args.key:
        return args.key
    return getpass.getpass(f"API key for {provider}: ").strip()


def cmd_list(args: argparse.Namespace) -> int:
    rows = _store(args).list()
    if not rows:
        print("No credentials stored.")
        return 0
    for provider, masked in rows:
        print(f"{provider}\t{masked}")
    return 0


def cmd_add(args: argparse.Namespace) -> int:
    provider = _known_provider(args.provider)
    _store(args).add(provider, args.username, _read_key(args, provider))
    print(f"Credentials for {provider} stored.")
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    provider = _known_provider(args.provider)
    _store(args).update(provider, args.username, _read_key(args, provider))
    print(f"Credentials for {provider} updated.")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    provider = normalize_registrar(args.provider)
    _store(args).delete(provider)
    print(f"Credentials for {provider} deleted.")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    store = _store(args)
    create_schema(store.db_path)
    print(f"Credentials database ready: {store.db_path}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the fqdncredmgr argument parser."""
    parser = argparse.ArgumentParser(
        prog="fqdncredmgr",
        description="Manage registrar API credentials",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", help="Credentials database (default: /etc/fqdntools/creds.db)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="List providers with masked usernames")
    list_parser.set_defaults(func=cmd_list)

    for name, func, help_text in (
        ("add", cmd_add, "Store credentials (replaces existing ones)"),
        ("update", cmd_update, "Replace existing credentials"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("provider", help="Registrar name")
        sub.add_argument("username", help="API username")
        sub.add_argument("-p", "--key", help="API key (prompted when omitted)")
        sub.set_defaults(func=func)

    delete_parser = subparsers.add_parser("delete", help="Remove stored credentials")
    delete_parser.add_argument("provider", help="Registrar name")
    delete_parser.set_defaults(func=cmd_delete)

    init_parser = subparsers.add_parser("init", help="Create the credentials database")
    init_parser.set_defaults(func=cmd_init)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point of fqdncredmgr."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except FqdnToolsError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        if e.remediation:
            print(e.remediation, file=sys.stderr)
        return e.exit_code


def create_daemon_parser() -> argparse.ArgumentParser:
    """Create the fqdncredmgrd argument parser."""
    parser = argparse.ArgumentParser(
        prog="fqdncredmgrd",
        description="Serve registrar credentials over a local Unix socket",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", help="Credentials database")
    parser.add_argument("--socket", help="Socket path (default: /run/fqdncredmgr.sock)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests to stderr")
    return parser


def daemon_main(argv: Optional[list[str]] = None) -> int:
    """Entry point of fqdncredmgrd."""
    args = create_daemon_parser().parse_args(argv)

    try:
        config = load_system_config()
    except FqdnToolsError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return e.exit_code

    logger = AuditLogger(
        output_format=config.logging.output_format,
        level=LogLevel.DEBUG if args.verbose else LogLevel.INFO,
        echo=args.verbose,
    )
    broker = CredentialBroker(
        CredentialStore(Path(args.db) if args.db else config.paths.creds_db),
        socket_path=Path(args.socket) if args.socket else config.paths.broker_socket,
        logger=logger,
    )

    try:
        asyncio.run(broker.serve_forever())
    except KeyboardInterrupt:
        return 0
    except OSError as e:
        logger.log_error("fqdncredmgrd", "Broker stopped", error=e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
