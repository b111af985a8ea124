"""
Command-line interface of fqdnmgr.

This module provides the main CLI entry point with commands for:
- check: status and registrar of a domain
- purchase: buy a domain
- certify / cleanup: certbot manual DNS-01 hooks
- setInitDNSRecords / checkInitDns: initial A and MX records
- list / sweep: the local domain status store
- init / self-test: installation helpers
"""

import argparse
import asyncio
import getpass
import os
import sys
from typing import Callable, Optional

from . import __version__
from .audit_logger import AuditLogger
from .broker import BrokerClient
from .config import SystemConfig, load_system_config
from .domain_store import create_schema
from .enums import DomainStatus, LogLevel, MismatchChoice
from .exceptions import CredentialsError, FqdnToolsError, ValidationError
from .orchestrator import (
    ProvisioningOrchestrator,
    build_orchestrator,
    challenge_from_environ,
    parse_selection,
)
from .self_test import run_self_test


class TerminalPrompter:
    """Interactive prompts on the controlling terminal."""

    def offer_credentials(self, registrar: str, fqdn: str) -> Optional[tuple[str, str]]:
        print(f"No credentials stored for {registrar} (needed for {fqdn}).")
        answer = input(f"Enter {registrar} API credentials now? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            return None

        username = input("Username: ").strip()
        secret = getpass.getpass("API key: ").strip()
        if not username or not secret:
            print("Username and key are required; nothing stored.")
            return None
        return username, secret

    def choose_mismatch(self, whois_registrar: str, hint: str, fqdn: str) -> MismatchChoice:
        print(f"WHOIS reports {whois_registrar} for {fqdn}, but {hint} was given.")
        print(f"  1) Supply credentials for {whois_registrar}")
        print("  2) Give up (status unknown)")
        print(f"  3) Check with {hint} anyway")
        while True:
            answer = input("Choice [1-3]: ").strip()
            try:
                return MismatchChoice(answer)
            except ValueError:
                print("Please answer 1, 2 or 3.")

    def select_domains(self, domains: list[str]) -> list[str]:
        for number, domain in enumerate(domains, start=1):
            print(f"  {number:3d}) {domain}")
        while True:
            answer = input("Select domains (e.g. 1,3-5 or all): ")
            try:
                return [domains[i] for i in parse_selection(answer, len(domains))]
            except ValidationError as e:
                print(e.message)


def _log_level(name: str) -> LogLevel:
    name = name.lower()
    if name == "warning":
        name = "warn"
    try:
        return LogLevel(name)
    except ValueError:
        return LogLevel.INFO


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    """
    Build the audit logger.

    Every entry goes to the log file; entries are echoed to stderr only in
    verbose mode. Warnings collected while loading domain.conf are logged
    first.
    """
    level = LogLevel.DEBUG if verbose else _log_level(config.logging.level)
    logger = AuditLogger(
        output_format=config.logging.output_format,
        log_file=config.paths.log_file,
        level=level,
        echo=verbose,
    )
    for warning in config.domain.warnings:
        logger.warn("SystemConfig", warning, {"file": str(config.paths.domain_conf)})
    return logger


def _reporter(args: argparse.Namespace) -> Callable[[str], None]:
    def report(line: str) -> None:
        if args.verbose:
            print(line, file=sys.stderr)
    return report


def _orchestrator(args: argparse.Namespace, config: SystemConfig) -> ProvisioningOrchestrator:
    interactive = args.verbose and not args.non_interactive
    creds_db = config.paths.creds_db
    return build_orchestrator(
        config,
        credentials=BrokerClient(config.paths.broker_socket),
        prompter=TerminalPrompter() if interactive else None,
        logger=create_logger(config, args.verbose),
        reporter=_reporter(args),
        store_credentials=interactive and creds_db.exists() and os.access(creds_db, os.W_OK),
    )


def cmd_check(args: argparse.Namespace, config: SystemConfig) -> int:
    orchestrator = _orchestrator(args, config)
    outcome = asyncio.run(orchestrator.check(args.fqdn, args.registrar))
    print(outcome.render())
    return 0


def cmd_purchase(args: argparse.Namespace, config: SystemConfig) -> int:
    orchestrator = _orchestrator(args, config)
    result = asyncio.run(orchestrator.purchase(args.fqdn, args.registrar))
    print(f"purchase={result.name.lower()}")
    return result.value


def cmd_certify(args: argparse.Namespace, config: SystemConfig) -> int:
    challenge = challenge_from_environ(os.environ)
    orchestrator = _orchestrator(args, config)
    asyncio.run(orchestrator.certify(args.registrar, challenge, args.timeout))
    return 0


def cmd_cleanup(args: argparse.Namespace, config: SystemConfig) -> int:
    challenge = challenge_from_environ(os.environ)
    orchestrator = _orchestrator(args, config)
    asyncio.run(orchestrator.cleanup(args.registrar, challenge))
    return 0


def cmd_set_init_dns(args: argparse.Namespace, config: SystemConfig) -> int:
    domains = [d for value in (args.domains or []) for d in value.split(",") if d.strip()]
    orchestrator = _orchestrator(args, config)
    report = asyncio.run(orchestrator.set_init_dns_records(
        domains=domains or None,
        registrar_hint=args.registrar,
        override=args.override,
        sync=args.sync,
        timeout=args.timeout,
    ))

    for outcome in report.outcomes:
        line = f"{outcome.domain} {outcome.status.value}"
        if outcome.registrar:
            line += f" registrar={outcome.registrar}"
        if outcome.detail:
            line += f" ({outcome.detail})"
        print(line)

    print(f"\nSummary: {report.success_count}/{len(report.outcomes)} domain(s) ok")
    return 0 if report.success else 1


def cmd_check_init_dns(args: argparse.Namespace, config: SystemConfig) -> int:
    orchestrator = _orchestrator(args, config)
    if asyncio.run(orchestrator.check_init_dns(args.fqdn)):
        print(f"{args.fqdn}: propagated")
        return 0
    print(f"{args.fqdn}: not propagated")
    return 1


def cmd_list(args: argparse.Namespace, config: SystemConfig) -> int:
    orchestrator = _orchestrator(args, config)
    records = asyncio.run(orchestrator.list_domains(args.registrar, args.mode))

    for record in records:
        if args.registrar and args.mode != "remote":
            print(f"{record.domain} {record.status.value}")
        else:
            print(f"{record.domain}|{record.status.value}|{record.registrar or ''}")

    if args.verbose:
        owned = sum(1 for r in records if r.status == DomainStatus.OWNED)
        print(f"\n{len(records)} domain(s), {owned} owned", file=sys.stderr)
    return 0


def cmd_sweep(args: argparse.Namespace, config: SystemConfig) -> int:
    deleted = _orchestrator(args, config).sweep()
    print(f"deleted={deleted}")
    return 0


def cmd_init(args: argparse.Namespace, config: SystemConfig) -> int:
    create_schema(config.paths.domains_db)
    print(f"Domains database ready: {config.paths.domains_db}")
    return 0


def cmd_self_test(args: argparse.Namespace, config: SystemConfig) -> int:
    result = run_self_test(config, print_output=True, logger=create_logger(config, args.verbose))
    return 0 if result.success else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fqdnmgr",
        description="Domain registration, DNS setup and certificate hook manager",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print progress and log entries to stderr; enables prompts",
    )
    parser.add_argument(
        "--non-interactive", "-ni",
        dest="non_interactive",
        action="store_true",
        help="Never prompt, even in verbose mode",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'check' command
    check_parser = subparsers.add_parser("check", help="Show status and registrar of a domain")
    check_parser.add_argument("fqdn", help="Domain to check")
    check_parser.add_argument("registrar", nargs="?", help="Registrar hint")
    check_parser.set_defaults(func=cmd_check)

    # 'purchase' command
    purchase_parser = subparsers.add_parser("purchase", help="Buy a domain")
    purchase_parser.add_argument("fqdn", help="Domain to buy")
    purchase_parser.add_argument("registrar", help="Registrar to buy at")
    purchase_parser.set_defaults(func=cmd_purchase)

    # certbot hooks
    certify_parser = subparsers.add_parser(
        "certify",
        help="certbot --manual-auth-hook (reads CERTBOT_DOMAIN, CERTBOT_VALIDATION)",
    )
    certify_parser.add_argument("registrar", help="Registrar hosting the zone")
    certify_parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Propagation timeout in seconds (default: 600)",
    )
    certify_parser.set_defaults(func=cmd_certify)

    cleanup_parser = subparsers.add_parser("cleanup", help="certbot --manual-cleanup-hook")
    cleanup_parser.add_argument("registrar", help="Registrar hosting the zone")
    cleanup_parser.set_defaults(func=cmd_cleanup)

    # 'setInitDNSRecords' command
    init_dns_parser = subparsers.add_parser(
        "setInitDNSRecords",
        help="Create the initial A @, A * and MX @ records",
    )
    init_dns_parser.add_argument(
        "-d", "--domain",
        dest="domains",
        action="append",
        help="Domain (repeatable or comma-separated)",
    )
    init_dns_parser.add_argument(
        "-r", "--registrar",
        help="Registrar; alone it processes every domain the registrar lists",
    )
    init_dns_parser.add_argument(
        "-o", "--override",
        action="store_true",
        help="Push records even if they are already visible",
    )
    init_dns_parser.add_argument(
        "--sync",
        action="store_true",
        help="Wait for propagation, then raise the TTL to production",
    )
    init_dns_parser.add_argument(
        "--timeout",
        type=int,
        default=600,
        help="Propagation timeout per domain in seconds (default: 600)",
    )
    init_dns_parser.set_defaults(func=cmd_set_init_dns)

    check_init_parser = subparsers.add_parser(
        "checkInitDns",
        help="Check once whether the initial records are visible",
    )
    check_init_parser.add_argument("fqdn", help="Domain to check")
    check_init_parser.set_defaults(func=cmd_check_init_dns)

    # 'list' command
    list_parser = subparsers.add_parser("list", help="List known domains")
    list_parser.add_argument("registrar", nargs="?", help="Only domains of this registrar")
    list_parser.add_argument(
        "mode",
        nargs="?",
        choices=["local", "remote"],
        default="local",
        help="local: domain store (default); remote: sync from the registrar",
    )
    list_parser.set_defaults(func=cmd_list)

    sweep_parser = subparsers.add_parser("sweep", help="Delete non-owned rows (periodic)")
    sweep_parser.set_defaults(func=cmd_sweep)

    init_parser = subparsers.add_parser("init", help="Create the domains database")
    init_parser.set_defaults(func=cmd_init)

    self_test_parser = subparsers.add_parser("self-test", help="Run preflight checks")
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def report_error(error: FqdnToolsError) -> None:
    """Print a user-facing error with its remediation."""
    if isinstance(error, CredentialsError):
        print(error.wire_line, file=sys.stderr)
    print(f"Error: {error.message}", file=sys.stderr)
    if error.remediation:
        print(error.remediation, file=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = load_system_config()
        config.logging.verbose = args.verbose
        return args.func(args, config)
    except FqdnToolsError as e:
        report_error(e)
        return e.exit_code
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
