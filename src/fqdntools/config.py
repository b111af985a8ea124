"""
Configuration dataclasses and loaders for the fqdntools system.

This module defines the configuration structures used throughout the
system (file locations, propagation timing, per-TLD registrar priority,
logging) and the loaders that read the shell-style ``KEY=VALUE`` files
shared with the rest of the platform (``domain.conf`` and
``/etc/environment``).
"""

import ipaddress
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

from .exceptions import ConfigurationMissing, WanIpUnknown


DEFAULT_AVG_PROPAGATION = 120
MIN_CHECK_INTERVAL = 2
DEFAULT_PROPAGATION_BUFFER = 10
DEFAULT_PROPAGATION_TIMEOUT = 600
DEFAULT_CLEANUP_DAYS = 7
PRODUCTION_TTL = 7200
PUBLIC_RESOLVER = "8.8.8.8"

_CLEANUP_DAYS_PATTERN = re.compile(r"^\s*(\d+)\s*[dD]?\s*$")


@dataclass
class PathsConfig:
    """Filesystem locations used by the tools."""

    domains_db: Path = Path("/etc/fqdntools/domains.db")
    creds_db: Path = Path("/etc/fqdntools/creds.db")
    cache_file: Path = Path("/tmp/a2tools.cache")
    domain_conf: Path = Path("/etc/fqdnmgr/domain.conf")
    environment_file: Path = Path("/etc/environment")
    broker_socket: Path = Path("/run/fqdncredmgr.sock")
    log_file: Path = Path("/var/log/fqdnmgr/fqdnmgr.log")
    sweep_state_file: Path = Path("/var/lib/fqdnmgr/last_domain_cleanup")
    letsencrypt_live_dir: Path = Path("/etc/letsencrypt/live")


@dataclass
class PropagationConfig:
    """Timing parameters of the propagation pollers."""

    default_average_seconds: int = DEFAULT_AVG_PROPAGATION
    min_interval_seconds: int = MIN_CHECK_INTERVAL
    buffer_seconds: int = DEFAULT_PROPAGATION_BUFFER
    timeout_seconds: int = DEFAULT_PROPAGATION_TIMEOUT
    parallel_tick_seconds: float = 1.0
    public_resolver: str = PUBLIC_RESOLVER
    production_ttl: int = PRODUCTION_TTL
    dns_timeout_seconds: float = 5.0


@dataclass
class DomainConfig:
    """Values read from domain.conf."""

    tld_priority: dict[str, list[str]] = field(default_factory=dict)
    average_propagation: dict[str, int] = field(default_factory=dict)
    propagation_buffer: int = DEFAULT_PROPAGATION_BUFFER
    cleanup_days: int = DEFAULT_CLEANUP_DAYS
    warnings: list[str] = field(default_factory=list, compare=False)

    def priority_for(self, tld: str) -> list[str]:
        """Ordered registrar preference for a TLD (without leading dot)."""
        return list(self.tld_priority.get(tld.lower().lstrip("."), []))

    def average_for(self, registrar: str) -> Optional[int]:
        """Configured average propagation time for a registrar, if any."""
        if not registrar:
            return None
        return self.average_propagation.get(registrar_config_key(registrar))

    @property
    def cleanup_interval_seconds(self) -> int:
        return self.cleanup_days * 86400


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'
    verbose: bool = False


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    propagation: PropagationConfig = field(default_factory=PropagationConfig)
    domain: DomainConfig = field(default_factory=DomainConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    wan_ip: Optional[str] = None

    def require_wan_ip(self) -> str:
        """
        Return the configured WAN address.

        Raises:
            WanIpUnknown: If no address was configured
        """
        if not self.wan_ip:
            raise WanIpUnknown(str(self.paths.environment_file))
        return self.wan_ip


def registrar_config_key(registrar: str) -> str:
    """
    Map a canonical registrar name to its domain.conf key suffix.

    ``namecheap.com`` becomes ``namecheap_com``.
    """
    return re.sub(r"[^A-Za-z0-9_]", "_", registrar.strip().lower())


def parse_cleanup_days(raw: Optional[str], warnings: Optional[list[str]] = None) -> int:
    """
    Parse a DOMAIN_CLEANUP_DAYS value such as ``7D``.

    An unparsable value falls back to the default.

    Args:
        raw: Configured value, None when unset
        warnings: Receives a message when the value is rejected
    """
    if raw is None or not raw.strip():
        return DEFAULT_CLEANUP_DAYS
    match = _CLEANUP_DAYS_PATTERN.match(raw)
    if not match:
        if warnings is not None:
            warnings.append(
                f"Invalid DOMAIN_CLEANUP_DAYS value {raw!r}, using {DEFAULT_CLEANUP_DAYS}D"
            )
        return DEFAULT_CLEANUP_DAYS
    return int(match.group(1))


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationMissing(
            code="invalid_integer",
            message=f"{key} must be an integer, got {raw!r}",
            details={"key": key, "value": raw},
        )


def parse_domain_config(values: Mapping[str, Optional[str]]) -> DomainConfig:
    """
    Build a DomainConfig from already parsed ``KEY=VALUE`` pairs.

    Args:
        values: Mapping as returned by ``dotenv_values``

    Returns:
        DomainConfig with priority lists and propagation averages
    """
    config = DomainConfig()

    for key, raw in values.items():
        if raw is None:
            continue
        if key.startswith("TLD_PRIORITY_"):
            tld = key[len("TLD_PRIORITY_"):].lower()
            registrars = [item.strip().lower() for item in raw.split(",")]
            config.tld_priority[tld] = [r for r in registrars if r]
        elif key.startswith("AVG_PROPAGATION_TIME_"):
            suffix = key[len("AVG_PROPAGATION_TIME_"):].lower()
            config.average_propagation[suffix] = _parse_int(key, raw)
        elif key == "DNS_PROPAGATION_BUFFER":
            config.propagation_buffer = _parse_int(key, raw)
        elif key == "DOMAIN_CLEANUP_DAYS":
            config.cleanup_days = parse_cleanup_days(raw, config.warnings)

    return config


def load_domain_config(path: Path) -> DomainConfig:
    """
    Load domain.conf. A missing file yields the defaults.

    Args:
        path: Location of domain.conf

    Returns:
        Parsed DomainConfig
    """
    if not path.exists():
        return DomainConfig()
    return parse_domain_config(dotenv_values(path))


def load_wan_ip(
    environ: Mapping[str, str],
    environment_file: Path,
) -> Optional[str]:
    """
    Look up WAN_IP in the process environment, then in /etc/environment.

    Returns:
        The address, or None when it is not configured anywhere

    Raises:
        ConfigurationMissing: If a configured value is not an IP address
    """
    value = environ.get("WAN_IP")
    if not value and environment_file.exists():
        value = dotenv_values(environment_file).get("WAN_IP")
    if not value:
        return None

    value = value.strip()
    try:
        ipaddress.ip_address(value)
    except ValueError:
        raise ConfigurationMissing(
            code="invalid_wan_ip",
            message=f"WAN_IP is not a valid address: {value!r}",
            details={"value": value},
            remediation="Please run setup first.",
        )
    return value


# Environment variables overriding file locations
PATH_OVERRIDES = {
    "FQDNTOOLS_DOMAINS_DB": "domains_db",
    "FQDNTOOLS_CREDS_DB": "creds_db",
    "FQDNTOOLS_CACHE_FILE": "cache_file",
    "FQDNTOOLS_DOMAIN_CONF": "domain_conf",
    "FQDNTOOLS_ENVIRONMENT_FILE": "environment_file",
    "FQDNTOOLS_SOCKET": "broker_socket",
    "FQDNTOOLS_LOG_FILE": "log_file",
    "FQDNTOOLS_SWEEP_STATE": "sweep_state_file",
    "FQDNTOOLS_LETSENCRYPT_LIVE": "letsencrypt_live_dir",
}


def load_system_config(environ: Optional[Mapping[str, str]] = None) -> SystemConfig:
    """
    Assemble the full configuration from defaults, overrides and files.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        SystemConfig ready for the orchestrator
    """
    environ = os.environ if environ is None else environ

    paths = PathsConfig()
    for variable, attribute in PATH_OVERRIDES.items():
        if environ.get(variable):
            setattr(paths, attribute, Path(environ[variable]))

    domain = load_domain_config(paths.domain_conf)
    propagation = PropagationConfig(buffer_seconds=domain.propagation_buffer)

    logging_config = LoggingConfig(
        level=environ.get("FQDNTOOLS_LOG_LEVEL", "info").lower(),
        output_format=environ.get("FQDNTOOLS_LOG_FORMAT", "text").lower(),
    )

    return SystemConfig(
        paths=paths,
        propagation=propagation,
        domain=domain,
        logging=logging_config,
        wan_ip=load_wan_ip(environ, paths.environment_file),
    )
