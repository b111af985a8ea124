"""
Enumeration types for the fqdntools system.

These enums provide type-safe constants for cache kinds, domain statuses,
resolution actions and propagation states used throughout the system.
"""

from enum import Enum
from typing import Optional


class CacheKind(Enum):
    """Kinds of entries held by the expiring cache."""

    WHOIS_REGISTRAR = "whois_registrar"
    WHOIS_AVAILABLE = "whois_available"
    NS = "ns"
    DNS_CHANGE = "dns_change"
    AP = "ap"

    @property
    def ttl(self) -> Optional[int]:
        """Time-to-live in seconds, None for entries that never expire."""
        return CACHE_TTLS[self]


CACHE_TTLS: dict[CacheKind, Optional[int]] = {
    CacheKind.WHOIS_REGISTRAR: 3600,
    CacheKind.WHOIS_AVAILABLE: 3600,
    CacheKind.NS: 7200,
    CacheKind.DNS_CHANGE: 172800,
    CacheKind.AP: None,
}

# Applied to kinds read from disk that this version does not know about
DEFAULT_CACHE_TTL = 3600


class DomainStatus(Enum):
    """Status of a domain as seen by the status store and check command."""

    FREE = "free"
    OWNED = "owned"
    TAKEN = "taken"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"

    @property
    def is_final(self) -> bool:
        """Only final statuses are ever persisted."""
        return self in FINAL_STATUSES


FINAL_STATUSES = frozenset({DomainStatus.FREE, DomainStatus.OWNED, DomainStatus.TAKEN})


class ResolutionAction(Enum):
    """Outcome kinds of the registrar resolution decision procedure."""

    USE_REGISTRAR = "use_registrar"
    PROMPT_FOR_CREDENTIALS = "prompt_for_credentials"
    PROMPT_MISMATCH = "prompt_mismatch"
    UNKNOWN = "unknown"


class UnknownReason(Enum):
    """Why a resolution ended as unknown."""

    NO_REGISTRAR = "no_registrar"
    NO_CREDENTIALS = "no_credentials"
    AMBIGUOUS_REGISTRAR = "ambiguous_registrar"
    USER_DECLINED = "user_declined"


class MismatchChoice(Enum):
    """Interactive answers when WHOIS and the hint disagree."""

    SUPPLY_WHOIS = "1"
    GIVE_UP = "2"
    CHECK_HINT = "3"


class PropagationState(Enum):
    """Per-domain state of a propagation wait."""

    PENDING = "pending"
    PROPAGATED = "propagated"
    TIMEOUT = "timeout"


class ProviderCapability(Enum):
    """Operations a registrar provider plugin may implement."""

    PURCHASE = "purchase"
    CERTIFY = "certify"
    CLEANUP = "cleanup"
    LIST_OWNED_DOMAINS = "list_owned_domains"
    CHECK_DOMAIN_STATUS = "check_domain_status"
    SET_INIT_DNS_RECORDS = "set_init_dns_records"


class PurchaseResult(Enum):
    """Provider purchase outcome, values double as process exit codes."""

    OK = 0
    INSUFFICIENT_FUNDS = 1
    FAILED = 2


class InitStatus(Enum):
    """Per-domain outcome of initial DNS record setup."""

    SUCCESS = "success"
    ALREADY_SET = "already-set"
    PUSHED = "pushed"
    TIMEOUT = "timeout"
    NO_REGISTRAR = "no-registrar"
    NO_CREDENTIALS = "no-credentials"
    PROVIDER_ERROR = "provider-error"
    API_ERROR = "api-error"

    @property
    def is_success(self) -> bool:
        return self in (InitStatus.SUCCESS, InitStatus.ALREADY_SET, InitStatus.PUSHED)


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


LOG_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


class DomainValidationErrorCode(Enum):
    """Error codes for FQDN validation failures."""

    EMPTY_INPUT = "empty_input"
    TOO_LONG = "too_long"
    NOT_QUALIFIED = "not_qualified"
    INVALID_LABEL = "invalid_label"
    INVALID_TLD = "invalid_tld"
    IDNA_ERROR = "idna_error"


class WHOISStatus(Enum):
    """WHOIS query result status."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class WHOISErrorCode(Enum):
    """Error codes for WHOIS client operations."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    NO_SERVER = "no_server"


class RDAPStatus(Enum):
    """RDAP query result status."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"
