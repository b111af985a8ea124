"""
Data models for the fqdntools system.

Plain dataclasses exchanged between the stores, the resolution engine,
the propagation pollers and the orchestrator.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import (
    CacheKind,
    DomainStatus,
    InitStatus,
    PropagationState,
    ResolutionAction,
    UnknownReason,
)
from .exceptions import FqdnToolsError


@dataclass
class CacheEntry:
    """One row of the expiring cache file."""

    kind: str
    key: str
    value: str
    written_at: int
    extra: Optional[str] = None

    @property
    def cache_kind(self) -> Optional[CacheKind]:
        try:
            return CacheKind(self.kind)
        except ValueError:
            return None

    def to_line(self) -> str:
        parts = [self.kind, self.key, self.value, str(self.written_at)]
        if self.extra:
            parts.append(self.extra)
        return " ".join(parts)


@dataclass
class DomainRecord:
    """A row of the domain status store."""

    domain: str
    status: DomainStatus
    registrar: Optional[str] = None
    dns_init: Optional[int] = None
    cert_date: Optional[str] = None


@dataclass
class Credential:
    """Registrar API credentials. Never logged."""

    provider: str
    username: str
    secret: str

    def __repr__(self) -> str:
        return f"Credential(provider={self.provider!r}, username=***, secret=***)"

    @property
    def complete(self) -> bool:
        return bool(self.username) and bool(self.secret)


@dataclass(frozen=True)
class RecordExpectation:
    """A DNS record that must become visible."""

    record_type: str
    host: str
    query_name: str
    expected: str

    def change_key(self, domain: str) -> str:
        """Key of the matching dns_change cache entry."""
        return f"{domain}:{self.record_type}:{self.host}:{self.expected}"

    def matches(self, answers: list[str]) -> bool:
        """True when one answer carries the expected value."""
        expected = self.expected.rstrip(".").lower()
        for answer in answers:
            # MX answers read "<preference> <exchange>."
            value = answer.split()[-1] if self.record_type == "MX" and answer.strip() else answer
            if value.rstrip(".").lower() == expected:
                return True
        return False


def acme_challenge_records(domain: str, validation: str) -> list[RecordExpectation]:
    """Records expected after an ACME DNS-01 challenge was published."""
    return [
        RecordExpectation(
            record_type="TXT",
            host="_acme-challenge",
            query_name=f"_acme-challenge.{domain}",
            expected=validation,
        )
    ]


def init_records(domain: str, wan_ip: str) -> list[RecordExpectation]:
    """Records expected after the initial DNS setup of a fresh domain."""
    return [
        RecordExpectation("A", "@", domain, wan_ip),
        RecordExpectation("A", "*", f"wildcard-test.{domain}", wan_ip),
        RecordExpectation("MX", "@", domain, f"mail.{domain}"),
    ]


@dataclass
class PropagationTarget:
    """In-memory description of one domain being waited for."""

    domain: str
    records_expected: list[RecordExpectation]
    nameserver: Optional[str]
    first_check_timestamp: int
    average_propagation_seconds: int
    registrar: Optional[str] = None


@dataclass
class PropagationResult:
    """Outcome of waiting for one domain."""

    domain: str
    state: PropagationState
    elapsed_seconds: int = 0
    nameserver: Optional[str] = None
    checks: int = 0

    @property
    def propagated(self) -> bool:
        return self.state == PropagationState.PROPAGATED


@dataclass
class Resolution:
    """Outcome of the registrar resolution decision procedure."""

    action: ResolutionAction
    registrar: str = ""
    whois_registrar: str = ""
    hint: str = ""
    reason: Optional[UnknownReason] = None
    warning: Optional[FqdnToolsError] = None

    @classmethod
    def use(cls, registrar: str) -> "Resolution":
        return cls(ResolutionAction.USE_REGISTRAR, registrar=registrar)

    @classmethod
    def prompt_for_credentials(cls, registrar: str) -> "Resolution":
        return cls(ResolutionAction.PROMPT_FOR_CREDENTIALS, registrar=registrar)

    @classmethod
    def prompt_mismatch(cls, whois_registrar: str, hint: str) -> "Resolution":
        return cls(
            ResolutionAction.PROMPT_MISMATCH,
            whois_registrar=whois_registrar,
            hint=hint,
        )

    @classmethod
    def unknown(
        cls,
        reason: UnknownReason,
        warning: Optional[FqdnToolsError] = None,
    ) -> "Resolution":
        return cls(ResolutionAction.UNKNOWN, reason=reason, warning=warning)


@dataclass
class WhoisInfo:
    """Registrar and availability as reported by WHOIS or RDAP."""

    domain: str
    available: bool
    registrar: str = ""
    source: str = "whois"


@dataclass
class CheckOutcome:
    """Result of the check command."""

    domain: str
    status: DomainStatus
    registrar: str = ""

    def render(self) -> str:
        registrar = "" if self.status == DomainStatus.UNKNOWN else self.registrar
        return f"status={self.status.value} registrar={registrar or ''}"


@dataclass
class AcmeChallenge:
    """The certbot manual hook contract."""

    domain: str
    validation: str
    all_domains: list[str] = field(default_factory=list)
    remaining_challenges: Optional[int] = None

    @property
    def progress(self) -> Optional[tuple[int, int]]:
        """(current, total) challenge numbers when certbot provided them."""
        if not self.all_domains or self.remaining_challenges is None:
            return None
        total = len(self.all_domains)
        return total - self.remaining_challenges, total


@dataclass
class InitOutcome:
    """Per-domain result of initial DNS setup."""

    domain: str
    status: InitStatus
    registrar: str = ""
    detail: str = ""


@dataclass
class InitReport:
    """Summary of a setInitDNSRecords run."""

    outcomes: list[InitOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status.is_success)

    @property
    def failed(self) -> list[InitOutcome]:
        return [o for o in self.outcomes if not o.status.is_success]

    @property
    def success(self) -> bool:
        return bool(self.outcomes) and not self.failed
