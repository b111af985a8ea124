"""
fqdntools - domain registration lifecycle tooling.

This package checks domain status and registrar, buys domains, publishes
ACME DNS-01 challenges and initial DNS records through registrar plugins,
and waits for DNS propagation with an adaptive, self-calibrating poller.
"""

__version__ = "0.1.0"
__author__ = "fqdntools maintainers"

from fqdntools.exceptions import (
    FqdnToolsError,
    ValidationError,
    ConfigurationMissing,
    StoreNotInitialized,
    WanIpUnknown,
    InvalidStatus,
    NotFound,
    AmbiguousRegistrar,
    PropagationTimeout,
    ProviderError,
    ProviderAPIError,
    ProviderNotFound,
    CapabilityNotImplemented,
    CredentialsError,
    BrokerUnreachable,
    CredentialsUnavailable,
    SocketNotFound,
    NoCredentials,
    DatabaseNotFound,
    GenericCredsError,
    InvalidResponse,
    IncompleteCredentials,
)
from fqdntools.enums import (
    CacheKind,
    DomainStatus,
    ResolutionAction,
    UnknownReason,
    MismatchChoice,
    PropagationState,
    ProviderCapability,
    PurchaseResult,
    InitStatus,
    LogLevel,
)
from fqdntools.models import (
    CacheEntry,
    DomainRecord,
    Credential,
    RecordExpectation,
    PropagationTarget,
    PropagationResult,
    Resolution,
    WhoisInfo,
    CheckOutcome,
    AcmeChallenge,
    InitOutcome,
    InitReport,
    acme_challenge_records,
    init_records,
)
from fqdntools.config import (
    PathsConfig,
    PropagationConfig,
    DomainConfig,
    LoggingConfig,
    SystemConfig,
    load_domain_config,
    load_system_config,
)
from fqdntools.audit_logger import AuditLogger, LogEntry, NullLogger
from fqdntools.cache import ExpiringCache
from fqdntools.domain_store import DomainStore
from fqdntools.credential_store import CredentialStore, mask_username
from fqdntools.broker import BrokerClient, CredentialBroker
from fqdntools.domain_validator import DomainValidator, DomainValidationResult
from fqdntools.whois_client import WHOISClient, WHOISResponse
from fqdntools.rdap_client import RDAPClient, RDAPResponse
from fqdntools.registrar import RegistrarDetector, normalize_registrar
from fqdntools.decision_engine import RegistrarDecisionEngine
from fqdntools.dns_client import DnsProbe
from fqdntools.propagation import (
    PropagationTimer,
    PropagationPoller,
    ParallelPropagationPoller,
)
from fqdntools.providers import (
    RegistrarProvider,
    HttpRegistrarProvider,
    ProviderRegistry,
)
from fqdntools.orchestrator import (
    ProvisioningOrchestrator,
    build_orchestrator,
    challenge_from_environ,
    parse_selection,
)
from fqdntools.self_test import SelfTest, SelfTestResult, run_self_test

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "FqdnToolsError",
    "ValidationError",
    "ConfigurationMissing",
    "StoreNotInitialized",
    "WanIpUnknown",
    "InvalidStatus",
    "NotFound",
    "AmbiguousRegistrar",
    "PropagationTimeout",
    "ProviderError",
    "ProviderAPIError",
    "ProviderNotFound",
    "CapabilityNotImplemented",
    "CredentialsError",
    "BrokerUnreachable",
    "CredentialsUnavailable",
    "SocketNotFound",
    "NoCredentials",
    "DatabaseNotFound",
    "GenericCredsError",
    "InvalidResponse",
    "IncompleteCredentials",
    # Enums
    "CacheKind",
    "DomainStatus",
    "ResolutionAction",
    "UnknownReason",
    "MismatchChoice",
    "PropagationState",
    "ProviderCapability",
    "PurchaseResult",
    "InitStatus",
    "LogLevel",
    # Models
    "CacheEntry",
    "DomainRecord",
    "Credential",
    "RecordExpectation",
    "PropagationTarget",
    "PropagationResult",
    "Resolution",
    "WhoisInfo",
    "CheckOutcome",
    "AcmeChallenge",
    "InitOutcome",
    "InitReport",
    "acme_challenge_records",
    "init_records",
    # Config
    "PathsConfig",
    "PropagationConfig",
    "DomainConfig",
    "LoggingConfig",
    "SystemConfig",
    "load_domain_config",
    "load_system_config",
    # Components
    "AuditLogger",
    "LogEntry",
    "NullLogger",
    "ExpiringCache",
    "DomainStore",
    "CredentialStore",
    "mask_username",
    "BrokerClient",
    "CredentialBroker",
    "DomainValidator",
    "DomainValidationResult",
    "WHOISClient",
    "WHOISResponse",
    "RDAPClient",
    "RDAPResponse",
    "RegistrarDetector",
    "normalize_registrar",
    "RegistrarDecisionEngine",
    "DnsProbe",
    "PropagationTimer",
    "PropagationPoller",
    "ParallelPropagationPoller",
    "RegistrarProvider",
    "HttpRegistrarProvider",
    "ProviderRegistry",
    "ProvisioningOrchestrator",
    "build_orchestrator",
    "challenge_from_environ",
    "parse_selection",
    "SelfTest",
    "SelfTestResult",
    "run_self_test",
]
