"""
Exception classes for the fqdntools system.

All exceptions inherit from FqdnToolsError and provide structured error
information with codes, messages, optional details and a remediation hint
that command line front ends print next to the message.
"""

from typing import Optional


class FqdnToolsError(Exception):
    """Base exception for all fqdntools errors."""

    exit_code = 1

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
        remediation: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        self.remediation = remediation
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        data = {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }
        if self.remediation:
            data["remediation"] = self.remediation
        return data


class ValidationError(FqdnToolsError):
    """Raised when a domain name fails validation."""

    exit_code = 2


class ConfigurationMissing(FqdnToolsError):
    """Raised when a required file, setting or environment value is absent."""

    pass


class StoreNotInitialized(ConfigurationMissing):
    """Raised when a sqlite store is used before the installer created it."""

    def __init__(self, path: str, store: str = "domains") -> None:
        super().__init__(
            code="store_not_initialized",
            message=f"The {store} database {path} does not exist",
            details={"path": path, "store": store},
            remediation="Run the installer to create the database.",
        )


class WanIpUnknown(ConfigurationMissing):
    """Raised when the public address of this host has not been configured."""

    def __init__(self, source: str) -> None:
        super().__init__(
            code="wan_ip_unknown",
            message=f"WAN_IP not set in {source}",
            details={"source": source},
            remediation="Please run setup first.",
        )


class InvalidStatus(FqdnToolsError):
    """Raised when a status string is not a known domain status."""

    pass


class NotFound(FqdnToolsError):
    """Raised when an update or delete targets a missing credential row."""

    pass


class AmbiguousRegistrar(FqdnToolsError):
    """WHOIS and the hint disagree and neither side can be confirmed."""

    pass


class PropagationTimeout(FqdnToolsError):
    """Raised by hook commands when records never became visible in time."""

    pass


class ProviderError(FqdnToolsError):
    """Base class for registrar provider failures."""

    pass


class ProviderAPIError(ProviderError):
    """Raised when a registrar API call fails."""

    pass


class ProviderNotFound(ProviderError):
    """Raised when no plugin is registered for a registrar name."""

    pass


class CapabilityNotImplemented(ProviderError):
    """Raised when a provider is asked for an operation it does not offer."""

    pass


class CredentialsError(FqdnToolsError):
    """
    Base class for the credential broker client taxonomy.

    Each subclass carries the process exit code and the tag printed as
    ``CREDS_ERROR:<tag>`` by the command line tools.
    """

    tag = "generic"
    exit_code = 13

    def __init__(self, message: str, details: Optional[dict] = None,
                 remediation: Optional[str] = None) -> None:
        super().__init__(
            code=self.tag,
            message=message,
            details=details,
            remediation=remediation,
        )

    @property
    def wire_line(self) -> str:
        return f"CREDS_ERROR:{self.tag}"


class BrokerUnreachable(CredentialsError):
    """The credential broker cannot be contacted."""

    pass


class CredentialsUnavailable(CredentialsError):
    """The broker answered but has no usable credentials."""

    pass


class SocketNotFound(BrokerUnreachable):
    tag = "socket_not_found"
    exit_code = 10

    def __init__(self, socket_path: str) -> None:
        super().__init__(
            f"Credential broker socket {socket_path} is not available",
            details={"socket_path": socket_path},
            remediation="Start the fqdncredmgrd service.",
        )


class NoCredentials(CredentialsUnavailable):
    tag = "no_credentials"
    exit_code = 11

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"No credentials stored for provider {provider}",
            details={"provider": provider},
            remediation=f"Add them with: fqdncredmgr add {provider} <username>",
        )
        self.provider = provider


class DatabaseNotFound(CredentialsError):
    tag = "database_not_found"
    exit_code = 12

    def __init__(self) -> None:
        super().__init__(
            "The broker has no credentials database",
            remediation="Run the installer to create the credentials database.",
        )


class GenericCredsError(CredentialsError):
    tag = "generic"
    exit_code = 13

    def __init__(self, detail: str) -> None:
        super().__init__(f"Credential broker error: {detail}", details={"detail": detail})
        self.detail = detail


class InvalidResponse(CredentialsError):
    tag = "invalid_response"
    exit_code = 14

    def __init__(self, response: str = "") -> None:
        super().__init__(
            "Invalid response from credential broker",
            details={"response_length": len(response)},
        )


class IncompleteCredentials(CredentialsUnavailable):
    tag = "incomplete"
    exit_code = 15

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"Stored credentials for {provider} are incomplete",
            details={"provider": provider},
            remediation=f"Fix them with: fqdncredmgr update {provider} <username>",
        )
        self.provider = provider
