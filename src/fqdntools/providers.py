"""
Registrar provider plugin interface.

Each registrar integration implements a subset of the operations below
and declares that subset in ``capabilities``. Callers check ``supports``
before calling; calling an operation outside the declared set raises
``CapabilityNotImplemented``.

Plugins are found through the ``ProviderRegistry``: built-in factories
registered in code, plus third-party factories published under the
``fqdntools.providers`` entry point group.
"""

from importlib.metadata import entry_points
from typing import Callable, Optional

import httpx

from .audit_logger import AuditLogger
from .enums import ProviderCapability, PurchaseResult
from .exceptions import CapabilityNotImplemented, ProviderAPIError, ProviderNotFound
from .models import Credential


ENTRY_POINT_GROUP = "fqdntools.providers"


class RegistrarProvider:
    """
    Base class of all registrar plugins.

    Args:
        credential: API credentials fetched through the broker
        logger: Optional audit logger receiving provider call records
    """

    name = ""
    capabilities: frozenset = frozenset()

    def __init__(self, credential: Credential, logger: Optional[AuditLogger] = None) -> None:
        self.credential = credential
        self.logger = logger

    def supports(self, capability: ProviderCapability) -> bool:
        return capability in self.capabilities

    def _missing(self, capability: ProviderCapability) -> CapabilityNotImplemented:
        return CapabilityNotImplemented(
            code="capability_not_implemented",
            message=f"Provider {self.name} does not implement {capability.value}",
            details={"provider": self.name, "capability": capability.value},
        )

    async def purchase(self, fqdn: str) -> PurchaseResult:
        raise self._missing(ProviderCapability.PURCHASE)

    async def certify(self, domain: str, validation: str, wan_ip: str) -> None:
        raise self._missing(ProviderCapability.CERTIFY)

    async def cleanup(self, domain: str, validation: str, wan_ip: str) -> None:
        raise self._missing(ProviderCapability.CLEANUP)

    async def list_owned_domains(self) -> list[str]:
        raise self._missing(ProviderCapability.LIST_OWNED_DOMAINS)

    async def check_domain_status(self, domain: str) -> str:
        raise self._missing(ProviderCapability.CHECK_DOMAIN_STATUS)

    async def set_init_dns_records(
        self,
        domain: str,
        wan_ip: str,
        ttl: Optional[int] = None,
        override: bool = False,
    ) -> None:
        raise self._missing(ProviderCapability.SET_INIT_DNS_RECORDS)

    async def aclose(self) -> None:
        """Release network resources held by the plugin."""
        pass


class HttpRegistrarProvider(RegistrarProvider):
    """
    Base class for plugins talking to an HTTP API.

    Every request and response is written to the audit log (the provider
    call log) with credentials masked.
    """

    base_url = ""

    def __init__(
        self,
        credential: Credential,
        logger: Optional[AuditLogger] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(credential, logger)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            verify=True,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        """
        Send a request to the registrar API.

        Raises:
            ProviderAPIError: On transport failures and HTTP status >= 400
        """
        self._log("Request sent", {
            "method": method,
            "url": url,
            "params": params or {},
            "body": json_body or {},
        })

        try:
            response = await self._client.request(
                method, url, params=params, json=json_body, headers=headers,
            )
        except httpx.HTTPError as e:
            if self.logger:
                self.logger.log_error(self.name or "provider", "Request failed", error=e, request_url=url)
            raise ProviderAPIError(
                code="provider_transport_error",
                message=f"{self.name}: request to {url} failed: {e}",
                details={"provider": self.name, "url": url},
            )

        self._log("Response received", {
            "url": url,
            "status": response.status_code,
            "body": _loggable_body(response),
        })

        if response.status_code >= 400:
            raise ProviderAPIError(
                code="provider_http_error",
                message=f"{self.name}: {method} {url} returned HTTP {response.status_code}",
                details={"provider": self.name, "url": url, "status": response.status_code},
            )
        return response

    async def aclose(self) -> None:
        await self._client.aclose()

    def _log(self, message: str, data: dict) -> None:
        if self.logger:
            self.logger.info(self.name or "provider", message, data)


def _loggable_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text[:2000]


ProviderFactory = Callable[..., RegistrarProvider]


class ProviderRegistry:
    """Maps canonical registrar names to plugin factories."""

    def __init__(self, load_entry_points: bool = True) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._entry_points_loaded = not load_entry_points

    def register(self, name: str, factory: ProviderFactory) -> None:
        self._factories[name.lower()] = factory

    def _load_entry_points(self) -> None:
        if self._entry_points_loaded:
            return
        self._entry_points_loaded = True
        for entry_point in entry_points(group=ENTRY_POINT_GROUP):
            self._factories.setdefault(entry_point.name.lower(), entry_point.load())

    def available(self) -> list[str]:
        self._load_entry_points()
        return sorted(self._factories)

    def create(
        self,
        name: str,
        credential: Credential,
        logger: Optional[AuditLogger] = None,
    ) -> RegistrarProvider:
        """
        Instantiate the plugin for a registrar.

        Raises:
            ProviderNotFound: If no plugin is registered under that name
        """
        return self.require(name)(credential, logger=logger)

    def require(self, name: str) -> ProviderFactory:
        """
        Look up the plugin factory of a registrar.

        Raises:
            ProviderNotFound: If no plugin is registered under that name
        """
        self._load_entry_points()
        factory = self._factories.get(name.lower())
        if factory is None:
            available = sorted(self._factories)
            raise ProviderNotFound(
                code="provider_not_found",
                message=f"No provider plugin for registrar {name}",
                details={"registrar": name, "available": available},
                remediation=(
                    "Install the provider plugin for this registrar. "
                    f"Installed: {', '.join(available) or 'none'}"
                ),
            )
        return factory
