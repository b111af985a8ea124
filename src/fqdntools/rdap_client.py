"""
RDAP client used as a registrar-detection fallback.

When port-43 WHOIS is unreachable the sponsoring registrar can still be
read from the registry's RDAP service: an HTTP 404 means the domain is not
registered, a domain object names its registrar in the entity carrying the
``registrar`` role.
"""

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .enums import RDAPStatus


@dataclass
class RDAPResponse:
    """Outcome of an RDAP domain lookup."""

    status: RDAPStatus
    http_status_code: int = 0
    registrar: str = ""
    error: Optional[str] = None


class RDAPClient:
    """
    Async RDAP client with TLS enforcement.

    Endpoints default to the rdap.org bootstrap redirector; registry
    specific endpoints may be supplied per TLD.
    """

    BOOTSTRAP_ENDPOINT = "https://rdap.org"

    def __init__(
        self,
        tld_endpoints: Optional[dict[str, str]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the RDAP client.

        Args:
            tld_endpoints: Mapping of TLD to RDAP base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._tld_endpoints = {k.lower(): v for k, v in (tld_endpoints or {}).items()}
        self._timeout = timeout
        self._transport = transport

    def get_endpoint_for_tld(self, tld: str) -> str:
        return self._tld_endpoints.get(tld.lower(), self.BOOTSTRAP_ENDPOINT)

    async def query(self, domain: str) -> RDAPResponse:
        """
        Look up a domain over RDAP.

        Args:
            domain: Fully qualified domain name

        Returns:
            RDAPResponse with FOUND (and registrar), NOT_FOUND or ERROR
        """
        tld = domain.rsplit(".", 1)[-1]
        endpoint = self.get_endpoint_for_tld(tld)
        if urlparse(endpoint).scheme.lower() != "https":
            return RDAPResponse(
                status=RDAPStatus.ERROR,
                error=f"RDAP endpoint must use HTTPS: {endpoint}",
            )

        url = f"{endpoint.rstrip('/')}/domain/{domain}"
        try:
            async with httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    url,
                    headers={"Accept": "application/rdap+json, application/json"},
                )
        except httpx.HTTPError as e:
            return RDAPResponse(status=RDAPStatus.ERROR, error=str(e))

        if response.status_code == 404:
            return RDAPResponse(status=RDAPStatus.NOT_FOUND, http_status_code=404)

        if response.status_code != 200:
            return RDAPResponse(
                status=RDAPStatus.ERROR,
                http_status_code=response.status_code,
                error=f"Unexpected HTTP status {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as e:
            return RDAPResponse(
                status=RDAPStatus.ERROR,
                http_status_code=response.status_code,
                error=f"Invalid JSON: {e}",
            )

        return RDAPResponse(
            status=RDAPStatus.FOUND,
            http_status_code=response.status_code,
            registrar=self.extract_registrar(payload),
        )

    @staticmethod
    def extract_registrar(payload: Any) -> str:
        """Name of the entity with the registrar role, or an empty string."""
        if not isinstance(payload, dict):
            return ""

        for entity in payload.get("entities", []) or []:
            if not isinstance(entity, dict):
                continue
            if "registrar" not in (entity.get("roles") or []):
                continue
            name = _vcard_full_name(entity.get("vcardArray"))
            if name:
                return name
            handle = entity.get("handle")
            if isinstance(handle, str):
                return handle
        return ""


def _vcard_full_name(vcard: Any) -> str:
    # jCard: ["vcard", [["version", {}, "text", "4.0"], ["fn", {}, "text", "Name"]]]
    if not isinstance(vcard, list) or len(vcard) < 2 or not isinstance(vcard[1], list):
        return ""
    for prop in vcard[1]:
        if isinstance(prop, list) and len(prop) >= 4 and prop[0] == "fn":
            return str(prop[3]).strip()
    return ""
