"""
WHOIS Client module for registrar detection.

Queries port-43 WHOIS servers and extracts the two facts the resolution
engine needs: whether the domain is unregistered (an exact "no match"
signal) and which registrar sponsors it (the ``Registrar:`` line).
Unlisted TLDs are looked up through the IANA referral server.
"""

import asyncio
import re
import socket
from dataclasses import dataclass
from typing import Optional

from .enums import WHOISErrorCode, WHOISStatus


@dataclass
class WHOISError:
    """Error information from a WHOIS query."""

    code: WHOISErrorCode
    message: str


@dataclass
class WHOISResponse:
    """Response from a WHOIS query."""

    status: WHOISStatus
    raw_response: Optional[str]
    registrar: str = ""
    error: Optional[WHOISError] = None


_REGISTRAR_LINE = re.compile(r"^[ \t]*registrar[ \t]*:[ \t]*(.*?)[ \t\r]*$", re.IGNORECASE | re.MULTILINE)
_REFER_LINE = re.compile(r"^[ \t]*(?:refer|whois)[ \t]*:[ \t]*(\S+)[ \t\r]*$", re.IGNORECASE | re.MULTILINE)


class WHOISClient:
    """
    WHOIS client with strict "no match" detection and registrar extraction.

    A response containing one of the no-match signals marks the domain as
    available. Anything else is treated as registered, with the registrar
    taken from the first non-empty ``Registrar:`` line.
    """

    # "No match for" is the generic Verisign style answer shared by many registries,
    # matched in any letter case
    GENERIC_NO_MATCH = "No match for"

    NO_MATCH_SIGNALS: dict[str, list[str]] = {
        "de": ["Status: free"],
        "org": ["NOT FOUND", "Domain not found"],
        "eu": ["Status: AVAILABLE"],
        "io": ["NOT FOUND", "Domain not found"],
        "co": ["No Data Found"],
        "info": ["NOT FOUND", "Domain not found"],
        "biz": ["Not found:"],
        "cz": ["No entries found"],
    }

    WHOIS_SERVERS: dict[str, str] = {
        "com": "whois.verisign-grs.com",
        "net": "whois.verisign-grs.com",
        "org": "whois.pir.org",
        "de": "whois.denic.de",
        "eu": "whois.eu",
        "io": "whois.nic.io",
        "co": "whois.nic.co",
        "info": "whois.nic.info",
        "biz": "whois.nic.biz",
        "cz": "whois.nic.cz",
        "uk": "whois.nic.uk",
    }

    IANA_SERVER = "whois.iana.org"

    def __init__(
        self,
        timeout: float = 10.0,
        custom_servers: Optional[dict[str, str]] = None,
        custom_signals: Optional[dict[str, list[str]]] = None,
    ) -> None:
        """
        Initialize the WHOIS client.

        Args:
            timeout: Socket timeout in seconds
            custom_servers: Optional custom WHOIS servers per TLD
            custom_signals: Optional custom no-match signals per TLD
        """
        self._timeout = timeout

        self._servers = dict(self.WHOIS_SERVERS)
        if custom_servers:
            self._servers.update(custom_servers)

        self._signals = dict(self.NO_MATCH_SIGNALS)
        if custom_signals:
            self._signals.update(custom_signals)

    async def query(self, domain: str) -> WHOISResponse:
        """
        Query WHOIS for a domain.

        Args:
            domain: The domain to query

        Returns:
            WHOISResponse with NOT_FOUND (available), FOUND (with registrar)
            or ERROR
        """
        tld = self._extract_tld(domain)

        try:
            server = self._servers.get(tld) or await self._discover_server(tld)
            if not server:
                return WHOISResponse(
                    status=WHOISStatus.ERROR,
                    raw_response=None,
                    error=WHOISError(
                        code=WHOISErrorCode.NO_SERVER,
                        message=f"No WHOIS server known for TLD: {tld}",
                    ),
                )
            raw_response = await self._execute_whois_query(domain, server)
        except asyncio.TimeoutError:
            return WHOISResponse(
                status=WHOISStatus.ERROR,
                raw_response=None,
                error=WHOISError(
                    code=WHOISErrorCode.TIMEOUT,
                    message=f"WHOIS query timed out after {self._timeout}s",
                ),
            )
        except OSError as e:
            return WHOISResponse(
                status=WHOISStatus.ERROR,
                raw_response=None,
                error=WHOISError(
                    code=WHOISErrorCode.NETWORK_ERROR,
                    message=f"Socket error: {e}",
                ),
            )

        return self.parse_response(raw_response, tld)

    async def _discover_server(self, tld: str) -> Optional[str]:
        """Ask IANA which WHOIS server is authoritative for a TLD."""
        if not tld:
            return None
        raw = await self._execute_whois_query(tld, self.IANA_SERVER)
        match = _REFER_LINE.search(raw)
        if not match:
            return None
        server = match.group(1).strip()
        self._servers[tld] = server
        return server

    async def _execute_whois_query(self, domain: str, server: str) -> str:
        """
        Execute the actual WHOIS query via socket.

        Args:
            domain: Domain to query
            server: WHOIS server hostname

        Returns:
            Raw WHOIS response as string
        """
        loop = asyncio.get_running_loop()

        def _sync_query() -> str:
            with socket.create_connection((server, 43), timeout=self._timeout) as sock:
                sock.sendall(f"{domain}\r\n".encode("utf-8"))

                response_parts: list[bytes] = []
                while True:
                    data = sock.recv(4096)
                    if not data:
                        break
                    response_parts.append(data)

                return b"".join(response_parts).decode("utf-8", errors="replace")

        return await asyncio.wait_for(
            loop.run_in_executor(None, _sync_query),
            timeout=self._timeout,
        )

    def parse_response(self, raw_response: str, tld: str) -> WHOISResponse:
        """
        Classify a raw WHOIS answer.

        Args:
            raw_response: Raw WHOIS response text
            tld: TLD for signal lookup

        Returns:
            WHOISResponse with status and extracted registrar
        """
        if not raw_response or not raw_response.strip():
            return WHOISResponse(
                status=WHOISStatus.ERROR,
                raw_response=raw_response,
                error=WHOISError(
                    code=WHOISErrorCode.NETWORK_ERROR,
                    message="Empty WHOIS response",
                ),
            )

        generic = self.GENERIC_NO_MATCH.lower() in raw_response.lower()
        if generic or any(signal in raw_response for signal in self._signals.get(tld, [])):
            return WHOISResponse(
                status=WHOISStatus.NOT_FOUND,
                raw_response=raw_response,
            )

        return WHOISResponse(
            status=WHOISStatus.FOUND,
            raw_response=raw_response,
            registrar=self.extract_registrar(raw_response),
        )

    @staticmethod
    def extract_registrar(raw_response: str) -> str:
        """First non-empty ``Registrar:`` value, or an empty string."""
        for match in _REGISTRAR_LINE.finditer(raw_response):
            value = match.group(1).strip()
            if value:
                return value
        return ""

    def _extract_tld(self, domain: str) -> str:
        parts = domain.lower().rstrip(".").split(".")
        return parts[-1] if parts else ""

    def get_signals_for_tld(self, tld: str) -> list[str]:
        """Return the "no match" signals for a specific TLD."""
        return [self.GENERIC_NO_MATCH] + self._signals.get(tld.lower(), [])
