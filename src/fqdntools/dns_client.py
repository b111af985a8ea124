"""
DNS probing for propagation checks.

Every query is addressed to one explicit server: either the domain's
authoritative nameserver (the SOA MNAME, falling back to the first NS in
alphabetical order) or a public recursive resolver. A failed query of any
kind counts as "no answer"; callers only ever ask whether the expected
value is visible yet.
"""

import ipaddress
from typing import Optional

import dns.asyncresolver
import dns.exception

from .audit_logger import AuditLogger
from .cache import ExpiringCache
from .config import PUBLIC_RESOLVER
from .enums import CacheKind
from .models import RecordExpectation


def _strip_txt(text: str) -> str:
    # TXT rdata prints as one or more quoted strings: "abc" "def"
    if text.startswith('"'):
        return "".join(part for part in text.split('"')[1::2])
    return text


class DnsProbe:
    """
    Targeted DNS queries with cached authoritative nameserver discovery.

    Args:
        cache: Expiring cache holding ``ns`` entries
        public_resolver: Address of the recursive resolver used as the
            second propagation check
        timeout: Lifetime of a single query in seconds
        logger: Optional audit logger
    """

    def __init__(
        self,
        cache: ExpiringCache,
        public_resolver: str = PUBLIC_RESOLVER,
        timeout: float = 5.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._cache = cache
        self._public_resolver = public_resolver
        self._timeout = timeout
        self._logger = logger
        self._server_addresses: dict[str, str] = {}

    @property
    def public_resolver(self) -> str:
        return self._public_resolver

    async def _resolve(self, name: str, rtype: str, server: Optional[str] = None) -> list[str]:
        """
        Run one query and return the answers as text.

        Args:
            name: Owner name to query
            rtype: Record type (A, MX, TXT, SOA, NS)
            server: Address to ask; None uses the system resolver

        Returns:
            Answer rdata as text, empty on any DNS failure
        """
        if server is None:
            resolver = dns.asyncresolver.Resolver()
        else:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = [server]
        resolver.lifetime = self._timeout

        try:
            answer = await resolver.resolve(name, rtype, raise_on_no_answer=False)
        except (dns.exception.DNSException, OSError) as e:
            if self._logger:
                self._logger.debug(
                    "DnsProbe",
                    "Query failed",
                    {"name": name, "type": rtype, "server": server or "system", "error": str(e)},
                )
            return []

        return [rdata.to_text() for rdata in answer]

    async def authoritative_ns(self, domain: str) -> Optional[str]:
        """
        Primary authoritative nameserver of a domain, cached for two hours.

        Returns:
            Nameserver host name without the trailing dot, or None
        """
        cached = self._cache.get(CacheKind.NS, domain)
        if cached:
            return cached

        nameserver = None
        soa = await self._resolve(domain, "SOA")
        if soa:
            nameserver = soa[0].split()[0].rstrip(".")
        else:
            ns_records = sorted(r.rstrip(".") for r in await self._resolve(domain, "NS"))
            if ns_records:
                nameserver = ns_records[0]

        if nameserver:
            self._cache.set(CacheKind.NS, domain, nameserver)
        return nameserver

    async def _server_address(self, server: str) -> Optional[str]:
        try:
            ipaddress.ip_address(server)
            return server
        except ValueError:
            pass

        if server in self._server_addresses:
            return self._server_addresses[server]

        addresses = await self._resolve(server, "A")
        if not addresses:
            return None
        self._server_addresses[server] = addresses[0]
        return addresses[0]

    async def query(self, server: str, name: str, rtype: str) -> list[str]:
        """
        Ask a specific server for a record set.

        Args:
            server: Nameserver host name or address
            name: Owner name
            rtype: Record type

        Returns:
            Answers as text (TXT quotes removed), empty on failure
        """
        address = await self._server_address(server)
        if address is None:
            return []
        answers = await self._resolve(name, rtype, server=address)
        if rtype.upper() == "TXT":
            return [_strip_txt(a) for a in answers]
        return answers

    async def visible(self, server: str, record: RecordExpectation) -> bool:
        answers = await self.query(server, record.query_name, record.record_type)
        return record.matches(answers)

    async def all_visible(self, server: Optional[str], records: list[RecordExpectation]) -> bool:
        """True when every expected record is visible at the server."""
        if not server:
            return False
        for record in records:
            if not await self.visible(server, record):
                return False
        return True

    async def propagated(self, nameserver: Optional[str], records: list[RecordExpectation]) -> bool:
        """Authoritative check first, public resolver only once that passed."""
        if not await self.all_visible(nameserver, records):
            return False
        return await self.all_visible(self._public_resolver, records)
