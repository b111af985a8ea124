"""
Registrar name canonicalisation and detection.

WHOIS and RDAP report registrars under their legal names ("NameCheap,
Inc.", "Amazon Registrar, Inc."). Credentials and provider plugins are
keyed by short canonical names, so every raw name passes through
``normalize_registrar`` before it is compared or looked up.
"""

import re
from typing import Optional

from .audit_logger import AuditLogger
from .cache import NONE_SENTINEL, ExpiringCache
from .enums import CacheKind, RDAPStatus, WHOISStatus
from .models import WhoisInfo
from .rdap_client import RDAPClient
from .whois_client import WHOISClient


# Checked in order, first match wins
REGISTRAR_ALIASES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"namecheap"), "namecheap.com"),
    (re.compile(r"godaddy"), "godaddy"),
    (re.compile(r"wedos"), "wedos.com"),
    (re.compile(r"cloudflare"), "cloudflare"),
    (re.compile(r"google"), "google"),
    (re.compile(r"aws|amazon|route.?53"), "aws"),
    (re.compile(r"gandi"), "gandi"),
    (re.compile(r"hover"), "hover"),
    (re.compile(r"dynadot"), "dynadot"),
    (re.compile(r"porkbun"), "porkbun"),
    (re.compile(r"name\.com|name,? ?inc"), "name.com"),
    (re.compile(r"ionos|1and1|1&1"), "ionos"),
    (re.compile(r"ovh"), "ovh"),
]

_DISALLOWED = re.compile(r"[^a-z0-9.-]")


def normalize_registrar(raw: Optional[str]) -> str:
    """
    Map a raw registrar name to its canonical short name.

    Unknown names are lowercased and stripped to ``[a-z0-9.-]``. Empty in,
    empty out.
    """
    if not raw:
        return ""
    lowered = raw.strip().lower()
    if not lowered:
        return ""

    stripped = _DISALLOWED.sub("", lowered)
    for pattern, canonical in REGISTRAR_ALIASES:
        if pattern.search(lowered) or pattern.search(stripped):
            return canonical

    return stripped


def tld_of(domain: str) -> str:
    return domain.rstrip(".").rsplit(".", 1)[-1].lower()


class RegistrarDetector:
    """
    Cached WHOIS lookup with an RDAP fallback.

    Successful lookups are cached as ``whois_registrar`` (empty registrar
    stored as the ``_none_`` sentinel) and ``whois_available``. Failed
    lookups are not cached.
    """

    def __init__(
        self,
        cache: ExpiringCache,
        whois_client: Optional[WHOISClient] = None,
        rdap_client: Optional[RDAPClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._cache = cache
        self._whois = whois_client or WHOISClient()
        self._rdap = rdap_client
        self._logger = logger

    def cached(self, domain: str) -> Optional[WhoisInfo]:
        registrar = self._cache.get(CacheKind.WHOIS_REGISTRAR, domain)
        available = self._cache.get(CacheKind.WHOIS_AVAILABLE, domain)
        if registrar is None or available is None:
            return None
        return WhoisInfo(
            domain=domain,
            available=available == "true",
            registrar="" if registrar == NONE_SENTINEL else registrar,
            source="cache",
        )

    async def lookup(self, domain: str) -> WhoisInfo:
        """
        Registrar and availability of a domain.

        Returns:
            WhoisInfo; when every source fails the registrar is empty and
            ``available`` is False
        """
        info = self.cached(domain)
        if info is not None:
            return info

        info = await self._lookup_whois(domain)
        if info is None and self._rdap is not None:
            info = await self._lookup_rdap(domain)

        if info is None:
            return WhoisInfo(domain=domain, available=False, registrar="", source="none")

        self._cache.set(CacheKind.WHOIS_REGISTRAR, domain, info.registrar or NONE_SENTINEL)
        self._cache.set(CacheKind.WHOIS_AVAILABLE, domain, "true" if info.available else "false")
        return info

    async def _lookup_whois(self, domain: str) -> Optional[WhoisInfo]:
        response = await self._whois.query(domain)
        if response.status == WHOISStatus.NOT_FOUND:
            return WhoisInfo(domain=domain, available=True, registrar="", source="whois")
        if response.status == WHOISStatus.FOUND:
            return WhoisInfo(
                domain=domain,
                available=False,
                registrar=normalize_registrar(response.registrar),
                source="whois",
            )

        if self._logger:
            self._logger.warn(
                "RegistrarDetector",
                "WHOIS lookup failed",
                {"domain": domain, "error": response.error.message if response.error else ""},
            )
        return None

    async def _lookup_rdap(self, domain: str) -> Optional[WhoisInfo]:
        response = await self._rdap.query(domain)
        if response.status == RDAPStatus.NOT_FOUND:
            return WhoisInfo(domain=domain, available=True, registrar="", source="rdap")
        if response.status == RDAPStatus.FOUND:
            return WhoisInfo(
                domain=domain,
                available=False,
                registrar=normalize_registrar(response.registrar),
                source="rdap",
            )

        if self._logger:
            self._logger.warn(
                "RegistrarDetector",
                "RDAP lookup failed",
                {"domain": domain, "error": response.error or ""},
            )
        return None
