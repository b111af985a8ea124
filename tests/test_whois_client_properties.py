"""
Property-based tests for WHOIS parsing and the registrar detector.
"""

import asyncio
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fqdntools.cache import ExpiringCache
from fqdntools.enums import CacheKind, RDAPStatus, WHOISErrorCode, WHOISStatus
from fqdntools.rdap_client import RDAPResponse
from fqdntools.registrar import RegistrarDetector, normalize_registrar
from fqdntools.whois_client import WHOISClient, WHOISError, WHOISResponse


SAMPLE_REGISTERED = """\
   Domain Name: EXAMPLE.COM
   Registry Domain ID: 2336799_DOMAIN_COM-VRSN
   Registrar WHOIS Server: whois.namecheap.com
   Registrar URL: http://www.namecheap.com
   Registrar: NameCheap, Inc.
   Registrar IANA ID: 1068
"""


class TestNoMatchProperty:
    """A no-match signal means available; anything else is registered."""

    @given(tld=st.sampled_from(list(WHOISClient.NO_MATCH_SIGNALS)), data=st.data())
    @settings(max_examples=50)
    def test_tld_signal_returns_not_found(self, tld: str, data) -> None:
        client = WHOISClient()
        signal = data.draw(st.sampled_from(client.get_signals_for_tld(tld)))
        response = client.parse_response(f"% header\n{signal} example.{tld}\n", tld)
        assert response.status == WHOISStatus.NOT_FOUND
        assert response.registrar == ""

    @pytest.mark.parametrize("raw", [
        "NO MATCH FOR \"EXAMPLE.COM\".\n",
        "no match for example.com\n",
        "% header\nNo Match For example.com\n",
    ])
    def test_no_match_ignores_case(self, raw: str) -> None:
        response = WHOISClient().parse_response(raw, "com")
        assert response.status == WHOISStatus.NOT_FOUND

    @pytest.mark.parametrize("raw", ["", "   \n\t"])
    def test_empty_response_is_error(self, raw: str) -> None:
        response = WHOISClient().parse_response(raw, "com")
        assert response.status == WHOISStatus.ERROR
        assert response.error.code == WHOISErrorCode.NETWORK_ERROR

    def test_registered_with_registrar(self) -> None:
        response = WHOISClient().parse_response(SAMPLE_REGISTERED, "com")
        assert response.status == WHOISStatus.FOUND
        assert response.registrar == "NameCheap, Inc."

    def test_registrar_line_does_not_span_lines(self) -> None:
        raw = "Domain Name: X.DE\nRegistrar:\nStatus: connect\n"
        response = WHOISClient().parse_response(raw, "de")
        assert response.status == WHOISStatus.FOUND
        assert response.registrar == ""

    def test_custom_signals(self) -> None:
        client = WHOISClient(custom_signals={"xyz": ["is available for registration"]})
        response = client.parse_response("example.xyz is available for registration", "xyz")
        assert response.status == WHOISStatus.NOT_FOUND

    def test_iana_referral(self) -> None:
        client = WHOISClient()
        answers = {
            ("example.dev", "whois.iana.org"): "",
            ("dev", "whois.iana.org"): "domain: DEV\nrefer: whois.nic.google\n",
            ("example.dev", "whois.nic.google"): "Domain not found.\nNo match for example.dev",
        }

        async def fake_query(domain, server):
            return answers[(domain, server)]

        with patch.object(client, "_execute_whois_query", side_effect=fake_query):
            response = asyncio.run(client.query("example.dev"))

        assert response.status == WHOISStatus.NOT_FOUND

    def test_socket_error_is_error_status(self) -> None:
        client = WHOISClient()
        with patch.object(client, "_execute_whois_query", side_effect=OSError("refused")):
            response = asyncio.run(client.query("example.com"))
        assert response.status == WHOISStatus.ERROR
        assert response.error.code == WHOISErrorCode.NETWORK_ERROR


class TestRegistrarNormalization:

    @pytest.mark.parametrize("raw,canonical", [
        ("NameCheap, Inc.", "namecheap.com"),
        ("GoDaddy.com, LLC", "godaddy"),
        ("WEDOS Internet, a.s.", "wedos.com"),
        ("Amazon Registrar, Inc.", "aws"),
        ("PorkBun LLC", "porkbun"),
        ("Some Registrar GmbH", "someregistrargmbh"),
        ("", ""),
        (None, ""),
    ])
    def test_aliases(self, raw, canonical) -> None:
        assert normalize_registrar(raw) == canonical

    @given(raw=st.text(max_size=60))
    @settings(max_examples=100)
    def test_normalized_names_are_idempotent(self, raw: str) -> None:
        once = normalize_registrar(raw)
        assert normalize_registrar(once) == once
        assert not any(ch.isspace() for ch in once)


class FakeWhois:
    def __init__(self, response: WHOISResponse) -> None:
        self.response = response
        self.calls = 0

    async def query(self, domain: str) -> WHOISResponse:
        self.calls += 1
        return self.response


class FakeRdap:
    def __init__(self, response: RDAPResponse) -> None:
        self.response = response

    async def query(self, domain: str) -> RDAPResponse:
        return self.response


class TestRegistrarDetector:

    def test_lookup_is_cached(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = ExpiringCache(Path(tmpdir) / "cache")
            whois = FakeWhois(WHOISResponse(WHOISStatus.FOUND, SAMPLE_REGISTERED, "NameCheap, Inc."))
            detector = RegistrarDetector(cache, whois_client=whois)

            first = asyncio.run(detector.lookup("example.com"))
            second = asyncio.run(detector.lookup("example.com"))

            assert first.registrar == "namecheap.com"
            assert first.available is False
            assert second.source == "cache"
            assert second.registrar == "namecheap.com"
            assert whois.calls == 1

    def test_available_domain_cached_with_sentinel(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = ExpiringCache(Path(tmpdir) / "cache")
            detector = RegistrarDetector(cache, whois_client=FakeWhois(
                WHOISResponse(WHOISStatus.NOT_FOUND, "No match for EXAMPLE.COM"),
            ))
            info = asyncio.run(detector.lookup("example.com"))

            assert info.available is True
            assert cache.get(CacheKind.WHOIS_REGISTRAR, "example.com") == "_none_"
            assert cache.get(CacheKind.WHOIS_AVAILABLE, "example.com") == "true"

    def test_rdap_fallback(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = ExpiringCache(Path(tmpdir) / "cache")
            detector = RegistrarDetector(
                cache,
                whois_client=FakeWhois(WHOISResponse(
                    WHOISStatus.ERROR, None,
                    error=WHOISError(WHOISErrorCode.TIMEOUT, "timeout"),
                )),
                rdap_client=FakeRdap(RDAPResponse(RDAPStatus.FOUND, 200, "Porkbun LLC")),
            )
            info = asyncio.run(detector.lookup("example.com"))
            assert info.registrar == "porkbun"
            assert info.source == "rdap"

    def test_failures_are_not_cached(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cache = ExpiringCache(Path(tmpdir) / "cache")
            detector = RegistrarDetector(cache, whois_client=FakeWhois(WHOISResponse(
                WHOISStatus.ERROR, None, error=WHOISError(WHOISErrorCode.TIMEOUT, "timeout"),
            )))
            info = asyncio.run(detector.lookup("example.com"))

            assert info.registrar == ""
            assert info.available is False
            assert info.source == "none"
            assert cache.get(CacheKind.WHOIS_REGISTRAR, "example.com") is None
