"""
Property-based tests for the registrar decision engine.

The engine is a pure function of (WHOIS registrar, hint, interactive,
credential presence, TLD priority), so the whole decision table is
exercised with in-memory credential sets.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fqdntools.decision_engine import RegistrarDecisionEngine
from fqdntools.enums import MismatchChoice, ResolutionAction, UnknownReason
from fqdntools.exceptions import AmbiguousRegistrar


registrars = st.sampled_from(["namecheap.com", "porkbun", "wedos.com", "godaddy", "ovh"])


def engine_with(credentials: set, tld_priority: dict = None) -> RegistrarDecisionEngine:
    return RegistrarDecisionEngine(
        has_credentials=lambda name: name in credentials,
        tld_priority=tld_priority,
    )


class TestSingleCandidateProperty:
    """
    *For any* case with one candidate registrar (WHOIS only, hint only, or
    both equal) the engine uses it when credentials exist, prompts when
    interactive, and otherwise reports no_credentials.
    """

    @given(registrar=registrars, source=st.sampled_from(["whois", "hint", "both"]),
           interactive=st.booleans(), has_creds=st.booleans())
    @settings(max_examples=100)
    def test_single_candidate(self, registrar, source, interactive, has_creds) -> None:
        engine = engine_with({registrar} if has_creds else set())
        whois = registrar if source in ("whois", "both") else ""
        hint = registrar if source in ("hint", "both") else ""

        resolution = engine.evaluate(whois, hint, interactive, "example.com")

        if has_creds:
            assert resolution.action == ResolutionAction.USE_REGISTRAR
            assert resolution.registrar == registrar
        elif interactive:
            assert resolution.action == ResolutionAction.PROMPT_FOR_CREDENTIALS
            assert resolution.registrar == registrar
        else:
            assert resolution.action == ResolutionAction.UNKNOWN
            assert resolution.reason == UnknownReason.NO_CREDENTIALS


class TestTldPriorityProperty:
    """With neither WHOIS nor hint the first priority registrar with credentials wins."""

    def test_first_registrar_with_credentials(self) -> None:
        engine = engine_with({"porkbun", "godaddy"}, {"com": ["namecheap.com", "porkbun", "godaddy"]})
        resolution = engine.evaluate("", "", False, "example.com")
        assert resolution.action == ResolutionAction.USE_REGISTRAR
        assert resolution.registrar == "porkbun"

    @given(interactive=st.booleans())
    def test_no_priority_match_is_unknown(self, interactive: bool) -> None:
        engine = engine_with({"porkbun"}, {"net": ["porkbun"]})
        resolution = engine.evaluate("", "", interactive, "example.com")
        assert resolution.action == ResolutionAction.UNKNOWN
        assert resolution.reason == UnknownReason.NO_REGISTRAR


class TestMismatchProperty:
    """WHOIS and hint disagree."""

    @given(interactive=st.booleans(), hint_creds=st.booleans())
    def test_whois_with_credentials_wins(self, interactive: bool, hint_creds: bool) -> None:
        credentials = {"namecheap.com"} | ({"porkbun"} if hint_creds else set())
        resolution = engine_with(credentials).evaluate("namecheap.com", "porkbun", interactive, "example.com")
        assert resolution.action == ResolutionAction.USE_REGISTRAR
        assert resolution.registrar == "namecheap.com"

    def test_interactive_mismatch_prompts(self) -> None:
        resolution = engine_with({"porkbun"}).evaluate("namecheap.com", "porkbun", True, "example.com")
        assert resolution.action == ResolutionAction.PROMPT_MISMATCH
        assert resolution.whois_registrar == "namecheap.com"
        assert resolution.hint == "porkbun"

    def test_non_interactive_falls_back_to_hint(self) -> None:
        resolution = engine_with({"porkbun"}).evaluate("namecheap.com", "porkbun", False, "example.com")
        assert resolution.action == ResolutionAction.USE_REGISTRAR
        assert resolution.registrar == "porkbun"

    def test_ambiguous_without_any_credentials(self) -> None:
        # WHOIS says namecheap.com, hint is porkbun, no credentials anywhere.
        resolution = engine_with(set()).evaluate("namecheap.com", "porkbun", False, "example.com")
        assert resolution.action == ResolutionAction.UNKNOWN
        assert resolution.reason == UnknownReason.AMBIGUOUS_REGISTRAR
        assert isinstance(resolution.warning, AmbiguousRegistrar)
        assert resolution.warning.details["whois_registrar"] == "namecheap.com"


class TestResolveMismatch:

    @pytest.mark.parametrize("hint_creds,expected", [
        (True, ResolutionAction.USE_REGISTRAR),
        (False, ResolutionAction.PROMPT_FOR_CREDENTIALS),
    ])
    def test_check_hint(self, hint_creds: bool, expected: ResolutionAction) -> None:
        engine = engine_with({"porkbun"} if hint_creds else set())
        resolution = engine.resolve_mismatch(MismatchChoice.CHECK_HINT, "namecheap.com", "porkbun")
        assert resolution.action == expected
        assert resolution.registrar == "porkbun"

    def test_supply_whois(self) -> None:
        resolution = engine_with(set()).resolve_mismatch(
            MismatchChoice.SUPPLY_WHOIS, "namecheap.com", "porkbun",
        )
        assert resolution.action == ResolutionAction.PROMPT_FOR_CREDENTIALS
        assert resolution.registrar == "namecheap.com"

    def test_give_up(self) -> None:
        resolution = engine_with({"porkbun"}).resolve_mismatch(
            MismatchChoice.GIVE_UP, "namecheap.com", "porkbun",
        )
        assert resolution.action == ResolutionAction.UNKNOWN
        assert resolution.reason == UnknownReason.USER_DECLINED
