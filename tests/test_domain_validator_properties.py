"""
Property-based tests for FQDN validation and normalization.
"""

import string

import idna
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fqdntools.domain_validator import DomainValidator, is_valid_fqdn
from fqdntools.enums import DomainValidationErrorCode
from fqdntools.exceptions import ValidationError


TLDS = ["com", "net", "org", "cz", "io", "dev"]


def valid_ascii_label() -> st.SearchStrategy[str]:
    """Labels of letters, digits and inner hyphens, never a punycode prefix."""
    alphanumeric = st.sampled_from(string.ascii_lowercase + string.digits)
    return st.one_of(
        alphanumeric,
        st.builds(
            lambda first, middle, last: first + middle + last,
            alphanumeric,
            st.text(alphabet=string.ascii_lowercase + string.digits + "-", min_size=0, max_size=20),
            alphanumeric,
        ),
    ).filter(lambda s: "--" not in s[2:4])


def valid_ascii_domain() -> st.SearchStrategy[str]:
    return st.builds(
        lambda labels, tld: ".".join(labels + [tld]),
        st.lists(valid_ascii_label(), min_size=1, max_size=3),
        st.sampled_from(TLDS),
    )


def valid_idn_label() -> st.SearchStrategy[str]:
    international = "äöüéèàáçñ"
    chars = string.ascii_lowercase + international
    return st.builds(
        lambda first, middle: first + middle,
        st.sampled_from(international),
        st.text(alphabet=chars, min_size=0, max_size=8),
    )


class TestCanonicalForm:

    @given(domain=valid_ascii_domain())
    @settings(max_examples=100)
    def test_valid_domains_accepted(self, domain: str) -> None:
        result = DomainValidator().validate(domain)
        assert result.valid, result.message
        assert result.canonical_domain == domain

    @given(domain=valid_ascii_domain())
    @settings(max_examples=100)
    def test_case_and_trailing_dot_normalized(self, domain: str) -> None:
        validator = DomainValidator()
        assert validator.require_valid(f"  {domain.upper()}. ") == domain

    @given(label=valid_idn_label(), tld=st.sampled_from(TLDS))
    @settings(max_examples=100)
    def test_idn_converted_to_punycode(self, label: str, tld: str) -> None:
        domain = f"{label}.{tld}"
        canonical = DomainValidator().require_valid(domain)
        assert canonical.startswith("xn--")
        assert canonical == idna.encode(domain, uts46=True).decode("ascii")

    @given(domain=valid_ascii_domain())
    @settings(max_examples=50)
    def test_idempotent(self, domain: str) -> None:
        validator = DomainValidator()
        once = validator.require_valid(domain)
        assert validator.require_valid(once) == once


class TestRejections:

    @pytest.mark.parametrize("raw,code", [
        ("", DomainValidationErrorCode.EMPTY_INPUT),
        ("   ", DomainValidationErrorCode.EMPTY_INPUT),
        ("localhost", DomainValidationErrorCode.NOT_QUALIFIED),
        ("-bad.com", DomainValidationErrorCode.INVALID_LABEL),
        ("bad-.com", DomainValidationErrorCode.INVALID_LABEL),
        ("a..com", DomainValidationErrorCode.INVALID_LABEL),
        ("under_score.com", DomainValidationErrorCode.INVALID_LABEL),
        ("bad label.com", DomainValidationErrorCode.INVALID_LABEL),
        ("example.c", DomainValidationErrorCode.INVALID_TLD),
        ("example.123", DomainValidationErrorCode.INVALID_TLD),
        ("a" * 64 + ".com", DomainValidationErrorCode.INVALID_LABEL),
    ])
    def test_error_codes(self, raw: str, code: DomainValidationErrorCode) -> None:
        result = DomainValidator().validate(raw)
        assert not result.valid
        assert result.error_code == code
        assert result.canonical_domain is None

    def test_too_long(self) -> None:
        domain = ".".join(["a" * 63] * 4) + ".com"
        result = DomainValidator().validate(domain)
        assert result.error_code == DomainValidationErrorCode.TOO_LONG

    @given(
        label=valid_ascii_label(),
        bad=st.sampled_from(list("!@#$%^&*()+=[]{}|;:'\",<>?/\\ \t")),
        tld=st.sampled_from(TLDS),
    )
    @settings(max_examples=100)
    def test_forbidden_characters(self, label: str, bad: str, tld: str) -> None:
        assert not is_valid_fqdn(f"{label}{bad}{label}.{tld}")

    def test_require_valid_raises(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            DomainValidator().require_valid("localhost")
        assert exc_info.value.code == DomainValidationErrorCode.NOT_QUALIFIED.value
        assert exc_info.value.exit_code == 2
