"""
FQDN validation and normalization.

Names are lowercased, internationalized names are converted to their
IDNA (punycode) form, and the result must be a fully qualified hostname:
at most 253 characters, at least two labels, every label 1-63 letters,
digits or hyphens without a leading or trailing hyphen, and an alphabetic
TLD of two or more characters.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from .enums import DomainValidationErrorCode
from .exceptions import ValidationError


MAX_FQDN_LENGTH = 253

_LABEL = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
# Punycode TLDs (xn--...) are alphabetic in their Unicode form
_TLD = re.compile(r"^([a-z]{2,63}|xn--[a-z0-9-]{1,59})$")


@dataclass
class DomainValidationResult:
    """Result of domain validation operation."""

    valid: bool
    canonical_domain: Optional[str]
    error_code: Optional[DomainValidationErrorCode] = None
    message: str = ""


class DomainValidator:
    """Validates and normalizes fully qualified domain names."""

    def validate(self, raw_domain: str) -> DomainValidationResult:
        """
        Validate and normalize a domain string.

        Args:
            raw_domain: The raw domain string to validate

        Returns:
            DomainValidationResult with the canonical form or the failure
        """
        if not raw_domain or not raw_domain.strip():
            return self._fail(DomainValidationErrorCode.EMPTY_INPUT, "Domain input is empty")

        try:
            canonical = self.normalize_to_canonical(raw_domain.strip().rstrip("."))
        except ValidationError as e:
            return self._fail(DomainValidationErrorCode.IDNA_ERROR, e.message)

        if len(canonical) > MAX_FQDN_LENGTH:
            return self._fail(
                DomainValidationErrorCode.TOO_LONG,
                f"Domain is longer than {MAX_FQDN_LENGTH} characters",
            )

        labels = canonical.split(".")
        if len(labels) < 2:
            return self._fail(
                DomainValidationErrorCode.NOT_QUALIFIED,
                f"'{canonical}' is not a fully qualified domain name",
            )

        for label in labels:
            if not _LABEL.match(label):
                return self._fail(
                    DomainValidationErrorCode.INVALID_LABEL,
                    f"Invalid label '{label}' in '{canonical}'",
                )

        if not _TLD.match(labels[-1]):
            return self._fail(
                DomainValidationErrorCode.INVALID_TLD,
                f"Invalid TLD '{labels[-1]}'",
            )

        return DomainValidationResult(valid=True, canonical_domain=canonical)

    def normalize_to_canonical(self, domain: str) -> str:
        """
        Convert domain to canonical form (lowercase, IDNA-encoded).

        Raises:
            ValidationError: If IDNA encoding fails
        """
        domain_lower = domain.lower()

        if not any(ord(c) > 127 for c in domain_lower):
            return domain_lower

        try:
            return idna.encode(domain_lower, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"domain": domain, "idna_error": str(e)},
            )

    def require_valid(self, raw_domain: str) -> str:
        """
        Return the canonical form or raise.

        Raises:
            ValidationError: If the domain is not a valid FQDN
        """
        result = self.validate(raw_domain)
        if not result.valid:
            raise ValidationError(
                code=result.error_code.value,
                message=f"Invalid FQDN '{raw_domain}': {result.message}",
                details={"domain": raw_domain},
            )
        return result.canonical_domain

    @staticmethod
    def _fail(code: DomainValidationErrorCode, message: str) -> DomainValidationResult:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error_code=code,
            message=message,
        )


def is_valid_fqdn(domain: str) -> bool:
    return DomainValidator().validate(domain).valid
