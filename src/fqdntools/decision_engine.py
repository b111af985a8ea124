"""
Decision engine for registrar resolution.

Given the canonical registrar reported by WHOIS and the registrar the
operator hinted at, decide which registrar's credentials to use. The
procedure is a pure function of its inputs: credential presence is asked
through an injected callable and the TLD preference list comes from
domain.conf, so every branch can be exercised without a broker.

    WHOIS  | hint   | outcome
    -------+--------+----------------------------------------------------
    empty  | empty  | first TLD-priority registrar with credentials
    empty  | set    | hint if it has credentials, else prompt/unknown
    set    | empty  | WHOIS if it has credentials, else prompt/unknown
    equal  | equal  | as above
    set    | differs| WHOIS if it has credentials, else prompt mismatch;
           |        | non-interactively fall back to the hint
"""

from typing import Callable, Optional

from .enums import MismatchChoice, UnknownReason
from .exceptions import AmbiguousRegistrar
from .models import Resolution


HasCredentials = Callable[[str], bool]


class RegistrarDecisionEngine:
    """
    Resolves the registrar to act on for one domain.

    Args:
        has_credentials: Returns True when usable credentials exist
        tld_priority: Ordered registrar preference per TLD
    """

    def __init__(
        self,
        has_credentials: HasCredentials,
        tld_priority: Optional[dict[str, list[str]]] = None,
    ) -> None:
        self._has_credentials = has_credentials
        self._tld_priority = {k.lower(): list(v) for k, v in (tld_priority or {}).items()}

    def evaluate(
        self,
        whois_registrar: str,
        hint: str,
        interactive: bool,
        fqdn: str,
    ) -> Resolution:
        """
        Decide which registrar applies.

        Args:
            whois_registrar: Canonical WHOIS registrar, empty if unregistered
            hint: Canonical operator-supplied registrar, may be empty
            interactive: Whether the operator can be prompted
            fqdn: Domain being resolved (its TLD selects the priority list)

        Returns:
            Resolution describing the action to take
        """
        whois_registrar = whois_registrar or ""
        hint = hint or ""

        if not whois_registrar and not hint:
            return self._from_tld_priority(fqdn)

        if not whois_registrar or whois_registrar == hint:
            return self._single_candidate(hint or whois_registrar, interactive)

        if not hint:
            return self._single_candidate(whois_registrar, interactive)

        return self._mismatch(whois_registrar, hint, interactive, fqdn)

    def resolve_mismatch(self, choice: MismatchChoice, whois_registrar: str, hint: str) -> Resolution:
        """
        Turn the operator's answer to a mismatch prompt into a resolution.

        Args:
            choice: The operator's pick
            whois_registrar: Registrar reported by WHOIS
            hint: Registrar supplied by the operator

        Returns:
            Follow-up Resolution
        """
        if choice == MismatchChoice.SUPPLY_WHOIS:
            return Resolution.prompt_for_credentials(whois_registrar)
        if choice == MismatchChoice.CHECK_HINT:
            if self._has_credentials(hint):
                return Resolution.use(hint)
            return Resolution.prompt_for_credentials(hint)
        return Resolution.unknown(UnknownReason.USER_DECLINED)

    def _from_tld_priority(self, fqdn: str) -> Resolution:
        tld = fqdn.rstrip(".").rsplit(".", 1)[-1].lower()
        for registrar in self._tld_priority.get(tld, []):
            if self._has_credentials(registrar):
                return Resolution.use(registrar)
        return Resolution.unknown(UnknownReason.NO_REGISTRAR)

    def _single_candidate(self, registrar: str, interactive: bool) -> Resolution:
        if self._has_credentials(registrar):
            return Resolution.use(registrar)
        if interactive:
            return Resolution.prompt_for_credentials(registrar)
        return Resolution.unknown(UnknownReason.NO_CREDENTIALS)

    def _mismatch(self, whois_registrar: str, hint: str, interactive: bool, fqdn: str) -> Resolution:
        if self._has_credentials(whois_registrar):
            return Resolution.use(whois_registrar)
        if interactive:
            return Resolution.prompt_mismatch(whois_registrar, hint)
        if self._has_credentials(hint):
            return Resolution.use(hint)
        return Resolution.unknown(
            UnknownReason.AMBIGUOUS_REGISTRAR,
            warning=AmbiguousRegistrar(
                code="ambiguous_registrar",
                message=(
                    f"WHOIS reports {whois_registrar} for {fqdn} but {hint} was given, "
                    "and neither has credentials"
                ),
                details={"domain": fqdn, "whois_registrar": whois_registrar, "hint": hint},
                remediation=f"Add credentials for {whois_registrar} with fqdncredmgr.",
            ),
        )
