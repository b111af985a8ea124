"""
Provisioning orchestrator for the fqdntools system.

This module coordinates the stores, the registrar resolution engine, the
credential broker, the provider plugins and the propagation pollers to
implement the fqdnmgr commands:

- check: status and registrar of a domain
- purchase: buy a domain through its registrar
- certify / cleanup: certbot DNS-01 manual hooks
- set_init_dns_records: initial A/MX records for fresh domains
- check_init_dns: one-shot check of those records
- list_domains: local listing or remote sync with the registrar
- sweep: periodic removal of non-owned rows
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Mapping, Optional, Protocol

from .audit_logger import AuditLogger
from .cache import ExpiringCache
from .config import SystemConfig
from .credential_store import CredentialStore
from .decision_engine import RegistrarDecisionEngine
from .dns_client import DnsProbe
from .domain_store import DomainStore
from .domain_validator import DomainValidator
from .enums import (
    DomainStatus,
    InitStatus,
    MismatchChoice,
    ProviderCapability,
    PurchaseResult,
    ResolutionAction,
)
from .exceptions import (
    BrokerUnreachable,
    CapabilityNotImplemented,
    ConfigurationMissing,
    CredentialsError,
    PropagationTimeout,
    ProviderError,
    ProviderNotFound,
    ValidationError,
)
from .models import (
    AcmeChallenge,
    CheckOutcome,
    Credential,
    DomainRecord,
    InitOutcome,
    InitReport,
    PropagationResult,
    PropagationTarget,
    Resolution,
    acme_challenge_records,
    init_records,
)
from .propagation import ParallelPropagationPoller, PropagationPoller, PropagationTimer
from .providers import ProviderRegistry, RegistrarProvider
from .registrar import RegistrarDetector, normalize_registrar


class CredentialSource(Protocol):
    """What the orchestrator needs from the credential broker client."""

    def get_credentials(self, provider: str) -> Credential: ...

    def has_credentials(self, provider: str, strict: bool = False) -> bool: ...


class Prompter(Protocol):
    """Interactive callbacks supplied by the terminal front end."""

    def offer_credentials(self, registrar: str, fqdn: str) -> Optional[tuple[str, str]]: ...

    def choose_mismatch(self, whois_registrar: str, hint: str, fqdn: str) -> MismatchChoice: ...

    def select_domains(self, domains: list[str]) -> list[str]: ...


CredentialWriter = Callable[[str, str, str], None]


def parse_selection(selection: str, count: int) -> list[int]:
    """
    Parse an interactive selection such as ``1,3-5`` or ``all``.

    Args:
        selection: Operator input, 1-based
        count: Number of listed items

    Returns:
        Sorted 0-based indexes

    Raises:
        ValidationError: On malformed or out-of-range input
    """
    text = selection.strip().lower()
    if text in ("all", "a", "*"):
        return list(range(count))

    indexes: set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                low, high = (int(x) for x in part.split("-", 1))
            else:
                low = high = int(part)
        except ValueError:
            raise ValidationError(
                code="invalid_selection",
                message=f"Invalid selection: {part!r}",
            )
        if low < 1 or high > count or low > high:
            raise ValidationError(
                code="invalid_selection",
                message=f"Selection {part!r} is outside 1-{count}",
            )
        indexes.update(range(low - 1, high))

    if not indexes:
        raise ValidationError(code="invalid_selection", message="Nothing selected")
    return sorted(indexes)


def challenge_from_environ(environ: Mapping[str, str]) -> AcmeChallenge:
    """
    Read the certbot manual hook environment.

    Raises:
        ConfigurationMissing: If CERTBOT_DOMAIN or CERTBOT_VALIDATION is unset
    """
    for variable in ("CERTBOT_DOMAIN", "CERTBOT_VALIDATION"):
        if not environ.get(variable):
            raise ConfigurationMissing(
                code="certbot_env_missing",
                message=f"{variable} environment variable not set",
                details={"variable": variable},
                remediation="Run this command as a certbot --manual-auth-hook or --manual-cleanup-hook.",
            )

    remaining = environ.get("CERTBOT_REMAINING_CHALLENGES", "")
    return AcmeChallenge(
        domain=environ["CERTBOT_DOMAIN"].strip().rstrip(".").lower(),
        validation=environ["CERTBOT_VALIDATION"].strip(),
        all_domains=[d for d in environ.get("CERTBOT_ALL_DOMAINS", "").split(",") if d],
        remaining_challenges=int(remaining) if remaining.isdigit() else None,
    )


def parse_provider_status(raw: Optional[str]) -> DomainStatus:
    """Map a provider's status string to a DomainStatus; anything unrecognized is unknown."""
    try:
        return DomainStatus((raw or "").strip().lower())
    except ValueError:
        return DomainStatus.UNKNOWN


def not_implemented(capability: ProviderCapability) -> str:
    return f"{capability.value} not implemented"


def require_capability(provider: RegistrarProvider, capability: ProviderCapability) -> None:
    """
    Fail before calling an operation the provider does not declare.

    Raises:
        CapabilityNotImplemented: If the capability is missing
    """
    if provider.supports(capability):
        return
    raise CapabilityNotImplemented(
        code="capability_not_implemented",
        message=f"Provider {provider.name}: {not_implemented(capability)}",
        details={"provider": provider.name, "capability": capability.value},
        remediation="Update the provider plugin or use a registrar that supports this operation.",
    )


class ProvisioningOrchestrator:
    """
    Coordinates all components behind the fqdnmgr commands.

    Args:
        config: System configuration
        domain_store: Domain status store
        cache: Expiring cache
        credentials: Broker client (or any CredentialSource)
        registry: Provider plugin registry
        detector: WHOIS/RDAP registrar detector
        probe: DNS probe
        prompter: Interactive callbacks; None runs non-interactively
        credential_writer: Stores credentials captured at a prompt
        logger: Optional audit logger
        clock: Current Unix time, injectable for tests
        sleep: Awaitable sleep, injectable for tests
        reporter: Receives human readable progress lines
    """

    def __init__(
        self,
        config: SystemConfig,
        domain_store: DomainStore,
        cache: ExpiringCache,
        credentials: CredentialSource,
        registry: ProviderRegistry,
        detector: RegistrarDetector,
        probe: DnsProbe,
        prompter: Optional[Prompter] = None,
        credential_writer: Optional[CredentialWriter] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], "asyncio.Future"] = asyncio.sleep,
        reporter: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._config = config
        self._domain_store = domain_store
        self._cache = cache
        self._credentials = credentials
        self._registry = registry
        self._detector = detector
        self._probe = probe
        self._prompter = prompter
        self._credential_writer = credential_writer
        self._logger = logger
        self._reporter = reporter

        self._validator = DomainValidator()
        self._engine = RegistrarDecisionEngine(
            has_credentials=self._has_credentials,
            tld_priority=config.domain.tld_priority,
        )
        self._timer = PropagationTimer(
            cache,
            domain_config=config.domain,
            settings=config.propagation,
            clock=clock,
        )
        self._poller = PropagationPoller(
            probe, self._timer, config.propagation, sleep=sleep, logger=logger, reporter=reporter,
        )
        self._parallel_poller = ParallelPropagationPoller(
            probe, self._timer, config.propagation, sleep=sleep, logger=logger, reporter=reporter,
        )

    @property
    def interactive(self) -> bool:
        return self._prompter is not None

    @property
    def timer(self) -> PropagationTimer:
        return self._timer

    # -- credentials and providers ---------------------------------------

    def _has_credentials(self, registrar: str) -> bool:
        """Credential presence for the decision engine; an unreachable broker is fatal."""
        return self._credentials.has_credentials(registrar, strict=True)

    @asynccontextmanager
    async def _provider(self, registrar: str) -> AsyncIterator[RegistrarProvider]:
        credential = self._credentials.get_credentials(registrar)
        provider = self._registry.create(registrar, credential, logger=self._logger)
        try:
            yield provider
        finally:
            await provider.aclose()

    def _capture_credentials(self, registrar: str, fqdn: str) -> None:
        answer = self._prompter.offer_credentials(registrar, fqdn)
        if answer is None:
            return
        if self._credential_writer is None:
            self._report(f"Cannot store credentials here. Run: fqdncredmgr add {registrar} <username>")
            return
        username, secret = answer
        self._credential_writer(registrar, username, secret)
        self._log_info("Credentials stored", {"registrar": registrar})
        self._report(f"Credentials for {registrar} stored. Re-run check for {fqdn}.")

    def _resolve_registrar(self, fqdn: str, whois_registrar: str, hint: str) -> str:
        resolution: Resolution = self._engine.evaluate(
            whois_registrar, hint, self.interactive, fqdn,
        )

        while True:
            if resolution.action == ResolutionAction.USE_REGISTRAR:
                return resolution.registrar

            if resolution.action == ResolutionAction.PROMPT_FOR_CREDENTIALS:
                self._capture_credentials(resolution.registrar, fqdn)
                return ""

            if resolution.action == ResolutionAction.PROMPT_MISMATCH:
                choice = self._prompter.choose_mismatch(
                    resolution.whois_registrar, resolution.hint, fqdn,
                )
                resolution = self._engine.resolve_mismatch(
                    choice, resolution.whois_registrar, resolution.hint,
                )
                continue

            if resolution.warning is not None and self._logger:
                self._logger.warn("RegistrarResolution", resolution.warning.message,
                                  resolution.warning.details)
            self._log_info("Registrar unresolved", {
                "domain": fqdn,
                "reason": resolution.reason.value if resolution.reason else "",
            })
            return ""

    # -- check ------------------------------------------------------------

    async def check(self, fqdn: str, hint: Optional[str] = None) -> CheckOutcome:
        """
        Determine status and registrar of a domain.

        Args:
            fqdn: Domain to check
            hint: Registrar suggested by the operator

        Returns:
            CheckOutcome; only free/owned/taken are persisted

        Raises:
            ValidationError: If fqdn is not a valid domain name
            StoreNotInitialized: If the domains database is missing
            BrokerUnreachable: If the credential broker cannot be contacted
        """
        # Step 1: Validate and normalize
        fqdn = self._validator.require_valid(fqdn)
        hint = normalize_registrar(hint)

        # Step 2: Final statuses from the local store are authoritative
        record = self._domain_store.get_status(fqdn)
        if record is not None and record.status.is_final:
            return CheckOutcome(fqdn, record.status, record.registrar or "")

        # Step 3: A local certificate means we already operate the domain
        if (self._config.paths.letsencrypt_live_dir / fqdn).is_dir():
            self._domain_store.upsert_final(fqdn, DomainStatus.OWNED, hint)
            return CheckOutcome(fqdn, DomainStatus.OWNED, hint)

        # Step 4: WHOIS
        info = await self._detector.lookup(fqdn)
        whois_registrar = "" if info.available else info.registrar

        # Step 5: Registrar resolution
        registrar = self._resolve_registrar(fqdn, whois_registrar, hint)
        if not registrar:
            return CheckOutcome(fqdn, DomainStatus.UNKNOWN)

        # Step 6: Ask the registrar
        status = await self._provider_status(fqdn, registrar)
        if not status.is_final:
            return CheckOutcome(fqdn, DomainStatus.UNKNOWN)

        self._domain_store.upsert_final(fqdn, status, registrar)
        return CheckOutcome(fqdn, status, registrar)

    async def _provider_status(self, fqdn: str, registrar: str) -> DomainStatus:
        try:
            async with self._provider(registrar) as provider:
                if not provider.supports(ProviderCapability.CHECK_DOMAIN_STATUS):
                    self._log_info("Provider cannot check status", {"registrar": registrar})
                    return DomainStatus.UNKNOWN
                raw = await provider.check_domain_status(fqdn)
        except BrokerUnreachable:
            raise
        except (CredentialsError, ProviderError) as e:
            self._log_error("Status check failed", e, {"domain": fqdn, "registrar": registrar})
            return DomainStatus.UNKNOWN

        return parse_provider_status(raw)

    # -- purchase ---------------------------------------------------------

    async def purchase(self, fqdn: str, registrar: str) -> PurchaseResult:
        """
        Buy a domain and record it as owned on success.

        Raises:
            CredentialsError: When the registrar's credentials are unavailable
            ProviderError: When the plugin is missing or cannot purchase
        """
        fqdn = self._validator.require_valid(fqdn)
        registrar = normalize_registrar(registrar)

        async with self._provider(registrar) as provider:
            require_capability(provider, ProviderCapability.PURCHASE)
            result = await provider.purchase(fqdn)

        self._log_info("Purchase finished", {
            "domain": fqdn, "registrar": registrar, "result": result.name,
        })
        if result == PurchaseResult.OK:
            self._domain_store.upsert_final(fqdn, DomainStatus.OWNED, registrar)
        return result

    # -- ACME hooks -------------------------------------------------------

    async def certify(
        self,
        registrar: str,
        challenge: AcmeChallenge,
        timeout: Optional[int] = None,
    ) -> Optional[PropagationResult]:
        """
        certbot --manual-auth-hook: publish the challenge and wait for it.

        Returns:
            The propagation result, or None when the record was already
            published at the authoritative nameserver

        Raises:
            PropagationTimeout: If the record never became visible
        """
        registrar = normalize_registrar(registrar)
        wan_ip = self._config.require_wan_ip()
        domain = challenge.domain
        records = acme_challenge_records(domain, challenge.validation)

        progress = challenge.progress
        if progress:
            self._report(f"Challenge {progress[0]} of {progress[1]}: {domain}")

        target = await self._poller.build_target(domain, records, registrar)
        if await self._poller.already_visible(target):
            self._report(f"{domain}: challenge record already present, skipping")
            return None

        async with self._provider(registrar) as provider:
            require_capability(provider, ProviderCapability.CERTIFY)
            await provider.certify(domain, challenge.validation, wan_ip)
        target.first_check_timestamp = self._timer.mark_change(domain, records)

        result = await self._poller.wait(target, timeout)
        if not result.propagated:
            raise PropagationTimeout(
                code="propagation_timeout",
                message=f"ACME challenge for {domain} did not propagate within {result.elapsed_seconds}s",
                details={"domain": domain, "nameserver": target.nameserver},
                remediation="Check the record at the registrar and re-run certbot.",
            )
        return result

    async def cleanup(self, registrar: str, challenge: AcmeChallenge) -> None:
        """certbot --manual-cleanup-hook: remove the challenge record."""
        registrar = normalize_registrar(registrar)
        wan_ip = self._config.require_wan_ip()

        async with self._provider(registrar) as provider:
            require_capability(provider, ProviderCapability.CLEANUP)
            await provider.cleanup(challenge.domain, challenge.validation, wan_ip)

        self._timer.clear_change(
            challenge.domain,
            acme_challenge_records(challenge.domain, challenge.validation),
        )
        self._log_info("Challenge removed", {"domain": challenge.domain, "registrar": registrar})

    # -- initial DNS records ----------------------------------------------

    async def set_init_dns_records(
        self,
        domains: Optional[list[str]] = None,
        registrar_hint: Optional[str] = None,
        override: bool = False,
        sync: bool = False,
        timeout: Optional[int] = None,
    ) -> InitReport:
        """
        Push the initial A @, A * and MX @ records.

        With domains, each one is handled in turn (registrar detected via
        check, hint as fallback). With only a registrar, every domain the
        registrar lists is offered, pushed, and in sync mode waited for in
        parallel.

        Raises:
            ValidationError: If neither domains nor a registrar is given
            WanIpUnknown: If the WAN address is not configured
        """
        if not domains and not registrar_hint:
            raise ValidationError(
                code="missing_target",
                message="Either domains or a registrar is required",
            )

        wan_ip = self._config.require_wan_ip()
        if domains:
            canonical = [self._validator.require_valid(d) for d in domains]
            report = InitReport()
            for fqdn in canonical:
                report.outcomes.append(
                    await self._init_single(fqdn, registrar_hint, wan_ip, override, sync, timeout)
                )
            return report

        return await self._init_batch(
            normalize_registrar(registrar_hint), wan_ip, override, sync, timeout,
        )

    async def _init_single(
        self,
        fqdn: str,
        registrar_hint: Optional[str],
        wan_ip: str,
        override: bool,
        sync: bool,
        timeout: Optional[int],
    ) -> InitOutcome:
        outcome = await self.check(fqdn, registrar_hint)
        registrar = outcome.registrar or normalize_registrar(registrar_hint)
        if not registrar:
            return InitOutcome(fqdn, InitStatus.NO_REGISTRAR)

        records = init_records(fqdn, wan_ip)
        try:
            async with self._provider(registrar) as provider:
                if not provider.supports(ProviderCapability.SET_INIT_DNS_RECORDS):
                    return InitOutcome(fqdn, InitStatus.PROVIDER_ERROR, registrar,
                                       not_implemented(ProviderCapability.SET_INIT_DNS_RECORDS))

                target = await self._poller.build_target(fqdn, records, registrar)
                if await self._poller.already_visible(target):
                    if not override:
                        self._report(f"{fqdn}: records already set, skipping")
                        return InitOutcome(fqdn, InitStatus.ALREADY_SET, registrar)
                    await provider.set_init_dns_records(fqdn, wan_ip, override=True)
                    return InitOutcome(fqdn, InitStatus.PUSHED, registrar, "override")

                await provider.set_init_dns_records(fqdn, wan_ip, override=override)
                target.first_check_timestamp = self._timer.mark_change(fqdn, records)
                if not sync:
                    return InitOutcome(fqdn, InitStatus.PUSHED, registrar)

                result = await self._poller.wait(target, timeout)
                if not result.propagated:
                    return InitOutcome(fqdn, InitStatus.TIMEOUT, registrar)

                await provider.set_init_dns_records(
                    fqdn, wan_ip, ttl=self._config.propagation.production_ttl, override=True,
                )
                return InitOutcome(fqdn, InitStatus.SUCCESS, registrar)
        except BrokerUnreachable:
            raise
        except CredentialsError as e:
            self._log_error("Credentials unavailable", e, {"domain": fqdn, "registrar": registrar})
            return InitOutcome(fqdn, InitStatus.NO_CREDENTIALS, registrar, e.message)
        except ProviderNotFound as e:
            return InitOutcome(fqdn, InitStatus.PROVIDER_ERROR, registrar, e.message)
        except ProviderError as e:
            self._log_error("Provider call failed", e, {"domain": fqdn, "registrar": registrar})
            return InitOutcome(fqdn, InitStatus.API_ERROR, registrar, e.message)

    async def _init_batch(
        self,
        registrar: str,
        wan_ip: str,
        override: bool,
        sync: bool,
        timeout: Optional[int],
    ) -> InitReport:
        outcomes: dict[str, InitOutcome] = {}
        waiting: list[PropagationTarget] = []

        async with self._provider(registrar) as provider:
            if not provider.supports(ProviderCapability.LIST_OWNED_DOMAINS):
                detail = not_implemented(ProviderCapability.LIST_OWNED_DOMAINS)
                self._report(f"{registrar}: cannot list domains ({detail})")
                return InitReport(outcomes=[
                    InitOutcome("*", InitStatus.PROVIDER_ERROR, registrar, detail),
                ])

            owned = await provider.list_owned_domains()
            if not owned:
                self._report(f"No domains found at {registrar}")
                return InitReport()

            selected = self._prompter.select_domains(owned) if self._prompter else list(owned)
            can_set = provider.supports(ProviderCapability.SET_INIT_DNS_RECORDS)

            for fqdn in selected:
                records = init_records(fqdn, wan_ip)
                target = await self._poller.build_target(fqdn, records, registrar)
                visible = await self._poller.already_visible(target)
                if visible and not override:
                    outcomes[fqdn] = InitOutcome(fqdn, InitStatus.ALREADY_SET, registrar)
                    continue
                if not can_set:
                    outcomes[fqdn] = InitOutcome(
                        fqdn, InitStatus.PROVIDER_ERROR, registrar,
                        not_implemented(ProviderCapability.SET_INIT_DNS_RECORDS),
                    )
                    continue

                try:
                    await provider.set_init_dns_records(fqdn, wan_ip, override=override or visible)
                except ProviderError as e:
                    self._log_error("Provider call failed", e, {"domain": fqdn, "registrar": registrar})
                    outcomes[fqdn] = InitOutcome(fqdn, InitStatus.API_ERROR, registrar, e.message)
                    continue

                if visible or not sync:
                    outcomes[fqdn] = InitOutcome(fqdn, InitStatus.PUSHED, registrar)
                    continue

                target.first_check_timestamp = self._timer.mark_change(fqdn, records)
                waiting.append(target)

            if waiting:
                results = await self._parallel_poller.wait_all(waiting, timeout)
                for fqdn, result in results.items():
                    if not result.propagated:
                        outcomes[fqdn] = InitOutcome(fqdn, InitStatus.TIMEOUT, registrar)
                        continue
                    try:
                        await provider.set_init_dns_records(
                            fqdn, wan_ip, ttl=self._config.propagation.production_ttl, override=True,
                        )
                    except ProviderError as e:
                        outcomes[fqdn] = InitOutcome(fqdn, InitStatus.API_ERROR, registrar, e.message)
                        continue
                    outcomes[fqdn] = InitOutcome(fqdn, InitStatus.SUCCESS, registrar)

        return InitReport(outcomes=[outcomes[d] for d in selected if d in outcomes])

    async def check_init_dns(self, fqdn: str) -> bool:
        """One authoritative-then-public check of the initial records."""
        fqdn = self._validator.require_valid(fqdn)
        wan_ip = self._config.require_wan_ip()
        target = await self._poller.build_target(fqdn, init_records(fqdn, wan_ip))
        return await self._poller.check_once(target)

    # -- listing and housekeeping -----------------------------------------

    async def list_domains(self, registrar: Optional[str] = None, mode: Optional[str] = None) -> list[DomainRecord]:
        """
        List domains from the local store, or sync them from the registrar.

        In remote mode every domain the registrar reports is re-checked
        with the provider and final statuses are persisted.

        Args:
            registrar: Restrict to one registrar
            mode: "local" (default) or "remote"
        """
        registrar = normalize_registrar(registrar)
        mode = (mode or "local").lower()
        if mode not in ("local", "remote"):
            raise ValidationError(code="invalid_mode", message=f"Unknown list mode: {mode}")
        if mode == "local":
            return self._domain_store.list_domains(registrar or None)

        if not registrar:
            raise ValidationError(code="missing_registrar", message="Remote listing needs a registrar")

        records: list[DomainRecord] = []
        async with self._provider(registrar) as provider:
            require_capability(provider, ProviderCapability.LIST_OWNED_DOMAINS)
            can_check = provider.supports(ProviderCapability.CHECK_DOMAIN_STATUS)
            for fqdn in await provider.list_owned_domains():
                status = DomainStatus.OWNED
                if can_check:
                    try:
                        status = parse_provider_status(await provider.check_domain_status(fqdn))
                    except ProviderError as e:
                        self._log_error("Status check failed", e, {"domain": fqdn, "registrar": registrar})
                        status = DomainStatus.UNKNOWN
                self._domain_store.upsert_final(fqdn, status, registrar)
                records.append(DomainRecord(domain=fqdn, status=status, registrar=registrar))
        return records

    def sweep(self, now: Optional[int] = None) -> int:
        """Delete non-owned rows once per DOMAIN_CLEANUP_DAYS."""
        deleted = self._domain_store.sweep_non_owned(
            self._config.domain.cleanup_interval_seconds, now=now,
        )
        self._log_info("Domain sweep", {"deleted": deleted})
        return deleted

    # -- helpers ----------------------------------------------------------

    def _report(self, line: str) -> None:
        if self._reporter:
            self._reporter(line)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info("ProvisioningOrchestrator", message, data)

    def _log_error(self, message: str, error: Exception, data: dict) -> None:
        if self._logger:
            self._logger.log_error("ProvisioningOrchestrator", message, error=error, additional_data=data)


def build_orchestrator(
    config: SystemConfig,
    credentials: CredentialSource,
    registry: Optional[ProviderRegistry] = None,
    prompter: Optional[Prompter] = None,
    logger: Optional[AuditLogger] = None,
    reporter: Optional[Callable[[str], None]] = None,
    store_credentials: bool = False,
) -> ProvisioningOrchestrator:
    """
    Wire a ProvisioningOrchestrator from configuration.

    Args:
        config: Loaded system configuration
        credentials: Broker client
        registry: Provider registry (defaults to entry point discovery)
        prompter: Interactive callbacks, None for non-interactive runs
        logger: Audit logger
        reporter: Progress line sink
        store_credentials: Allow prompts to write the credentials database
    """
    from .rdap_client import RDAPClient

    cache = ExpiringCache(config.paths.cache_file)
    credential_writer = None
    if store_credentials:
        credential_writer = CredentialStore(config.paths.creds_db).add

    return ProvisioningOrchestrator(
        config=config,
        domain_store=DomainStore(config.paths.domains_db, config.paths.sweep_state_file),
        cache=cache,
        credentials=credentials,
        registry=registry or ProviderRegistry(),
        detector=RegistrarDetector(cache, rdap_client=RDAPClient(), logger=logger),
        probe=DnsProbe(
            cache,
            public_resolver=config.propagation.public_resolver,
            timeout=config.propagation.dns_timeout_seconds,
            logger=logger,
        ),
        prompter=prompter,
        credential_writer=credential_writer,
        logger=logger,
        reporter=reporter,
    )
