"""
Adaptive DNS propagation polling.

After a record change is pushed to a registrar, the dependent step (ACME
validation, mail setup) must wait until the new records are visible at
the domain's authoritative nameserver and at a public resolver. The wait
is adaptive: each nameserver has a learned average propagation time
(``ap`` cache entries, never expiring) and the poller probes at half the
remaining expected time, never more often than every two seconds.

Two pollers share the timing model:

- ``PropagationPoller`` waits for a single domain (ACME hooks, serial
  initial setup).
- ``ParallelPropagationPoller`` interleaves many domains on a one second
  tick with independent timeouts (batch initial setup).

The first-check timestamp of a change is persisted as a ``dns_change``
cache entry when the change is pushed, so a restarted process keeps
measuring from the original push.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .cache import ExpiringCache
from .config import DomainConfig, PropagationConfig
from .dns_client import DnsProbe
from .enums import CacheKind, PropagationState
from .models import PropagationResult, PropagationTarget, RecordExpectation


Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
Reporter = Callable[[str], None]


class PropagationTimer:
    """
    Timing model and change bookkeeping shared by both pollers.

    Args:
        cache: Expiring cache holding ``ap`` and ``dns_change`` entries
        domain_config: Per-registrar averages from domain.conf
        settings: Default average and minimum probe interval
        clock: Returns the current Unix time
    """

    def __init__(
        self,
        cache: ExpiringCache,
        domain_config: Optional[DomainConfig] = None,
        settings: Optional[PropagationConfig] = None,
        clock: Clock = time.time,
    ) -> None:
        self._cache = cache
        self._domain_config = domain_config or DomainConfig()
        self._settings = settings or PropagationConfig()
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def average_for(self, nameserver: Optional[str], registrar: Optional[str] = None) -> int:
        """
        Expected propagation time in seconds.

        Lookup order: learned average for the nameserver, the registrar's
        configured average, the global default.
        """
        if nameserver:
            learned = self._cache.get(CacheKind.AP, nameserver)
            if learned is not None:
                try:
                    return int(learned)
                except ValueError:
                    pass

        configured = self._domain_config.average_for(registrar or "")
        if configured is not None:
            return configured
        return self._settings.default_average_seconds

    def next_wait(self, average: int, first_check_ts: int) -> int:
        """Half of the remaining expected time, at least the minimum interval."""
        remaining = average + first_check_ts - self.now()
        return max(self._settings.min_interval_seconds, remaining // 2)

    def record_propagation(self, nameserver: Optional[str], actual_seconds: int) -> int:
        """
        Fold a measured propagation time into the nameserver's average.

        The first measurement is stored as is; later ones are averaged
        with the previous value.

        Returns:
            The new average
        """
        actual_seconds = max(0, int(actual_seconds))
        if not nameserver:
            return actual_seconds

        previous = self._cache.get(CacheKind.AP, nameserver)
        try:
            new_average = (int(previous) + actual_seconds) // 2 if previous else actual_seconds
        except ValueError:
            new_average = actual_seconds

        self._cache.set(CacheKind.AP, nameserver, str(new_average))
        return new_average

    def mark_change(self, domain: str, records: list[RecordExpectation]) -> int:
        """
        Record that the records were pushed.

        Any earlier entry is overwritten: a new push restarts the
        measurement. A poll started without a push reads the stored entry
        through ``first_check_timestamp`` instead.

        Returns:
            The first-check timestamp to measure from
        """
        now = self.now()
        for record in records:
            self._cache.set(CacheKind.DNS_CHANGE, record.change_key(domain), str(now))
        return now

    def first_check_timestamp(self, domain: str, records: list[RecordExpectation]) -> int:
        """Earliest live push timestamp of the records, or now."""
        timestamps = []
        for record in records:
            value = self._cache.get(CacheKind.DNS_CHANGE, record.change_key(domain))
            if value is not None and value.isdigit():
                timestamps.append(int(value))
        return min(timestamps) if timestamps else self.now()

    def clear_change(self, domain: str, records: list[RecordExpectation]) -> None:
        for record in records:
            self._cache.delete(CacheKind.DNS_CHANGE, record.change_key(domain))


class PropagationPoller:
    """
    Waits for one domain's records to propagate.

    Args:
        probe: DNS access
        timer: Timing model
        settings: Buffer and default timeout
        sleep: Awaitable sleep, injectable for tests
        logger: Optional audit logger
        reporter: Optional callback receiving human readable progress lines
    """

    def __init__(
        self,
        probe: DnsProbe,
        timer: PropagationTimer,
        settings: Optional[PropagationConfig] = None,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[AuditLogger] = None,
        reporter: Optional[Reporter] = None,
    ) -> None:
        self._probe = probe
        self._timer = timer
        self._settings = settings or PropagationConfig()
        self._sleep = sleep
        self._logger = logger
        self._reporter = reporter

    @property
    def timer(self) -> PropagationTimer:
        return self._timer

    async def build_target(
        self,
        domain: str,
        records: list[RecordExpectation],
        registrar: Optional[str] = None,
    ) -> PropagationTarget:
        nameserver = await self._probe.authoritative_ns(domain)
        return PropagationTarget(
            domain=domain,
            records_expected=records,
            nameserver=nameserver,
            first_check_timestamp=self._timer.first_check_timestamp(domain, records),
            average_propagation_seconds=self._timer.average_for(nameserver, registrar),
            registrar=registrar,
        )

    async def already_visible(self, target: PropagationTarget) -> bool:
        """Idempotency guard: are the records already at the authoritative server?"""
        return await self._probe.all_visible(target.nameserver, target.records_expected)

    async def check_once(self, target: PropagationTarget) -> bool:
        return await self._probe.propagated(target.nameserver, target.records_expected)

    async def wait(self, target: PropagationTarget, timeout: Optional[int] = None) -> PropagationResult:
        """
        Poll until the records are visible everywhere or the timeout passes.

        Args:
            target: Domain, records and timing context
            timeout: Seconds to wait (defaults to the configured timeout)

        Returns:
            PropagationResult with PROPAGATED or TIMEOUT
        """
        timeout = self._settings.timeout_seconds if timeout is None else timeout
        domain = target.domain
        start = self._timer.now()
        elapsed = 0
        checks = 0

        self._report(f"{domain}: waiting for propagation (timeout: {timeout}s)")

        while elapsed < timeout:
            checks += 1
            visible = await self.check_once(target)
            elapsed = self._timer.now() - start
            if visible:
                self._report(f"{domain}: propagated ({elapsed}s)")
                buffer = self._settings.buffer_seconds
                if buffer > 0:
                    self._report(f"{domain}: waiting {buffer}s for global DNS sync")
                    await self._sleep(buffer)

                actual = self._timer.now() - target.first_check_timestamp
                if checks > 1:
                    self._timer.record_propagation(target.nameserver, actual)
                self._timer.clear_change(domain, target.records_expected)

                self._log_info("Records propagated", {
                    "domain": domain,
                    "nameserver": target.nameserver,
                    "seconds": actual,
                    "checks": checks,
                })
                return PropagationResult(
                    domain=domain,
                    state=PropagationState.PROPAGATED,
                    elapsed_seconds=actual,
                    nameserver=target.nameserver,
                    checks=checks,
                )

            if elapsed >= timeout:
                break
            wait = self._timer.next_wait(
                target.average_propagation_seconds,
                target.first_check_timestamp,
            )
            wait = min(wait, timeout - elapsed)

            self._report(
                f"{domain}: [avg: {target.average_propagation_seconds}s | next: {wait}s | "
                f"elapsed: {elapsed}s | timeout: {timeout}s]"
            )
            await self._sleep(wait)
            elapsed = self._timer.now() - start

        self._report(f"{domain}: timeout after {timeout}s")
        if self._logger:
            self._logger.warn("PropagationPoller", "Propagation timed out", {
                "domain": domain,
                "nameserver": target.nameserver,
                "timeout": timeout,
            })
        return PropagationResult(
            domain=domain,
            state=PropagationState.TIMEOUT,
            elapsed_seconds=elapsed,
            nameserver=target.nameserver,
            checks=checks,
        )

    def _report(self, line: str) -> None:
        if self._reporter:
            self._reporter(line)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info("PropagationPoller", message, data)


class ParallelPropagationPoller(PropagationPoller):
    """
    Waits for many domains at once on a fixed tick.

    Every domain keeps its own start time, nameserver, average and timeout;
    one domain timing out does not affect the others.
    """

    async def wait_all(
        self,
        targets: list[PropagationTarget],
        timeout: Optional[int] = None,
    ) -> dict[str, PropagationResult]:
        """
        Poll all targets until each one propagated or timed out.

        Args:
            targets: One target per domain
            timeout: Per-domain timeout in seconds

        Returns:
            Mapping of domain to its result
        """
        timeout = self._settings.timeout_seconds if timeout is None else timeout
        tick = self._settings.parallel_tick_seconds

        started = {t.domain: self._timer.now() for t in targets}
        checks = {t.domain: 0 for t in targets}
        pending = {t.domain: t for t in targets}
        results: dict[str, PropagationResult] = {}

        self._report(f"Waiting for {len(targets)} domain(s) (timeout: {timeout}s each)")

        while pending:
            for domain, target in list(pending.items()):
                elapsed = self._timer.now() - started[domain]
                if elapsed >= timeout:
                    results[domain] = PropagationResult(
                        domain=domain,
                        state=PropagationState.TIMEOUT,
                        elapsed_seconds=elapsed,
                        nameserver=target.nameserver,
                        checks=checks[domain],
                    )
                    del pending[domain]
                    self._report(f"{domain}: timeout after {elapsed}s")
                    continue

                checks[domain] += 1
                if await self.check_once(target):
                    if checks[domain] > 1:
                        self._timer.record_propagation(target.nameserver, elapsed)
                    self._timer.clear_change(domain, target.records_expected)
                    results[domain] = PropagationResult(
                        domain=domain,
                        state=PropagationState.PROPAGATED,
                        elapsed_seconds=elapsed,
                        nameserver=target.nameserver,
                        checks=checks[domain],
                    )
                    del pending[domain]
                    self._report(f"{domain}: propagated ({elapsed}s)")

            if pending:
                await self._sleep(tick)

        propagated = [d for d, r in results.items() if r.propagated]
        self._log_info("Parallel propagation finished", {
            "propagated": len(propagated),
            "total": len(targets),
        })
        return results
