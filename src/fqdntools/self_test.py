"""
Preflight self-test for the fqdntools system.

Verifies that the files and services the commands rely on are in place
before an operator (or certbot) starts a real run: the domains database,
the credential broker (or at least its database), the WAN address, a
writable cache file and the domain.conf file.
"""

import os
import stat
import time
from dataclasses import dataclass, field
from typing import Optional

from .audit_logger import AuditLogger
from .config import SystemConfig
from .exceptions import WanIpUnknown


@dataclass
class CheckItemResult:
    """Result of a single preflight check."""

    name: str
    success: bool
    detail: str = ""
    required: bool = True


@dataclass
class SelfTestResult:
    """Complete self-test result."""

    items: list[CheckItemResult] = field(default_factory=list)
    total_duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return all(item.success for item in self.items if item.required)

    @property
    def failed_items(self) -> list[CheckItemResult]:
        return [item for item in self.items if not item.success]


class SelfTest:
    """
    Preflight checks for fqdnmgr.

    Args:
        config: System configuration to check
        logger: Optional audit logger
    """

    def __init__(self, config: SystemConfig, logger: Optional[AuditLogger] = None) -> None:
        self._config = config
        self._logger = logger

    def run(self) -> SelfTestResult:
        start_time = time.perf_counter()

        items = [
            self.check_domains_db(),
            self.check_credentials(),
            self.check_wan_ip(),
            self.check_cache_writable(),
            self.check_domain_conf(),
        ]

        result = SelfTestResult(
            items=items,
            total_duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        if self._logger:
            self._logger.info("SelfTest", "Self-test finished", {
                "success": result.success,
                "failed": [item.name for item in result.failed_items],
            })
        return result

    def check_domains_db(self) -> CheckItemResult:
        path = self._config.paths.domains_db
        if path.is_file():
            return CheckItemResult("domains database", True, str(path))
        return CheckItemResult("domains database", False, f"{path} not found (run the installer)")

    def check_credentials(self) -> CheckItemResult:
        """The broker socket is preferred; the database alone is enough for root."""
        socket_path = self._config.paths.broker_socket
        try:
            if stat.S_ISSOCK(socket_path.stat().st_mode):
                return CheckItemResult("credential broker", True, str(socket_path))
        except OSError:
            pass

        creds_db = self._config.paths.creds_db
        if creds_db.is_file() and os.access(creds_db, os.R_OK):
            return CheckItemResult("credential broker", True, f"{creds_db} (broker not running)")
        return CheckItemResult(
            "credential broker", False,
            f"{socket_path} not found; start fqdncredmgrd",
        )

    def check_wan_ip(self) -> CheckItemResult:
        try:
            return CheckItemResult("WAN address", True, self._config.require_wan_ip())
        except WanIpUnknown as e:
            return CheckItemResult("WAN address", False, e.message)

    def check_cache_writable(self) -> CheckItemResult:
        path = self._config.paths.cache_file
        target = path if path.exists() else path.parent
        if os.access(target, os.W_OK):
            return CheckItemResult("cache file", True, str(path))
        return CheckItemResult("cache file", False, f"{target} is not writable")

    def check_domain_conf(self) -> CheckItemResult:
        # domain.conf is optional; defaults apply when it is missing.
        path = self._config.paths.domain_conf
        if path.is_file():
            return CheckItemResult("domain.conf", True, str(path), required=False)
        return CheckItemResult("domain.conf", False, f"{path} not found, using defaults", required=False)

    @staticmethod
    def print_results(result: SelfTestResult) -> None:
        print("fqdnmgr self-test")
        print("=" * 60)
        for item in result.items:
            status = "✓" if item.success else ("✗" if item.required else "!")
            print(f"  {status} {item.name}: {item.detail}")

        print(f"\n{'-' * 60}")
        if result.success:
            print("✓ All required checks passed")
        else:
            print("✗ Self-test failed")
        print(f"  Duration: {result.total_duration_ms:.0f}ms")


def run_self_test(
    config: SystemConfig,
    print_output: bool = True,
    logger: Optional[AuditLogger] = None,
) -> SelfTestResult:
    """
    Convenience function to run the self-test.

    Args:
        config: System configuration to check
        print_output: Whether to print results to stdout
        logger: Optional audit logger

    Returns:
        SelfTestResult with check outcomes
    """
    self_test = SelfTest(config, logger)
    result = self_test.run()
    if print_output:
        self_test.print_results(result)
    return result
