"""
Domain status store backed by sqlite.

Holds the last known final status of every domain the tools have looked
at. Only ``free``, ``owned`` and ``taken`` are ever written; transient
answers never create or overwrite a row. The database is created by the
installer and is never created implicitly here.
"""

import sqlite3
import time
from contextlib import closing
from pathlib import Path
from typing import Callable, Optional, Union

from .enums import DomainStatus
from .exceptions import InvalidStatus, StoreNotInitialized
from .models import DomainRecord


SCHEMA = """
CREATE TABLE IF NOT EXISTS domains (
    domain TEXT PRIMARY KEY,
    status TEXT NOT NULL CHECK(status IN ('free', 'owned', 'taken', 'unavailable')),
    registrar TEXT DEFAULT NULL,
    dns_init INTEGER DEFAULT NULL,
    cert_date TEXT DEFAULT NULL
);
"""


def create_schema(path: Path) -> None:
    """Create the domains database. Used by the installer and tests."""
    with closing(sqlite3.connect(str(path))) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


class DomainStore:
    """
    Persistent map from domain to last known final status.

    Args:
        db_path: sqlite database created by the installer
        sweep_state_path: File recording when the last sweep ran
        clock: Returns the current Unix time; injectable for tests
    """

    def __init__(
        self,
        db_path: Path,
        sweep_state_path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._sweep_state_path = Path(sweep_state_path) if sweep_state_path else None
        self._clock = clock

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        if not self._db_path.exists():
            raise StoreNotInitialized(str(self._db_path), store="domains")
        return sqlite3.connect(str(self._db_path))

    def get_status(self, domain: str) -> Optional[DomainRecord]:
        """Return the stored row for a domain, or None."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT domain, status, registrar, dns_init, cert_date "
                "FROM domains WHERE domain = ?",
                (domain,),
            ).fetchone()
        return self._to_record(row) if row else None

    def upsert_final(
        self,
        domain: str,
        status: Union[DomainStatus, str],
        registrar: Optional[str] = None,
    ) -> bool:
        """
        Persist a final status.

        Args:
            domain: Fully qualified domain name
            status: free, owned or taken; unavailable and unknown are ignored
            registrar: Canonical registrar name, empty stored as NULL

        Returns:
            True if a row was written, False for a non-final status

        Raises:
            InvalidStatus: If status is not a known domain status
        """
        try:
            status = DomainStatus(status)
        except ValueError:
            raise InvalidStatus(
                code="invalid_status",
                message=f"Unknown domain status: {status!r}",
                details={"domain": domain, "status": str(status)},
            )

        if not status.is_final:
            return False

        with closing(self._connect()) as conn:
            conn.execute(
                "INSERT INTO domains (domain, status, registrar) VALUES (?, ?, ?) "
                "ON CONFLICT(domain) DO UPDATE SET "
                "status = excluded.status, registrar = excluded.registrar",
                (domain, status.value, registrar or None),
            )
            conn.commit()
        return True

    def list_domains(self, registrar: Optional[str] = None) -> list[DomainRecord]:
        """All rows ordered by domain, optionally filtered by registrar."""
        query = "SELECT domain, status, registrar, dns_init, cert_date FROM domains"
        params: tuple = ()
        if registrar:
            query += " WHERE registrar = ?"
            params = (registrar,)
        query += " ORDER BY domain"

        with closing(self._connect()) as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._to_record(row) for row in rows]

    def last_sweep(self) -> int:
        """Unix time of the last sweep, 0 when it never ran."""
        if self._sweep_state_path is None or not self._sweep_state_path.exists():
            return 0
        try:
            return int(self._sweep_state_path.read_text(encoding="utf-8").strip() or 0)
        except ValueError:
            return 0

    def sweep_non_owned(self, interval_seconds: int, now: Optional[int] = None) -> int:
        """
        Delete every row whose status is not owned, at most once per interval.

        Args:
            interval_seconds: Minimum time between two sweeps
            now: Current Unix time (defaults to the store clock)

        Returns:
            Number of deleted rows (0 when the interval has not elapsed)
        """
        now = int(self._clock()) if now is None else int(now)
        if now - self.last_sweep() < interval_seconds:
            return 0

        with closing(self._connect()) as conn:
            cursor = conn.execute("DELETE FROM domains WHERE status != 'owned'")
            conn.commit()
            deleted = cursor.rowcount

        if self._sweep_state_path is not None:
            self._sweep_state_path.parent.mkdir(parents=True, exist_ok=True)
            self._sweep_state_path.write_text(f"{now}\n", encoding="utf-8")
        return deleted

    @staticmethod
    def _to_record(row: tuple) -> DomainRecord:
        domain, status, registrar, dns_init, cert_date = row
        return DomainRecord(
            domain=domain,
            status=DomainStatus(status),
            registrar=registrar,
            dns_init=dns_init,
            cert_date=cert_date,
        )
