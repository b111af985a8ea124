"""
Property-based tests for the domain status store.

Only free, owned and taken are ever persisted; upserts are idempotent;
the sweep removes non-owned rows at most once per interval.
"""

import sqlite3
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fqdntools.domain_store import DomainStore, create_schema
from fqdntools.enums import DomainStatus, FINAL_STATUSES
from fqdntools.exceptions import InvalidStatus, StoreNotInitialized


DAY = 86400

domain_strategy = st.builds(
    lambda sld, tld: f"{sld}.{tld}",
    st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"), min_size=1, max_size=20),
    st.sampled_from(["com", "net", "org", "de", "io"]),
)
registrar_strategy = st.sampled_from(["namecheap.com", "porkbun.com", "godaddy.com", ""])


def make_store(tmpdir: str, **kwargs) -> DomainStore:
    db_path = Path(tmpdir) / "domains.db"
    create_schema(db_path)
    return DomainStore(db_path, sweep_state_path=Path(tmpdir) / "last_domain_cleanup", **kwargs)


class TestUpsertProperty:
    """Final statuses are written once; repeated upserts change nothing."""

    @given(
        domain=domain_strategy,
        status=st.sampled_from(sorted(FINAL_STATUSES, key=lambda s: s.value)),
        registrar=registrar_strategy,
    )
    @settings(max_examples=50)
    def test_upsert_is_idempotent(self, domain: str, status: DomainStatus, registrar: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            assert store.upsert_final(domain, status, registrar)
            first = store.get_status(domain)
            assert store.upsert_final(domain, status, registrar)
            assert store.get_status(domain) == first
            assert len(store.list_domains()) == 1
            assert first.status == status
            assert first.registrar == (registrar or None)

    @given(
        domain=domain_strategy,
        initial=st.sampled_from([DomainStatus.FREE, DomainStatus.OWNED, DomainStatus.TAKEN]),
        transient=st.sampled_from([DomainStatus.UNKNOWN, DomainStatus.UNAVAILABLE, "unknown"]),
    )
    @settings(max_examples=50)
    def test_non_final_status_never_overwrites(self, domain, initial, transient) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.upsert_final(domain, initial, "namecheap.com")
            assert store.upsert_final(domain, transient, "porkbun.com") is False

            record = store.get_status(domain)
            assert record.status == initial
            assert record.registrar == "namecheap.com"

    def test_non_final_status_never_creates_a_row(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.upsert_final("example.com", DomainStatus.UNKNOWN)
            assert store.get_status("example.com") is None

    def test_invalid_status_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            with pytest.raises(InvalidStatus):
                store.upsert_final("example.com", "parked")

    def test_status_change_overwrites(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.upsert_final("example.com", DomainStatus.FREE)
            store.upsert_final("example.com", DomainStatus.OWNED, "porkbun.com")
            record = store.get_status("example.com")
            assert record.status == DomainStatus.OWNED
            assert record.registrar == "porkbun.com"


class TestListing:

    def test_list_filters_by_registrar(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.upsert_final("b.com", DomainStatus.OWNED, "namecheap.com")
            store.upsert_final("a.com", DomainStatus.TAKEN, "namecheap.com")
            store.upsert_final("c.com", DomainStatus.OWNED, "porkbun.com")

            assert [r.domain for r in store.list_domains()] == ["a.com", "b.com", "c.com"]
            assert [r.domain for r in store.list_domains("namecheap.com")] == ["a.com", "b.com"]


class TestMissingDatabase:

    def test_every_operation_requires_the_database(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DomainStore(Path(tmpdir) / "missing.db")
            with pytest.raises(StoreNotInitialized):
                store.get_status("example.com")
            with pytest.raises(StoreNotInitialized):
                store.upsert_final("example.com", DomainStatus.OWNED)
            with pytest.raises(StoreNotInitialized):
                store.list_domains()
            assert not (Path(tmpdir) / "missing.db").exists()


class TestSweepProperty:
    """Sweeps delete non-owned rows at most once per interval."""

    def test_sweep_keeps_owned_rows(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.upsert_final("owned.com", DomainStatus.OWNED, "porkbun.com")
            store.upsert_final("free.com", DomainStatus.FREE)
            store.upsert_final("taken.com", DomainStatus.TAKEN)

            now = 1_700_000_000
            assert store.sweep_non_owned(7 * DAY, now=now) == 2
            assert [r.domain for r in store.list_domains()] == ["owned.com"]
            assert store.last_sweep() == now

    def test_unavailable_rows_from_older_writers_are_swept(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            with sqlite3.connect(str(store.db_path)) as conn:
                conn.execute("INSERT INTO domains (domain, status) VALUES ('x.com', 'unavailable')")
            assert store.sweep_non_owned(7 * DAY, now=1_700_000_000) == 1

    @given(days_ago=st.integers(min_value=0, max_value=6))
    @settings(max_examples=20)
    def test_sweep_skipped_inside_interval(self, days_ago: int) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            now = 1_700_000_000
            last = now - days_ago * DAY
            Path(tmpdir, "last_domain_cleanup").write_text(f"{last}\n")
            store.upsert_final("free.com", DomainStatus.FREE)

            assert store.sweep_non_owned(7 * DAY, now=now) == 0
            assert store.get_status("free.com") is not None
            assert store.last_sweep() == last

    def test_sweep_runs_once_interval_elapsed(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            now = 1_700_000_000
            Path(tmpdir, "last_domain_cleanup").write_text(f"{now - 7 * DAY}\n")
            store.upsert_final("free.com", DomainStatus.FREE)

            assert store.sweep_non_owned(7 * DAY, now=now) == 1
            assert store.last_sweep() == now

    def test_store_clock_used_by_default(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, clock=lambda: 1_800_000_000.0)
            store.sweep_non_owned(7 * DAY)
            assert store.last_sweep() == 1_800_000_000
