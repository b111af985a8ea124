"""
File-backed expiring cache.

Entries are stored one per line as ``<kind> <key> <value> <timestamp>
[extra]``. Each kind has a fixed TTL (see ``CacheKind.ttl``). Reads honour
the TTL without rewriting the file; ``compact`` drops expired rows. Every
write goes through a temporary file followed by an atomic rename so
readers in other processes never see a partial file. Concurrent writers
may lose each other's updates (last writer wins).
"""

import os
import time
from pathlib import Path
from typing import Callable, Optional, Union

from .enums import DEFAULT_CACHE_TTL, CacheKind
from .models import CacheEntry


NONE_SENTINEL = "_none_"

Clock = Callable[[], float]


def _kind_value(kind: Union[CacheKind, str]) -> str:
    return kind.value if isinstance(kind, CacheKind) else kind


def ttl_for(kind: Union[CacheKind, str]) -> Optional[int]:
    """TTL in seconds for a kind, None when entries never expire."""
    try:
        return CacheKind(_kind_value(kind)).ttl
    except ValueError:
        return DEFAULT_CACHE_TTL


def parse_line(line: str) -> Optional[CacheEntry]:
    """Parse one cache line, returning None for malformed rows."""
    parts = line.split()
    if len(parts) < 4:
        return None
    try:
        written_at = int(parts[3])
    except ValueError:
        return None
    extra = " ".join(parts[4:]) or None
    return CacheEntry(
        kind=parts[0],
        key=parts[1],
        value=parts[2],
        written_at=written_at,
        extra=extra,
    )


class ExpiringCache:
    """
    Typed key/value cache with per-kind expiry, persisted to a flat file.

    Args:
        path: Cache file location (missing file means empty cache)
        clock: Returns the current Unix time; injectable for tests
        compact_on_open: Drop expired rows when the cache is constructed
    """

    def __init__(
        self,
        path: Path,
        clock: Clock = time.time,
        compact_on_open: bool = True,
    ) -> None:
        self._path = Path(path)
        self._clock = clock
        if compact_on_open and self._path.exists():
            self.compact()

    @property
    def path(self) -> Path:
        return self._path

    def now(self) -> int:
        return int(self._clock())

    def get(self, kind: Union[CacheKind, str], key: str) -> Optional[str]:
        """
        Return the live value for (kind, key), or None on a miss.

        When several rows share the same (kind, key) the newest wins.
        """
        entry = self.get_entry(kind, key)
        return entry.value if entry else None

    def get_entry(self, kind: Union[CacheKind, str], key: str) -> Optional[CacheEntry]:
        kind_value = _kind_value(kind)
        newest: Optional[CacheEntry] = None
        for entry in self._read_entries():
            if entry.kind != kind_value or entry.key != key:
                continue
            if newest is None or entry.written_at >= newest.written_at:
                newest = entry

        if newest is None or self._expired(newest, self.now()):
            return None
        return newest

    def set(
        self,
        kind: Union[CacheKind, str],
        key: str,
        value: str,
        extra: Optional[str] = None,
    ) -> None:
        """
        Store a value, superseding any previous row for (kind, key).

        Raises:
            ValueError: If key or value is empty or contains whitespace
        """
        kind_value = _kind_value(kind)
        for label, text in (("key", key), ("value", value)):
            if not text or any(ch.isspace() for ch in text):
                raise ValueError(f"Cache {label} must be non-empty without whitespace: {text!r}")

        entries = [
            e for e in self._read_entries()
            if not (e.kind == kind_value and e.key == key)
        ]
        entries.append(CacheEntry(kind_value, key, value, self.now(), extra))
        self._write_entries(entries)

    def delete(self, kind: Union[CacheKind, str], key: str) -> None:
        kind_value = _kind_value(kind)
        entries = self._read_entries()
        remaining = [e for e in entries if not (e.kind == kind_value and e.key == key)]
        if len(remaining) != len(entries):
            self._write_entries(remaining)

    def compact(self) -> int:
        """
        Drop expired and malformed rows.

        Returns:
            Number of lines removed
        """
        if not self._path.exists():
            return 0

        lines = self._read_lines()
        now = self.now()
        kept: list[CacheEntry] = []
        for line in lines:
            entry = parse_line(line)
            if entry is not None and not self._expired(entry, now):
                kept.append(entry)

        removed = len(lines) - len(kept)
        if removed:
            self._write_entries(kept)
        return removed

    def _expired(self, entry: CacheEntry, now: int) -> bool:
        ttl = ttl_for(entry.kind)
        if ttl is None:
            return False
        return entry.written_at + ttl <= now

    def _read_lines(self) -> list[str]:
        try:
            with open(self._path, "r", encoding="utf-8", errors="replace") as f:
                return [line for line in f.read().splitlines() if line.strip()]
        except FileNotFoundError:
            return []

    def _read_entries(self) -> list[CacheEntry]:
        entries = []
        for line in self._read_lines():
            entry = parse_line(line)
            if entry is not None:
                entries.append(entry)
        return entries

    def _write_entries(self, entries: list[CacheEntry]) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.{os.getpid()}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            for entry in entries:
                f.write(entry.to_line() + "\n")
        os.replace(tmp_path, self._path)
