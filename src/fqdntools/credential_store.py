"""
Registrar credential store backed by sqlite.

The database is only readable by root; unprivileged tools reach it through
the credential broker (see ``broker.py``).
"""

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Optional

from .exceptions import NotFound, StoreNotInitialized, ValidationError
from .models import Credential


SCHEMA = """
CREATE TABLE IF NOT EXISTS creds (
    username TEXT,
    key TEXT,
    provider TEXT UNIQUE
);
"""


def create_schema(path: Path) -> None:
    """Create the credentials database. Used by the installer and tests."""
    with closing(sqlite3.connect(str(path))) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def _mask_part(text: str) -> str:
    if len(text) > 2:
        return text[0] + "*" * (len(text) - 2) + text[-1]
    return "*" * len(text)


def mask_username(username: str) -> str:
    """
    Mask a username for display.

    ``john.doe@example.com`` becomes ``j******e@e******.com``: the local
    part keeps its first and last character, the domain label keeps its
    first character, the extension is shown as is. Parts of two characters
    or fewer are masked completely. Plain usernames follow the local part
    rule.
    """
    if "@" not in username:
        return _mask_part(username)

    local, _, domain = username.partition("@")
    masked_local = _mask_part(local)

    if "." in domain:
        label, _, extension = domain.partition(".")
        if len(label) > 2:
            masked_label = label[0] + "*" * (len(label) - 1)
        else:
            masked_label = "*" * len(label)
        return f"{masked_local}@{masked_label}.{extension}"

    return f"{masked_local}@{_mask_part(domain)}"


class CredentialStore:
    """
    Provider credentials keyed by canonical registrar name.

    Args:
        db_path: sqlite database created by the installer
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def exists(self) -> bool:
        return self._db_path.exists()

    def _connect(self) -> sqlite3.Connection:
        if not self.exists():
            raise StoreNotInitialized(str(self._db_path), store="credentials")
        return sqlite3.connect(str(self._db_path))

    @staticmethod
    def _validate(provider: str, username: str, secret: str) -> None:
        if not provider or any(ch.isspace() for ch in provider):
            raise ValidationError(
                code="invalid_provider",
                message=f"Invalid provider name: {provider!r}",
            )
        if "|" in username or "\n" in username or "\r" in username:
            raise ValidationError(
                code="invalid_username",
                message="Username may not contain '|' or line breaks",
            )
        if "\n" in secret or "\r" in secret:
            raise ValidationError(
                code="invalid_secret",
                message="Key may not contain line breaks",
            )

    def add(self, provider: str, username: str, secret: str) -> None:
        """Insert or replace the credentials of a provider."""
        self._validate(provider, username, secret)
        with closing(self._connect()) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO creds (username, key, provider) VALUES (?, ?, ?)",
                (username, secret, provider),
            )
            conn.commit()

    def update(self, provider: str, username: str, secret: str) -> None:
        """
        Replace the credentials of an existing provider.

        Raises:
            NotFound: If the provider has no stored credentials
        """
        self._validate(provider, username, secret)
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "UPDATE creds SET username = ?, key = ? WHERE provider = ?",
                (username, secret, provider),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise NotFound(
                    code="provider_not_found",
                    message=f"No credentials found for provider {provider}",
                    details={"provider": provider},
                )

    def delete(self, provider: str) -> None:
        """
        Remove the credentials of a provider.

        Raises:
            NotFound: If nothing was deleted
        """
        with closing(self._connect()) as conn:
            cursor = conn.execute("DELETE FROM creds WHERE provider = ?", (provider,))
            conn.commit()
            if cursor.rowcount == 0:
                raise NotFound(
                    code="provider_not_found",
                    message=f"No credentials found for provider {provider}",
                    details={"provider": provider},
                )

    def list(self) -> list[tuple[str, str]]:
        """(provider, masked username) pairs ordered by provider."""
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT provider, username FROM creds ORDER BY provider"
            ).fetchall()
        return [(provider, mask_username(username or "")) for provider, username in rows]

    def get(self, provider: str) -> Optional[Credential]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT username, key FROM creds WHERE provider = ? LIMIT 1",
                (provider,),
            ).fetchone()
        if row is None:
            return None
        username, secret = row
        return Credential(provider=provider, username=username or "", secret=secret or "")
