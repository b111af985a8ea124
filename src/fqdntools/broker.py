"""
Credential broker over a local Unix socket.

The broker runs as root next to the credential database and answers
single-line requests from unprivileged tools::

    GET_CREDS:<provider>\\n  ->  OK:<username>|<secret>\\n
                             ->  ERROR:<reason>\\n

Each connection carries exactly one request. The server is stateless and
queries the store on every request. The client maps every outcome,
including transport failures, to the ``CredentialsError`` taxonomy.
"""

import asyncio
import os
import socket
import sqlite3
import stat
from pathlib import Path
from typing import Optional

from .audit_logger import AuditLogger
from .credential_store import CredentialStore
from .exceptions import (
    BrokerUnreachable,
    CredentialsError,
    DatabaseNotFound,
    GenericCredsError,
    IncompleteCredentials,
    InvalidResponse,
    NoCredentials,
    SocketNotFound,
    StoreNotInitialized,
)
from .models import Credential


SOCKET_PATH = Path("/run/fqdncredmgr.sock")
REQUEST_PREFIX = "GET_CREDS:"
MAX_REQUEST_BYTES = 1024
SOCKET_MODE = 0o600


class CredentialBroker:
    """
    Asyncio Unix socket server handing out registrar credentials.

    Args:
        store: Credential store queried for every request
        socket_path: Socket file to listen on (mode 0600)
        logger: Optional audit logger
        read_timeout: Seconds a client may take to send its request line
    """

    def __init__(
        self,
        store: CredentialStore,
        socket_path: Path = SOCKET_PATH,
        logger: Optional[AuditLogger] = None,
        read_timeout: float = 5.0,
    ) -> None:
        self._store = store
        self._socket_path = Path(socket_path)
        self._logger = logger
        self._read_timeout = read_timeout
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    def handle_request(self, line: str) -> str:
        """
        Answer one request line. Never raises.

        Args:
            line: Raw request, trailing CR/LF allowed

        Returns:
            Response line without the trailing newline
        """
        request = line.rstrip("\r\n")

        if not request.startswith(REQUEST_PREFIX):
            return "ERROR:unknown command"

        provider = request[len(REQUEST_PREFIX):].strip()
        if not provider:
            return "ERROR:provider required"
        if not provider.isprintable() or any(ch.isspace() for ch in provider):
            return "ERROR:malformed request"

        if not self._store.exists():
            return "ERROR:database not found"

        try:
            credential = self._store.get(provider)
        except StoreNotInitialized:
            return "ERROR:database not found"
        except sqlite3.Error as e:
            self._log_error("Credential lookup failed", e, provider)
            return f"ERROR:{e}".replace("\n", " ")

        if credential is None:
            return f"ERROR:no credentials for provider {provider}"
        if not credential.complete:
            return "ERROR:incomplete credentials"
        return f"OK:{credential.username}|{credential.secret}"

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            try:
                raw = await asyncio.wait_for(reader.readline(), timeout=self._read_timeout)
                line = raw.decode("utf-8")
            except (asyncio.TimeoutError, ValueError, UnicodeDecodeError):
                # ValueError covers requests longer than the stream limit
                response = "ERROR:malformed request"
            else:
                response = self.handle_request(line)

            if self._logger:
                self._logger.debug(
                    "CredentialBroker",
                    "Request served",
                    {"ok": response.startswith("OK:")},
                )

            writer.write((response + "\n").encode("utf-8"))
            await writer.drain()
        except (ConnectionError, OSError) as e:
            self._log_error("Connection dropped", e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def start(self) -> None:
        """Bind the socket, removing a stale socket file first."""
        if self._socket_path.exists() or self._socket_path.is_symlink():
            self._socket_path.unlink()
        self._socket_path.parent.mkdir(parents=True, exist_ok=True)

        self._server = await asyncio.start_unix_server(
            self._handle_connection,
            path=str(self._socket_path),
            limit=MAX_REQUEST_BYTES,
        )
        os.chmod(self._socket_path, SOCKET_MODE)

        if self._logger:
            self._logger.info(
                "CredentialBroker",
                "Listening",
                {"socket": str(self._socket_path), "database": str(self._store.db_path)},
            )

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        if self._socket_path.exists():
            self._socket_path.unlink()

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await self._server.serve_forever()
        finally:
            await self.close()

    def _log_error(self, message: str, error: Exception, provider: str = "") -> None:
        if self._logger:
            self._logger.log_error(
                "CredentialBroker",
                message,
                error=error,
                additional_data={"provider": provider} if provider else None,
            )


def parse_response(provider: str, response: str) -> Credential:
    """
    Map a broker response line to credentials or a taxonomy error.

    Raises:
        CredentialsError: One of the taxonomy subclasses
    """
    response = response.rstrip("\r\n")

    if response.startswith("OK:"):
        username, sep, secret = response[3:].partition("|")
        if not sep:
            raise InvalidResponse(response)
        if not username or not secret:
            raise IncompleteCredentials(provider)
        return Credential(provider=provider, username=username, secret=secret)

    if response.startswith("ERROR:"):
        detail = response[len("ERROR:"):]
        if detail == "database not found":
            raise DatabaseNotFound()
        if detail.startswith("no credentials"):
            raise NoCredentials(provider)
        if detail == "incomplete credentials":
            raise IncompleteCredentials(provider)
        raise GenericCredsError(detail)

    raise InvalidResponse(response)


class BrokerClient:
    """
    Blocking client of the credential broker.

    Args:
        socket_path: Broker socket
        timeout: Connect and read timeout in seconds
    """

    def __init__(self, socket_path: Path = SOCKET_PATH, timeout: float = 5.0) -> None:
        self._socket_path = Path(socket_path)
        self._timeout = timeout

    def _exchange(self, request: str) -> str:
        try:
            mode = os.stat(self._socket_path).st_mode
        except OSError:
            raise SocketNotFound(str(self._socket_path))
        if not stat.S_ISSOCK(mode):
            raise SocketNotFound(str(self._socket_path))

        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(self._timeout)
                sock.connect(str(self._socket_path))
                sock.sendall(request.encode("utf-8"))

                chunks: list[bytes] = []
                while True:
                    data = sock.recv(4096)
                    if not data:
                        break
                    chunks.append(data)
                    if b"\n" in data:
                        break
        except (ConnectionRefusedError, FileNotFoundError):
            raise SocketNotFound(str(self._socket_path))
        except socket.timeout:
            raise InvalidResponse()
        except OSError as e:
            raise GenericCredsError(str(e))

        try:
            return b"".join(chunks).decode("utf-8").split("\n", 1)[0]
        except UnicodeDecodeError:
            raise InvalidResponse()

    def get_credentials(self, provider: str) -> Credential:
        """
        Fetch the credentials of a provider.

        Raises:
            CredentialsError: SocketNotFound, NoCredentials, DatabaseNotFound,
                GenericCredsError, InvalidResponse or IncompleteCredentials
        """
        response = self._exchange(f"{REQUEST_PREFIX}{provider}\n")
        if not response:
            raise InvalidResponse(response)
        return parse_response(provider, response)

    def has_credentials(self, provider: str, strict: bool = False) -> bool:
        """
        True when usable credentials exist.

        Every broker error reads as False. With strict, an unreachable
        broker is raised instead.

        Raises:
            BrokerUnreachable: Only when strict is set
        """
        if not provider:
            return False
        try:
            self.get_credentials(provider)
        except BrokerUnreachable:
            if strict:
                raise
            return False
        except CredentialsError:
            return False
        return True
