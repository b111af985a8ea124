"""
Tests for the credential broker wire protocol and client error taxonomy.
"""

import asyncio
import os
import stat
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fqdntools.broker import BrokerClient, CredentialBroker, parse_response
from fqdntools.credential_store import CredentialStore, create_schema
from fqdntools.exceptions import (
    DatabaseNotFound,
    GenericCredsError,
    IncompleteCredentials,
    InvalidResponse,
    NoCredentials,
    SocketNotFound,
)
from fqdntools.audit_logger import NullLogger


def make_broker(tmpdir: str, with_db: bool = True) -> CredentialBroker:
    db_path = Path(tmpdir) / "creds.db"
    if with_db:
        create_schema(db_path)
    return CredentialBroker(
        CredentialStore(db_path),
        socket_path=Path(tmpdir) / "broker.sock",
        logger=NullLogger(),
        read_timeout=0.5,
    )


class TestRequestHandling:
    """handle_request answers every line with exactly one response line."""

    def test_ok_response(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            CredentialStore(Path(tmpdir) / "creds.db").add("namecheap.com", "user", "key")
            assert broker.handle_request("GET_CREDS:namecheap.com\n") == "OK:user|key"

    def test_error_responses(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            store = CredentialStore(Path(tmpdir) / "creds.db")
            store.add("porkbun.com", "", "key")

            assert broker.handle_request("GET_CREDS:\n") == "ERROR:provider required"
            assert broker.handle_request("HELLO\n") == "ERROR:unknown command"
            assert broker.handle_request("GET_CREDS:namecheap.com\n") == (
                "ERROR:no credentials for provider namecheap.com"
            )
            assert broker.handle_request("GET_CREDS:porkbun.com\n") == "ERROR:incomplete credentials"

    def test_unknown_provider_maps_to_no_credentials(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            response = broker.handle_request("GET_CREDS:wedos.com\n")
            assert response == "ERROR:no credentials for provider wedos.com"
            with pytest.raises(NoCredentials) as excinfo:
                parse_response("wedos.com", response)
            assert excinfo.value.details["provider"] == "wedos.com"

    def test_provider_with_inner_whitespace_is_malformed(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            assert broker.handle_request("GET_CREDS:a b\n") == "ERROR:malformed request"

    def test_missing_database(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir, with_db=False)
            assert broker.handle_request("GET_CREDS:namecheap.com") == "ERROR:database not found"

    @given(line=st.text(max_size=200))
    @settings(max_examples=100)
    def test_never_raises(self, line: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            response = broker.handle_request(line)
            assert response.startswith(("OK:", "ERROR:"))
            assert "\n" not in response


class TestResponseParsing:
    """Every response line maps to credentials or a taxonomy error."""

    def test_ok(self) -> None:
        credential = parse_response("namecheap.com", "OK:user|a|b\n")
        assert credential.username == "user"
        assert credential.secret == "a|b"

    @pytest.mark.parametrize("line,error,exit_code", [
        ("ERROR:no credentials for provider namecheap.com", NoCredentials, 11),
        ("ERROR:database not found", DatabaseNotFound, 12),
        ("ERROR:disk I/O error", GenericCredsError, 13),
        ("garbage", InvalidResponse, 14),
        ("OK:nopipe", InvalidResponse, 14),
        ("ERROR:incomplete credentials", IncompleteCredentials, 15),
        ("OK:|key", IncompleteCredentials, 15),
    ])
    def test_errors(self, line: str, error: type, exit_code: int) -> None:
        with pytest.raises(error) as excinfo:
            parse_response("namecheap.com", line)
        assert excinfo.value.exit_code == exit_code
        assert excinfo.value.wire_line.startswith("CREDS_ERROR:")


class TestClientTransport:

    def test_missing_socket(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = BrokerClient(Path(tmpdir) / "absent.sock")
            with pytest.raises(SocketNotFound) as excinfo:
                client.get_credentials("namecheap.com")
            assert excinfo.value.exit_code == 10
            assert client.has_credentials("namecheap.com") is False

    def test_regular_file_is_not_a_socket(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "broker.sock"
            path.write_text("")
            with pytest.raises(SocketNotFound):
                BrokerClient(path).get_credentials("namecheap.com")

    def test_has_credentials_empty_provider(self) -> None:
        assert BrokerClient(Path("/nonexistent.sock")).has_credentials("") is False

    def test_strict_presence_check_raises_when_unreachable(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = BrokerClient(Path(tmpdir) / "absent.sock")
            with pytest.raises(SocketNotFound):
                client.has_credentials("namecheap.com", strict=True)
            assert client.has_credentials("", strict=True) is False


class TestEndToEnd:
    """A real asyncio server on a temporary socket."""

    def test_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            CredentialStore(Path(tmpdir) / "creds.db").add("namecheap.com", "user", "key")
            client = BrokerClient(broker.socket_path, timeout=2.0)

            async def run():
                await broker.start()
                try:
                    mode = os.stat(broker.socket_path).st_mode
                    loop = asyncio.get_running_loop()
                    credential = await loop.run_in_executor(None, client.get_credentials, "namecheap.com")
                    missing = await loop.run_in_executor(None, client.has_credentials, "porkbun.com")
                    return mode, credential, missing
                finally:
                    await broker.close()

            mode, credential, missing = asyncio.run(run())

            assert stat.S_ISSOCK(mode)
            assert stat.S_IMODE(mode) == 0o600
            assert credential.username == "user"
            assert credential.secret == "key"
            assert missing is False
            assert not broker.socket_path.exists()

    def test_stale_socket_replaced(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)
            broker.socket_path.write_text("stale")

            async def run():
                await broker.start()
                try:
                    return stat.S_ISSOCK(os.stat(broker.socket_path).st_mode)
                finally:
                    await broker.close()

            assert asyncio.run(run())

    def test_silent_client_gets_malformed_request(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            broker = make_broker(tmpdir)

            async def run():
                await broker.start()
                try:
                    reader, writer = await asyncio.open_unix_connection(str(broker.socket_path))
                    response = await asyncio.wait_for(reader.readline(), timeout=5)
                    writer.close()
                    return response
                finally:
                    await broker.close()

            assert asyncio.run(run()) == b"ERROR:malformed request\n"
