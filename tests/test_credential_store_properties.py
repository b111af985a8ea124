"""
Property-based tests for the credential store and username masking.
"""

import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fqdntools.credential_store import CredentialStore, create_schema, mask_username
from fqdntools.exceptions import NotFound, StoreNotInitialized, ValidationError


def make_store(tmpdir: str) -> CredentialStore:
    db_path = Path(tmpdir) / "creds.db"
    create_schema(db_path)
    return CredentialStore(db_path)


class TestMaskingProperty:
    """Masked usernames never reveal more than the documented characters."""

    @pytest.mark.parametrize("username,expected", [
        ("john.doe@example.com", "j******e@e******.com"),
        ("ab@example.com", "**@e******.com"),
        ("john@ex.io", "j**n@**.io"),
        ("apiuser", "a*****r"),
        ("ab", "**"),
        ("", ""),
    ])
    def test_known_masks(self, username: str, expected: str) -> None:
        assert mask_username(username) == expected

    @given(
        local=st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz."), min_size=3, max_size=20),
        label=st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz"), min_size=3, max_size=20),
        extension=st.sampled_from(["com", "net", "de", "co.uk"]),
    )
    @settings(max_examples=100)
    def test_mask_preserves_shape(self, local: str, label: str, extension: str) -> None:
        username = f"{local}@{label}.{extension}"
        masked = mask_username(username)

        assert len(masked) == len(username)
        assert masked.endswith(f".{extension}")
        masked_local, _, masked_domain = masked.partition("@")
        assert masked_local[0] == local[0]
        assert masked_local[-1] == local[-1]
        assert set(masked_local[1:-1]) <= {"*"}
        assert masked_domain[0] == label[0]
        assert set(masked_domain[1:len(label)]) <= {"*"}


class TestCrudOperations:

    def test_add_get_list(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.add("namecheap.com", "john.doe@example.com", "s3cret")
            store.add("porkbun.com", "apiuser", "pk1_abc")

            credential = store.get("namecheap.com")
            assert credential.username == "john.doe@example.com"
            assert credential.secret == "s3cret"
            assert credential.complete
            assert "s3cret" not in repr(credential)
            assert store.list() == [
                ("namecheap.com", "j******e@e******.com"),
                ("porkbun.com", "a*****r"),
            ]

    def test_add_replaces(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            store.add("namecheap.com", "old", "one")
            store.add("namecheap.com", "new", "two")
            assert store.get("namecheap.com").username == "new"
            assert len(store.list()) == 1

    def test_update_and_delete_require_existing_row(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            with pytest.raises(NotFound):
                store.update("namecheap.com", "user", "key")
            with pytest.raises(NotFound):
                store.delete("namecheap.com")

            store.add("namecheap.com", "user", "key")
            store.update("namecheap.com", "user2", "key2")
            assert store.get("namecheap.com").secret == "key2"
            store.delete("namecheap.com")
            assert store.get("namecheap.com") is None

    @pytest.mark.parametrize("provider,username,secret", [
        ("", "user", "key"),
        ("name cheap", "user", "key"),
        ("namecheap.com", "us|er", "key"),
        ("namecheap.com", "us\ner", "key"),
        ("namecheap.com", "user", "ke\ny"),
    ])
    def test_invalid_input_rejected(self, provider: str, username: str, secret: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)
            with pytest.raises(ValidationError):
                store.add(provider, username, secret)

    def test_missing_database(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CredentialStore(Path(tmpdir) / "creds.db")
            assert not store.exists()
            with pytest.raises(StoreNotInitialized):
                store.list()
