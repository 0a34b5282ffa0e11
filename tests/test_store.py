"""Tests for the UserStore document store.

Covers:
  - explicit open/close lifecycle
  - case-insensitive username lookup and uniqueness
  - compare-and-swap writes (version checks)
  - connection-string parsing
"""

import pytest

from lockbox.core.db import parse_database_url
from lockbox.db import UserStore, username_key
from lockbox.exceptions import ConcurrentModificationError, StorageError, UsernameTaken


def _user(user_id="u1", username="Alice"):
    return {"id": user_id, "username": username, "masterPassword": "blob", "banks": []}


class TestLifecycle:

    def test_creates_db_file(self, tmp_path):
        with UserStore(str(tmp_path / "lockbox.db")):
            pass
        assert (tmp_path / "lockbox.db").exists()

    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "sub" / "dir" / "lockbox.db"
        with UserStore(str(path)):
            pass
        assert path.exists()

    def test_operations_require_open_store(self):
        store = UserStore(":memory:")
        with pytest.raises(StorageError):
            store.get_by_id("u1")

    def test_open_is_idempotent_and_close_is_safe_twice(self):
        store = UserStore(":memory:")
        store.open()
        store.open()
        assert store.is_open
        store.close()
        store.close()
        assert not store.is_open

    def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "lockbox.db")
        with UserStore(path) as store:
            store.insert(_user())
        with UserStore(path) as store:
            assert store.get_by_id("u1")["username"] == "Alice"

    def test_unopenable_path_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            UserStore(str(blocker / "lockbox.db")).open()


class TestReads:

    def test_get_by_id_missing(self, store):
        assert store.get_by_id("nope") is None

    def test_get_by_username_ignores_case(self, store):
        store.insert(_user(username="Alice"))
        assert store.get_by_username("alice")["id"] == "u1"
        assert store.get_by_username("ALICE")["id"] == "u1"
        assert store.get_by_username("bob") is None

    def test_username_keeps_original_case(self, store):
        store.insert(_user(username="Alice"))
        assert store.get_by_id("u1")["username"] == "Alice"

    def test_regex_characters_are_literal(self, store):
        store.insert(_user(username="a.c"))
        assert store.get_by_username("abc") is None
        assert store.get_by_username("A.C")["id"] == "u1"

    def test_document_roundtrip(self, store):
        doc = _user()
        doc["banks"] = [{"id": "b1", "bankName": "ct"}]
        store.insert(doc)
        loaded = store.get_by_id("u1")
        assert loaded["banks"] == [{"id": "b1", "bankName": "ct"}]
        assert loaded["masterPassword"] == "blob"
        assert loaded["version"] == 1
        assert loaded["createdAt"]


class TestWrites:

    def test_duplicate_username_differing_by_case(self, store):
        store.insert(_user("u1", "alice"))
        with pytest.raises(UsernameTaken):
            store.insert(_user("u2", "ALICE"))

    def test_replace_bumps_version(self, store):
        store.insert(_user())
        doc = store.get_by_id("u1")
        doc["banks"].append({"id": "b1"})
        stored = store.replace(doc)
        assert stored["version"] == 2
        assert store.get_by_id("u1")["version"] == 2
        assert store.get_by_id("u1")["banks"] == [{"id": "b1"}]

    def test_stale_write_is_rejected(self, store):
        store.insert(_user())
        first = store.get_by_id("u1")
        second = store.get_by_id("u1")

        first["banks"].append({"id": "from-first"})
        store.replace(first)

        second["banks"].append({"id": "from-second"})
        with pytest.raises(ConcurrentModificationError):
            store.replace(second)

        assert store.get_by_id("u1")["banks"] == [{"id": "from-first"}]

    def test_replace_unknown_user_is_a_conflict(self, store):
        doc = _user("ghost")
        doc["version"] = 1
        with pytest.raises(ConcurrentModificationError):
            store.replace(doc)


class TestHelpers:

    def test_username_key(self):
        assert username_key("AlIcE") == "alice"
        assert username_key(" alice") == " alice"

    @pytest.mark.parametrize("url,expected", [
        ("sqlite:///data/lockbox.db", "data/lockbox.db"),
        ("sqlite:////var/lib/lockbox.db", "/var/lib/lockbox.db"),
        ("sqlite:///:memory:", ":memory:"),
        ("data/lockbox.db", "data/lockbox.db"),
    ])
    def test_parse_database_url(self, url, expected):
        assert parse_database_url(url) == expected

    @pytest.mark.parametrize("url", ["", "   ", "sqlite:///", "mongodb://localhost/lockbox"])
    def test_parse_database_url_rejects(self, url):
        with pytest.raises(ValueError):
            parse_database_url(url)
