"""Tests for the key-value storage layer."""
from __future__ import annotations

import pytest

from emt_quiz.db import Database
from emt_quiz.errors import PersistenceError


class TestKeyValue:
    def test_missing_key(self, tmp_db):
        assert tmp_db.get("history") is None

    def test_set_get(self, tmp_db):
        tmp_db.set("theme", "light")
        assert tmp_db.get("theme") == "light"

    def test_overwrite(self, tmp_db):
        tmp_db.set("theme", "light")
        tmp_db.set("theme", "dark")
        assert tmp_db.get("theme") == "dark"
        assert tmp_db.keys() == ["theme"]

    def test_delete(self, tmp_db):
        tmp_db.set("history", "[]")
        tmp_db.delete("history")
        assert tmp_db.get("history") is None

    def test_delete_missing_is_noop(self, tmp_db):
        tmp_db.delete("nothing")

    def test_keys_sorted(self, tmp_db):
        tmp_db.set("theme", "dark")
        tmp_db.set("customTopics", "[]")
        tmp_db.set("history", "[]")
        assert tmp_db.keys() == ["customTopics", "history", "theme"]

    def test_persists_across_connections(self, tmp_path):
        db = Database(tmp_path / "kv.db")
        db.set("history", '[{"id": 1}]')
        db.close()
        db = Database(tmp_path / "kv.db")
        assert db.get("history") == '[{"id": 1}]'
        db.close()


class TestFailures:
    def test_unopenable_path(self, tmp_path):
        with pytest.raises(PersistenceError):
            Database(tmp_path / "no-such-dir" / "kv.db")

    def test_read_after_close(self, tmp_path):
        db = Database(tmp_path / "kv.db")
        db.close()
        with pytest.raises(PersistenceError):
            db.get("history")

    def test_write_after_close(self, tmp_path):
        db = Database(tmp_path / "kv.db")
        db.close()
        with pytest.raises(PersistenceError):
            db.set("history", "[]")
