"""Tests for run snapshot persistence."""

from __future__ import annotations

import pytest

from repodocs.storage.session_store import MemorySessionStore, SqliteSessionStore

SNAPSHOT = {"run_id": "r1", "phase": "done", "logs": [{"message": "ok"}], "percent": 100}


class TestSqliteSessionStore:
    def test_empty_store(self, sqlite_store):
        assert sqlite_store.load() is None

    def test_save_and_load(self, sqlite_store):
        sqlite_store.save(SNAPSHOT)
        assert sqlite_store.load() == SNAPSHOT

    def test_save_overwrites_whole_snapshot(self, sqlite_store):
        sqlite_store.save(SNAPSHOT)
        sqlite_store.save({"run_id": "r2"})
        assert sqlite_store.load() == {"run_id": "r2"}

    def test_clear(self, sqlite_store):
        sqlite_store.save(SNAPSHOT)
        sqlite_store.clear()
        assert sqlite_store.load() is None

    def test_failed_write_keeps_previous_snapshot(self, sqlite_store):
        sqlite_store.save(SNAPSHOT)
        with pytest.raises(TypeError):
            sqlite_store.save({"run_id": "r2", "bad": object()})
        assert sqlite_store.load() == SNAPSHOT

    def test_survives_reopen(self, tmp_path):
        db = tmp_path / "nested" / "session.db"
        first = SqliteSessionStore(db)
        first.save(SNAPSHOT)
        first.close()

        second = SqliteSessionStore(db)
        try:
            assert second.load() == SNAPSHOT
        finally:
            second.close()

    def test_keys_are_isolated(self, tmp_path):
        a = SqliteSessionStore(tmp_path / "s.db", key="a")
        b = SqliteSessionStore(tmp_path / "s.db", key="b")
        try:
            a.save({"who": "a"})
            assert b.load() is None
            b.save({"who": "b"})
            assert a.load() == {"who": "a"}
        finally:
            a.close()
            b.close()


class TestMemorySessionStore:
    def test_round_trip_is_a_copy(self, memory_store):
        snap = {"logs": ["one"]}
        memory_store.save(snap)
        snap["logs"].append("two")

        loaded = memory_store.load()
        assert loaded == {"logs": ["one"]}
        loaded["logs"].append("three")
        assert memory_store.load() == {"logs": ["one"]}

    def test_counts_saves_and_clears(self, memory_store):
        assert memory_store.load() is None
        memory_store.save({"a": 1})
        memory_store.save({"a": 2})
        assert memory_store.save_count == 2
        memory_store.clear()
        assert memory_store.load() is None
