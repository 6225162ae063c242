"""Tests for reqcache.cache.snapshot and snapshot syncing in reqcache.session."""

from __future__ import annotations

from pathlib import Path

import pytest

from reqcache.cache.snapshot import SnapshotStore
from reqcache.session import sync_snapshot


@pytest.fixture
def snapshot(tmp_path: Path) -> SnapshotStore:
    store = SnapshotStore(tmp_path, "test-api", ttl_seconds=300)
    yield store
    store.close()


class TestSnapshotStore:
    def test_directory_per_namespace(self, tmp_path: Path, snapshot: SnapshotStore) -> None:
        assert snapshot.directory == tmp_path / "snapshots" / "test-api"
        assert snapshot.directory.is_dir()

    def test_dump_and_load(self, snapshot: SnapshotStore) -> None:
        written = snapshot.dump({"/users": [{"id": 1}], "/missing": None})

        assert written == 2
        assert snapshot.load() == {"/users": [{"id": 1}], "/missing": None}

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        with SnapshotStore(tmp_path, "a") as first:
            first.dump({"/users/1": {"id": 1}})
        with SnapshotStore(tmp_path, "a") as second:
            assert second.load() == {"/users/1": {"id": 1}}
        with SnapshotStore(tmp_path, "b") as other:
            assert other.load() == {}

    def test_discard_by_fragment(self, snapshot: SnapshotStore) -> None:
        snapshot.dump({"/users": [], "/users/1": {}, "/projects": []})

        removed = snapshot.discard(["users"])

        assert sorted(removed) == ["/users", "/users/1"]
        assert list(snapshot.load()) == ["/projects"]

    def test_clear_and_stats(self, snapshot: SnapshotStore) -> None:
        snapshot.dump({"/a": 1, "/b": 2})
        assert snapshot.stats()["size"] == 2
        assert snapshot.stats()["ttl_seconds"] == 300

        assert snapshot.clear() == 2
        assert snapshot.load() == {}


class TestSyncSnapshot:
    def test_writes_only_changes(self, snapshot: SnapshotStore) -> None:
        restored = {"/same": 1, "/changed": 1, "/gone": 1}
        snapshot.dump(restored)

        written = sync_snapshot(snapshot, restored, {"/same": 1, "/changed": 2, "/new": 3})

        assert written == 2
        assert snapshot.load() == {"/same": 1, "/changed": 2, "/new": 3}
