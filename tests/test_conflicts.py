"""Tests for baseline reconciliation and conflict classification."""

from __future__ import annotations

from fakes import FakeGateway, doc_bytes, manifest, scene

from inrepo_deploy.deploy.canonical import hash_local_content
from inrepo_deploy.deploy.conflicts import (
    detect_conflicts,
    is_conflict,
    reconcile_baseline,
)
from inrepo_deploy.deploy.fingerprints import FingerprintStore
from inrepo_deploy.deploy.models import FileChange, FileStatus


def _added(path: str, content: bytes) -> FileChange:
    return FileChange(
        path=path,
        status=FileStatus.ADDED,
        content=content,
        content_hash=hash_local_content(path, content),
    )


def _modified(path: str, content: bytes, recorded: str) -> FileChange:
    return FileChange(
        path=path,
        status=FileStatus.MODIFIED,
        content=content,
        content_hash=hash_local_content(path, content),
        local_version_id=recorded,
    )


def _deleted(path: str, recorded: str) -> FileChange:
    return FileChange(path=path, status=FileStatus.DELETED, local_version_id=recorded)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestIsConflict:
    def test_added_absent_remotely_is_safe(self):
        assert not is_conflict(_added("a.json", b"{}"), None)

    def test_added_present_remotely_conflicts(self):
        assert is_conflict(_added("a.json", b"{}"), "v9")

    def test_modified_same_version_is_safe(self):
        assert not is_conflict(_modified("a.json", b"{}", "v1"), "v1")

    def test_modified_moved_remotely_conflicts(self):
        assert is_conflict(_modified("a.json", b"{}", "v1"), "v2")

    def test_modified_deleted_remotely_conflicts(self):
        assert is_conflict(_modified("a.json", b"{}", "v1"), None)

    def test_deleted_same_version_is_safe(self):
        assert not is_conflict(_deleted("a.json", "v1"), "v1")

    def test_deleted_both_sides_is_safe(self):
        assert not is_conflict(_deleted("a.json", "v1"), None)

    def test_deleted_moved_remotely_conflicts(self):
        assert is_conflict(_deleted("a.json", "v1"), "v2")


class TestDetectConflicts:
    def test_partition_keeps_order(self):
        changes = [
            _added("a.json", b"{}"),
            _modified("b.json", b"{}", "v1"),
            _deleted("c.json", "v3"),
        ]
        result = detect_conflicts(
            changes, {"a.json": None, "b.json": "v2", "c.json": "v3"}
        )
        assert [c.path for c in result.safe] == ["a.json", "c.json"]
        assert [c.path for c in result.conflicts] == ["b.json"]
        conflict = result.conflicts[0]
        assert conflict.remote_version_id == "v2"
        assert conflict.local_version_id == "v1"
        assert conflict.has_conflict is True
        assert conflict.content == b"{}"

    def test_empty(self):
        result = detect_conflicts([], {})
        assert result.safe == [] and result.conflicts == []


# ---------------------------------------------------------------------------
# Baseline reconciliation
# ---------------------------------------------------------------------------


class TestReconcileBaseline:
    def test_equivalent_remote_is_adopted(self, store: FingerprintStore):
        remote = b'{"b": 2, "a": 1}'
        gateway = FakeGateway({"data.json": remote})
        change = _added("data.json", b'{\n  "a": 1,\n  "b": 2\n}\n')

        remaining, baselined = reconcile_baseline(
            [change], gateway.fetch_version_ids(["data.json"]), gateway, store
        )

        assert remaining == []
        assert baselined == ["data.json"]
        entry = store.get("data.json")
        assert entry.remote_version_id == gateway.version_of("data.json")
        assert entry.content_hash == change.content_hash
        assert store.dirty is True

    def test_whitespace_only_text_difference_is_adopted(self, store: FingerprintStore):
        gateway = FakeGateway({"readme.txt": b"hello\n"})
        change = _added("readme.txt", b"hello")
        remaining, baselined = reconcile_baseline(
            [change], gateway.fetch_version_ids(["readme.txt"]), gateway, store
        )
        assert baselined == ["readme.txt"]

    def test_different_remote_stays_as_change(self, store: FingerprintStore):
        gateway = FakeGateway({"data.json": b'{"a": 2}'})
        change = _added("data.json", b'{"a": 1}')
        remaining, baselined = reconcile_baseline(
            [change], gateway.fetch_version_ids(["data.json"]), gateway, store
        )
        assert remaining == [change]
        assert baselined == []
        assert store.get("data.json") is None

    def test_invalid_remote_manifest_is_not_trusted(self, store: FingerprintStore):
        bad = manifest()
        del bad["entityTypes"]
        gateway = FakeGateway({"game/project.json": doc_bytes(bad)})
        change = _added("game/project.json", doc_bytes(bad))

        remaining, baselined = reconcile_baseline(
            [change],
            gateway.fetch_version_ids(["game/project.json"]),
            gateway,
            store,
        )
        assert remaining == [change]
        assert baselined == []

    def test_only_never_published_additions_are_candidates(
        self, store: FingerprintStore
    ):
        content = doc_bytes(scene())
        gateway = FakeGateway({"game/scenes/main.json": content})
        version = gateway.version_of("game/scenes/main.json")
        changes = [
            _modified("game/scenes/main.json", content, "v0"),
            _added("game/scenes/new.json", content),
        ]
        remaining, baselined = reconcile_baseline(
            changes,
            {"game/scenes/main.json": version, "game/scenes/new.json": None},
            gateway,
            store,
        )
        assert remaining == changes
        assert baselined == []
        assert gateway.content_fetches == []

    def test_remote_vanished_between_calls(self, store: FingerprintStore):
        gateway = FakeGateway()
        change = _added("a.json", b"{}")
        remaining, baselined = reconcile_baseline(
            [change], {"a.json": "v1"}, gateway, store
        )
        assert remaining == [change]
        assert baselined == []
