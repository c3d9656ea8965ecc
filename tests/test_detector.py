"""Tests for change detection against the fingerprint store."""

from __future__ import annotations

from pathlib import Path

import pytest

from inrepo_deploy.deploy.canonical import hash_local_content
from inrepo_deploy.deploy.detector import ChangeDetector
from inrepo_deploy.deploy.fingerprints import FingerprintStore
from inrepo_deploy.deploy.models import FileStatus
from inrepo_deploy.deploy.workspace import DirectoryWorkspace, LocalFile


class ListWorkspace:
    """Working state that returns a fixed snapshot."""

    def __init__(self, files: list[LocalFile]) -> None:
        self.files = files

    def snapshot(self) -> list[LocalFile]:
        return list(self.files)

    def apply_remote(self, path: str, content: bytes) -> None:
        raise AssertionError("not expected")

    def remove(self, path: str) -> None:
        raise AssertionError("not expected")


def _record_snapshot(workspace, store: FingerprintStore) -> None:
    for index, local in enumerate(workspace.snapshot()):
        store.record(
            local.path, f"v{index}", hash_local_content(local.path, local.content)
        )


class TestDetectChanges:
    def test_empty_store_reports_everything_added(
        self, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        changes = ChangeDetector(workspace, store).detect_changes()
        assert [(c.path, c.status) for c in changes] == [
            ("game/project.json", FileStatus.ADDED),
            ("game/scenes/main.json", FileStatus.ADDED),
        ]
        assert all(c.local_version_id is None for c in changes)
        assert all(c.content and c.content_hash for c in changes)

    def test_unchanged_files_omitted(
        self, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        _record_snapshot(workspace, store)
        assert ChangeDetector(workspace, store).detect_changes() == []

    def test_detection_is_idempotent(
        self, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        detector = ChangeDetector(workspace, store)
        assert detector.detect_changes() == detector.detect_changes()

    def test_reformatting_is_not_a_change(
        self,
        workspace_root: Path,
        workspace: DirectoryWorkspace,
        store: FingerprintStore,
    ):
        _record_snapshot(workspace, store)
        path = workspace_root / "game" / "project.json"
        # Same document, different whitespace
        path.write_bytes(path.read_bytes().replace(b"\n  ", b"\n    "))
        assert ChangeDetector(workspace, store).detect_changes() == []

    def test_modified_carries_recorded_version(
        self,
        workspace_root: Path,
        workspace: DirectoryWorkspace,
        store: FingerprintStore,
    ):
        _record_snapshot(workspace, store)
        recorded = store.get("game/scenes/main.json").remote_version_id
        path = workspace_root / "game" / "scenes" / "main.json"
        path.write_bytes(path.read_bytes().replace(b'"Main"', b'"Changed"'))

        changes = ChangeDetector(workspace, store).detect_changes()
        assert len(changes) == 1
        assert changes[0].status == FileStatus.MODIFIED
        assert changes[0].local_version_id == recorded

    def test_deleted_file(
        self,
        workspace_root: Path,
        workspace: DirectoryWorkspace,
        store: FingerprintStore,
    ):
        _record_snapshot(workspace, store)
        (workspace_root / "game" / "scenes" / "main.json").unlink()

        changes = ChangeDetector(workspace, store).detect_changes()
        assert len(changes) == 1
        assert changes[0].status == FileStatus.DELETED
        assert changes[0].content is None
        assert changes[0].content_hash is None
        assert changes[0].local_version_id == store.get(
            "game/scenes/main.json"
        ).remote_version_id

    def test_output_sorted_by_path(self, store: FingerprintStore):
        store.record("m.txt", "v1", "stale")
        ws = ListWorkspace(
            [LocalFile(path="z.txt", content=b"z"), LocalFile(path="a.txt", content=b"a")]
        )
        paths = [c.path for c in ChangeDetector(ws, store).detect_changes()]
        assert paths == ["a.txt", "m.txt", "z.txt"]

    def test_duplicate_paths_rejected(self, store: FingerprintStore):
        ws = ListWorkspace(
            [LocalFile(path="a.txt", content=b"1"), LocalFile(path="a.txt", content=b"2")]
        )
        with pytest.raises(ValueError, match="Duplicate"):
            ChangeDetector(ws, store).detect_changes()

    def test_store_is_not_mutated(
        self, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        ChangeDetector(workspace, store).detect_changes()
        assert store.dirty is False
        assert store.get_all() == {}
