"""Tests for conflict resolvers and applying their decisions."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeGateway, doc_bytes, manifest, scene

from inrepo_deploy.deploy.canonical import hash_local_content
from inrepo_deploy.deploy.fingerprints import FingerprintStore
from inrepo_deploy.deploy.models import (
    ConflictInfo,
    ConflictResolution,
    ConflictResult,
    FileChange,
    FileStatus,
    RemoteFile,
    ResolvedConflict,
)
from inrepo_deploy.deploy.resolver import (
    CancelResolver,
    InteractiveResolver,
    PolicyResolver,
    apply_resolutions,
    create_resolver,
    validate_resolutions,
)
from inrepo_deploy.deploy.workspace import DirectoryWorkspace
from inrepo_deploy.errors import ContentValidationFailure, DeployCancelled

SCENE_PATH = "game/scenes/main.json"


def _conflict(path: str = SCENE_PATH, remote: str | None = "v9", content=b"{}") -> ConflictInfo:
    return ConflictInfo(
        path=path,
        status=FileStatus.MODIFIED,
        content=content,
        content_hash=hash_local_content(path, content),
        local_version_id="v1",
        remote_version_id=remote,
    )


def _decide(*pairs) -> list[ResolvedConflict]:
    return [ResolvedConflict(path=p, resolution=r) for p, r in pairs]


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class TestPolicyResolver:
    def test_answers_every_conflict(self):
        conflicts = [_conflict("a.json"), _conflict("b.json")]
        decisions = PolicyResolver("skip").resolve(conflicts)
        assert [(d.path, d.resolution) for d in decisions] == [
            ("a.json", ConflictResolution.SKIP),
            ("b.json", ConflictResolution.SKIP),
        ]

    def test_rejects_unknown_decision(self):
        with pytest.raises(ValueError):
            PolicyResolver("merge")


class TestCancelResolver:
    def test_always_cancels(self):
        assert CancelResolver().resolve([_conflict()]) is None


class TestInteractiveResolver:
    def test_collects_answers(self):
        answers = iter(["o", "pull", "s"])
        out: list[str] = []
        resolver = InteractiveResolver(
            prompt=lambda _: next(answers), output=out.append
        )
        decisions = resolver.resolve(
            [_conflict("a.json"), _conflict("b.json"), _conflict("c.json")]
        )
        assert [d.resolution for d in decisions] == [
            ConflictResolution.OVERWRITE,
            ConflictResolution.PULL,
            ConflictResolution.SKIP,
        ]
        assert "3 file(s) changed remotely" in out[0]

    def test_reprompts_on_invalid_answer(self):
        answers = iter(["x", "", "s"])
        out: list[str] = []
        resolver = InteractiveResolver(prompt=lambda _: next(answers), output=out.append)
        decisions = resolver.resolve([_conflict()])
        assert decisions[0].resolution == ConflictResolution.SKIP
        assert out.count("Please answer o, p, s or c.") == 2

    def test_cancel_answer(self):
        resolver = InteractiveResolver(prompt=lambda _: "c", output=lambda _: None)
        assert resolver.resolve([_conflict()]) is None

    def test_end_of_input_cancels(self):
        def _eof(_):
            raise EOFError

        resolver = InteractiveResolver(prompt=_eof, output=lambda _: None)
        assert resolver.resolve([_conflict()]) is None

    def test_shows_diff_against_remote(self):
        out: list[str] = []
        remote = RemoteFile(path="a.txt", version_id="v9", content=b"remote line\n")
        resolver = InteractiveResolver(
            prompt=lambda _: "s",
            output=out.append,
            fetch_remote=lambda path: remote,
        )
        resolver.resolve([_conflict("a.txt", content=b"local line\n")])
        shown = "\n".join(out)
        assert "-remote line" in shown
        assert "+local line" in shown


class TestCreateResolver:
    def test_known_strategies(self):
        assert isinstance(create_resolver("interactive"), InteractiveResolver)
        assert isinstance(create_resolver("cancel"), CancelResolver)
        resolver = create_resolver("pull")
        assert isinstance(resolver, PolicyResolver)
        assert resolver.resolution == ConflictResolution.PULL

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            create_resolver("merge")


# ---------------------------------------------------------------------------
# Validation of decisions
# ---------------------------------------------------------------------------


class TestValidateResolutions:
    def test_complete(self):
        decided = validate_resolutions(
            [_conflict("a.json")], _decide(("a.json", ConflictResolution.SKIP))
        )
        assert decided == {"a.json": ConflictResolution.SKIP}

    def test_missing_decision(self):
        with pytest.raises(DeployCancelled, match="no resolution for b.json"):
            validate_resolutions(
                [_conflict("a.json"), _conflict("b.json")],
                _decide(("a.json", ConflictResolution.SKIP)),
            )

    def test_duplicate_decision(self):
        with pytest.raises(DeployCancelled, match="duplicate"):
            validate_resolutions(
                [_conflict("a.json")],
                _decide(
                    ("a.json", ConflictResolution.SKIP),
                    ("a.json", ConflictResolution.PULL),
                ),
            )

    def test_unknown_path(self):
        with pytest.raises(DeployCancelled, match="unknown path"):
            validate_resolutions(
                [_conflict("a.json")],
                _decide(
                    ("a.json", ConflictResolution.SKIP),
                    ("z.json", ConflictResolution.SKIP),
                ),
            )


# ---------------------------------------------------------------------------
# Applying decisions
# ---------------------------------------------------------------------------


class TestApplyResolutions:
    def _setup(self, workspace_root: Path, remote_scene: bytes | None):
        gateway = FakeGateway()
        if remote_scene is not None:
            gateway.seed(SCENE_PATH, remote_scene)
        local = (workspace_root / "game" / "scenes" / "main.json").read_bytes()
        conflict = _conflict(
            SCENE_PATH, remote=gateway.version_of(SCENE_PATH), content=local
        )
        safe = FileChange(
            path="game/project.json",
            status=FileStatus.MODIFIED,
            content=doc_bytes(manifest()),
            content_hash="h",
            local_version_id="v1",
        )
        return gateway, ConflictResult(safe=[safe], conflicts=[conflict])

    def test_overwrite_goes_to_commit(
        self, workspace_root: Path, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        gateway, result = self._setup(workspace_root, doc_bytes(scene(name="R")))
        outcome = apply_resolutions(
            result,
            _decide((SCENE_PATH, ConflictResolution.OVERWRITE)),
            gateway,
            store,
            workspace,
        )
        assert [c.path for c in outcome.to_commit] == ["game/project.json", SCENE_PATH]
        assert type(outcome.to_commit[1]) is FileChange
        assert outcome.pulled == [] and outcome.skipped == []

    def test_skip_leaves_both_sides(
        self, workspace_root: Path, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        before = (workspace_root / SCENE_PATH).read_bytes()
        gateway, result = self._setup(workspace_root, doc_bytes(scene(name="R")))
        outcome = apply_resolutions(
            result,
            _decide((SCENE_PATH, ConflictResolution.SKIP)),
            gateway,
            store,
            workspace,
        )
        assert outcome.skipped == [SCENE_PATH]
        assert [c.path for c in outcome.to_commit] == ["game/project.json"]
        assert (workspace_root / SCENE_PATH).read_bytes() == before
        assert store.get(SCENE_PATH) is None
        assert gateway.writes == []

    def test_pull_replaces_local_and_records_fingerprint(
        self, workspace_root: Path, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        remote = doc_bytes(scene(name="Remote"))
        gateway, result = self._setup(workspace_root, remote)
        outcome = apply_resolutions(
            result,
            _decide((SCENE_PATH, ConflictResolution.PULL)),
            gateway,
            store,
            workspace,
        )
        assert outcome.pulled == [SCENE_PATH]
        assert (workspace_root / SCENE_PATH).read_bytes() == remote
        entry = store.get(SCENE_PATH)
        assert entry.remote_version_id == gateway.version_of(SCENE_PATH)
        assert entry.content_hash == hash_local_content(SCENE_PATH, remote)
        assert gateway.writes == []

    def test_pull_of_remote_deletion_removes_local(
        self, workspace_root: Path, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        store.record(SCENE_PATH, "v1", "h")
        gateway, result = self._setup(workspace_root, None)
        outcome = apply_resolutions(
            result,
            _decide((SCENE_PATH, ConflictResolution.PULL)),
            gateway,
            store,
            workspace,
        )
        assert outcome.pulled == [SCENE_PATH]
        assert not (workspace_root / SCENE_PATH).exists()
        assert store.get(SCENE_PATH) is None

    def test_invalid_pull_has_no_side_effects(
        self, workspace_root: Path, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        before = (workspace_root / SCENE_PATH).read_bytes()
        gateway, result = self._setup(workspace_root, b'{"id": "broken"}')
        with pytest.raises(ContentValidationFailure):
            apply_resolutions(
                result,
                _decide((SCENE_PATH, ConflictResolution.PULL)),
                gateway,
                store,
                workspace,
            )
        assert (workspace_root / SCENE_PATH).read_bytes() == before
        assert store.dirty is False

    def test_incomplete_decisions_cancel(
        self, workspace_root: Path, workspace: DirectoryWorkspace, store: FingerprintStore
    ):
        gateway, result = self._setup(workspace_root, doc_bytes(scene()))
        with pytest.raises(DeployCancelled):
            apply_resolutions(result, [], gateway, store, workspace)
