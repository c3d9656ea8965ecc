"""Conflict resolution protocol.

A resolver receives every conflict of a deploy attempt at once and returns
exactly one decision per conflicting path, or ``None`` to cancel:

- ``InteractiveResolver``: Asks on the terminal, showing a diff against the
  remote copy when one can be fetched.
- ``PolicyResolver``: Answers every conflict with one configured decision.
- ``CancelResolver``: Always cancels (safe non-interactive default).

``apply_resolutions()`` turns validated decisions into the commit set,
pulling remote content into the workspace where asked. The
``create_resolver()`` factory maps config strategy strings to instances.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from pydantic import BaseModel

from ..errors import DeployCancelled
from .canonical import hash_local_content
from .documents import DEFAULT_MANIFEST_PATH, validate_document
from .fingerprints import FingerprintStore
from .gateway import RemoteGateway
from .models import (
    ConflictInfo,
    ConflictResolution,
    ConflictResult,
    FileChange,
    RemoteFile,
    ResolvedConflict,
)
from .reporter import format_conflict_diff
from .workspace import WorkingState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(
        self, conflicts: list[ConflictInfo]
    ) -> list[ResolvedConflict] | None:
        """Decide every conflict of one deploy attempt.

        Args:
            conflicts: All conflicts, in path order.

        Returns:
            One decision per conflicting path, or ``None`` to cancel the
            whole deploy.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Interactive resolver
# ---------------------------------------------------------------------------

_CHOICES = {
    "o": ConflictResolution.OVERWRITE,
    "overwrite": ConflictResolution.OVERWRITE,
    "p": ConflictResolution.PULL,
    "pull": ConflictResolution.PULL,
    "s": ConflictResolution.SKIP,
    "skip": ConflictResolution.SKIP,
}


class InteractiveResolver:
    """Resolve conflicts by asking on the terminal.

    Args:
        prompt: Reads one answer (``input`` by default).
        output: Writes one line (``print`` by default).
        fetch_remote: Optional callable returning the remote copy of a
            path, used to show a diff before asking.
    """

    def __init__(
        self,
        prompt: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
        fetch_remote: Callable[[str], RemoteFile | None] | None = None,
    ) -> None:
        self._prompt = prompt
        self._output = output
        self._fetch_remote = fetch_remote

    def _show(self, conflict: ConflictInfo) -> None:
        remote_content = None
        if self._fetch_remote is not None and conflict.remote_version_id:
            remote = self._fetch_remote(conflict.path)
            remote_content = remote.content if remote else None
        self._output(format_conflict_diff(conflict, remote_content))

    def resolve(
        self, conflicts: list[ConflictInfo]
    ) -> list[ResolvedConflict] | None:
        """Ask once per conflict; ``c`` (or end of input) cancels everything."""
        self._output(
            f"{len(conflicts)} file(s) changed remotely since your last deploy."
        )
        decisions: list[ResolvedConflict] = []
        for conflict in conflicts:
            self._show(conflict)
            while True:
                try:
                    answer = self._prompt(
                        "[o]verwrite remote / [p]ull remote / [s]kip / [c]ancel? "
                    )
                except EOFError:
                    return None
                answer = answer.strip().lower()
                if answer in ("c", "cancel"):
                    return None
                if answer in _CHOICES:
                    decisions.append(
                        ResolvedConflict(
                            path=conflict.path, resolution=_CHOICES[answer]
                        )
                    )
                    break
                self._output("Please answer o, p, s or c.")
        return decisions


# ---------------------------------------------------------------------------
# Simple resolvers
# ---------------------------------------------------------------------------


class PolicyResolver:
    """Answer every conflict with the same decision."""

    def __init__(self, resolution: ConflictResolution | str) -> None:
        self.resolution = ConflictResolution(resolution)

    def resolve(
        self, conflicts: list[ConflictInfo]
    ) -> list[ResolvedConflict] | None:
        return [
            ResolvedConflict(path=c.path, resolution=self.resolution)
            for c in conflicts
        ]


class CancelResolver:
    """Always cancel."""

    def resolve(
        self, conflicts: list[ConflictInfo]
    ) -> list[ResolvedConflict] | None:
        logger.info("Cancelling deploy: %d unresolved conflict(s)", len(conflicts))
        return None


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

STRATEGIES = ("interactive", "overwrite", "pull", "skip", "cancel")


def create_resolver(
    strategy: str,
    fetch_remote: Callable[[str], RemoteFile | None] | None = None,
) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"interactive"``, ``"overwrite"``, ``"pull"``,
            ``"skip"``, ``"cancel"``.
        fetch_remote: Passed to the interactive resolver for diffs.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    if strategy == "interactive":
        return InteractiveResolver(fetch_remote=fetch_remote)
    if strategy == "cancel":
        return CancelResolver()
    if strategy in ("overwrite", "pull", "skip"):
        return PolicyResolver(strategy)
    raise ValueError(
        f"Unknown conflict strategy: '{strategy}'. Valid strategies: {list(STRATEGIES)}"
    )


# ---------------------------------------------------------------------------
# Applying decisions
# ---------------------------------------------------------------------------


class ResolutionOutcome(BaseModel):
    """Result of applying decisions.

    Attributes:
        to_commit: Safe changes plus overwritten conflicts, in path order.
        pulled: Paths replaced locally by their remote copy.
        skipped: Paths left untouched on both sides.
    """

    to_commit: list[FileChange] = []
    pulled: list[str] = []
    skipped: list[str] = []

    model_config = {"frozen": True}


def validate_resolutions(
    conflicts: list[ConflictInfo],
    resolutions: list[ResolvedConflict],
) -> dict[str, ConflictResolution]:
    """Check that decisions cover every conflict exactly once.

    Returns:
        Mapping of path to decision.

    Raises:
        DeployCancelled: If a decision is missing, duplicated or refers to
            a path that is not in conflict.
    """
    expected = {c.path for c in conflicts}
    decided: dict[str, ConflictResolution] = {}
    for r in resolutions:
        if r.path not in expected:
            raise DeployCancelled(
                f"Deploy cancelled: resolution for unknown path {r.path}"
            )
        if r.path in decided:
            raise DeployCancelled(
                f"Deploy cancelled: duplicate resolution for {r.path}"
            )
        decided[r.path] = r.resolution
    missing = sorted(expected - decided.keys())
    if missing:
        raise DeployCancelled(
            f"Deploy cancelled: no resolution for {', '.join(missing)}"
        )
    return decided


def apply_resolutions(
    conflict_result: ConflictResult,
    resolutions: list[ResolvedConflict],
    gateway: RemoteGateway,
    store: FingerprintStore,
    workspace: WorkingState,
    manifest_path: str = DEFAULT_MANIFEST_PATH,
) -> ResolutionOutcome:
    """Apply conflict decisions.

    Runs in two phases so that a failure leaves no side effects: first every
    ``pull`` target is fetched and validated, then local files and
    fingerprints are updated. Fingerprints are set on *store* but not saved.

    ``overwrite`` keeps the change for commit; its precondition is the
    freshly fetched remote version id. ``pull`` replaces the local file
    with the remote copy, or removes it if the remote copy is gone.

    Raises:
        DeployCancelled: If the decisions are incomplete.
        ContentValidationFailure: If pulled remote content fails its checks.
    """
    decided = validate_resolutions(conflict_result.conflicts, resolutions)

    # Phase 1: fetch and validate
    fetched: dict[str, RemoteFile | None] = {}
    for conflict in conflict_result.conflicts:
        if decided[conflict.path] != ConflictResolution.PULL:
            continue
        remote = (
            gateway.fetch_content(conflict.path)
            if conflict.remote_version_id is not None
            else None
        )
        if remote is not None:
            validate_document(conflict.path, remote.content, manifest_path)
        fetched[conflict.path] = remote

    # Phase 2: apply
    to_commit = list(conflict_result.safe)
    pulled: list[str] = []
    skipped: list[str] = []
    for conflict in conflict_result.conflicts:
        decision = decided[conflict.path]
        if decision == ConflictResolution.OVERWRITE:
            to_commit.append(
                FileChange(
                    **conflict.model_dump(
                        include={
                            "path",
                            "status",
                            "content",
                            "content_hash",
                            "local_version_id",
                        }
                    )
                )
            )
        elif decision == ConflictResolution.PULL:
            remote = fetched[conflict.path]
            if remote is None:
                workspace.remove(conflict.path)
                store.remove(conflict.path)
            else:
                workspace.apply_remote(conflict.path, remote.content)
                store.record(
                    conflict.path,
                    remote.version_id,
                    hash_local_content(conflict.path, remote.content),
                )
            pulled.append(conflict.path)
        else:
            skipped.append(conflict.path)

    to_commit.sort(key=lambda c: c.path)
    logger.info(
        "Resolutions applied: %d to commit, %d pulled, %d skipped",
        len(to_commit),
        len(pulled),
        len(skipped),
    )
    return ResolutionOutcome(to_commit=to_commit, pulled=pulled, skipped=skipped)
