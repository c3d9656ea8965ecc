"""Pydantic models for the deploy engine.

Defines the data contracts shared by all deploy modules:

- ``FileChange``: One pending local change, recomputed every attempt.
- ``FingerprintEntry``: Last confirmed remote state of one path.
- ``ConflictInfo`` / ``ConflictResult``: Conflict classification output.
- ``ResolvedConflict``: One decision per conflicting path.
- ``CommitResult`` / ``CommitProgress``: Per-file commit outcomes.
- ``DeployStatus`` / ``DeployReport``: Orchestrator progress and outcome.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ..errors import PartialCommitFailure


class FileStatus(str, Enum):
    """Kind of local change relative to the last known remote state."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class FileChange(BaseModel):
    """A pending local change.

    Attributes:
        path: Repository-relative POSIX path.
        status: Derived by the change detector.
        content: Bytes to publish; ``None`` only for deletions.
        content_hash: Hash of the local content; ``None`` only for deletions.
        local_version_id: Remote version id recorded at the last confirmed
            publish or pull, or ``None`` if never published.
    """

    path: str
    status: FileStatus
    content: bytes | None = None
    content_hash: str | None = None
    local_version_id: str | None = None

    model_config = {"frozen": True}


class FingerprintEntry(BaseModel):
    """Last confirmed remote state for one path.

    Attributes:
        remote_version_id: Opaque version id the remote reported.
        content_hash: Hash of the local content at that moment.
        updated_at: ISO 8601 timestamp of the update.
    """

    remote_version_id: str
    content_hash: str
    updated_at: str

    model_config = {"frozen": True}


class ConflictInfo(FileChange):
    """A change annotated with the freshly fetched remote version id."""

    remote_version_id: str | None = None
    has_conflict: bool = True


class ConflictResult(BaseModel):
    """Partition of candidate changes into safe ones and conflicts."""

    safe: list[FileChange] = []
    conflicts: list[ConflictInfo] = []

    model_config = {"frozen": True}


class ConflictResolution(str, Enum):
    OVERWRITE = "overwrite"
    PULL = "pull"
    SKIP = "skip"


class ResolvedConflict(BaseModel):
    path: str
    resolution: ConflictResolution

    model_config = {"frozen": True}


class CommitResult(BaseModel):
    """Outcome of writing one file.

    Attributes:
        path: Repository-relative path.
        success: Whether the remote confirmed the write.
        new_version_id: Version id after the write (absent for deletes).
        error: Failure message when ``success`` is False.
    """

    path: str
    success: bool
    new_version_id: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class CommitProgress(BaseModel):
    current: int
    total: int
    current_file: str

    model_config = {"frozen": True}


class RemoteFile(BaseModel):
    """Decoded remote file content with its version id."""

    path: str
    version_id: str
    content: bytes

    model_config = {"frozen": True}


class DeployPhase(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    COMMITTING = "committing"
    DONE = "done"
    ERROR = "error"


class DeployStatus(BaseModel):
    """Progress event emitted on every phase transition and per committed file."""

    phase: DeployPhase
    message: str
    error: str | None = None
    progress: CommitProgress | None = None
    results: list[CommitResult] | None = None

    model_config = {"frozen": True}


class DeployReport(BaseModel):
    """Aggregate outcome of one deploy attempt.

    Every candidate path ends up in exactly one of ``results`` (committed
    or failed), ``skipped``, ``pulled`` or ``baselined``.

    Attributes:
        phase: Terminal phase, ``done`` or ``error``.
        message: Human-readable outcome.
        dry_run: Whether the attempt stopped before resolving and writing.
        cancelled: Whether conflict resolution was declined.
        started_at: ISO 8601 timestamp when the attempt started.
        completed_at: ISO 8601 timestamp when the attempt finished.
        changes: Candidate changes after baseline reconciliation.
        conflicts: Conflicts found during classification.
        results: Per-file commit results in commit order.
        baselined: Paths dropped because local and remote were equivalent.
        skipped: Paths skipped by a resolution decision.
        pulled: Paths overwritten locally by a resolution decision.
        error: First failure message, if any.
    """

    phase: DeployPhase
    message: str
    dry_run: bool = False
    cancelled: bool = False
    started_at: str
    completed_at: str | None = None
    changes: list[FileChange] = []
    conflicts: list[ConflictInfo] = []
    results: list[CommitResult] = []
    baselined: list[str] = []
    skipped: list[str] = []
    pulled: list[str] = []
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> list[CommitResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[CommitResult]:
        return [r for r in self.results if not r.success]

    @property
    def is_partial_failure(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)

    def summary(self) -> str:
        """Format a human-readable summary of the deploy attempt.

        Returns:
            Multi-line summary string with counts by outcome.
        """
        lines = [
            self.message + (" (dry run)" if self.dry_run else ""),
            f"  Committed:  {len(self.succeeded)}",
            f"  Failed:     {len(self.failed)}",
            f"  Pulled:     {len(self.pulled)}",
            f"  Skipped:    {len(self.skipped)}",
            f"  Baselined:  {len(self.baselined)}",
        ]
        return "\n".join(lines)

    def raise_for_failure(self) -> None:
        """Raise ``PartialCommitFailure`` if any file failed to commit."""
        if self.failed:
            raise PartialCommitFailure(
                self.error or f"{len(self.failed)} file(s) failed", self.results
            )
