"""Change detection against the fingerprint store.

Pure with respect to the store: detection reads fingerprints but never
mutates them, and involves no network calls.
"""

from __future__ import annotations

import logging

from .canonical import hash_local_content
from .fingerprints import FingerprintStore
from .models import FileChange, FileStatus
from .workspace import WorkingState

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Compare the working state with the last confirmed remote state.

    Args:
        workspace: Provides the current snapshot.
        store: Fingerprints recorded at the last publish, pull or baseline.
    """

    def __init__(self, workspace: WorkingState, store: FingerprintStore) -> None:
        self.workspace = workspace
        self.store = store

    def detect_changes(self) -> list[FileChange]:
        """Return pending changes sorted by path.

        * No fingerprint: ``added``.
        * Fingerprint hash differs: ``modified``.
        * Fingerprint hash matches: omitted.
        * Fingerprinted but absent locally: ``deleted``.

        Raises:
            ValueError: If the snapshot lists a path twice.
        """
        fingerprints = self.store.get_all()
        changes: list[FileChange] = []
        seen: set[str] = set()

        for local in self.workspace.snapshot():
            if local.path in seen:
                raise ValueError(f"Duplicate path in snapshot: {local.path}")
            seen.add(local.path)

            digest = hash_local_content(local.path, local.content)
            entry = fingerprints.get(local.path)
            if entry is None:
                status = FileStatus.ADDED
            elif entry.content_hash != digest:
                status = FileStatus.MODIFIED
            else:
                continue

            changes.append(
                FileChange(
                    path=local.path,
                    status=status,
                    content=local.content,
                    content_hash=digest,
                    local_version_id=entry.remote_version_id if entry else None,
                )
            )

        for path, entry in fingerprints.items():
            if path not in seen:
                changes.append(
                    FileChange(
                        path=path,
                        status=FileStatus.DELETED,
                        local_version_id=entry.remote_version_id,
                    )
                )

        changes.sort(key=lambda c: c.path)
        logger.debug("Detected %d change(s)", len(changes))
        return changes
