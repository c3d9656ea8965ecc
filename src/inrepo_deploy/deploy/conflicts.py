"""Conflict engine: baseline reconciliation and conflict classification.

Baseline reconciliation removes false conflicts for files that were never
published from this workspace but whose remote copy already carries the
same content. Classification then compares each remaining change's
recorded version id with the freshly fetched remote one.
"""

from __future__ import annotations

import logging

from ..errors import ContentValidationFailure
from .canonical import contents_equivalent
from .documents import DEFAULT_MANIFEST_PATH, validate_document
from .fingerprints import FingerprintStore
from .gateway import RemoteGateway
from .models import ConflictInfo, ConflictResult, FileChange, FileStatus

logger = logging.getLogger(__name__)


def reconcile_baseline(
    changes: list[FileChange],
    remote_versions: dict[str, str | None],
    gateway: RemoteGateway,
    store: FingerprintStore,
    manifest_path: str = DEFAULT_MANIFEST_PATH,
) -> tuple[list[FileChange], list[str]]:
    """Adopt the remote version for never-published files whose content already matches.

    Only ``added`` changes with no recorded version id and an existing
    remote file are candidates. Remote structured content that fails
    validation is never trusted: the change stays and will surface as a
    conflict.

    Returns:
        Tuple of (remaining_changes, baselined_paths). Fingerprints for the
        baselined paths are set on *store* but not saved.
    """
    remaining: list[FileChange] = []
    baselined: list[str] = []

    for change in changes:
        remote_id = remote_versions.get(change.path)
        if (
            change.status != FileStatus.ADDED
            or change.local_version_id is not None
            or remote_id is None
            or change.content is None
        ):
            remaining.append(change)
            continue

        remote = gateway.fetch_content(change.path)
        if remote is None:
            remaining.append(change)
            continue

        try:
            validate_document(change.path, remote.content, manifest_path)
        except ContentValidationFailure as e:
            logger.warning("Not baselining %s: %s", change.path, e)
            remaining.append(change)
            continue

        if contents_equivalent(change.content, remote.content):
            store.record(change.path, remote.version_id, change.content_hash)
            baselined.append(change.path)
            logger.info("Baselined %s at remote version %s", change.path, remote.version_id)
        else:
            remaining.append(change)

    return remaining, baselined


def is_conflict(change: FileChange, remote_id: str | None) -> bool:
    """Classify one change against the current remote version id."""
    if change.status == FileStatus.DELETED:
        return remote_id is not None and remote_id != change.local_version_id
    if remote_id is None:
        # Deleted remotely after our last publish
        return change.local_version_id is not None
    return change.local_version_id != remote_id


def detect_conflicts(
    changes: list[FileChange],
    remote_versions: dict[str, str | None],
) -> ConflictResult:
    """Partition changes into safe ones and conflicts. Input order is kept."""
    safe: list[FileChange] = []
    conflicts: list[ConflictInfo] = []

    for change in changes:
        remote_id = remote_versions.get(change.path)
        if is_conflict(change, remote_id):
            conflicts.append(
                ConflictInfo(
                    **change.model_dump(),
                    remote_version_id=remote_id,
                    has_conflict=True,
                )
            )
        else:
            safe.append(change)

    return ConflictResult(safe=safe, conflicts=conflicts)
