"""Hot/cold deploy engine.

Publishes changed files from a local working state (the "hot" side) to a
remote repository (the "cold" side) through a contents API, with optimistic
concurrency on per-file version ids.

Architecture
------------
Each file's last-known remote version id and local content hash are kept in
a fingerprint store.  A deploy attempt compares the working state against
that store to find changed files, asks the remote for current version ids,
and treats any file whose remote moved since the recorded fingerprint as a
conflict.  Conflicts are decided by a resolver (overwrite, pull, skip) before
anything is written.

Modules:

- ``orchestrator`` -- ``DeployOrchestrator``: runs one deploy attempt.
- ``fingerprints`` -- ``FingerprintStore``: persisted per-file fingerprints.
- ``detector``     -- ``ChangeDetector``: added/modified/deleted files.
- ``gateway``      -- ``ContentsGateway``: version ids, content, writes.
- ``conflicts``    -- Baseline reconciliation and conflict classification.
- ``resolver``     -- Conflict resolvers and the resolution protocol.
- ``committer``    -- Sequential per-file commit pipeline.
- ``assets``       -- ``AssetUploader``: asset upload with manifest update.
- ``documents``    -- Shape models for the manifest and scene documents.
- ``canonical``    -- Canonical serialization and content hashing.
- ``workspace``    -- ``DirectoryWorkspace``: working state on disk.
- ``reporter``     -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from inrepo_deploy.context import build_context, resolve_config
    from inrepo_deploy.deploy import PolicyResolver, format_deploy_report
    from inrepo_deploy.deploy.models import ConflictResolution

    config, unified, _ = resolve_config({"repo": "acme/game"})
    ctx = build_context(config, unified)
    orchestrator = ctx.orchestrator(PolicyResolver(ConflictResolution.SKIP))

    preview = orchestrator.deploy(dry_run=True)
    print(format_deploy_report(preview))
"""

from .assets import AssetUploader
from .detector import ChangeDetector
from .fingerprints import FingerprintStore
from .gateway import ContentsGateway, RemoteGateway
from .models import (
    CommitResult,
    ConflictInfo,
    ConflictResolution,
    DeployPhase,
    DeployReport,
    DeployStatus,
    FileChange,
    FileStatus,
)
from .orchestrator import DeployOrchestrator
from .reporter import (
    format_change_preview,
    format_deploy_report,
    report_to_json,
)
from .resolver import (
    CancelResolver,
    InteractiveResolver,
    PolicyResolver,
    create_resolver,
)
from .workspace import DirectoryWorkspace

__all__ = [
    "AssetUploader",
    "CancelResolver",
    "ChangeDetector",
    "CommitResult",
    "ConflictInfo",
    "ConflictResolution",
    "ContentsGateway",
    "DeployOrchestrator",
    "DeployPhase",
    "DeployReport",
    "DeployStatus",
    "DirectoryWorkspace",
    "FileChange",
    "FileStatus",
    "FingerprintStore",
    "InteractiveResolver",
    "PolicyResolver",
    "RemoteGateway",
    "create_resolver",
    "format_change_preview",
    "format_deploy_report",
    "report_to_json",
]
