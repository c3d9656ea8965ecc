"""Deploy orchestrator: one full deploy attempt as an explicit state machine.

Phases: ``idle -> detecting -> fetching -> resolving? -> committing ->
done | error``. The orchestrator:

1. Checks authentication and detects local changes.
2. Fetches remote version ids and reconciles baselines.
3. Classifies conflicts and asks the resolver about them.
4. Commits the resulting set sequentially.
5. Updates fingerprints for confirmed writes only and saves them once.

Failures before committing are total and leave the remote untouched.
Failures while committing are per file and reported in the result list.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from ..core.async_utils import run_sync
from ..core.auth import AuthManager
from ..errors import DeployCancelled, DeployError, NotAuthenticated
from .committer import Committer
from .conflicts import detect_conflicts, reconcile_baseline
from .detector import ChangeDetector
from .documents import DEFAULT_MANIFEST_PATH
from .fingerprints import FingerprintStore
from .gateway import RemoteGateway
from .models import (
    CommitProgress,
    CommitResult,
    DeployPhase,
    DeployReport,
    DeployStatus,
    FileChange,
    FileStatus,
)
from .resolver import ConflictResolver, apply_resolutions
from .workspace import WorkingState

logger = logging.getLogger(__name__)

NO_CHANGES = "No changes to deploy."
CANCELLED = "Deploy cancelled."
NOTHING_SELECTED = "No files selected for deploy."


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DeployOrchestrator:
    """Run deploy attempts for one workspace against one remote.

    Args:
        auth: Credential provider; must report an authenticated state.
        detector: Change detector over the workspace and store.
        gateway: Remote gateway.
        store: Fingerprint store; the only persistent state this engine
            owns. Must not be shared with a concurrent attempt.
        workspace: Working state, written only by ``pull`` decisions.
        resolver: Asked once per attempt when conflicts remain.
        committer: Commit pipeline (default: a ``Committer`` on *gateway*).
        on_status: Optional callback receiving every ``DeployStatus``.
        manifest_path: Project manifest path, for content validation.
    """

    def __init__(
        self,
        auth: AuthManager,
        detector: ChangeDetector,
        gateway: RemoteGateway,
        store: FingerprintStore,
        workspace: WorkingState,
        resolver: ConflictResolver,
        committer: Committer | None = None,
        on_status: Callable[[DeployStatus], None] | None = None,
        manifest_path: str = DEFAULT_MANIFEST_PATH,
    ) -> None:
        self.auth = auth
        self.detector = detector
        self.gateway = gateway
        self.store = store
        self.workspace = workspace
        self.resolver = resolver
        self.committer = committer or Committer(gateway)
        self.on_status = on_status
        self.manifest_path = manifest_path
        self.phase = DeployPhase.IDLE

    # ------------------------------------------------------------------
    # Status plumbing
    # ------------------------------------------------------------------

    def _emit(self, status: DeployStatus) -> None:
        self.phase = status.phase
        logger.debug("[%s] %s", status.phase.value, status.message)
        if self.on_status is not None:
            self.on_status(status)

    def _finish(
        self,
        phase: DeployPhase,
        message: str,
        started_at: str,
        error: str | None = None,
        **fields,
    ) -> DeployReport:
        results = fields.get("results")
        self._emit(
            DeployStatus(phase=phase, message=message, error=error, results=results)
        )
        return DeployReport(
            phase=phase,
            message=message,
            started_at=started_at,
            completed_at=_now(),
            error=error,
            **fields,
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def deploy(self, dry_run: bool = False) -> DeployReport:
        """Run one deploy attempt.

        Args:
            dry_run: Stop after classification; report planned changes and
                conflicts without resolving, writing or persisting anything.

        Returns:
            A ``DeployReport`` in phase ``done`` or ``error``.
        """
        started_at = _now()

        if not self.auth.is_authenticated():
            return self._finish(
                DeployPhase.ERROR,
                str(NotAuthenticated()),
                started_at,
                error="Please connect to GitHub first.",
            )

        self._emit(
            DeployStatus(phase=DeployPhase.DETECTING, message="Checking for changes...")
        )
        try:
            changes = self.detector.detect_changes()
        except (DeployError, ValueError, OSError) as e:
            logger.error("Change detection failed: %s", e)
            return self._finish(DeployPhase.ERROR, "Change detection failed.", started_at, error=str(e))

        if not changes:
            return self._finish(DeployPhase.DONE, NO_CHANGES, started_at, dry_run=dry_run)

        self._emit(
            DeployStatus(phase=DeployPhase.FETCHING, message="Checking remote files...")
        )
        # A dry run baselines into a scratch copy that is never saved
        store = (
            FingerprintStore(self.store.state_path, self.store.get_all())
            if dry_run
            else self.store
        )
        try:
            remote_versions = self.gateway.fetch_version_ids([c.path for c in changes])
            remaining, baselined = reconcile_baseline(
                changes, remote_versions, self.gateway, store, self.manifest_path
            )
            if baselined and not dry_run:
                store.save()
        except (DeployError, ValueError, OSError) as e:
            logger.error("Fetching remote state failed: %s", e)
            return self._finish(
                DeployPhase.ERROR, "Could not check remote files.", started_at, error=str(e)
            )

        if not remaining:
            return self._finish(
                DeployPhase.DONE, NO_CHANGES, started_at, dry_run=dry_run, baselined=baselined
            )

        conflict_result = detect_conflicts(remaining, remote_versions)

        if dry_run:
            message = f"{len(remaining)} file(s) would be deployed"
            if conflict_result.conflicts:
                message += f", {len(conflict_result.conflicts)} in conflict"
            return self._finish(
                DeployPhase.DONE,
                message + ".",
                started_at,
                dry_run=True,
                changes=remaining,
                conflicts=conflict_result.conflicts,
                baselined=baselined,
            )

        to_commit: list[FileChange] = list(conflict_result.safe)
        pulled: list[str] = []
        skipped: list[str] = []
        if conflict_result.conflicts:
            self._emit(
                DeployStatus(
                    phase=DeployPhase.RESOLVING,
                    message=f"{len(conflict_result.conflicts)} file(s) need attention.",
                )
            )
            resolutions = self.resolver.resolve(conflict_result.conflicts)
            if resolutions is None:
                return self._finish(
                    DeployPhase.DONE,
                    CANCELLED,
                    started_at,
                    cancelled=True,
                    changes=remaining,
                    conflicts=conflict_result.conflicts,
                    baselined=baselined,
                )
            try:
                outcome = apply_resolutions(
                    conflict_result,
                    resolutions,
                    self.gateway,
                    self.store,
                    self.workspace,
                    self.manifest_path,
                )
            except DeployCancelled as e:
                return self._finish(
                    DeployPhase.DONE,
                    CANCELLED,
                    started_at,
                    error=str(e),
                    cancelled=True,
                    changes=remaining,
                    conflicts=conflict_result.conflicts,
                    baselined=baselined,
                )
            except (DeployError, ValueError, OSError) as e:
                logger.error("Applying resolutions failed: %s", e)
                return self._finish(
                    DeployPhase.ERROR,
                    "Could not apply conflict resolutions.",
                    started_at,
                    error=str(e),
                    changes=remaining,
                    conflicts=conflict_result.conflicts,
                    baselined=baselined,
                )
            if self.store.dirty:
                self.store.save()
            to_commit = outcome.to_commit
            pulled = outcome.pulled
            skipped = outcome.skipped

        common = {
            "changes": remaining,
            "conflicts": conflict_result.conflicts,
            "baselined": baselined,
            "pulled": pulled,
            "skipped": skipped,
        }

        if not to_commit:
            return self._finish(DeployPhase.DONE, NOTHING_SELECTED, started_at, **common)

        results = self._commit(to_commit, remote_versions)

        succeeded = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        if failed:
            return self._finish(
                DeployPhase.ERROR,
                f"Deployed {len(succeeded)} file(s), {len(failed)} failed.",
                started_at,
                error=failed[0].error,
                results=results,
                **common,
            )
        return self._finish(
            DeployPhase.DONE,
            f"Successfully deployed {len(succeeded)} file(s).",
            started_at,
            results=results,
            **common,
        )

    def _commit(
        self,
        to_commit: list[FileChange],
        remote_versions: dict[str, str | None],
    ) -> list[CommitResult]:
        self._emit(
            DeployStatus(
                phase=DeployPhase.COMMITTING,
                message=f"Deploying {len(to_commit)} file(s)...",
            )
        )

        def _progress(progress: CommitProgress) -> None:
            self._emit(
                DeployStatus(
                    phase=DeployPhase.COMMITTING,
                    message=f"Deploying {progress.current}/{progress.total}...",
                    progress=progress,
                )
            )

        results = self.committer.commit_files(to_commit, remote_versions, _progress)

        by_path = {c.path: c for c in to_commit}
        for result in results:
            if not result.success:
                continue
            change = by_path[result.path]
            if change.status == FileStatus.DELETED:
                self.store.remove(result.path)
            elif result.new_version_id and change.content_hash:
                self.store.record(result.path, result.new_version_id, change.content_hash)
        if self.store.dirty:
            self.store.save()
        return results

    async def deploy_async(self, dry_run: bool = False) -> DeployReport:
        """Run ``deploy()`` in a worker thread."""
        return await run_sync(self.deploy, dry_run=dry_run)
