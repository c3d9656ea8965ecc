"""Manifest-aware asset upload.

Publishes a group of new binary assets and registers them in the shared
project manifest within the same sequential commit batch. Before the
manifest delta is computed, the manifest's remote version is checked
against the last one this workspace saw: if it drifted, the whole upload
is aborted rather than guessing how to merge. Likewise, a local manifest with
undeployed edits aborts the upload, since adopting the new manifest would
overwrite them.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from ..errors import ContentValidationFailure, StaleRemoteState
from .canonical import (
    content_hash,
    contents_equivalent,
    hash_local_content,
    publish_bytes,
)
from .committer import Committer
from .documents import (
    DEFAULT_MANIFEST_PATH,
    append_tile_file,
    ensure_entity_type,
    ensure_tile_category,
    parse_manifest,
)
from .fingerprints import FingerprintStore
from .gateway import RemoteGateway
from .models import (
    CommitProgress,
    CommitResult,
    FileChange,
    FileStatus,
    FingerprintEntry,
)
from .workspace import WorkingState

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 2 * 1024 * 1024

MIME_EXTENSION_MAP = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/svg+xml": "svg",
}

DEFAULT_ASSET_PATHS = {
    "tilesets": "game/assets/tilesets",
    "props": "game/assets/props",
    "entities": "game/assets/entities",
}

_DATA_URL = re.compile(r"^data:([^;]+);base64,(.+)$", re.IGNORECASE | re.DOTALL)


class AssetGroupType(str, Enum):
    TILESETS = "tilesets"
    PROPS = "props"
    ENTITIES = "entities"


class AssetGroup(BaseModel):
    type: AssetGroupType
    slug: str
    name: str

    model_config = {"frozen": True}


class AssetItem(BaseModel):
    """One asset to upload.

    Either ``data`` with ``mime_type``, or a base64 ``data_url``.
    """

    id: str
    name: str
    data: bytes | None = None
    mime_type: str | None = None
    data_url: str | None = None

    model_config = {"frozen": True}


class AssetFileResult(BaseModel):
    asset_id: str
    name: str
    file_name: str
    path: str
    success: bool
    error: str | None = None

    model_config = {"frozen": True}


class AssetUploadResult(BaseModel):
    """Outcome of one group upload.

    Attributes:
        group: The uploaded group.
        assets: One result per input asset.
        manifest_result: Commit result of the manifest write, or ``None``
            if the manifest needed no change or was never reached.
        message: Human-readable outcome.
        error: Group-level failure, if any.
    """

    group: AssetGroup
    assets: list[AssetFileResult] = []
    manifest_result: CommitResult | None = None
    message: str = ""
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> list[AssetFileResult]:
        return [a for a in self.assets if a.success]

    @property
    def failed(self) -> list[AssetFileResult]:
        return [a for a in self.assets if not a.success]


# ---------------------------------------------------------------------------
# Planning helpers
# ---------------------------------------------------------------------------


def slugify(name: str, fallback: str = "asset") -> str:
    """Lower-case, hyphenate whitespace, drop everything but ``[a-z0-9-]``."""
    cleaned = re.sub(r"\s+", "-", name.strip().lower())
    cleaned = re.sub(r"[^a-z0-9-]", "", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned).strip("-")
    return cleaned or fallback


def unique_file_name(base: str, extension: str, used: set[str]) -> str:
    candidate = f"{base}.{extension}"
    index = 2
    while candidate in used:
        candidate = f"{base}-{index}.{extension}"
        index += 1
    used.add(candidate)
    return candidate


def resolve_asset_bytes(asset: AssetItem) -> tuple[str, bytes]:
    """Return (mime_type, bytes) for an asset.

    Raises:
        ValueError: If the asset carries no usable content.
    """
    if asset.data is not None:
        if not asset.mime_type:
            raise ValueError("Unsupported asset format.")
        return asset.mime_type.lower(), asset.data
    match = _DATA_URL.match(asset.data_url or "")
    if not match:
        raise ValueError("Unsupported asset format.")
    try:
        data = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Unsupported asset format.") from e
    return match.group(1).lower(), data


class _Plan(BaseModel):
    asset: AssetItem
    file_name: str
    path: str
    content: bytes


# ---------------------------------------------------------------------------
# Uploader
# ---------------------------------------------------------------------------


class AssetUploader:
    """Upload asset groups and register them in the project manifest.

    Args:
        gateway: Remote gateway.
        store: Fingerprint store; holds the last known manifest version.
        committer: Commit pipeline shared with regular deploys.
        manifest_path: Repository path of the project manifest.
        asset_paths: Repository folder per group type.
        max_upload_bytes: Per-asset size limit.
        workspace: If given, receives the updated manifest after a
            successful manifest write so local and remote stay in step.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        store: FingerprintStore,
        committer: Committer,
        manifest_path: str = DEFAULT_MANIFEST_PATH,
        asset_paths: dict[str, str] | None = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        workspace: WorkingState | None = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.committer = committer
        self.manifest_path = manifest_path
        self.asset_paths = dict(asset_paths or DEFAULT_ASSET_PATHS)
        self.max_upload_bytes = max_upload_bytes
        self.workspace = workspace

    def _plan(
        self, group: AssetGroup, assets: list[AssetItem], base_path: str
    ) -> tuple[list[_Plan], list[AssetFileResult]]:
        plans: list[_Plan] = []
        rejected: list[AssetFileResult] = []
        used: set[str] = set()
        limit_kb = round(self.max_upload_bytes / 1024)

        for asset in assets:
            try:
                mime_type, data = resolve_asset_bytes(asset)
                extension = MIME_EXTENSION_MAP.get(mime_type)
                if extension is None:
                    raise ValueError("Unsupported image type.")
                if len(data) > self.max_upload_bytes:
                    raise ValueError(
                        f"Asset too large ({round(len(data) / 1024)}KB). "
                        f"Limit is {limit_kb}KB."
                    )
            except ValueError as e:
                rejected.append(
                    AssetFileResult(
                        asset_id=asset.id,
                        name=asset.name,
                        file_name=asset.name,
                        path="",
                        success=False,
                        error=str(e),
                    )
                )
                continue

            file_name = unique_file_name(slugify(asset.name), extension, used)
            plans.append(
                _Plan(
                    asset=asset,
                    file_name=file_name,
                    path=f"{base_path}/{group.slug}/{file_name}",
                    content=data,
                )
            )
        return plans, rejected

    def _register(
        self, manifest: dict, group: AssetGroup, base_path: str, plans: list[_Plan]
    ) -> bool:
        changed = False
        if group.type == AssetGroupType.ENTITIES:
            for plan in plans:
                type_name = slugify(plan.file_name.rsplit(".", 1)[0])
                changed |= ensure_entity_type(manifest, type_name, plan.path)
            return changed

        category_path = f"{base_path}/{group.slug}"
        changed |= ensure_tile_category(manifest, group.slug, category_path)
        for plan in plans:
            changed |= append_tile_file(manifest, group.slug, plan.file_name)
        return changed

    def upload_group(
        self,
        group: AssetGroup,
        assets: list[AssetItem],
        on_progress: Callable[[CommitProgress], None] | None = None,
    ) -> AssetUploadResult:
        """Upload a group of new assets plus the manifest delta.

        Args:
            group: Target group.
            assets: Assets to upload.
            on_progress: Optional progress callback for the commit batch.

        Returns:
            An ``AssetUploadResult`` with one entry per asset.

        Raises:
            StaleRemoteState: If the manifest changed remotely since it was
                last seen, or the local manifest has undeployed edits.
                Nothing has been written.
            ContentValidationFailure: If the remote manifest is missing or
                invalid. Nothing has been written.
            RateLimitExceeded, NotAuthenticated, NetworkError: If checking
                remote state fails. Nothing has been written.
        """
        if not assets:
            return AssetUploadResult(
                group=group, message="No assets to upload.", error="No assets to upload."
            )

        base_path = self.asset_paths.get(group.type.value)
        if not base_path:
            return AssetUploadResult(
                group=group,
                message="Unknown asset group path.",
                error="Unknown asset group path.",
            )

        plans, results = self._plan(group, assets, base_path)
        if not plans:
            return AssetUploadResult(
                group=group,
                assets=results,
                message="No valid assets to upload.",
                error="No valid assets to upload.",
            )

        remote_versions = self.gateway.fetch_version_ids(
            [p.path for p in plans] + [self.manifest_path]
        )

        eligible: list[_Plan] = []
        for plan in plans:
            if remote_versions.get(plan.path):
                results.append(
                    AssetFileResult(
                        asset_id=plan.asset.id,
                        name=plan.asset.name,
                        file_name=plan.file_name,
                        path=plan.path,
                        success=False,
                        error="Remote file already exists.",
                    )
                )
            else:
                eligible.append(plan)

        if not eligible:
            return AssetUploadResult(
                group=group,
                assets=results,
                message="No assets were eligible for upload.",
                error="No assets were eligible for upload.",
            )

        # Manifest precondition
        remote_manifest = self.gateway.fetch_content(self.manifest_path)
        if remote_manifest is None:
            raise ContentValidationFailure(
                f"Manifest {self.manifest_path} does not exist remotely"
            )
        known = self.store.get(self.manifest_path)
        if known is not None and known.remote_version_id != remote_manifest.version_id:
            raise StaleRemoteState(
                f"Manifest {self.manifest_path} changed remotely "
                f"({known.remote_version_id[:7]} -> {remote_manifest.version_id[:7]}). "
                "Deploy or pull it before uploading assets."
            )
        self._check_local_manifest(known, remote_manifest.content)

        manifest = parse_manifest(remote_manifest.content, self.manifest_path)
        changed = self._register(manifest, group, base_path, eligible)

        changes = [
            FileChange(
                path=p.path,
                status=FileStatus.ADDED,
                content=p.content,
                content_hash=content_hash(p.content),
            )
            for p in eligible
        ]
        versions: dict[str, str | None] = {p.path: None for p in eligible}
        manifest_bytes = b""
        if changed:
            manifest_bytes = publish_bytes(manifest)
            changes.append(
                FileChange(
                    path=self.manifest_path,
                    status=FileStatus.MODIFIED,
                    content=manifest_bytes,
                    content_hash=hash_local_content(self.manifest_path, manifest_bytes),
                    local_version_id=remote_manifest.version_id,
                )
            )
            versions[self.manifest_path] = remote_manifest.version_id

        commit_results = self.committer.commit_files(changes, versions, on_progress)

        by_path = {p.path: p for p in eligible}
        manifest_result: CommitResult | None = None
        for result in commit_results:
            if result.path == self.manifest_path:
                manifest_result = result
                continue
            plan = by_path[result.path]
            results.append(
                AssetFileResult(
                    asset_id=plan.asset.id,
                    name=plan.asset.name,
                    file_name=plan.file_name,
                    path=plan.path,
                    success=result.success,
                    error=None if result.success else (result.error or "Upload failed."),
                )
            )

        if manifest_result is not None and manifest_result.success:
            self._adopt_manifest(manifest_bytes, manifest_result)

        uploaded = sum(1 for r in commit_results if r.success and r.path != self.manifest_path)
        failed = len(assets) - uploaded
        message = f"Uploaded {uploaded} asset(s) to {group.type.value}/{group.slug}"
        message += f", {failed} failed." if failed else "."
        first_error = next((r.error for r in results if not r.success), None)
        if manifest_result is not None and not manifest_result.success:
            first_error = first_error or manifest_result.error
        return AssetUploadResult(
            group=group,
            assets=results,
            manifest_result=manifest_result,
            message=message,
            error=first_error,
        )

    def _check_local_manifest(
        self, known: FingerprintEntry | None, remote_content: bytes
    ) -> None:
        if self.workspace is None:
            return
        local = next(
            (f.content for f in self.workspace.snapshot() if f.path == self.manifest_path),
            None,
        )
        if local is None:
            pending = known is not None
        elif known is not None:
            pending = hash_local_content(self.manifest_path, local) != known.content_hash
        else:
            pending = not contents_equivalent(local, remote_content)
        if pending:
            raise StaleRemoteState(
                f"Local manifest {self.manifest_path} has undeployed changes. "
                "Deploy them before uploading assets."
            )

    def _adopt_manifest(self, manifest_bytes: bytes, result: CommitResult) -> None:
        if result.new_version_id:
            self.store.record(
                self.manifest_path,
                result.new_version_id,
                hash_local_content(self.manifest_path, manifest_bytes),
            )
            self.store.save()
        if self.workspace is not None:
            self.workspace.apply_remote(self.manifest_path, manifest_bytes)
        logger.info("Manifest %s updated", self.manifest_path)
