"""Runtime wiring shared by the CLI and the MCP server.

Resolves configuration from all sources, then builds the collaborators a
deploy attempt needs: contents client, credential provider, gateway,
fingerprint store, workspace and commit pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from dotenv import load_dotenv

from .config import Config, load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config, yaml_fallbacks
from .core.auth import AuthManager, build_auth
from .core.client import ContentsClient
from .deploy.assets import AssetUploader
from .deploy.committer import Committer
from .deploy.detector import ChangeDetector
from .deploy.fingerprints import STORE_FILENAME, FingerprintStore
from .deploy.gateway import ContentsGateway
from .deploy.models import DeployStatus
from .deploy.orchestrator import DeployOrchestrator
from .deploy.resolver import ConflictResolver
from .deploy.workspace import DirectoryWorkspace

logger = logging.getLogger(__name__)


def resolve_config(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, UnifiedConfig, list[str]]:
    """Load configuration with unified precedence.

    CLI overrides > env vars (.env loaded first) > YAML config > defaults.

    Args:
        overrides: CLI values (repo, token, branch, api_url, workspace,
            state_dir, conflict_strategy, insecure, debug).

    Returns:
        Tuple of (config, unified_config, source_descriptions).

    Raises:
        ValueError: If the configuration is incomplete or invalid.
    """
    # .env first so ${VAR} interpolation in YAML can use its values
    load_dotenv()

    sources: list[str] = []
    config_files = discover_config_files()
    unified = build_config(load_hierarchical_config())
    if config_files:
        sources.append(f"config file: {config_files[0]}")

    overrides = overrides or {}
    config = load_config(
        repo=overrides.get("repo"),
        token=overrides.get("token"),
        branch=overrides.get("branch"),
        api_url=overrides.get("api_url"),
        workspace=overrides.get("workspace"),
        state_dir=overrides.get("state_dir"),
        conflict_strategy=overrides.get("conflict_strategy"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks(unified),
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, unified, sources


@dataclass
class DeployContext:
    """Collaborators for one workspace/remote pair."""

    config: Config
    unified: UnifiedConfig
    client: ContentsClient
    auth: AuthManager
    gateway: ContentsGateway
    workspace: DirectoryWorkspace

    @property
    def state_dir(self) -> Path:
        return self.config.state_path

    @property
    def manifest_path(self) -> str:
        return self.unified.workspace.manifest_path

    def load_store(self) -> FingerprintStore:
        """Load a fresh store; each deploy attempt owns its own instance."""
        return FingerprintStore.load(self.state_dir / STORE_FILENAME)

    def committer(self) -> Committer:
        return Committer(self.gateway, self.unified.deploy.commit_message)

    def orchestrator(
        self,
        resolver: ConflictResolver,
        on_status: Callable[[DeployStatus], None] | None = None,
    ) -> DeployOrchestrator:
        store = self.load_store()
        return DeployOrchestrator(
            auth=self.auth,
            detector=ChangeDetector(self.workspace, store),
            gateway=self.gateway,
            store=store,
            workspace=self.workspace,
            resolver=resolver,
            committer=self.committer(),
            on_status=on_status,
            manifest_path=self.manifest_path,
        )

    def uploader(self) -> AssetUploader:
        return AssetUploader(
            gateway=self.gateway,
            store=self.load_store(),
            committer=self.committer(),
            manifest_path=self.manifest_path,
            asset_paths=self.unified.workspace.asset_paths,
            max_upload_bytes=self.unified.deploy.max_upload_bytes,
            workspace=self.workspace,
        )


def build_context(config: Config, unified: UnifiedConfig) -> DeployContext:
    """Wire all collaborators for *config*."""
    client = ContentsClient(config)
    auth = build_auth(client, config.state_path, config.token)
    # Requests carry whichever token the auth manager currently holds
    client.token_provider = auth.get_token
    return DeployContext(
        config=config,
        unified=unified,
        client=client,
        auth=auth,
        gateway=ContentsGateway(client),
        workspace=DirectoryWorkspace(
            config.workspace_root,
            documents=unified.workspace.documents,
            assets=unified.workspace.assets,
            exclude=unified.workspace.exclude,
            manifest_path=unified.workspace.manifest_path,
        ),
    )
