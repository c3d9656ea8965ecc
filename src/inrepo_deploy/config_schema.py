"""Unified configuration schema for inrepo_deploy.

Defines Pydantic models for the unified config structure with dedicated
sections for the remote repository, the local workspace, deploy behaviour
and logging, plus the adapter that feeds YAML values into ``load_config()``.

Usage:
    from inrepo_deploy.config_schema import build_config, yaml_fallbacks

    unified = build_config(load_hierarchical_config())
    config = load_config(repo="me/game", yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote repository connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    api_url: str | None = Field(default=None, description="API base URL")
    owner: str | None = Field(default=None, description="Repository owner")
    repo: str | None = Field(default=None, description="Repository name")
    branch: str | None = Field(
        default=None, description="Branch to publish to"
    )
    token: str | None = Field(default=None, description="Bearer token")
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    timeout: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Read timeout for API requests in seconds (1-600)",
    )

    model_config = {"frozen": True}


class WorkspaceConfig(BaseModel):
    """Local working directory layout.

    Attributes:
        root: Directory holding the working state.
        state_dir: Directory for the fingerprint store and stored token.
        documents: Glob patterns of structured (JSON) documents to publish.
        assets: Glob patterns of binary assets to publish.
        exclude: Glob patterns never published.
        manifest_path: Repository path of the shared asset manifest.
        asset_paths: Repository folder per asset group type.
    """

    root: str = Field(default=".", description="Working directory")
    state_dir: str = Field(
        default=".inrepo", description="Deploy state directory"
    )
    documents: list[str] = Field(
        default_factory=lambda: [
            "game/project.json",
            "game/scenes/*.json",
        ],
    )
    assets: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    manifest_path: str = Field(default="game/project.json")
    asset_paths: dict[str, str] = Field(
        default_factory=lambda: {
            "tilesets": "game/assets/tilesets",
            "props": "game/assets/props",
            "entities": "game/assets/entities",
        },
    )

    model_config = {"frozen": True}


class DeployConfig(BaseModel):
    """Deploy behaviour.

    Attributes:
        conflict_strategy: How conflicts are answered when no human is
            asked (``interactive`` prompts on the terminal).
        commit_message: Template for commit messages; ``{timestamp}`` is
            replaced with the UTC ISO 8601 time of the deploy.
        max_upload_bytes: Per-asset size limit for asset uploads.
    """

    conflict_strategy: Literal[
        "interactive", "overwrite", "pull", "skip", "cancel"
    ] = "interactive"
    commit_message: str = Field(
        default="Update via InRepo Studio - {timestamp}"
    )
    max_upload_bytes: int = Field(default=2 * 1024 * 1024, ge=1)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get their defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the sections ``load_config()`` reads into one fallback dict.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    merged = {
        **unified.remote.model_dump(),
        "root": unified.workspace.root,
        "state_dir": unified.workspace.state_dir,
        "conflict_strategy": unified.deploy.conflict_strategy,
    }
    return {k: v for k, v in merged.items() if v is not None}

