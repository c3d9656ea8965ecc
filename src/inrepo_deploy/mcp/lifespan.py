"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..context import DeployContext, build_context, resolve_config
from ..core.async_utils import run_sync

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, DeployContext]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Merge all config sources: CLI > env vars > .env > YAML > defaults
    - Wire the deploy context (client, auth, gateway, workspace)
    - Report the authentication state; a signed-out server still starts,
      and deploy tools answer with "Not authenticated" until a token works

    Args:
        config_overrides: Optional dict with config values from CLI
            (repo, branch, api_url, workspace, insecure)

    Yields:
        Dict with 'context' key containing the DeployContext

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("InRepo Deploy MCP Server starting...")

    try:
        config, unified, sources = resolve_config(config_overrides)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure INREPO_REPO is set to owner/name.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure INREPO_REPO is set to owner/name."
        ) from e

    source_desc = ", ".join(sources) if sources else "defaults"
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    logger.info("Repository: %s", config.repo_slug)
    _stderr_print(f"  Repository: {config.repo_slug}")
    _stderr_print(f"  Workspace: {config.workspace_root}")

    context = build_context(config, unified)

    logger.info("Checking authentication...")
    _stderr_print("  Checking authentication...")
    state = await run_sync(context.auth.get_state)
    if state.is_authenticated:
        logger.info("Authenticated as %s", state.username)
        _stderr_print(f"  Authenticated as {state.username}")
    else:
        logger.warning("Not authenticated; deploys will be refused")
        _stderr_print(
            "  WARNING: Not authenticated. Set INREPO_TOKEN or run "
            "'inrepo-deploy login'."
        )
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"context": context}

    logger.info("MCP server shutting down")
    _stderr_print("InRepo Deploy MCP Server shutting down.")
