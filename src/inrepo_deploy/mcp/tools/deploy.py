"""MCP tool handlers for deploying the workspace.

Defines four tools:

- ``deploy_status`` -- dry run: planned changes and conflicts.
- ``deploy`` -- run a deploy with a non-interactive conflict strategy.
- ``deploy_auth_status`` -- who the server is authenticated as.
- ``asset_upload`` -- upload a group of assets and register them in the
  project manifest.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...context import DeployContext
from ...core.async_utils import run_sync
from ...deploy.assets import AssetGroup, AssetItem, slugify
from ...deploy.models import DeployPhase, DeployReport
from ...deploy.reporter import (
    format_change_preview,
    format_deploy_report,
    format_upload_result,
    report_to_json,
)
from ...deploy.resolver import create_resolver
from ...errors import DeployError
from .errors import build_error_response, translate_deploy_error

logger = logging.getLogger(__name__)

# Interactive resolution needs a terminal
TOOL_STRATEGIES = ("overwrite", "pull", "skip", "cancel")


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


DEPLOY_TOOLS: list[types.Tool] = [
    types.Tool(
        name="deploy_status",
        description=(
            "Preview a deploy without writing anything: list files that "
            "changed locally since the last deploy ([A]dded, [M]odified, "
            "[D]eleted) and flag those that also changed remotely."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="deploy",
        description=(
            "Publish changed workspace files to the remote repository. "
            "Files changed remotely since the last deploy are conflicts; "
            "'strategy' decides them all: overwrite the remote copy, pull "
            "the remote copy into the workspace, skip them, or cancel the "
            "whole deploy (default). Run deploy_status first."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "strategy": {
                    "type": "string",
                    "enum": list(TOOL_STRATEGIES),
                    "default": "cancel",
                    "description": "How to decide conflicts",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="deploy_auth_status",
        description="Show whether a valid token is available and whose it is.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="asset_upload",
        description=(
            "Upload new image assets into a tileset, prop or entity group "
            "and register them in the project manifest. Aborts without "
            "writing if the manifest changed remotely since it was last seen."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "group_type": {
                    "type": "string",
                    "enum": ["tilesets", "props", "entities"],
                },
                "group_name": {
                    "type": "string",
                    "description": "Display name of the group (slugified for paths)",
                },
                "assets": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "data_url": {
                                "type": "string",
                                "description": "data:<mime>;base64,<payload>",
                            },
                        },
                        "required": ["name", "data_url"],
                    },
                },
            },
            "required": ["group_type", "group_name", "assets"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Tool handler
# ---------------------------------------------------------------------------


async def handle_deploy_tool(
    name: str,
    arguments: dict[str, Any] | None,
    context: DeployContext,
) -> types.CallToolResult:
    """Dispatch and execute a deploy tool.

    Args:
        name: Tool name.
        arguments: Tool arguments dict.
        context: Wired deploy context.

    Returns:
        ``CallToolResult`` with tool output or error details.
    """
    args = arguments or {}

    try:
        match name:
            case "deploy_status":
                return await _handle_deploy_status(context)
            case "deploy":
                return await _handle_deploy(args, context)
            case "deploy_auth_status":
                return await _handle_auth_status(context)
            case "asset_upload":
                return await _handle_asset_upload(args, context)
            case _:
                raise ValueError(f"Unknown deploy tool: {name}")

    except DeployError as exc:
        return translate_deploy_error(exc)
    except ValueError as exc:
        return build_error_response(
            "validation_error",
            str(exc),
            "Check parameter values and retry.",
        )
    except Exception as exc:
        logger.exception("Deploy tool error: %s", exc)
        return build_error_response(
            "server_error",
            str(exc),
            "Check workspace configuration and remote connectivity.",
        )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _report_result(report: DeployReport, text: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=report_to_json(report),
        isError=report.phase == DeployPhase.ERROR,
    )


async def _handle_deploy_status(context: DeployContext) -> types.CallToolResult:
    orchestrator = context.orchestrator(create_resolver("cancel"))
    report = await orchestrator.deploy_async(dry_run=True)
    if report.phase == DeployPhase.ERROR:
        return _report_result(report, format_deploy_report(report))
    return _report_result(report, format_change_preview(report))


async def _handle_deploy(
    args: dict[str, Any], context: DeployContext
) -> types.CallToolResult:
    strategy = args.get("strategy", "cancel")
    if strategy not in TOOL_STRATEGIES:
        return build_error_response(
            "validation_error",
            f"Unknown strategy '{strategy}'.",
            f"Use one of: {', '.join(TOOL_STRATEGIES)}.",
        )
    orchestrator = context.orchestrator(create_resolver(strategy))
    report = await orchestrator.deploy_async()
    return _report_result(report, format_deploy_report(report))


async def _handle_auth_status(context: DeployContext) -> types.CallToolResult:
    state = await run_sync(context.auth.get_state)
    if state.is_authenticated:
        scopes = ", ".join(state.scopes) if state.scopes else "none reported"
        text = f"Authenticated as {state.username} (scopes: {scopes})"
    else:
        text = "Not authenticated. Set INREPO_TOKEN or run 'inrepo-deploy login'."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "authenticated": state.is_authenticated,
            "username": state.username,
            "scopes": list(state.scopes),
            "repository": context.config.repo_slug,
        },
    )


async def _handle_asset_upload(
    args: dict[str, Any], context: DeployContext
) -> types.CallToolResult:
    group_name = (args.get("group_name") or "").strip()
    if not group_name:
        return build_error_response(
            "validation_error",
            "group_name is required",
            "Provide a display name for the asset group.",
        )
    if not await run_sync(context.auth.is_authenticated):
        return build_error_response(
            "not_authenticated",
            "Not authenticated",
            "Set INREPO_TOKEN to a valid Personal Access Token, or run "
            "'inrepo-deploy login'.",
        )

    group = AssetGroup(
        type=args.get("group_type", ""),
        slug=slugify(group_name, fallback="group"),
        name=group_name,
    )
    assets = [
        AssetItem(
            id=str(index),
            name=item.get("name") or f"asset-{index}",
            data_url=item.get("data_url"),
        )
        for index, item in enumerate(args.get("assets") or [], start=1)
    ]

    uploader = context.uploader()
    result = await run_sync(uploader.upload_group, group, assets)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_upload_result(result))],
        structuredContent={
            "message": result.message,
            "group": result.group.model_dump(mode="json"),
            "assets": [a.model_dump(mode="json") for a in result.assets],
            "manifest_updated": bool(
                result.manifest_result and result.manifest_result.success
            ),
            "error": result.error,
        },
        isError=result.error is not None and not result.succeeded,
    )
