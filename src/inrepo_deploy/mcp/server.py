"""MCP Server for the deploy engine using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents preview and run deploys of a workspace to its remote repository.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..context import DeployContext
from ..logger import setup_logging
from .lifespan import server_lifespan
from .tools import ALL_TOOLS, build_error_response, handle_deploy_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "inrepo-deploy"

server = Server(SERVER_NAME)

# Global context instance (initialized in main)
_context: DeployContext | None = None

_TOOL_NAMES = {tool.name for tool in ALL_TOOLS}


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> DeployContext:
    """Get the global DeployContext instance.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _context is None:
        raise RuntimeError(
            "DeployContext not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: DeployContext | None) -> None:
    """Set the global DeployContext instance, or None to clear it."""
    global _context
    _context = context


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available deploy tools."""
    return list(ALL_TOOLS)


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    if name not in _TOOL_NAMES:
        return build_error_response(
            "unknown_tool",
            f"Unknown tool: {name}",
            "Use list_tools to see available tools.",
        )
    return await handle_deploy_tool(name, arguments, get_context())


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), wires the
    deploy context via the lifespan manager, and starts the server with
    stdio transport for JSON-RPC communication.

    Args:
        config_overrides: Optional dict with config values to override
            (repo, branch, api_url, workspace, insecure, log_file)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)

    # Must run BEFORE stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", log_file=log_file)
    logger.info("inrepo-deploy %s", __version__)

    # set_context() is called here rather than in the lifespan so that
    # running this file as __main__ updates the module the handlers read
    async with server_lifespan(config_overrides=overrides or None) as ctx:
        set_context(ctx["context"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="InRepo Deploy MCP Server - deploy a workspace to its repository over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .inrepo/config.yml)
  inrepo-deploy-mcp

  # Override the target repository and branch
  inrepo-deploy-mcp --repo acme/game --branch main

  # Deploy a workspace other than the current directory
  inrepo-deploy-mcp --workspace ~/projects/game

  # Custom log file location
  inrepo-deploy-mcp --log-file /var/log/inrepo-deploy.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--repo",
        help="Target repository as owner/name (takes precedence over INREPO_REPO and config files)",
    )
    parser.add_argument(
        "--branch",
        help="Branch to publish to (takes precedence over INREPO_BRANCH)",
    )
    parser.add_argument(
        "--api-url",
        help="API base URL (takes precedence over INREPO_API_URL)",
    )
    parser.add_argument(
        "--workspace",
        help="Local working directory (takes precedence over INREPO_WORKSPACE)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/inrepo-deploy.log",
        help="Log file path (default: /tmp/inrepo-deploy.log)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"inrepo-deploy-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides = {}
    if args.repo:
        config_overrides["repo"] = args.repo
    if args.branch:
        config_overrides["branch"] = args.branch
    if args.api_url:
        config_overrides["api_url"] = args.api_url
    if args.workspace:
        config_overrides["workspace"] = args.workspace
    if args.insecure:
        config_overrides["insecure"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
