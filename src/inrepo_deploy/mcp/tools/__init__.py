"""MCP tool handlers for deploy operations.

This package contains MCP tool implementations that wrap the deploy
engine with async handlers and structured error responses.
"""

from .deploy import DEPLOY_TOOLS, handle_deploy_tool
from .errors import build_error_response, translate_deploy_error

ALL_TOOLS = DEPLOY_TOOLS

__all__ = [
    "ALL_TOOLS",
    "DEPLOY_TOOLS",
    "build_error_response",
    "handle_deploy_tool",
    "translate_deploy_error",
]
