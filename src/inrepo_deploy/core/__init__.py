"""Remote API client and credential handling shared between CLI and MCP server."""

from .async_utils import run_sync
from .auth import AuthManager, TokenStorage, validate_token
from .client import ContentsClient

__all__ = [
    "AuthManager",
    "ContentsClient",
    "TokenStorage",
    "run_sync",
    "validate_token",
]
