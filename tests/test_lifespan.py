"""Tests for inrepo_deploy.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Resolves config from all sources (with optional CLI overrides)
- Wires the deploy context
- Reports the authentication state without refusing to start
- Fails fast on config errors
- Prints status messages to stderr
"""

from unittest.mock import MagicMock, patch

import pytest

from inrepo_deploy.config_schema import UnifiedConfig
from inrepo_deploy.core.auth import AuthState
from inrepo_deploy.mcp.lifespan import server_lifespan

MODULE = "inrepo_deploy.mcp.lifespan"


def _context(authenticated: bool = True) -> MagicMock:
    context = MagicMock()
    context.auth.get_state.return_value = AuthState(
        username="octo" if authenticated else None,
        is_authenticated=authenticated,
    )
    return context


# -------------------------------------------------------------------------
# server_lifespan(): successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_yields_context(self, mock_config):
        context = _context()
        unified = UnifiedConfig()

        with (
            patch(
                f"{MODULE}.resolve_config",
                return_value=(mock_config, unified, ["environment variables"]),
            ) as mock_resolve,
            patch(f"{MODULE}.build_context", return_value=context) as mock_build,
            patch(f"{MODULE}._stderr_print"),
        ):
            async with server_lifespan({"repo": "acme/game"}) as ctx:
                assert ctx["context"] is context

        mock_resolve.assert_called_once_with({"repo": "acme/game"})
        mock_build.assert_called_once_with(mock_config, unified)
        context.auth.get_state.assert_called_once_with()

    async def test_reports_authenticated_user(self, mock_config):
        with (
            patch(
                f"{MODULE}.resolve_config",
                return_value=(mock_config, UnifiedConfig(), []),
            ),
            patch(f"{MODULE}.build_context", return_value=_context()),
            patch(f"{MODULE}._stderr_print") as mock_print,
        ):
            async with server_lifespan():
                pass

        printed = [c.args[0] for c in mock_print.call_args_list]
        assert "  Authenticated as octo" in printed
        assert "  Repository: acme/game" in printed
        assert "  Configuration loaded from: defaults" in printed
        assert printed[-1] == "InRepo Deploy MCP Server shutting down."

    async def test_signed_out_still_starts(self, mock_config):
        context = _context(authenticated=False)
        with (
            patch(
                f"{MODULE}.resolve_config",
                return_value=(mock_config, UnifiedConfig(), []),
            ),
            patch(f"{MODULE}.build_context", return_value=context),
            patch(f"{MODULE}._stderr_print") as mock_print,
        ):
            async with server_lifespan() as ctx:
                assert ctx["context"] is context

        printed = " ".join(c.args[0] for c in mock_print.call_args_list)
        assert "Not authenticated" in printed


# -------------------------------------------------------------------------
# server_lifespan(): failures
# -------------------------------------------------------------------------


class TestServerLifespanFailures:
    async def test_config_error_raises_runtime_error(self):
        with (
            patch(
                f"{MODULE}.resolve_config",
                side_effect=ValueError("Repository not found."),
            ),
            patch(f"{MODULE}.build_context") as mock_build,
            patch(f"{MODULE}._stderr_print"),
        ):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan():
                    pass
        mock_build.assert_not_called()

    async def test_config_error_message_names_env_var(self):
        with (
            patch(f"{MODULE}.resolve_config", side_effect=ValueError("bad")),
            patch(f"{MODULE}._stderr_print") as mock_print,
        ):
            with pytest.raises(RuntimeError):
                async with server_lifespan():
                    pass
        printed = " ".join(c.args[0] for c in mock_print.call_args_list)
        assert "INREPO_REPO" in printed
