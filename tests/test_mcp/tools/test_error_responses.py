"""Tests for structured MCP error responses."""

import mcp.types as types
import pytest

from inrepo_deploy.errors import (
    ContentValidationFailure,
    DeployCancelled,
    DeployError,
    InvalidToken,
    NetworkError,
    NotAuthenticated,
    PreconditionFailed,
    RateLimitExceeded,
    RemoteApiError,
    StaleRemoteState,
)
from inrepo_deploy.mcp.tools.errors import build_error_response, translate_deploy_error


def _text(result: types.CallToolResult) -> str:
    return result.content[0].text


class TestBuildErrorResponse:
    def test_format(self):
        result = build_error_response(
            "validation_error", "bad input", "Fix it and retry."
        )
        assert result.isError is True
        assert _text(result) == "Error (validation_error): bad input\n\nAction: Fix it and retry."


class TestTranslateDeployError:
    @pytest.mark.parametrize(
        "error, error_type",
        [
            (NotAuthenticated(), "not_authenticated"),
            (InvalidToken("Invalid token."), "not_authenticated"),
            (RateLimitExceeded(), "rate_limited"),
            (NetworkError("Network error: reset"), "network_error"),
            (PreconditionFailed("does not match", 409), "version_conflict"),
            (StaleRemoteState("Manifest changed remotely"), "version_conflict"),
            (ContentValidationFailure("bad scene"), "validation_error"),
            (DeployCancelled(), "cancelled"),
            (RemoteApiError("Resource not accessible", 403), "permission_denied"),
            (RemoteApiError("Bad gateway", 502), "server_error"),
            (DeployError("something else"), "server_error"),
        ],
    )
    def test_error_types(self, error, error_type):
        result = translate_deploy_error(error)
        assert result.isError is True
        assert _text(result).startswith(f"Error ({error_type}): {error}")

    def test_rate_limit_reset_time(self):
        result = translate_deploy_error(RateLimitExceeded(reset_at=1767225600))
        assert "retry after 2026-01-01 00:00 UTC" in _text(result)

    def test_rate_limit_without_reset(self):
        result = translate_deploy_error(RateLimitExceeded())
        assert "retry later" in _text(result)
