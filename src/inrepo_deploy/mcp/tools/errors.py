"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so that AI agents
can recover from errors without human intervention.
"""

from datetime import datetime, timezone

import mcp.types as types

from ...errors import (
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


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_authenticated, rate_limited,
            version_conflict, validation_error, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_authenticated", "Not authenticated", "Set INREPO_TOKEN.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def _format_reset(reset_at: int | None) -> str:
    if reset_at is None:
        return "later"
    dt = datetime.fromtimestamp(reset_at, tz=timezone.utc)
    return f"after {dt.strftime('%Y-%m-%d %H:%M')} UTC"


def translate_deploy_error(error: DeployError) -> types.CallToolResult:
    """Translate a deploy engine error into a structured error response.

    Subclasses are matched before their bases (``PreconditionFailed``
    before ``RemoteApiError``).
    """
    message = str(error)
    match error:
        case NotAuthenticated() | InvalidToken():
            return build_error_response(
                "not_authenticated",
                message,
                "Set INREPO_TOKEN to a valid Personal Access Token, or run "
                "'inrepo-deploy login'.",
            )
        case RateLimitExceeded(reset_at=reset_at):
            return build_error_response(
                "rate_limited",
                message,
                f"Do not retry immediately; retry {_format_reset(reset_at)}.",
            )
        case NetworkError():
            return build_error_response(
                "network_error",
                message,
                "Check network connectivity and INREPO_API_URL, then retry.",
            )
        case PreconditionFailed() | StaleRemoteState():
            return build_error_response(
                "version_conflict",
                message,
                "Run deploy_status to see current conflicts, then retry deploy.",
            )
        case ContentValidationFailure():
            return build_error_response(
                "validation_error",
                message,
                "Fix the document in the repository or workspace, then retry.",
            )
        case DeployCancelled():
            return build_error_response(
                "cancelled",
                message,
                "Choose a conflict strategy (overwrite, pull or skip) and retry.",
            )
        case RemoteApiError(status_code=403):
            return build_error_response(
                "permission_denied",
                message,
                "Use a token with write access to the repository contents.",
            )
        case _:
            return build_error_response(
                "server_error", message, "Retry later."
            )
