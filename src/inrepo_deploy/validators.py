"""
Input validation functions for inrepo-deploy.

Provides validation for repository paths and file content to ensure they
meet requirements before making remote API calls.
"""


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Repository path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def normalize_repo_path(path: str) -> str:
    """Strip leading slashes so paths are always repository-relative."""
    return path.lstrip("/")


def validate_repo_path(path: str) -> tuple[bool, str]:
    """
    Validate a repository-relative file path.

    Args:
        path: The path to validate (already normalized)

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain '..' segments (path traversal protection)
        - Cannot have empty path segments (e.g., 'game//project.json')
        - Cannot contain backslashes
        - Cannot end with '/'
    """
    if not path or not path.strip():
        return (
            False,
            format_validation_error("Repository path", "cannot be empty"),
        )

    if "\\" in path:
        return (
            False,
            format_validation_error(
                "Repository path", "cannot contain backslashes"
            ),
        )

    if ".." in path.split("/"):
        return (
            False,
            format_validation_error(
                "Repository path", "cannot contain '..'"
            ),
        )

    if "//" in path:
        return (
            False,
            format_validation_error(
                "Repository path", "cannot have empty path segments"
            ),
        )

    if path.endswith("/"):
        return (
            False,
            format_validation_error(
                "Repository path", "must name a file, not a directory"
            ),
        )

    return (True, "")


def validate_content(
    content: bytes, max_size: int = 50 * 1024 * 1024
) -> tuple[bool, str]:
    """
    Validate file content before upload.

    Args:
        content: The raw bytes to upload
        max_size: Maximum size in bytes (default: 50 MiB)

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if len(content) > max_size:
        return (
            False,
            format_validation_error(
                "Content", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return (True, "")
