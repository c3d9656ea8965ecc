"""File handler module: workspace path containment, encoding detection, atomic writes.

Provides the local file I/O used by the working-state provider, the
fingerprint store and the credential store. All functions are synchronous;
async callers wrap them with run_sync().
"""

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# Path Validation
# =============================================================================


def resolve_inside(root: Path, relative: str) -> Path:
    """Resolve a repository-relative path under a workspace root.

    Args:
        root: Workspace root directory.
        relative: POSIX-style path relative to the root.

    Returns:
        Resolved absolute Path.

    Raises:
        ValueError: If the path is absolute or escapes the root.
    """
    if relative.startswith("/") or Path(relative).is_absolute():
        raise ValueError(f"Path must be relative to the workspace: {relative}")
    root_resolved = root.resolve()
    resolved = (root_resolved / relative).resolve()
    if not resolved.is_relative_to(root_resolved):
        raise ValueError(
            f"Path is outside the workspace: {resolved} not under {root_resolved}"
        )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def decode_bytes(raw: bytes) -> tuple[str, str]:
    """Decode raw bytes with charset-normalizer detection.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def atomic_write_bytes(path: Path, data: bytes, mode: int | None = None) -> int:
    """Write bytes atomically (temp file in the same directory + os.replace).

    Creates parent directories as needed. Readers see either the old file
    or the complete new one, never a partial write.

    Args:
        path: Destination file.
        data: Bytes to write.
        mode: Optional permission bits applied before the rename.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)
