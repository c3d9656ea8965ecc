"""Local working-state provider.

The deploy engine sees the working state only through the ``WorkingState``
protocol: a snapshot of publishable files, plus the two write operations a
``pull`` decision needs. ``DirectoryWorkspace`` implements it over a plain
directory tree.
"""

from __future__ import annotations

import fnmatch
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from ..file_handler import atomic_write_bytes, decode_bytes, resolve_inside
from .canonical import is_structured_path, publish_bytes
from .documents import DEFAULT_MANIFEST_PATH, validate_document

logger = logging.getLogger(__name__)


class LocalFile(BaseModel):
    """One publishable file as it would be written to the remote."""

    path: str
    content: bytes

    model_config = {"frozen": True}


class WorkingState(Protocol):
    def snapshot(self) -> list[LocalFile]: ...

    def apply_remote(self, path: str, content: bytes) -> None: ...

    def remove(self, path: str) -> None: ...


def _matches(path: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatchcase(path, pattern) for pattern in patterns)


class DirectoryWorkspace:
    """Working state backed by a directory.

    Args:
        root: Workspace root; snapshot paths are relative to it.
        documents: Glob patterns (relative to root) of structured documents.
        assets: Glob patterns of binary assets published as raw bytes.
        exclude: Glob patterns never published.
        manifest_path: Path of the project manifest, for validation.
    """

    def __init__(
        self,
        root: str | Path,
        documents: list[str] | None = None,
        assets: list[str] | None = None,
        exclude: list[str] | None = None,
        manifest_path: str = DEFAULT_MANIFEST_PATH,
    ) -> None:
        self.root = Path(root).resolve()
        self.documents = list(documents or [])
        self.assets = list(assets or [])
        self.exclude = list(exclude or [])
        self.manifest_path = manifest_path

    def _candidate_paths(self) -> list[str]:
        found: set[str] = set()
        for pattern in [*self.documents, *self.assets]:
            for match in self.root.glob(pattern):
                if not match.is_file():
                    continue
                rel = match.relative_to(self.root).as_posix()
                if not _matches(rel, self.exclude):
                    found.add(rel)
        return sorted(found)

    def _read_publishable(self, rel: str) -> bytes:
        path = self.root / rel
        raw = path.read_bytes()
        if not (is_structured_path(rel) and _matches(rel, self.documents)):
            return raw

        text, encoding = decode_bytes(raw)
        try:
            document = json.loads(text)
        except ValueError:
            logger.warning("%s is not valid JSON, publishing raw bytes", rel)
            return raw
        if encoding != "utf-8":
            logger.debug("Re-encoding %s from %s to utf-8", rel, encoding)
        return publish_bytes(document)

    def snapshot(self) -> list[LocalFile]:
        """Enumerate publishable files with their publish bytes."""
        return [
            LocalFile(path=rel, content=self._read_publishable(rel))
            for rel in self._candidate_paths()
        ]

    def apply_remote(self, path: str, content: bytes) -> None:
        """Overwrite a local file with remote content.

        Raises:
            ValueError: If the path escapes the workspace root.
            ContentValidationFailure: If structured content fails its checks.
        """
        target = resolve_inside(self.root, path)
        validate_document(path, content, self.manifest_path)
        atomic_write_bytes(target, content)
        logger.info("Pulled remote copy of %s", path)

    def remove(self, path: str) -> None:
        target = resolve_inside(self.root, path)
        try:
            target.unlink()
        except FileNotFoundError:
            return
        logger.info("Removed %s (deleted remotely)", path)
