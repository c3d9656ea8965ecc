"""Remote gateway: the narrow seam between the engine and the remote store.

The engine only needs three operations: read version ids, read content, and
write (create/update/delete) with an optimistic-concurrency precondition.
``ContentsGateway`` implements them over ``ContentsClient``.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol

from ..core.client import ContentsClient
from ..errors import (
    ContentValidationFailure,
    DeployError,
    NotAuthenticated,
    RateLimitExceeded,
)
from .models import CommitResult, RemoteFile

logger = logging.getLogger(__name__)


class RemoteGateway(Protocol):
    def fetch_version_ids(self, paths: list[str]) -> dict[str, str | None]: ...

    def fetch_content(self, path: str) -> RemoteFile | None: ...

    def write(
        self,
        path: str,
        content: bytes | None,
        expected_version_id: str | None,
        message: str,
    ) -> CommitResult: ...


def decode_entry(path: str, entry: dict) -> RemoteFile:
    """Decode a contents-API entry into a ``RemoteFile``.

    Raises:
        ContentValidationFailure: If the entry is not base64 file content.
    """
    if entry.get("encoding") != "base64":
        raise ContentValidationFailure(
            f"Unsupported encoding for {path}: {entry.get('encoding')!r}"
        )
    raw = (entry.get("content") or "").replace("\n", "")
    try:
        content = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ContentValidationFailure(
            f"Remote content for {path} is not valid base64"
        ) from e
    version_id = entry.get("sha")
    if not version_id:
        raise ContentValidationFailure(f"Remote entry for {path} has no sha")
    return RemoteFile(path=path, version_id=version_id, content=content)


class ContentsGateway:
    """Remote gateway over a GitHub-style contents API client."""

    def __init__(self, client: ContentsClient) -> None:
        self.client = client

    def fetch_version_ids(self, paths: list[str]) -> dict[str, str | None]:
        """Fetch the current version id of each path, one request at a time.

        Absent files map to ``None``. Any failure aborts the whole fetch.
        """
        versions: dict[str, str | None] = {}
        for path in paths:
            entry = self.client.get_contents(path)
            versions[path] = entry.get("sha") if entry else None
        return versions

    def fetch_content(self, path: str) -> RemoteFile | None:
        entry = self.client.get_contents(path)
        if entry is None:
            return None
        return decode_entry(path, entry)

    def write(
        self,
        path: str,
        content: bytes | None,
        expected_version_id: str | None,
        message: str,
    ) -> CommitResult:
        """Create, update (``content`` set) or delete (``content`` None) a file.

        Per-file failures become failed results. ``RateLimitExceeded`` and
        ``NotAuthenticated`` propagate so the caller can stop the batch.
        """
        try:
            if content is None:
                if expected_version_id is None:
                    # Already absent remotely
                    return CommitResult(path=path, success=True)
                self.client.delete_contents(path, message, expected_version_id)
                return CommitResult(path=path, success=True)

            new_id = self.client.put_contents(
                path, content, message, version_id=expected_version_id
            )
            return CommitResult(path=path, success=True, new_version_id=new_id)
        except (RateLimitExceeded, NotAuthenticated):
            raise
        except (DeployError, ValueError) as e:
            logger.warning("Write failed for %s: %s", path, e)
            return CommitResult(path=path, success=False, error=str(e))
