"""Sequential commit pipeline.

Files are written one at a time, in order, each against its own
precondition. There is no cross-file atomicity: every write stands alone
and its outcome is recorded in a ``CommitResult``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from ..errors import NotAuthenticated, RateLimitExceeded
from .gateway import RemoteGateway
from .models import CommitProgress, CommitResult, FileChange, FileStatus

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Update via InRepo Studio - {timestamp}"


def format_commit_message(template: str = DEFAULT_COMMIT_MESSAGE) -> str:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return template.replace("{timestamp}", timestamp.replace("+00:00", "Z"))


class Committer:
    """Writes a batch of changes through a gateway.

    Args:
        gateway: Remote gateway used for every write.
        message_template: Commit message template; ``{timestamp}`` is
            replaced once per batch.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        message_template: str = DEFAULT_COMMIT_MESSAGE,
    ) -> None:
        self.gateway = gateway
        self.message_template = message_template

    def commit_files(
        self,
        changes: list[FileChange],
        remote_versions: dict[str, str | None],
        on_progress: Callable[[CommitProgress], None] | None = None,
    ) -> list[CommitResult]:
        """Write every change in order.

        Progress is reported before each write. A failed file does not stop
        the batch, except a rate limit or lost credential: then the current
        and all remaining files fail with that message and no further
        writes are issued.

        Args:
            changes: Changes to write, in commit order.
            remote_versions: Precondition version id per path.
            on_progress: Optional progress callback.

        Returns:
            One result per change, in the same order.
        """
        message = format_commit_message(self.message_template)
        results: list[CommitResult] = []
        total = len(changes)

        for index, change in enumerate(changes):
            if on_progress is not None:
                on_progress(
                    CommitProgress(
                        current=index + 1, total=total, current_file=change.path
                    )
                )

            content = None if change.status == FileStatus.DELETED else change.content
            if content is None and change.status != FileStatus.DELETED:
                results.append(
                    CommitResult(
                        path=change.path, success=False, error="No content to write"
                    )
                )
                continue

            try:
                result = self.gateway.write(
                    change.path,
                    content,
                    remote_versions.get(change.path),
                    message,
                )
            except (RateLimitExceeded, NotAuthenticated) as e:
                logger.error(
                    "Stopping commit at %s: %s", change.path, e
                )
                results.extend(
                    CommitResult(path=c.path, success=False, error=str(e))
                    for c in changes[index:]
                )
                break

            if result.success:
                logger.info("Committed %s", change.path)
            results.append(result)

        return results
