"""Fingerprint store persistence layer.

Keeps, per repository path, the remote version id and local content hash
recorded at the last confirmed publish, pull or baseline. The store lives in
a single JSON file (``fingerprints.json`` in the state directory):

    {"version": 1, "last_updated": "...", "entries": {path: {...}}}

Mutations are held in memory until ``save()``, which writes atomically so
readers never see partial data. Each store instance is owned by the deploy
attempt that loaded it; nothing here is shared between threads.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ..errors import ContentValidationFailure
from ..file_handler import atomic_write_bytes
from .models import FingerprintEntry

logger = logging.getLogger(__name__)

STORE_VERSION = 1
STORE_FILENAME = "fingerprints.json"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FingerprintStore:
    """In-memory fingerprint map with explicit atomic persistence.

    Args:
        state_path: Path of the JSON store file.
        entries: Initial entries (used by ``load()``).
    """

    def __init__(
        self,
        state_path: Path,
        entries: dict[str, FingerprintEntry] | None = None,
    ) -> None:
        self.state_path = Path(state_path)
        self._entries: dict[str, FingerprintEntry] = dict(entries or {})
        self._dirty = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, state_path: Path) -> FingerprintStore:
        """Load the store from disk.

        A missing file yields an empty store.

        Raises:
            ContentValidationFailure: If the file is unreadable JSON, has an
                unsupported version, or holds malformed entries.
        """
        state_path = Path(state_path)
        if not state_path.exists():
            logger.debug("No fingerprint store at %s, starting empty", state_path)
            return cls(state_path)

        try:
            with open(state_path, encoding="utf-8") as fh:
                data = json.load(fh)
        except ValueError as e:
            raise ContentValidationFailure(
                f"Fingerprint store {state_path} is not valid JSON: {e}"
            ) from e

        if not isinstance(data, dict) or data.get("version") != STORE_VERSION:
            version = data.get("version") if isinstance(data, dict) else None
            raise ContentValidationFailure(
                f"Unsupported fingerprint store version {version!r} in {state_path}"
            )

        try:
            entries = {
                path: FingerprintEntry(**raw)
                for path, raw in (data.get("entries") or {}).items()
            }
        except (TypeError, ValidationError) as e:
            raise ContentValidationFailure(
                f"Malformed fingerprint entry in {state_path}: {e}"
            ) from e

        return cls(state_path, entries)

    def save(self) -> None:
        """Persist all entries atomically and clear the dirty flag."""
        payload = {
            "version": STORE_VERSION,
            "last_updated": utc_now(),
            "entries": {
                path: entry.model_dump()
                for path, entry in sorted(self._entries.items())
            },
        }
        atomic_write_bytes(
            self.state_path,
            json.dumps(payload, indent=2).encode("utf-8"),
        )
        self._dirty = False
        logger.debug(
            "Saved %d fingerprint(s) to %s", len(self._entries), self.state_path
        )

    # ------------------------------------------------------------------
    # Entry helpers
    # ------------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get(self, path: str) -> FingerprintEntry | None:
        return self._entries.get(path)

    def set(self, path: str, entry: FingerprintEntry) -> None:
        self._entries[path] = entry
        self._dirty = True

    def record(self, path: str, remote_version_id: str, content_hash: str) -> None:
        """Set an entry stamped with the current time."""
        self.set(
            path,
            FingerprintEntry(
                remote_version_id=remote_version_id,
                content_hash=content_hash,
                updated_at=utc_now(),
            ),
        )

    def remove(self, path: str) -> None:
        if self._entries.pop(path, None) is not None:
            self._dirty = True

    def get_all(self) -> dict[str, FingerprintEntry]:
        """Return a copy of all entries."""
        return dict(self._entries)
