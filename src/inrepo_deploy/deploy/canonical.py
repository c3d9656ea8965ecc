"""Canonical serialization and content hashing.

Structured documents hash by their canonical form (sorted keys, compact
separators) so that key reordering and whitespace churn never show up as
changes. Everything else hashes by raw bytes.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

STRUCTURED_SUFFIX = ".json"


def canonical_bytes(document: Any) -> bytes:
    """Serialize a JSON-compatible value deterministically for hashing."""
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def publish_bytes(document: Any) -> bytes:
    """Serialize a structured document the way it is written to the remote."""
    text = json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def document_hash(document: Any) -> str:
    return content_hash(canonical_bytes(document))


def is_structured_path(path: str) -> bool:
    return path.lower().endswith(STRUCTURED_SUFFIX)


def parse_json(data: bytes) -> tuple[bool, Any]:
    """Try to parse *data* as UTF-8 JSON.

    Returns:
        Tuple of (parsed_ok, value). ``value`` is None when parsing fails.
    """
    try:
        return (True, json.loads(data.decode("utf-8-sig")))
    except (UnicodeDecodeError, ValueError):
        return (False, None)


def hash_local_content(path: str, content: bytes) -> str:
    """Hash content for fingerprint comparison.

    Structured paths whose content parses hash by canonical form; all other
    content (including unparseable JSON) hashes by raw bytes.
    """
    if is_structured_path(path):
        ok, document = parse_json(content)
        if ok:
            return document_hash(document)
    return content_hash(content)


def contents_equivalent(local: bytes, remote: bytes) -> bool:
    """Decide whether two versions of a file carry the same content.

    Both parse as JSON: deep structural equality. Otherwise both decode as
    UTF-8: equality after trimming surrounding whitespace. Otherwise: exact
    byte equality.
    """
    local_ok, local_doc = parse_json(local)
    remote_ok, remote_doc = parse_json(remote)
    if local_ok and remote_ok:
        return local_doc == remote_doc

    try:
        return local.decode("utf-8").strip() == remote.decode("utf-8").strip()
    except UnicodeDecodeError:
        return local == remote
