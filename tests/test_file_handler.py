"""Tests for file_handler module: path containment, encoding detection, atomic writes."""

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from inrepo_deploy.file_handler import (
    atomic_write_bytes,
    decode_bytes,
    resolve_inside,
)

# =============================================================================
# resolve_inside
# =============================================================================


class TestResolveInside:
    """Tests for resolve_inside(root, relative)."""

    def test_nested_path(self, tmp_path):
        """Relative path resolves under the root."""
        result = resolve_inside(tmp_path, "game/scenes/main.json")
        assert result == (tmp_path / "game" / "scenes" / "main.json").resolve()

    def test_absolute_path_raises(self, tmp_path):
        """Absolute path raises ValueError with 'relative'."""
        with pytest.raises(ValueError, match="relative"):
            resolve_inside(tmp_path, "/etc/passwd")

    def test_traversal_raises(self, tmp_path):
        """Path escaping the root raises ValueError."""
        with pytest.raises(ValueError, match="outside the workspace"):
            resolve_inside(tmp_path / "ws", "../other/file.json")

    def test_inner_dotdot_allowed(self, tmp_path):
        """'..' that stays under the root is fine."""
        result = resolve_inside(tmp_path, "game/scenes/../project.json")
        assert result == (tmp_path / "game" / "project.json").resolve()

    def test_symlink_escape_raises(self, tmp_path):
        """Symlink pointing outside the root is rejected."""
        outside = tmp_path / "outside"
        outside.mkdir()
        root = tmp_path / "ws"
        root.mkdir()
        (root / "link").symlink_to(outside)
        with pytest.raises(ValueError, match="outside the workspace"):
            resolve_inside(root, "link/file.json")


# =============================================================================
# decode_bytes
# =============================================================================


class TestDecodeBytes:
    """Tests for decode_bytes(raw)."""

    def test_utf8(self):
        text = "Café naïve — résumé über"
        content, encoding = decode_bytes(text.encode("utf-8"))
        assert content == text
        assert encoding.replace("_", "-").lower() == "utf-8"

    def test_ascii_reported_as_utf8(self):
        content, encoding = decode_bytes(b"plain ascii text only here")
        assert content == "plain ascii text only here"
        assert encoding == "utf-8"

    def test_empty(self):
        assert decode_bytes(b"") == ("", "utf-8")

    def test_undetectable_falls_back_to_utf8(self):
        with patch("inrepo_deploy.file_handler.from_bytes") as mock_from_bytes:
            mock_from_bytes.return_value.best.return_value = None
            content, encoding = decode_bytes(b"ok\xff")
        assert encoding == "utf-8"
        assert content.startswith("ok")


# =============================================================================
# atomic_write_bytes
# =============================================================================


class TestAtomicWriteBytes:
    """Tests for atomic_write_bytes(path, data, mode)."""

    def test_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "file.bin"
        assert atomic_write_bytes(target, b"\x00\x01") == 2
        assert target.read_bytes() == b"\x00\x01"

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_bytes(b"old")
        atomic_write_bytes(target, b"new")
        assert target.read_bytes() == b"new"

    def test_mode(self, tmp_path):
        target = tmp_path / "secret"
        atomic_write_bytes(target, b"x", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path):
        atomic_write_bytes(tmp_path / "file.txt", b"x")
        assert os.listdir(tmp_path) == ["file.txt"]

    def test_failed_replace_keeps_old_content(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_bytes(b"old")
        with patch("inrepo_deploy.file_handler.os.replace", side_effect=OSError("disk")):
            with pytest.raises(OSError):
                atomic_write_bytes(target, b"new")
        assert target.read_bytes() == b"old"
        assert sorted(p.name for p in Path(tmp_path).iterdir()) == ["file.txt"]
