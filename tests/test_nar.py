"""Tests for NAR serialization."""

import hashlib
import os
import struct

import pytest

from flakestore.nar import nar_hash, nar_serialize, source_tree_hash


# From: nix hash path of a file containing "hello", no newline
HELLO_NAR_SRI = "sha256-CkMIecJm+LV/QJKg+TXPP6zUi7zN5XYNR0jKQFFx6Wk="


def _str(s: str | bytes) -> bytes:
    """NAR string encoding helper for building expected output."""
    if isinstance(s, str):
        s = s.encode()
    pad = (8 - len(s) % 8) % 8
    return struct.pack("<Q", len(s)) + s + b"\0" * pad


def test_regular_file(tmp_path):
    """NAR of a regular file containing 'hello'."""
    path = tmp_path / "hello.txt"
    path.write_text("hello")
    path.chmod(0o644)

    expected = (
        _str("nix-archive-1")
        + _str("(")
        + _str("type")
        + _str("regular")
        + _str("contents")
        + _str("hello")
        + _str(")")
    )
    assert nar_serialize(path) == expected
    assert nar_hash(path).sri == HELLO_NAR_SRI


def test_executable_file(tmp_path):
    path = tmp_path / "run.sh"
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)

    nar = nar_serialize(path)
    assert _str("executable") + _str("") in nar


def test_symlink(tmp_path):
    link = tmp_path / "link"
    os.symlink("target-file", link)

    expected = (
        _str("nix-archive-1")
        + _str("(")
        + _str("type")
        + _str("symlink")
        + _str("target")
        + _str("target-file")
        + _str(")")
    )
    assert nar_serialize(link) == expected


def test_directory_sorted(tmp_path):
    """Directory entries are archived in sorted order."""
    d = tmp_path / "d"
    d.mkdir()
    (d / "b").write_text("B")
    (d / "a").write_text("A")
    (d / "a").chmod(0o644)
    (d / "b").chmod(0o644)

    nar = nar_serialize(d)
    assert nar.index(_str("a")) < nar.index(_str("b"))
    assert nar.startswith(_str("nix-archive-1") + _str("(") + _str("type") + _str("directory"))


def test_hash_matches_serialization(tmp_path):
    (tmp_path / "f").write_bytes(b"\x00" * 13)
    assert nar_hash(tmp_path).digest == hashlib.sha256(nar_serialize(tmp_path)).digest()


def test_padding(tmp_path):
    """Every token is padded to a multiple of 8 bytes."""
    path = tmp_path / "f"
    path.write_bytes(b"x" * 9)
    assert len(nar_serialize(path)) % 8 == 0


class TestSourceTree:

    def _tree(self, root):
        (root / "src").mkdir(parents=True)
        (root / "src" / "main.rs").write_text("fn main() {}\n")
        (root / "Cargo.lock").write_text("# lock\n")
        return root

    def test_git_excluded(self, tmp_path):
        a = self._tree(tmp_path / "a")
        b = self._tree(tmp_path / "b")
        (b / ".git").mkdir()
        (b / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        assert source_tree_hash(a) == source_tree_hash(b)
        assert nar_hash(a) != nar_hash(b)

    def test_content_sensitive(self, tmp_path):
        a = self._tree(tmp_path / "a")
        before = source_tree_hash(a)
        (a / "src" / "main.rs").write_text("fn main() { println!(); }\n")
        assert source_tree_hash(a) != before

    def test_name_independent(self, tmp_path):
        """The tree's own name is not part of its hash."""
        assert source_tree_hash(self._tree(tmp_path / "x")) == \
            source_tree_hash(self._tree(tmp_path / "y"))


def test_unsupported_file_type(tmp_path):
    fifo = tmp_path / "fifo"
    os.mkfifo(fifo)
    with pytest.raises(ValueError, match="cannot archive"):
        nar_serialize(fifo)


def test_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        nar_hash(tmp_path / "nope")
