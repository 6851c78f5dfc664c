"""NAR serialization, used to pin source trees by content.

A flake input is locked by the SHA-256 of its NAR (Nix Archive) dump. The
format is deterministic where tar is not: no timestamps, owners or modes
apart from the executable bit, and directory entries in sorted order.

Every token is framed the same way:

    uint64_le(len) + bytes + zero padding to a multiple of 8

and a tree is written as

    "nix-archive-1" "(" "type" ( "regular" ["executable" ""] "contents" <data>
                               | "symlink" "target" <target>
                               | "directory" { "entry" "(" "name" <n> "node" <tree> ")" } )
    ")"

Serialization is streamed into a sink (a bytearray or a hashlib object), so
hashing a large checkout never holds the whole archive in memory.

See: nix/src/libutil/archive.cc
"""

import errno
import hashlib
import os
import struct
from collections.abc import Callable, Iterable
from pathlib import Path

from flakestore.hash import ContentHash

# Directories a flake's ``self`` input never includes.
DEFAULT_EXCLUDES = frozenset({".git"})


def _frame(token: str | bytes) -> bytes:
    if isinstance(token, str):
        token = token.encode()
    return struct.pack("<Q", len(token)) + token + b"\0" * (-len(token) % 8)


def _dump(path: Path, write: Callable[[bytes], None], exclude: frozenset[str]) -> None:
    write(_frame("("))
    write(_frame("type"))
    if path.is_symlink():
        write(_frame("symlink"))
        write(_frame("target"))
        write(_frame(os.readlink(path)))
    elif path.is_file():
        write(_frame("regular"))
        if os.access(path, os.X_OK):
            write(_frame("executable"))
            write(_frame(""))
        write(_frame("contents"))
        write(_frame(path.read_bytes()))
    elif path.is_dir():
        write(_frame("directory"))
        for name in sorted(os.listdir(path)):
            if name in exclude:
                continue
            for token in ("entry", "(", "name", name, "node"):
                write(_frame(token))
            _dump(path / name, write, exclude)
            write(_frame(")"))
    else:
        raise ValueError(f"cannot archive {path}: not a file, directory or symlink")
    write(_frame(")"))


def dump(path: str | Path, write: Callable[[bytes], None],
         exclude: Iterable[str] = ()) -> None:
    """Stream the NAR of ``path`` into ``write``.

    ``exclude`` names directory entries (at any depth) to leave out.
    """
    path = Path(path)
    if not os.path.lexists(path):
        raise FileNotFoundError(errno.ENOENT, "no such file or directory", str(path))
    write(_frame("nix-archive-1"))
    _dump(path, write, frozenset(exclude))


def nar_serialize(path: str | Path, exclude: Iterable[str] = ()) -> bytes:
    buf = bytearray()
    dump(path, buf.extend, exclude)
    return bytes(buf)


def nar_hash(path: str | Path, exclude: Iterable[str] = ()) -> ContentHash:
    """SHA-256 of the NAR of ``path``; what ``nix hash path`` prints."""
    h = hashlib.sha256()
    dump(path, h.update, exclude)
    return ContentHash("sha256", h.digest())


def source_tree_hash(path: str | Path) -> ContentHash:
    """Hash a flake checkout the way its ``self`` input is locked."""
    return nar_hash(path, DEFAULT_EXCLUDES)
