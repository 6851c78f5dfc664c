"""The input lock set: every external input, pinned by content hash.

A flake never floats. Each input the evaluation touches (the upstream
package set, the toolchain overlay, the per-platform helper, the source tree
itself) is recorded in ``flake.lock`` with a fixed reference and the NAR
hash of its contents:

    {
      "nodes": {
        "nixpkgs": {
          "locked": {
            "type": "github", "owner": "nixos", "repo": "nixpkgs",
            "rev": "5633bcff...", "narHash": "sha256-...", "lastModified": 1728538411
          },
          "original": {"type": "github", "owner": "nixos", "repo": "nixpkgs", "ref": "nixos-unstable"}
        },
        "root": {"inputs": {"nixpkgs": "nixpkgs", "rust-overlay": "rust-overlay", ...}}
      },
      "root": "root",
      "version": 7
    }

``InputLockSet`` is the read-only view the evaluator works from. Hashes are
never recomputed during evaluation; ``verify_path`` checks fetched content
against them at the boundary.
"""

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from flake.errors import ConfigError, HashMismatch, MissingInput
from flakestore.hash import ContentHash, HashFormatError
from flakestore.nar import nar_hash, source_tree_hash

log = logging.getLogger(__name__)

LOCK_VERSION = 7


@dataclass(frozen=True)
class LockedInput:
    name: str
    ref: str
    content_hash: ContentHash


def format_ref(locked: Mapping) -> str:
    """Render a lock node's ``locked`` attributes as a flake reference."""
    kind = locked.get("type")
    if kind in ("github", "gitlab", "sourcehut"):
        return f"{kind}:{locked['owner']}/{locked['repo']}/{locked['rev']}"
    if kind == "git":
        return f"git+{locked['url']}?rev={locked['rev']}"
    if kind == "path":
        return f"path:{locked['path']}"
    if kind in ("tarball", "file"):
        return f"{kind}+{locked['url']}"
    raise ConfigError(f"unsupported input type {kind!r}")


class InputLockSet(Mapping):
    """Immutable mapping from input name to ``LockedInput``."""

    def __init__(self, inputs=()):
        entries = {}
        for item in inputs:
            if item.name in entries:
                raise ConfigError(f"input {item.name!r} is locked twice")
            entries[item.name] = item
        self._inputs = MappingProxyType(entries)

    def __getitem__(self, name: str) -> LockedInput:
        return self._inputs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._inputs)

    def __len__(self) -> int:
        return len(self._inputs)

    def __repr__(self) -> str:
        return f"InputLockSet({sorted(self._inputs)})"

    def require(self, name: str) -> LockedInput:
        """Look up ``name``; a missing input is an error, never a default."""
        try:
            return self._inputs[name]
        except KeyError:
            raise MissingInput(name, self._inputs) from None

    def with_input(self, item: LockedInput) -> "InputLockSet":
        """A new lock set with ``item`` added or replaced."""
        rest = [v for k, v in self._inputs.items() if k != item.name]
        return InputLockSet([*rest, item])

    def verify_path(self, name: str, path: str | Path) -> LockedInput:
        """Check fetched content at ``path`` against the pinned hash."""
        locked = self.require(name)
        actual = nar_hash(path)
        if actual != locked.content_hash:
            raise HashMismatch(name, locked.content_hash, actual)
        log.debug("verified %s at %s", name, path)
        return locked


def parse_lock(data: Mapping) -> InputLockSet:
    """Build an ``InputLockSet`` from a decoded flake.lock document."""
    if not isinstance(data, Mapping) or "nodes" not in data:
        raise ConfigError("lock file has no 'nodes' table")
    version = data.get("version")
    if version != LOCK_VERSION:
        raise ConfigError(f"unsupported lock file version {version!r}")
    nodes = data["nodes"]
    root_id = data.get("root", "root")
    root = nodes.get(root_id)
    if root is None:
        raise ConfigError("lock file has no root node")

    inputs = []
    for name, node_id in root.get("inputs", {}).items():
        # follows-paths ("nixpkgs": ["rust-overlay", "nixpkgs"]) resolve to
        # a node locked elsewhere
        if isinstance(node_id, list):
            node_id = _follow(nodes, root_id, node_id)
        node = nodes.get(node_id)
        if node is None or "locked" not in node:
            raise ConfigError(f"input {name!r} has no locked node")
        locked = node["locked"]
        if "narHash" not in locked:
            raise ConfigError(f"input {name!r} is locked without a narHash")
        try:
            content_hash = ContentHash.parse(locked["narHash"])
        except HashFormatError as e:
            raise ConfigError(f"input {name!r}: {e}") from e
        try:
            ref = format_ref(locked)
        except KeyError as e:
            raise ConfigError(f"input {name!r} is missing lock attribute {e}") from None
        inputs.append(LockedInput(name, ref, content_hash))
    return InputLockSet(inputs)


def _follow(nodes: Mapping, root_id: str, path: list[str]) -> str:
    node_id = root_id
    for step in path:
        try:
            node_id = nodes[node_id]["inputs"][step]
        except KeyError:
            raise ConfigError(f"cannot follow input path {'/'.join(path)}") from None
        if isinstance(node_id, list):
            node_id = _follow(nodes, root_id, node_id)
    return node_id


def load_lock(path: str | Path) -> InputLockSet:
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"lock file {path} does not exist") from None
    except json.JSONDecodeError as e:
        raise ConfigError(f"lock file {path} is not valid JSON: {e}") from e
    lock = parse_lock(data)
    log.debug("loaded %d locked inputs from %s", len(lock), path)
    return lock


def lock_source_tree(path: str | Path, name: str = "self") -> LockedInput:
    """Pin a local checkout as an input, hashing it like ``self``."""
    root = Path(path).resolve()
    return LockedInput(name, f"path:{root}", source_tree_hash(root))
