"""Store path computation.

Every recipe and every package the evaluator emits is named by a store path:

    /nix/store/<32 nix32 chars>-<name>

The hash part is computed from a fingerprint

    "<type>:sha256:<hex inner hash>:/nix/store:<name>"

hashed with SHA-256, XOR-folded to 160 bits and nix32-encoded. The type
says what kind of object the path names:

    "source"          a locked input, inner hash = its NAR hash
    "text[:ref...]"   a recipe file, inner hash = sha256 of its text
    "output:<out>"    a package output, inner hash = the recipe fingerprint

References are appended to the type sorted and ':'-separated; with no
references there is no trailing colon.

See: nix/src/libstore/store-api.cc — makeStorePath(), makeTextPath()
"""

from flakestore.hash import ContentHash, compress_hash, nix32_encode, sha256

STORE_DIR = "/nix/store"
HASH_BYTES = 20
# flake inputs are always imported under this name
SOURCE_NAME = "source"


def make_store_path(type_prefix: str, inner_hash: bytes, name: str) -> str:
    fingerprint = f"{type_prefix}:sha256:{inner_hash.hex()}:{STORE_DIR}:{name}"
    digest = compress_hash(sha256(fingerprint.encode()), HASH_BYTES)
    return f"{STORE_DIR}/{nix32_encode(digest)}-{name}"


def _with_refs(base: str, refs) -> str:
    return ":".join([base, *sorted(refs)])


def make_text_store_path(name: str, content: bytes, references=()) -> str:
    """Store path of a text file such as a serialized recipe."""
    return make_store_path(_with_refs("text", references), sha256(content), name)


def make_source_store_path(content_hash: ContentHash, name: str = SOURCE_NAME) -> str:
    """Store path a locked input is unpacked to.

    Only recursive SHA-256 hashes map directly onto a source path, which is
    what lock files always record.
    """
    if content_hash.algo != "sha256":
        raise ValueError(
            f"source paths need a sha256 NAR hash, got {content_hash.algo}"
        )
    return make_store_path("source", content_hash.digest, name)


def make_output_path(fingerprint: bytes, name: str, output_name: str = "out") -> str:
    """Store path of a package output.

    ``fingerprint`` is the SHA-256 the caller computed over everything the
    output depends on. Outputs other than ``out`` get a ``-<output>`` suffix.
    """
    path_name = name if output_name == "out" else f"{name}-{output_name}"
    return make_store_path(f"output:{output_name}", fingerprint, path_name)


def store_path_name(path: str) -> str:
    """The ``<name>`` part of a store path."""
    prefix = STORE_DIR + "/"
    if not path.startswith(prefix):
        raise ValueError(f"not a store path: {path!r}")
    base = path[len(prefix):]
    if len(base) <= 33 or base[32] != "-":
        raise ValueError(f"malformed store path: {path!r}")
    return base[33:]
