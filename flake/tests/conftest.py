import json

import pytest

from flake.build_rust_package import SourceTree
from flake.evaluate import PackageSpec, ShellSpec
from flake.lock import InputLockSet, LockedInput
from flake.mk_shell import ToolchainOverride
from flake.pkgs.all_packages import make_base_index
from flake.pkgs.rust_bin import rust_overlay
from flakestore.hash import ContentHash

NIXPKGS_REV = "5633bcff0c6162b9e4b5f1264264611e950c8ec7"
RUST_OVERLAY_REV = "1c7d5bb4d1df7ad5ac1ac1b8c1d5b0e8b7c2d5f4"
FLAKE_UTILS_REV = "c1dfcf08411b08f6b8615f7d8971a2bfa81d5e8a"


def locked(name, ref):
    return LockedInput(name, ref, ContentHash.of(f"{name}@{ref}".encode()))


def lock_document(**overrides):
    """A flake.lock document pinning nixpkgs, rust-overlay and flake-utils."""
    def node(owner, repo, rev, name):
        return {
            "locked": {
                "type": "github", "owner": owner, "repo": repo, "rev": rev,
                "lastModified": 1728538411,
                "narHash": ContentHash.of(name.encode()).sri,
            },
            "original": {"type": "github", "owner": owner, "repo": repo},
        }

    doc = {
        "nodes": {
            "flake-utils": node("numtide", "flake-utils", FLAKE_UTILS_REV, "flake-utils"),
            "nixpkgs": node("nixos", "nixpkgs", NIXPKGS_REV, "nixpkgs"),
            "rust-overlay": {
                **node("oxalica", "rust-overlay", RUST_OVERLAY_REV, "rust-overlay"),
                "inputs": {"nixpkgs": ["nixpkgs"]},
            },
            "root": {
                "inputs": {
                    "flake-utils": "flake-utils",
                    "nixpkgs": "nixpkgs",
                    "rust-overlay": "rust-overlay",
                },
            },
        },
        "root": "root",
        "version": 7,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def lock_doc():
    return lock_document


@pytest.fixture
def lock():
    return InputLockSet([
        locked("nixpkgs", f"github:nixos/nixpkgs/{NIXPKGS_REV}"),
        locked("rust-overlay", f"github:oxalica/rust-overlay/{RUST_OVERLAY_REV}"),
        locked("flake-utils", f"github:numtide/flake-utils/{FLAKE_UTILS_REV}"),
        locked("self", "path:/src/iamb"),
    ])


@pytest.fixture
def base(lock):
    return make_base_index(lock)


@pytest.fixture
def overlays(lock):
    return [rust_overlay(lock)]


@pytest.fixture
def package_spec():
    return PackageSpec(
        name="iamb",
        version="0.0.7",
        source=SourceTree("self", "Cargo.lock"),
        build_tools=("openssl", "pkgconfig"),
        runtime_libs=("openssl",),
    )


@pytest.fixture
def shell_spec():
    return ShellSpec(
        extra_tools=("pkg-config", "cargo-tarpaulin"),
        toolchain=ToolchainOverride(extensions=("rust-src",)),
    )


@pytest.fixture
def flake_dir(tmp_path):
    """A flake checkout with flake.toml, flake.lock and some sources."""
    root = tmp_path / "iamb"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.rs").write_text('fn main() { println!("iamb"); }\n')
    (root / "Cargo.lock").write_text("version = 3\n")
    (root / "flake.lock").write_text(json.dumps(lock_document(), indent=2))
    (root / "flake.toml").write_text(
        '[package]\n'
        'name = "iamb"\n'
        'version = "0.0.7"\n'
        'build-tools = ["openssl", "pkgconfig"]\n'
        'runtime-libs = ["openssl"]\n'
        '\n'
        '[shell]\n'
        'extra-tools = ["pkg-config", "cargo-tarpaulin"]\n'
        'extensions = ["rust-src"]\n'
    )
    return root
