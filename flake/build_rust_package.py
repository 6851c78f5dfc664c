"""Python equivalent of ``rustPlatform.buildRustPackage``.

    rustPlatform.buildRustPackage {
      pname = "iamb"; version = "0.0.7";
      src = ./.;
      cargoLock.lockFile = ./Cargo.lock;
      nativeBuildInputs = [ pkgs.openssl pkgs.pkgconfig ];
      buildInputs = [ pkgs.openssl ];
    }

becomes

    build_package(
        SourceTree("self", "Cargo.lock"), lock, toolchain,
        ["openssl", "pkgconfig"], ["openssl"],
        index=pkgs, name="iamb", version="0.0.7",
    )

Build tools and runtime libraries are looked up by name in the composed
package index; a name the index does not define is an
``UnresolvedDependency`` naming it. The source reference and hash come
verbatim from the lock entry of the source tree, so the recipe can be
reproduced from the lock file alone.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from flake.lock import InputLockSet
from flake.package_set import PackageSet
from flake.recipe import PACKAGE, BuildRecipe
from flake.toolchain import ToolchainDescriptor, make_rust_platform


@dataclass(frozen=True)
class SourceTree:
    """Where the application's sources come from.

    ``input`` names the lock entry pinning the tree (``self`` for the flake's
    own checkout); ``lock_file`` is the Cargo lock file inside it.
    """

    input: str = "self"
    lock_file: str = "Cargo.lock"


def build_package(
    source: SourceTree,
    lock: InputLockSet,
    toolchain: ToolchainDescriptor,
    build_tools: Sequence[str],
    runtime_libs: Sequence[str],
    *,
    index: PackageSet,
    name: str,
    version: str,
) -> BuildRecipe:
    """Build the package recipe for the platform ``index`` was composed for."""
    locked = lock.require(source.input)
    required_by = f"{name}-{version}"
    tools = index.resolve_all(build_tools, required_by)
    libs = index.resolve_all(runtime_libs, required_by)
    bash = index.resolve("bash", required_by)
    rust_platform = make_rust_platform(index, toolchain)

    return BuildRecipe(
        kind=PACKAGE,
        name=name,
        version=version,
        system=index.platform.system,
        builder=bash,
        toolchain=toolchain,
        toolchain_package=rust_platform.rustc,
        build_tools=tools,
        runtime_libs=libs,
        source_ref=locked.ref,
        source_hash=locked.content_hash,
        declared_lock_file=source.lock_file,
    )
