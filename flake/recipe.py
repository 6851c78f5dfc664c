"""Build recipes: what the evaluator hands to the external builder.

A ``BuildRecipe`` is the fully resolved description of one artifact, either
the application package (``kind="package"``) or a developer shell
(``kind="shell"``). Every field is a plain value or a resolved ``Package``
and the recipe is frozen, so once built it can be passed between threads,
compared and serialized without copying.

Two renderings are provided:

  - ``to_json()`` for humans and tooling;
  - ``to_derivation()`` for the builder, in ATerm form, laid out the way
    ``buildRustPackage`` and ``mkShell`` lay out their environments.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

from flake.package import Package
from flake.toolchain import ToolchainDescriptor
from flakestore.derivation import Derivation, finalize
from flakestore.hash import ContentHash
from flakestore.store_path import make_source_store_path

PACKAGE = "package"
SHELL = "shell"

# Builder script arguments; the builder supplies the scripts themselves.
PACKAGE_BUILDER_ARGS = ("-e", "cargo-build-hook.sh")
SHELL_BUILDER_ARGS = ("-e", "mk-shell-hook.sh")


def _paths(packages) -> str:
    return " ".join(p.out for p in packages)


@dataclass(frozen=True)
class BuildRecipe:
    kind: str
    name: str
    version: str
    system: str
    builder: Package
    toolchain: ToolchainDescriptor
    toolchain_package: Package
    build_tools: tuple[Package, ...] = ()
    runtime_libs: tuple[Package, ...] = ()
    source_ref: str = ""
    source_hash: ContentHash | None = None
    declared_lock_file: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.name}-{self.version}" if self.version else self.name

    @property
    def source_path(self) -> str | None:
        if self.source_hash is None:
            return None
        return make_source_store_path(self.source_hash)

    def to_derivation(self) -> Derivation:
        """The recipe as an (unfinalized) derivation, outputs still blank."""
        native = (self.toolchain_package, *self.build_tools)
        env = {
            "name": self.full_name,
            "system": self.system,
            "builder": f"{self.builder}/bin/bash",
            "nativeBuildInputs": _paths(native),
            "buildInputs": _paths(self.runtime_libs),
            "RUST_TOOLCHAIN": self.toolchain.spec,
            "RUST_COMPONENTS": " ".join(sorted(self.toolchain.components)),
        }
        if self.toolchain.targets:
            env["RUST_TARGETS"] = " ".join(sorted(self.toolchain.targets))
        srcs = {p.out for p in (self.builder, *native, *self.runtime_libs)}
        if self.kind == PACKAGE:
            env["pname"] = self.name
            env["version"] = self.version
            env["src"] = self.source_path or ""
            env["cargoLock"] = self.declared_lock_file
            env["cargoDeps"] = f"{self.source_path}/{self.declared_lock_file}"
            srcs.add(self.source_path)
            args = PACKAGE_BUILDER_ARGS
        else:
            # mkShell: the environment is the product, there is nothing to build
            env["phases"] = "nobuildPhase"
            env["nobuildPhase"] = "echo 'This derivation is not meant to be built' >&2; exit 1"
            args = SHELL_BUILDER_ARGS
        return Derivation(
            outputs={"out": ""},
            input_srcs=tuple(sorted(srcs)),
            platform=self.system,
            builder=env["builder"],
            args=args,
            env=env,
        )

    @cached_property
    def _finalized(self) -> tuple[Derivation, str]:
        return finalize(self.full_name, self.to_derivation())

    @property
    def derivation(self) -> Derivation:
        return self._finalized[0]

    @property
    def drv_path(self) -> str:
        return self._finalized[1]

    @property
    def out(self) -> str:
        return self.derivation.outputs["out"]

    def to_json(self) -> dict:
        return {
            "kind": self.kind,
            "name": self.name,
            "version": self.version,
            "system": self.system,
            "sourceRef": self.source_ref or None,
            "sourceHash": self.source_hash.sri if self.source_hash else None,
            "declaredLockFile": self.declared_lock_file or None,
            "toolchain": {**self.toolchain.to_json(), "path": self.toolchain_package.out},
            "buildTools": [p.out for p in self.build_tools],
            "runtimeLibs": [p.out for p in self.runtime_libs],
            "drvPath": self.drv_path,
            "out": self.out,
        }
