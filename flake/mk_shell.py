"""Python equivalent of ``pkgs.mkShell`` for the developer environment.

    devShell = pkgs.mkShell {
      buildInputs = [
        (rust.override { extensions = [ "rust-src" ]; })
        pkgs.pkg-config
        pkgs.cargo-tarpaulin
      ];
    };

The shell selects its own toolchain: the same channel as the package
unless the override names another, plus any extra components. The package
recipe is unaffected. Shell tools are only used interactively, so the
recipe has no runtime libraries.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from flake.package_set import PackageSet
from flake.platforms import Platform
from flake.recipe import SHELL, BuildRecipe
from flake.toolchain import DEFAULT_CHANNEL, make_rust_platform, select

SHELL_NAME = "nix-shell"


@dataclass(frozen=True)
class ToolchainOverride:
    """``rust.override { ... }`` for the shell's toolchain."""

    channel: str | None = None
    extensions: tuple[str, ...] = ()
    targets: tuple[str, ...] = ()


def compose_shell(
    index: PackageSet,
    platform: Platform,
    toolchain_override: ToolchainOverride | None,
    extra_tools: Sequence[str],
    *,
    channel: str = DEFAULT_CHANNEL,
) -> BuildRecipe:
    override = toolchain_override or ToolchainOverride()
    toolchain = select(index, platform, override.channel or channel).override(
        extensions=override.extensions, targets=override.targets,
    )
    tools = index.resolve_all(extra_tools, SHELL_NAME)
    bash = index.resolve("bash", SHELL_NAME)
    rust_platform = make_rust_platform(index, toolchain)

    return BuildRecipe(
        kind=SHELL,
        name=SHELL_NAME,
        version="",
        system=platform.system,
        builder=bash,
        toolchain=toolchain,
        toolchain_package=rust_platform.rustc,
        build_tools=tools,
    )
