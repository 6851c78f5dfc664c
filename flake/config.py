"""flake.toml: the declarative half of a flake.

The Nix original keeps the package description inside ``flake.nix``; here
it is data, read with ``tomllib`` and validated by the pydantic models below:

    [package]
    name = "iamb"
    version = "0.0.7"
    source = "self"
    lock-file = "Cargo.lock"
    build-tools = ["openssl", "pkg-config"]
    runtime-libs = ["openssl"]

    [shell]
    extra-tools = ["pkg-config", "cargo-tarpaulin"]
    extensions = ["rust-src"]

    [toolchain]
    channel = "stable-latest"

    [evaluation]
    overlays = ["rust-overlay"]

Only ``[package]`` is required. Dashed keys map to underscored fields
through aliases, and validation errors are raised as ``ConfigError``.
Overlays are named, not written inline: ``OVERLAYS`` maps each name to the
function building it from the lock.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator

from flake.build_rust_package import SourceTree
from flake.errors import ConfigError
from flake.evaluate import PackageSpec, ShellSpec
from flake.mk_shell import ToolchainOverride
from flake.overlay import Overlay
from flake.pkgs.rust_bin import rust_overlay
from flake.platforms import DEFAULT_SYSTEMS, Platform
from flake.toolchain import DEFAULT_CHANNEL, parse_channel

log = logging.getLogger(__name__)

CONFIG_NAME = "flake.toml"
LOCK_NAME = "flake.lock"

OVERLAYS = {
    "rust-overlay": rust_overlay,
}


@dataclass(frozen=True)
class FlakeConfig:
    package: PackageSpec
    shell: ShellSpec = ShellSpec()
    channel: str = DEFAULT_CHANNEL
    profile: str | None = None
    overlays: tuple[str, ...] = ("rust-overlay",)
    systems: tuple[str, ...] = DEFAULT_SYSTEMS
    jobs: int | None = None

    def load_overlays(self, lock) -> list[Overlay]:
        return load_overlays(self.overlays, lock, profile=self.profile)


def load_overlays(names: Sequence[str], lock, *, profile: str | None = None) -> list[Overlay]:
    """Build the named overlays, in order, from the lock set.

    ``profile`` pins ``rust.profile`` through the toolchain overlay.
    """
    overlays = []
    for name in names:
        try:
            make = OVERLAYS[name]
        except KeyError:
            raise ConfigError(
                f"unknown overlay {name!r} (known: {', '.join(sorted(OVERLAYS))})"
            ) from None
        requires = {"rust.profile": profile} if profile and name == "rust-overlay" else None
        overlays.append(make(lock, requires=requires))
    return overlays


class _Table(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PackageTable(_Table):
    """``[package]``: the application and where its sources are locked."""

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    source: str = "self"
    lock_file: str = Field(default="Cargo.lock", alias="lock-file")
    build_tools: tuple[str, ...] = Field(default=(), alias="build-tools")
    runtime_libs: tuple[str, ...] = Field(default=(), alias="runtime-libs")


class ShellTable(_Table):
    """``[shell]``: extra tools and the toolchain override of the dev shell."""

    extra_tools: tuple[str, ...] = Field(default=(), alias="extra-tools")
    channel: str | None = None
    extensions: tuple[str, ...] = ()
    targets: tuple[str, ...] = ()

    @field_validator("channel")
    @classmethod
    def _check_channel(cls, value: str | None) -> str | None:
        if value is not None:
            parse_channel(value)
        return value


class ToolchainTable(_Table):
    channel: str = DEFAULT_CHANNEL
    profile: str | None = None

    @field_validator("channel")
    @classmethod
    def _check_channel(cls, value: str) -> str:
        parse_channel(value)
        return value


class EvaluationTable(_Table):
    overlays: tuple[str, ...] = ("rust-overlay",)
    systems: tuple[str, ...] = DEFAULT_SYSTEMS
    jobs: Annotated[StrictInt, Field(gt=0)] | None = None

    @field_validator("overlays")
    @classmethod
    def _check_overlays(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for name in value:
            if name not in OVERLAYS:
                raise ValueError(f"unknown overlay {name!r}")
        return value

    @field_validator("systems")
    @classmethod
    def _check_systems(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for system in value:
            Platform.parse(system)
        return value or DEFAULT_SYSTEMS


class FlakeFile(_Table):
    """The whole flake.toml document. Only ``[package]`` is required."""

    package: PackageTable
    shell: ShellTable = ShellTable()
    toolchain: ToolchainTable = ToolchainTable()
    evaluation: EvaluationTable = EvaluationTable()


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}"
        for e in error.errors()
    )


def parse_config(data: Mapping) -> FlakeConfig:
    """Build a ``FlakeConfig`` from a decoded flake.toml document."""
    try:
        doc = FlakeFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid flake.toml: {_describe(e)}") from None
    package, shell = doc.package, doc.shell
    return FlakeConfig(
        package=PackageSpec(
            name=package.name,
            version=package.version,
            source=SourceTree(input=package.source, lock_file=package.lock_file),
            build_tools=package.build_tools,
            runtime_libs=package.runtime_libs,
        ),
        shell=ShellSpec(
            extra_tools=shell.extra_tools,
            toolchain=ToolchainOverride(
                channel=shell.channel,
                extensions=shell.extensions,
                targets=shell.targets,
            ),
        ),
        channel=doc.toolchain.channel,
        profile=doc.toolchain.profile,
        overlays=doc.evaluation.overlays,
        systems=doc.evaluation.systems,
        jobs=doc.evaluation.jobs,
    )


def load_config(path: str | Path) -> FlakeConfig:
    """Read flake.toml at ``path`` (a file, or a directory containing one)."""
    path = Path(path)
    if path.is_dir():
        path = path / CONFIG_NAME
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"{path} does not exist") from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path} is not valid TOML: {e}") from e
    config = parse_config(data)
    log.debug("loaded %s: %s-%s", path, config.package.name, config.package.version)
    return config
