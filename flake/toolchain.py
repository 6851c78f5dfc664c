"""Toolchain selection.

Python equivalent of

    rust = pkgs.rust-bin.stable.latest.default;
    rustPlatform = pkgs.makeRustPlatform { cargo = rust; rustc = rust; };

``select`` reads the ``rust-bin`` manifest from a composed package set and
returns a ``ToolchainDescriptor``: a plain value naming one release, one
profile and any extra components. Selecting twice with the same inputs gives
equal descriptors; nothing is cached or shared.

Channels are written ``<track>-<version>``:

    stable-latest       newest stable release
    stable-1.81.0       an exact stable release
    nightly-2024-10-15  an exact nightly
    beta-latest

``ToolchainDescriptor.override`` mirrors ``rust.override { extensions = [...];
targets = [...]; }``. Extensions are merged: asking for ``rust-src`` on top of
a descriptor that already has ``rust-analyzer`` keeps both.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from flake.errors import ToolchainUnavailable
from flake.package import Package
from flake.package_set import PackageSet
from flake.pkgs.rust_bin import HOST_TARGETS, PROFILES, TARGETS, TRACKS
from flake.platforms import Platform

MANIFEST = "rust-bin"
DEFAULT_CHANNEL = "stable-latest"
DEFAULT_PROFILE = "default"


def parse_channel(channel: str) -> tuple[str, str]:
    """Split ``stable-latest`` into ``("stable", "latest")``."""
    track, sep, version = channel.partition("-")
    if track not in TRACKS or not sep or not version:
        raise ValueError(f"malformed channel {channel!r}, expected <track>-<version>")
    return track, version


@dataclass(frozen=True)
class ToolchainDescriptor:
    name: str
    channel: str  # track: stable, beta or nightly
    version: str
    system: str
    profile: str = DEFAULT_PROFILE
    extensions: frozenset[str] = frozenset()
    targets: frozenset[str] = frozenset()
    available: frozenset[str] = field(default=frozenset(), repr=False)

    @property
    def spec(self) -> str:
        return f"{self.channel}-{self.version}"

    @property
    def components(self) -> frozenset[str]:
        return PROFILES[self.profile] | self.extensions

    @property
    def host_target(self) -> str | None:
        return HOST_TARGETS.get(self.system)

    def override(self, extensions=(), targets=()) -> ToolchainDescriptor:
        """A descriptor with extra components and cross targets added."""
        extensions = frozenset(extensions)
        targets = frozenset(targets)
        missing = sorted(extensions - self.available)
        if missing:
            raise ToolchainUnavailable(
                self.spec, self.system,
                f"component(s) {', '.join(missing)} not shipped for {self.system}",
            )
        unknown = sorted(targets - TARGETS)
        if unknown:
            raise ToolchainUnavailable(
                self.spec, self.system, f"no rust-std for target(s) {', '.join(unknown)}",
            )
        return replace(
            self,
            extensions=self.extensions | extensions,
            targets=self.targets | targets,
        )

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "channel": self.channel,
            "version": self.version,
            "system": self.system,
            "profile": self.profile,
            "extensions": sorted(self.extensions),
            "targets": sorted(self.targets),
            "hostTarget": self.host_target,
        }


def select(index: PackageSet, platform: Platform, channel: str = DEFAULT_CHANNEL,
           profile: str | None = None) -> ToolchainDescriptor:
    """Pick the toolchain ``channel`` names for ``platform``.

    The profile comes from ``profile``, else from a ``rust.profile`` pin set
    by an overlay, else ``default``.
    """
    if MANIFEST not in index:
        raise ToolchainUnavailable(channel, platform, f"no {MANIFEST!r} in the package index")
    try:
        track, version = parse_channel(channel)
    except ValueError as e:
        raise ToolchainUnavailable(channel, platform, str(e)) from None

    profile = profile or index.pins.get("rust.profile", DEFAULT_PROFILE)
    if profile not in PROFILES:
        raise ToolchainUnavailable(channel, platform, f"unknown profile {profile!r}")

    manifest = index[MANIFEST]
    release = manifest.release(track, version)
    if release is None:
        raise ToolchainUnavailable(channel, platform, f"no {track} release {version!r}")
    shipped = release.components_for(platform)
    if shipped is None:
        raise ToolchainUnavailable(
            channel, platform, f"{track} {release.version} is not built for {platform}",
        )
    missing = sorted(PROFILES[profile] - shipped)
    if missing:
        raise ToolchainUnavailable(
            channel, platform,
            f"{track} {release.version} lacks {', '.join(missing)} "
            f"needed by the {profile} profile",
        )
    return ToolchainDescriptor(
        name="rust",
        channel=track,
        version=release.version,
        system=platform.system,
        profile=profile,
        available=shipped,
    )


@dataclass(frozen=True)
class RustPlatform:
    """``makeRustPlatform``: cargo and rustc taken from one toolchain."""

    toolchain: ToolchainDescriptor
    cargo: Package
    rustc: Package


def make_rust_platform(index: PackageSet, toolchain: ToolchainDescriptor) -> RustPlatform:
    rust = index[MANIFEST].package(toolchain)
    return RustPlatform(toolchain=toolchain, cargo=rust, rustc=rust)
