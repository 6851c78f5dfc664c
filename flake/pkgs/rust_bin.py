"""rust-bin — prebuilt Rust toolchains, as provided by rust-overlay.

Like oxalica/rust-overlay: the overlay adds a single ``rust-bin`` entry whose
value is a manifest of every published release, organised by track:

    rust-bin.stable.latest.default      → RustBin.release("stable", "latest")
    rust-bin.stable."1.81.0".default    → RustBin.release("stable", "1.81.0")
    rust-bin.nightly."2024-10-15"       → RustBin.release("nightly", "2024-10-15")

Each release lists, per system, the components the upstream dist server
ships. Nightlies are not guaranteed complete: a component that failed to
build for a target on a given night is simply absent, and selecting a
profile that needs it fails instead of quietly picking another night.

The toolchain packages themselves are named from the locked rust-overlay
input (the manifest's content hash) plus the selected components, so
changing the lock or asking for ``rust-src`` moves the store path.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import partial

from flake.overlay import Overlay
from flake.package import Package, make_package
from flake.platforms import DEFAULT_SYSTEMS, Platform

TRACKS = ("stable", "beta", "nightly")

BASE_COMPONENTS = frozenset({
    "cargo", "clippy", "llvm-tools", "rust-analyzer", "rust-docs",
    "rust-src", "rust-std", "rustc", "rustfmt",
})

PROFILES = {
    "minimal": frozenset({"rustc", "cargo", "rust-std"}),
    "default": frozenset({"rustc", "cargo", "rust-std", "rust-docs", "rustfmt", "clippy"}),
}

# rust-std is published for these targets on every release.
TARGETS = frozenset({
    "aarch64-apple-darwin",
    "aarch64-unknown-linux-gnu",
    "aarch64-unknown-linux-musl",
    "wasm32-unknown-unknown",
    "wasm32-wasip1",
    "x86_64-apple-darwin",
    "x86_64-pc-windows-gnu",
    "x86_64-unknown-linux-gnu",
    "x86_64-unknown-linux-musl",
})

HOST_TARGETS = {
    "aarch64-darwin": "aarch64-apple-darwin",
    "aarch64-linux": "aarch64-unknown-linux-gnu",
    "x86_64-darwin": "x86_64-apple-darwin",
    "x86_64-linux": "x86_64-unknown-linux-gnu",
}


@dataclass(frozen=True)
class Release:
    version: str
    date: str
    components: Mapping[str, frozenset[str]]  # system -> shipped components

    def components_for(self, platform: Platform) -> frozenset[str] | None:
        return self.components.get(platform.system)


def _everywhere(components=BASE_COMPONENTS) -> dict[str, frozenset[str]]:
    return {system: frozenset(components) for system in DEFAULT_SYSTEMS}


RELEASES: dict[str, tuple[Release, ...]] = {
    "stable": (
        Release("1.80.1", "2024-08-08", _everywhere()),
        Release("1.81.0", "2024-09-05", _everywhere()),
        Release("1.82.0", "2024-10-17", _everywhere()),
    ),
    "beta": (
        Release("1.83.0-beta.2", "2024-10-15", _everywhere()),
    ),
    "nightly": (
        Release("2024-10-15", "2024-10-15", _everywhere(BASE_COMPONENTS | {"miri"})),
        Release("2024-10-16", "2024-10-16", {
            **_everywhere(BASE_COMPONENTS | {"miri"}),
            "aarch64-linux": BASE_COMPONENTS - {"clippy"},
        }),
    ),
}


@dataclass(frozen=True)
class RustBin:
    """The release manifest, evaluated for one platform."""

    platform: Platform
    source: object  # LockedInput of rust-overlay
    releases: Mapping[str, tuple[Release, ...]] = field(default_factory=lambda: RELEASES, repr=False)

    def release(self, track: str, version: str = "latest") -> Release | None:
        """Look up a release; ``latest`` is the newest release of the track."""
        releases = self.releases.get(track, ())
        if not releases:
            return None
        if version == "latest":
            return max(releases, key=lambda r: r.date)
        for r in releases:
            if r.version == version:
                return r
        return None

    def package(self, toolchain) -> Package:
        """The toolchain package for a ``ToolchainDescriptor``."""
        return make_package(
            f"rust-{toolchain.profile}",
            toolchain.version,
            self.platform,
            self.source,
            attrs={
                "channel": toolchain.channel,
                "components": ",".join(sorted(toolchain.components)),
                "targets": ",".join(sorted(toolchain.targets)),
            },
        )


def make_rust_bin(platform: Platform, *, source) -> RustBin:
    return RustBin(platform, source)


def rust_overlay(lock, requires: Mapping[str, str] | None = None) -> Overlay:
    """The rust-overlay input's overlay, pinned by the lock."""
    source = lock.require("rust-overlay")
    return Overlay(
        "rust-overlay",
        lambda final, prev: {"rust-bin": partial(make_rust_bin, source=source)},
        requires=requires or {},
    )
