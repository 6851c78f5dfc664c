"""Tests for the developer shell composer."""

import pytest

from flake.errors import ToolchainUnavailable, UnresolvedDependency
from flake.mk_shell import SHELL_NAME, ToolchainOverride, compose_shell
from flake.overlay import compose
from flake.platforms import Platform
from flake.recipe import SHELL
from flake.toolchain import select

LINUX = Platform.parse("x86_64-linux")


@pytest.fixture
def pkgs(base, overlays):
    return compose(base, overlays, LINUX)


def test_shell(pkgs):
    recipe = compose_shell(pkgs, LINUX, ToolchainOverride(extensions=("rust-src",)),
                           ["pkg-config", "cargo-tarpaulin"])
    assert recipe.kind == SHELL
    assert recipe.name == SHELL_NAME
    assert recipe.runtime_libs == ()
    assert recipe.build_tools == (pkgs["pkg-config"], pkgs["cargo-tarpaulin"])
    assert "rust-src" in recipe.toolchain.components
    assert recipe.source_hash is None


def test_toolchain_independent_of_package(pkgs):
    package_toolchain = select(pkgs, LINUX)
    recipe = compose_shell(pkgs, LINUX, ToolchainOverride(extensions=("rust-src",)), [])
    assert package_toolchain.extensions == frozenset()
    assert recipe.toolchain != package_toolchain
    assert recipe.toolchain.version == package_toolchain.version


def test_no_override(pkgs):
    recipe = compose_shell(pkgs, LINUX, None, [])
    assert recipe.toolchain == select(pkgs, LINUX)


def test_override_channel(pkgs):
    recipe = compose_shell(pkgs, LINUX, ToolchainOverride(channel="nightly-latest"), [])
    assert recipe.toolchain.channel == "nightly"
    assert recipe.toolchain.version == "2024-10-16"


def test_override_targets(pkgs):
    recipe = compose_shell(pkgs, LINUX, ToolchainOverride(targets=("wasm32-unknown-unknown",)), [])
    assert recipe.derivation.env["RUST_TARGETS"] == "wasm32-unknown-unknown"


def test_unresolved(pkgs):
    with pytest.raises(UnresolvedDependency) as exc:
        compose_shell(pkgs, LINUX, None, ["nonexistent"])
    assert exc.value.name == "nonexistent"
    assert exc.value.required_by == SHELL_NAME


def test_unavailable_extension(pkgs):
    with pytest.raises(ToolchainUnavailable):
        compose_shell(pkgs, LINUX, ToolchainOverride(extensions=("miri",)), [])


def test_derivation(pkgs):
    recipe = compose_shell(pkgs, LINUX, None, ["pkg-config"])
    env = recipe.derivation.env
    assert env["name"] == SHELL_NAME
    assert env["buildInputs"] == ""
    assert pkgs["pkg-config"].out in env["nativeBuildInputs"].split()
    assert "src" not in env
    assert recipe.to_json()["sourceRef"] is None
