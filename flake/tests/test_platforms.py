"""Tests for the platform enumerator."""

import pytest

from flake.errors import MissingInput
from flake.lock import InputLockSet
from flake.platforms import DEFAULT_SYSTEMS, Platform, default_platforms, enumerate_platforms


def test_parse():
    p = Platform.parse("x86_64-linux")
    assert (p.arch, p.kernel) == ("x86_64", "linux")
    assert str(p) == "x86_64-linux"
    assert p.is_linux and not p.is_darwin


@pytest.mark.parametrize("system", ["x86_64", "x86_64-plan9", "-linux", ""])
def test_parse_rejects(system):
    with pytest.raises(ValueError):
        Platform.parse(system)


def test_default_systems():
    assert [p.system for p in enumerate_platforms()] == list(DEFAULT_SYSTEMS)


def test_restartable():
    platforms = enumerate_platforms()
    assert list(platforms) == list(platforms)
    assert len(platforms) == 4


def test_no_duplicates():
    platforms = enumerate_platforms(["x86_64-linux", "aarch64-darwin", "x86_64-linux"])
    assert [p.system for p in platforms] == ["x86_64-linux", "aarch64-darwin"]


def test_only():
    platforms = enumerate_platforms(only=["x86_64-linux"])
    assert [p.system for p in platforms] == ["x86_64-linux"]


def test_only_unsupported_is_empty():
    assert list(enumerate_platforms(only=["riscv64-linux"])) == []


def test_empty():
    assert list(enumerate_platforms([])) == []


def test_contains():
    platforms = enumerate_platforms()
    assert "aarch64-darwin" in platforms
    assert Platform.parse("x86_64-darwin") in platforms
    assert "riscv64-linux" not in platforms
    assert "garbage" not in platforms


def test_default_platforms_needs_flake_utils(lock):
    assert list(default_platforms(lock)) == list(enumerate_platforms())
    with pytest.raises(MissingInput, match="flake-utils"):
        default_platforms(InputLockSet())
