"""Tests for package indexes and lazy package sets."""

import pytest

from flake.errors import InfiniteRecursion, UnresolvedDependency
from flake.lock import LockedInput
from flake.package_set import PackageIndex
from flake.pkgs.all_packages import make_base_index
from flake.platforms import Platform
from flakestore.hash import ContentHash

LINUX = Platform.parse("x86_64-linux")


class TestCallPackage:

    def test_injects_by_name(self):
        index = PackageIndex({
            "a": lambda: "A",
            "b": lambda a: a + "B",
            "c": lambda a, b, platform: f"{a}{b}@{platform}",
        })
        assert index.instantiate(LINUX)["c"] == "AAB@x86_64-linux"

    def test_dash_fallback(self):
        index = PackageIndex({"pkg-config": lambda: "pc", "user": lambda pkg_config: pkg_config})
        pkgs = index.instantiate(LINUX)
        assert pkgs["user"] == "pc"

    def test_default_kept(self):
        index = PackageIndex({"a": lambda source="pinned": source})
        assert index.instantiate(LINUX)["a"] == "pinned"

    def test_pkgs_parameter(self):
        index = PackageIndex({"a": lambda: 1, "b": lambda pkgs: pkgs["a"] + 1})
        assert index.instantiate(LINUX)["b"] == 2

    def test_unresolved(self):
        index = PackageIndex({"a": lambda nonexistent: nonexistent})
        with pytest.raises(UnresolvedDependency) as exc:
            index.instantiate(LINUX)["a"]
        assert exc.value.name == "nonexistent"
        assert exc.value.required_by == "a"


class TestLaziness:

    def test_forced_once(self):
        calls = []

        def make():
            calls.append(1)
            return object()

        pkgs = PackageIndex({"a": make, "b": lambda a: a, "c": lambda a: a}).instantiate(LINUX)
        assert calls == []
        assert pkgs["b"] is pkgs["c"]
        assert calls == [1]

    def test_unused_broken_entry(self):
        """A broken entry only fails when something forces it."""
        pkgs = PackageIndex({"ok": lambda: 1, "broken": lambda missing: missing}).instantiate(LINUX)
        assert pkgs["ok"] == 1

    def test_sets_do_not_share_memo(self):
        index = PackageIndex({"a": lambda: object()})
        assert index.instantiate(LINUX)["a"] is not index.instantiate(LINUX)["a"]

    def test_recursion(self):
        index = PackageIndex({"a": lambda b: b, "b": lambda a: a})
        with pytest.raises(InfiniteRecursion) as exc:
            index.instantiate(LINUX)["a"]
        assert exc.value.stack == ("a", "b")

    def test_non_flake_errors_propagate(self):
        def broken():
            raise ZeroDivisionError

        with pytest.raises(ZeroDivisionError):
            PackageIndex({"a": broken}).instantiate(LINUX)["a"]


class TestPackageIndex:

    def test_immutable(self):
        index = PackageIndex({"a": lambda: 1})
        with pytest.raises(TypeError):
            index.templates["b"] = lambda: 2

    def test_extend(self):
        index = PackageIndex({"a": lambda: 1})
        bigger = index.extend({"a": lambda: 2, "b": lambda: 3})
        assert "b" not in index
        assert bigger.instantiate(LINUX).snapshot() == {"a": 2, "b": 3}

    def test_names(self):
        assert PackageIndex({"b": int, "a": int}).names() == ["a", "b"]


def test_missing_entry():
    pkgs = PackageIndex({}).instantiate(LINUX)
    assert "openssl" not in pkgs
    with pytest.raises(UnresolvedDependency):
        pkgs["openssl"]


class TestBaseIndex:

    def test_contents(self, base):
        assert {"bash", "openssl", "perl", "pkg-config", "pkgconfig", "cargo-tarpaulin"} <= set(base.names())

    def test_alias(self, base):
        pkgs = base.instantiate(LINUX)
        assert pkgs["pkgconfig"] is pkgs["pkg-config"]

    def test_dependencies_feed_paths(self, base):
        pkgs = base.instantiate(LINUX)
        assert pkgs["perl"].out in pkgs["openssl"].inputs
        assert pkgs["openssl"].name == "openssl-3.3.2"

    def test_per_platform(self, base):
        linux = base.instantiate(LINUX)["openssl"]
        darwin = base.instantiate(Platform.parse("aarch64-darwin"))["openssl"]
        assert linux.out != darwin.out
        assert darwin.system == "aarch64-darwin"

    def test_deterministic(self, base):
        assert base.instantiate(LINUX).snapshot() == base.instantiate(LINUX).snapshot()

    def test_follows_lock(self, lock):
        bumped = lock.with_input(
            LockedInput("nixpkgs", "github:nixos/nixpkgs/new", ContentHash.of(b"new")),
        )
        old = make_base_index(lock).instantiate(LINUX)["bash"]
        new = make_base_index(bumped).instantiate(LINUX)["bash"]
        assert old.out != new.out
