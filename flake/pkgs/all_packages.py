"""The upstream package index, pinned by the ``nixpkgs`` input.

Like nixpkgs/pkgs/top-level/all-packages.nix: one entry per package, each a
template resolved by parameter name. Every template is bound to the locked
nixpkgs input, so the store paths it produces follow the lock and nothing
else.

    base = make_base_index(lock)
    pkgs = base.instantiate(Platform.parse("x86_64-linux"))
    pkgs["openssl"]
"""

from functools import partial

from flake.package_set import PackageIndex
from flake.pkgs.bash import make_bash
from flake.pkgs.cargo_tarpaulin import make_cargo_tarpaulin
from flake.pkgs.openssl import make_openssl
from flake.pkgs.perl import make_perl
from flake.pkgs.pkg_config import make_pkg_config

PACKAGES = {
    "bash": make_bash,
    "cargo-tarpaulin": make_cargo_tarpaulin,
    "openssl": make_openssl,
    "perl": make_perl,
    "pkg-config": make_pkg_config,
}

# pkgs/top-level/aliases.nix
ALIASES = {
    "pkgconfig": "pkg-config",
}


def _alias(target: str):
    def alias(pkgs):
        return pkgs[target]
    alias.__qualname__ = f"alias:{target}"
    return alias


def make_base_index(lock) -> PackageIndex:
    """The package index of the locked ``nixpkgs`` input."""
    source = lock.require("nixpkgs")
    templates = {name: partial(make, source=source) for name, make in PACKAGES.items()}
    templates.update({name: _alias(target) for name, target in ALIASES.items()})
    return PackageIndex(templates)
