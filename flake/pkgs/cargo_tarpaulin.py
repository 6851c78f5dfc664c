"""cargo-tarpaulin — code coverage for cargo, a developer-shell tool.

Like nixpkgs/pkgs/development/tools/analysis/cargo-tarpaulin/default.nix:
built with rustPlatform upstream, linking openssl through pkg-config. Only
its resolved path matters here.
"""

from flake.package import Package, make_package
from flake.platforms import Platform


def make_cargo_tarpaulin(platform: Platform, openssl: Package, pkg_config: Package,
                         *, source) -> Package:
    return make_package(
        "cargo-tarpaulin", "0.31.2", platform, source, deps=[openssl, pkg_config],
    )
