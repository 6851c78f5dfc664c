"""pkg-config — locates native libraries (openssl) for the cargo build.

nixpkgs also exposes it as the deprecated alias ``pkgconfig``; see
``all_packages.ALIASES``.
"""

from flake.package import Package, make_package
from flake.platforms import Platform


def make_pkg_config(platform: Platform, *, source) -> Package:
    return make_package("pkg-config", "0.29.2", platform, source)
