"""openssl — TLS library linked by the packaged application.

Like nixpkgs/pkgs/development/libraries/openssl/default.nix (openssl_3).
Configure is a perl script, so perl is a build input; on Darwin the
upstream expression also needs nothing extra from the SDK for libssl.
"""

from flake.package import Package, make_package
from flake.platforms import Platform


def make_openssl(platform: Platform, perl: Package, *, source) -> Package:
    return make_package("openssl", "3.3.2", platform, source, deps=[perl])
