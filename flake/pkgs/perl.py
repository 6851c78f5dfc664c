"""perl — needed at build time by OpenSSL's Configure script."""

from flake.package import Package, make_package
from flake.platforms import Platform


def make_perl(platform: Platform, *, source) -> Package:
    return make_package("perl", "5.40.0", platform, source)
