"""bash — the shell every recipe's builder runs under.

Like nixpkgs/pkgs/shells/bash/5.nix. The evaluator never runs it; recipes
name ``${bash}/bin/bash`` as their builder and the external builder
provides it.
"""

from flake.package import Package, make_package
from flake.platforms import Platform

VERSION = "5.2p37"


def make_bash(platform: Platform, *, source) -> Package:
    return make_package("bash", VERSION, platform, source)
