"""Resolved packages: the values a package index evaluates to.

Upstream packages are never built here, only named. A ``Package`` records
where the external builder will put a package, and that location is a pure
function of what the package is made from:

    fingerprint = sha256(pname, version, system,
                         NAR hash of the locked input defining it,
                         store paths of its inputs, extra attrs)
    out         = /nix/store/<hash(fingerprint)>-<pname>-<version>

so bumping the locked upstream revision, changing a dependency or
evaluating for another platform all move the path, while re-evaluating the
same inputs always lands on the same one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from flake.platforms import Platform
from flakestore.hash import sha256
from flakestore.store_path import make_output_path


@dataclass(frozen=True)
class Package:
    """A package in the index, resolved for one platform.

    ``str(pkg)`` is its output path, so packages interpolate into env
    values the way they do in Nix strings.
    """

    pname: str
    version: str
    system: str
    out: str
    inputs: tuple[str, ...] = ()  # store paths of the packages it depends on

    @property
    def name(self) -> str:
        return f"{self.pname}-{self.version}" if self.version else self.pname

    def __str__(self) -> str:
        return self.out


def make_package(
    pname: str,
    version: str,
    platform: Platform,
    source,
    deps: Iterable[Package] = (),
    attrs: Mapping[str, str] | None = None,
) -> Package:
    """Name a package defined by the locked input ``source``.

    Args:
        pname:    Package name.
        version:  Package version ("" for unversioned tools).
        platform: Platform the package is built for.
        source:   The ``LockedInput`` whose pinned contents define it.
        deps:     Packages it depends on; their paths feed the fingerprint.
        attrs:    Extra attributes that distinguish variants (e.g. the
                  components of a toolchain).
    """
    inputs = tuple(sorted({dep.out for dep in deps}))
    lines = [
        f"pname={pname}",
        f"version={version}",
        f"system={platform.system}",
        f"source={source.content_hash.sri}",
        *(f"input={path}" for path in inputs),
        *(f"{key}={value}" for key, value in sorted((attrs or {}).items())),
    ]
    fingerprint = sha256("\n".join(lines).encode())
    name = f"{pname}-{version}" if version else pname
    return Package(
        pname=pname,
        version=version,
        system=platform.system,
        out=make_output_path(fingerprint, name),
        inputs=inputs,
    )
