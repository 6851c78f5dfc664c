"""Target platforms a flake is evaluated for.

Mirrors flake-utils' ``eachDefaultSystem``: a static list of systems, each
evaluated on its own. The enumeration depends on nothing but that list: not
on the host, not on the environment, not on previous evaluations.

    for platform in enumerate_platforms():
        ...                      # aarch64-linux, aarch64-darwin, ...

``PlatformSet`` can be iterated any number of times and yields the same
platforms in the same order each time.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

# flake-utils lib.defaultSystems
DEFAULT_SYSTEMS = (
    "aarch64-linux",
    "aarch64-darwin",
    "x86_64-darwin",
    "x86_64-linux",
)

KERNELS = frozenset({"linux", "darwin", "freebsd", "netbsd", "openbsd", "windows"})


@dataclass(frozen=True, order=True)
class Platform:
    arch: str
    kernel: str

    @classmethod
    def parse(cls, system: "str | Platform") -> "Platform":
        """Parse ``<arch>-<kernel>``, e.g. ``x86_64-linux``."""
        if isinstance(system, Platform):
            return system
        arch, sep, kernel = system.rpartition("-")
        if not sep or not arch or kernel not in KERNELS:
            raise ValueError(f"not a system double: {system!r}")
        return cls(arch, kernel)

    @property
    def system(self) -> str:
        return f"{self.arch}-{self.kernel}"

    @property
    def is_linux(self) -> bool:
        return self.kernel == "linux"

    @property
    def is_darwin(self) -> bool:
        return self.kernel == "darwin"

    def __str__(self) -> str:
        return self.system


class PlatformSet:
    """A restartable, duplicate-free sequence of platforms."""

    def __init__(self, systems: Iterable["str | Platform"]):
        self._systems = tuple(systems)

    def __iter__(self) -> Iterator[Platform]:
        seen = set()
        for system in self._systems:
            platform = Platform.parse(system)
            if platform not in seen:
                seen.add(platform)
                yield platform

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __contains__(self, system) -> bool:
        try:
            platform = Platform.parse(system)
        except ValueError:
            return False
        return any(p == platform for p in self)

    def __repr__(self) -> str:
        return f"PlatformSet({[str(p) for p in self]})"


def enumerate_platforms(systems: Iterable["str | Platform"] = DEFAULT_SYSTEMS,
                        only: Iterable["str | Platform"] | None = None) -> PlatformSet:
    """The platforms to evaluate, optionally restricted to ``only``.

    Restricting to a platform that is not supported yields an empty set,
    which means "nothing to build" rather than an error.
    """
    systems = tuple(systems)
    if only is None:
        return PlatformSet(systems)
    wanted = {Platform.parse(s) for s in only}
    return PlatformSet(s for s in systems if Platform.parse(s) in wanted)


def default_platforms(lock) -> PlatformSet:
    """``eachDefaultSystem``: the default list, provided the helper is locked."""
    lock.require("flake-utils")
    return enumerate_platforms(DEFAULT_SYSTEMS)
