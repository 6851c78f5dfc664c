"""Package indexes and their lazy, per-platform evaluation.

Python replacement for a nixpkgs attribute set. A ``PackageIndex`` is an
immutable snapshot of *templates*: callables whose parameters are resolved
by name, like Nix's ``callPackage``:

    def make_openssl(platform, perl, source): ...

    index = PackageIndex({"perl": make_perl, "openssl": make_openssl})
    pkgs = index.instantiate(Platform.parse("x86_64-linux"))
    pkgs["openssl"]      # calls make_openssl(platform=..., perl=pkgs["perl"])

Parameter resolution:
  - ``platform`` receives the platform the set is evaluated for, ``pkgs``
    the set itself;
  - any other name is looked up in the set, first as written, then with
    underscores turned into dashes (``pkg_config`` → ``pkg-config``);
  - a parameter with a default that the set cannot satisfy keeps its
    default (templates bind their locked source with ``functools.partial``).

A ``PackageSet`` forces each entry at most once and only when asked,
matching Nix's lazy attribute sets. The memo belongs to the set, and every
evaluation builds fresh sets, so no state leaks between platforms or runs.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType

from flake.errors import InfiniteRecursion, UnresolvedDependency
from flake.platforms import Platform

Template = Callable[..., object]


def _describe(fn) -> str:
    fn = getattr(fn, "func", fn)  # functools.partial
    return getattr(fn, "__qualname__", repr(fn))


class PackageIndex:
    """An immutable snapshot of named package templates."""

    def __init__(self, templates: Mapping[str, Template] | None = None):
        self._templates = MappingProxyType(dict(templates or {}))

    @property
    def templates(self) -> Mapping[str, Template]:
        return self._templates

    def __contains__(self, name: str) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def names(self) -> list[str]:
        return sorted(self._templates)

    def extend(self, entries: Mapping[str, Template]) -> PackageIndex:
        """A new index with ``entries`` added; later entries win."""
        return PackageIndex({**self._templates, **entries})

    def instantiate(self, platform: Platform) -> PackageSet:
        return PackageSet(platform, self._templates)


class PackageSet:
    """The lazy evaluation of an index for one platform.

    ``final`` is the set dependency injection resolves against; it defaults
    to the set itself. Overlay composition points the intermediate (``prev``)
    sets at the composed result so late-bound references see overrides.
    ``pins`` holds the toolchain axes the composing overlays fixed.
    """

    def __init__(self, platform: Platform, templates: Mapping[str, Template],
                 final: PackageSet | None = None,
                 pins: Mapping[str, str] | None = None):
        self.platform = platform
        self.pins = MappingProxyType(dict(pins or {}))
        self._templates = MappingProxyType(dict(templates))
        self._final = final
        self._cache: dict[str, object] = {}
        self._evaluating: list[str] = []

    @property
    def final(self) -> PackageSet:
        return self._final if self._final is not None else self

    @property
    def templates(self) -> Mapping[str, Template]:
        return self._templates

    def _lookup(self, name: str) -> str | None:
        if name in self._templates:
            return name
        dashed = name.replace("_", "-")
        if dashed in self._templates:
            return dashed
        return None

    def __contains__(self, name: str) -> bool:
        return self._lookup(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._templates))

    def __len__(self) -> int:
        return len(self._templates)

    def names(self) -> list[str]:
        return sorted(self._templates)

    def __getitem__(self, name: str):
        return self.resolve(name)

    def resolve(self, name: str, required_by: str | None = None):
        """Force the entry ``name``, evaluating its template on first use."""
        key = self._lookup(name)
        if key is None:
            raise UnresolvedDependency(name, required_by)
        if key in self._cache:
            return self._cache[key]
        if key in self._evaluating:
            raise InfiniteRecursion(key, self._evaluating)
        self._evaluating.append(key)
        try:
            value = self.final.call(self._templates[key], required_by=key)
        finally:
            self._evaluating.pop()
        self._cache[key] = value
        return value

    def resolve_all(self, names, required_by: str | None = None) -> tuple:
        """Resolve several names in order; the first missing one is reported."""
        return tuple(self.resolve(n, required_by) for n in names)

    def call(self, fn: Template, required_by: str | None = None):
        """Call ``fn`` with its parameters resolved from this set.

        Like Nix's callPackage: ``self.call(lambda bash, openssl: ...)`` is
        ``fn(bash=self["bash"], openssl=self["openssl"])``.
        """
        kwargs = {}
        for param in inspect.signature(fn).parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if param.name == "platform":
                kwargs["platform"] = self.platform
            elif param.name == "pkgs" and "pkgs" not in self:
                kwargs["pkgs"] = self
            elif param.name in self:
                kwargs[param.name] = self.resolve(
                    param.name, required_by or _describe(fn),
                )
            elif param.default is param.empty:
                raise UnresolvedDependency(param.name, required_by or _describe(fn))
        return fn(**kwargs)

    def snapshot(self) -> dict[str, object]:
        """Force every entry. Two sets are value-equal iff their snapshots are."""
        return {name: self.resolve(name) for name in self.names()}
