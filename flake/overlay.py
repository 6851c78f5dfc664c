"""Overlays: ordered, explicit extension of a package index.

Direct translation of Nix's overlay system:

    overlay = final: prev: { rust-bin = mkRustBin { ... }; };

becomes

    Overlay("rust-overlay", lambda final, prev: {"rust-bin": make_rust_bin})

``compose`` folds overlays left to right over a base index, like
``lib.composeManyExtensions`` followed by ``lib.fix``:

  - each overlay returns a mapping of templates that is merged over what
    came before, so for a name defined twice the later overlay wins;
  - ``final`` is the fully composed set (open recursion: templates that
    take ``openssl`` get the last definition of openssl);
  - ``prev`` is the set as it was before this overlay, for wrapping an
    existing definition.

Overlays can add or replace entries but never delete them. An overlay may
also pin toolchain axes through ``requires`` (``{"rust.profile":
"minimal"}``); two overlays pinning one axis to different values in the same
composition cannot both be honoured and raise ``OverlayConflict``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from flake.errors import InvalidOverlay, OverlayConflict
from flake.package_set import PackageIndex, PackageSet, Template
from flake.platforms import Platform

OverlayFn = Callable[[PackageSet, PackageSet], Mapping[str, Template]]


@dataclass(frozen=True, eq=False)
class Overlay:
    """A named ``(final, prev) -> {name: template}`` function."""

    name: str
    fn: OverlayFn
    requires: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "requires", MappingProxyType(dict(self.requires)))

    def __call__(self, final: PackageSet, prev: PackageSet) -> Mapping[str, Template]:
        return self.fn(final, prev)


def check_requirements(overlays: Sequence[Overlay]) -> dict[str, str]:
    """Merge the axis pins of ``overlays``; disagreement is a conflict."""
    pinned: dict[str, str] = {}
    claims: dict[str, dict[str, str]] = {}
    for ov in overlays:
        for axis, value in ov.requires.items():
            claims.setdefault(axis, {})[ov.name] = value
            if pinned.setdefault(axis, value) != value:
                raise OverlayConflict(axis, claims[axis])
    return pinned


def _checked_layer(ov: Overlay, layer) -> dict[str, Template]:
    if not isinstance(layer, Mapping):
        raise InvalidOverlay(
            f"overlay {ov.name!r} returned {type(layer).__name__}, expected a mapping"
        )
    for name, template in layer.items():
        if template is None:
            raise InvalidOverlay(f"overlay {ov.name!r} tries to delete {name!r}")
        if not callable(template):
            raise InvalidOverlay(
                f"overlay {ov.name!r} defines {name!r} as {type(template).__name__}, "
                "expected a template"
            )
    return dict(layer)


def compose(base: PackageIndex, overlays: Sequence[Overlay],
            platform: Platform) -> PackageSet:
    """Apply ``overlays`` to ``base`` for ``platform``.

    Pure: the result depends only on the arguments, and nothing is forced
    until an entry of the returned set is accessed.
    """
    overlays = tuple(overlays)
    pins = check_requirements(overlays)

    final = PackageSet(platform, {}, pins=pins)
    templates = dict(base.templates)
    for ov in overlays:
        prev = PackageSet(platform, templates, final=final)
        templates = {**templates, **_checked_layer(ov, ov(final, prev))}

    # Bind the fixed point: ``final`` now sees every layer.
    final._templates = MappingProxyType(templates)
    return final


def compose_overlays(overlays: Sequence[Overlay], name: str | None = None) -> Overlay:
    """Fold several overlays into one, like ``lib.composeManyExtensions``."""
    overlays = tuple(overlays)

    def composed(final: PackageSet, prev: PackageSet) -> dict[str, Template]:
        templates = dict(prev.templates)
        layer: dict[str, Template] = {}
        for ov in overlays:
            step = PackageSet(prev.platform, templates, final=final)
            new = _checked_layer(ov, ov(final, step))
            templates.update(new)
            layer.update(new)
        return layer

    return Overlay(
        name or "+".join(ov.name for ov in overlays),
        composed,
        requires=check_requirements(overlays),
    )
