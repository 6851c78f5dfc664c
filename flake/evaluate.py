"""The evaluation driver: every platform, every output.

Python equivalent of a flake's ``outputs`` function under
``flake-utils.lib.eachDefaultSystem``:

    for platform in platforms:
        pkgs      = compose(base, overlays, platform)
        toolchain = select(pkgs, platform, channel)
        package   = build_package(...)
        shell     = compose_shell(...)

Each platform is evaluated on its own, from immutable inputs, into fresh
package sets, so platforms can run in any order and in parallel and still
produce the same recipes. A platform that fails is reported as
``PlatformEvaluationFailed`` next to the platforms that succeeded; it never
takes them down with it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from types import MappingProxyType

from flake.build_rust_package import SourceTree, build_package
from flake.errors import FlakeError, PlatformEvaluationFailed
from flake.lock import InputLockSet
from flake.mk_shell import ToolchainOverride, compose_shell
from flake.overlay import Overlay, compose
from flake.package_set import PackageIndex
from flake.pkgs.all_packages import make_base_index
from flake.platforms import Platform, PlatformSet, default_platforms
from flake.recipe import BuildRecipe
from flake.toolchain import DEFAULT_CHANNEL, select

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageSpec:
    """``{name, version, buildTools, runtimeLibs}`` plus where the source is."""

    name: str
    version: str
    source: SourceTree = SourceTree()
    build_tools: tuple[str, ...] = ()
    runtime_libs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ShellSpec:
    extra_tools: tuple[str, ...] = ()
    toolchain: ToolchainOverride = ToolchainOverride()


@dataclass(frozen=True)
class PlatformOutputs:
    package: BuildRecipe
    shell: BuildRecipe

    def select(self, output: str) -> BuildRecipe:
        if output == "package":
            return self.package
        if output == "shell":
            return self.shell
        raise ValueError(f"unknown output {output!r}")


@dataclass(frozen=True)
class EvaluationResult:
    """Successes, failures and abandoned platforms of one evaluation."""

    outputs: Mapping[Platform, PlatformOutputs] = field(default_factory=dict)
    failures: Mapping[Platform, PlatformEvaluationFailed] = field(default_factory=dict)
    cancelled: tuple[Platform, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled

    def raise_for_failures(self) -> None:
        for failure in self.failures.values():
            raise failure


class _Cancelled(Exception):
    pass


def evaluate_platform(
    platform: Platform,
    lock: InputLockSet,
    overlays: Sequence[Overlay],
    package_spec: PackageSpec,
    shell_spec: ShellSpec,
    *,
    base: PackageIndex,
    channel: str = DEFAULT_CHANNEL,
) -> PlatformOutputs:
    """Evaluate one platform. Raises ``PlatformEvaluationFailed``."""
    try:
        pkgs = compose(base, overlays, platform)
        toolchain = select(pkgs, platform, channel)
        package = build_package(
            package_spec.source,
            lock,
            toolchain,
            package_spec.build_tools,
            package_spec.runtime_libs,
            index=pkgs,
            name=package_spec.name,
            version=package_spec.version,
        )
        shell = compose_shell(
            pkgs, platform, shell_spec.toolchain, shell_spec.extra_tools,
            channel=channel,
        )
    except FlakeError as e:
        raise PlatformEvaluationFailed(platform, e) from e
    return PlatformOutputs(package=package, shell=shell)


def evaluate(
    lock: InputLockSet,
    overlays: Sequence[Overlay],
    package_spec: PackageSpec,
    shell_spec: ShellSpec,
    *,
    platforms: Iterable[Platform] | None = None,
    base: PackageIndex | None = None,
    channel: str = DEFAULT_CHANNEL,
    jobs: int | None = None,
    stop: threading.Event | None = None,
) -> EvaluationResult:
    """Evaluate every platform into an ``EvaluationResult``.

    Args:
        lock:         The pinned inputs.
        overlays:     Overlays applied, in order, on top of ``base``.
        package_spec: The application package to describe.
        shell_spec:   The developer shell to describe.
        platforms:    Platforms to evaluate, duplicates dropped (default: flake-utils'
                      defaults).
        base:         Upstream package index (default: from the nixpkgs input).
        channel:      Toolchain channel, e.g. ``stable-latest``.
        jobs:         Worker threads; 1 evaluates serially in the caller.
        stop:         Set to abandon platforms that have not started yet.
    """
    platforms = tuple(default_platforms(lock) if platforms is None else PlatformSet(platforms))
    if base is None:
        base = make_base_index(lock)
    overlays = tuple(overlays)
    stop = stop or threading.Event()

    def run(platform: Platform) -> PlatformOutputs:
        if stop.is_set():
            raise _Cancelled()
        log.debug("evaluating %s", platform)
        return evaluate_platform(
            platform, lock, overlays, package_spec, shell_spec,
            base=base, channel=channel,
        )

    # One slot per platform, each written once by the collecting thread.
    slots: dict[Platform, PlatformOutputs | PlatformEvaluationFailed | None] = {}

    def record(platform: Platform, outcome) -> None:
        if platform in slots:
            raise RuntimeError(f"platform {platform} evaluated twice")
        slots[platform] = outcome
        if isinstance(outcome, PlatformEvaluationFailed):
            log.warning("%s", outcome)

    def attempt(platform: Platform, fn):
        try:
            record(platform, fn())
        except PlatformEvaluationFailed as e:
            record(platform, e)
        except _Cancelled:
            record(platform, None)

    if jobs == 1 or len(platforms) <= 1:
        for platform in platforms:
            attempt(platform, lambda p=platform: run(p))
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            pending = {executor.submit(run, p): p for p in platforms}
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    attempt(pending.pop(future), future.result)
                if stop.is_set():
                    for future in list(pending):
                        if future.cancel():
                            record(pending.pop(future), None)

    outputs = {p: slots[p] for p in platforms if isinstance(slots.get(p), PlatformOutputs)}
    failures = {p: slots[p] for p in platforms
                if isinstance(slots.get(p), PlatformEvaluationFailed)}
    cancelled = tuple(p for p in platforms if p in slots and slots[p] is None)
    log.info(
        "evaluated %d platform(s): %d ok, %d failed, %d cancelled",
        len(platforms), len(outputs), len(failures), len(cancelled),
    )
    return EvaluationResult(
        outputs=MappingProxyType(outputs),
        failures=MappingProxyType(failures),
        cancelled=cancelled,
    )
