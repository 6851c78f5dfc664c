"""Errors raised while evaluating a flake.

Everything the evaluator can reject derives from ``FlakeError``. Failures are
local to one platform: the driver wraps whichever error stopped a platform in
``PlatformEvaluationFailed`` and keeps going with the others. Nothing is
retried; evaluation is deterministic, so the same inputs fail the same way.
"""


class FlakeError(Exception):
    pass


class ConfigError(FlakeError):
    """flake.toml or flake.lock is malformed."""


class MissingInput(FlakeError):
    """A name was looked up that the lock set does not pin."""

    def __init__(self, name: str, available=()):
        self.name = name
        self.available = tuple(sorted(available))
        hint = f" (locked: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"input {name!r} is not in the lock file{hint}")


class HashMismatch(FlakeError):
    def __init__(self, name: str, expected, actual):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"hash mismatch for input {name!r}:\n"
            f"  locked: {expected}\n"
            f"  got:    {actual}"
        )


class InvalidOverlay(FlakeError):
    """An overlay tried to delete an entry or returned a non-template."""


class OverlayConflict(FlakeError):
    """Two overlays in one composition pin one toolchain axis differently."""

    def __init__(self, axis: str, claims: dict[str, str]):
        self.axis = axis
        self.claims = dict(claims)
        detail = ", ".join(f"{ov} wants {value!r}" for ov, value in self.claims.items())
        super().__init__(f"conflicting requirements for {axis}: {detail}")


class ToolchainUnavailable(FlakeError):
    def __init__(self, channel: str, platform, reason: str):
        self.channel = channel
        self.platform = platform
        self.reason = reason
        super().__init__(f"no {channel} toolchain for {platform}: {reason}")


class UnresolvedDependency(FlakeError):
    """A declared dependency is missing from the composed package index."""

    def __init__(self, name: str, required_by: str | None = None):
        self.name = name
        self.required_by = required_by
        where = f" (required by {required_by})" if required_by else ""
        super().__init__(f"package {name!r} is not in the package index{where}")


class InfiniteRecursion(FlakeError):
    def __init__(self, name: str, stack):
        self.name = name
        self.stack = tuple(stack)
        chain = " -> ".join([*self.stack, name])
        super().__init__(f"infinite recursion evaluating {name!r}: {chain}")


class PlatformEvaluationFailed(FlakeError):
    def __init__(self, platform, cause: FlakeError):
        self.platform = platform
        self.cause = cause
        super().__init__(f"evaluation failed for {platform}: {cause}")
