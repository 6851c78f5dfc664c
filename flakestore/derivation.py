"""ATerm derivations: the form recipes are handed to the builder in.

A recipe leaves the evaluator as a ``.drv`` file in Nix's ATerm syntax:

    Derive(
        [("out","/nix/store/...-iamb-0.0.7","","")],   # outputs
        [],                                            # inputDrvs
        ["/nix/store/...-source", ...],                # inputSrcs
        "x86_64-linux",                                # platform
        "/nix/store/...-bash-5.2p37/bin/bash",         # builder
        ["-e", "..."],                                 # args
        [("name","iamb-0.0.7"), ...]                   # env
    )

Everything the recipe depends on is already a resolved store path, so
inputDrvs is always empty and dependencies are listed in inputSrcs. The
output paths are derived from the derivation itself: outputs are blanked,
the text is hashed, and the hash names the outputs (``finalize``).

See: nix/src/libstore/derivations.cc
"""

from dataclasses import dataclass, field, replace

from flakestore.hash import sha256
from flakestore.store_path import make_output_path, make_text_store_path


@dataclass(frozen=True)
class Derivation:
    outputs: dict[str, str] = field(default_factory=dict)  # output name -> path
    input_srcs: tuple[str, ...] = ()
    platform: str = ""
    builder: str = ""
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)


_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_UNESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


def _quote(s: str) -> str:
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in s) + '"'


def _list(items) -> str:
    return "[" + ",".join(items) + "]"


def serialize(drv: Derivation) -> str:
    """Render ``drv`` as ATerm. Outputs, sources and env are sorted."""
    outputs = _list(
        f"({_quote(name)},{_quote(drv.outputs[name])},\"\",\"\")"
        for name in sorted(drv.outputs)
    )
    env = _list(
        f"({_quote(key)},{_quote(drv.env[key])})" for key in sorted(drv.env)
    )
    return "Derive(" + ",".join([
        outputs,
        "[]",
        _list(_quote(s) for s in sorted(drv.input_srcs)),
        _quote(drv.platform),
        _quote(drv.builder),
        _list(_quote(a) for a in drv.args),
        env,
    ]) + ")"


class _Reader:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _next(self) -> str:
        if self.pos >= len(self.text):
            raise ValueError("unexpected end of derivation")
        ch = self.text[self.pos]
        self.pos += 1
        return ch

    def expect(self, token: str) -> None:
        if not self.text.startswith(token, self.pos):
            raise ValueError(f"expected {token!r} at offset {self.pos}")
        self.pos += len(token)

    def at(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def string(self) -> str:
        self.expect('"')
        chars = []
        while (ch := self._next()) != '"':
            if ch == "\\":
                ch = self._next()
                ch = _UNESCAPES.get(ch, ch)
            chars.append(ch)
        return "".join(chars)

    def sequence(self, item):
        self.expect("[")
        items = []
        while not self.at("]"):
            if items:
                self.expect(",")
            items.append(item())
        self.expect("]")
        return items

    def record(self, arity: int) -> tuple:
        self.expect("(")
        values = []
        for i in range(arity):
            if i:
                self.expect(",")
            values.append(self.string())
        self.expect(")")
        return tuple(values)


def parse(text: str) -> Derivation:
    """Parse an ATerm derivation produced by ``serialize``."""
    r = _Reader(text)
    r.expect("Derive(")
    outputs = {name: path for name, path, _, _ in r.sequence(lambda: r.record(4))}
    r.expect(",")
    if r.sequence(lambda: r.record(2)):
        raise ValueError("derivations with input derivations are not supported")
    r.expect(",")
    input_srcs = tuple(r.sequence(r.string))
    r.expect(",")
    platform = r.string()
    r.expect(",")
    builder = r.string()
    r.expect(",")
    args = tuple(r.sequence(r.string))
    r.expect(",")
    env = dict(r.sequence(lambda: r.record(2)))
    r.expect(")")
    if r.pos != len(text):
        raise ValueError(f"trailing data after derivation at offset {r.pos}")
    return Derivation(outputs, input_srcs, platform, builder, args, env)


def finalize(name: str, drv: Derivation) -> tuple[Derivation, str]:
    """Fill in output paths and compute the ``.drv`` store path.

    Outputs (and their env entries) are blanked, the masked text is hashed,
    and that hash names each output. Returns the completed derivation and
    its store path.
    """
    masked = replace(
        drv,
        outputs={o: "" for o in drv.outputs},
        env={**drv.env, **{o: "" for o in drv.outputs}},
    )
    fingerprint = sha256(serialize(masked).encode())
    outputs = {o: make_output_path(fingerprint, name, o) for o in drv.outputs}
    done = replace(masked, outputs=outputs, env={**masked.env, **outputs})
    drv_path = make_text_store_path(
        name + ".drv", serialize(done).encode(), done.input_srcs,
    )
    return done, drv_path
