#!/usr/bin/env python3
"""pixflake — evaluate a flake into build recipes.

    pixflake build                      package recipe for every platform
    pixflake build --platform x86_64-linux --format aterm
    pixflake shell --platform aarch64-darwin
    pixflake show                       every output, plus failures
    pixflake platforms
    pixflake verify nixpkgs ./nixpkgs-src
    pixflake hash-path .

The flake directory holds ``flake.toml`` and ``flake.lock``; the directory
itself is hashed and locked as the ``self`` input.

Exit status: 0 on success, 1 if any platform failed to evaluate (or a
verified path does not match its lock entry), 2 for unusable input:
bad flake.toml or flake.lock, or an unsupported ``--platform``.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from flake.config import LOCK_NAME, load_config
from flake.errors import FlakeError, HashMismatch
from flake.evaluate import evaluate
from flake.lock import load_lock, lock_source_tree
from flake.platforms import DEFAULT_SYSTEMS, Platform, default_platforms, enumerate_platforms
from flakestore import derivation
from flakestore.nar import nar_hash

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


class UsageError(Exception):
    pass


def _load(args):
    root = Path(args.flake)
    config = load_config(root)
    lock = load_lock(root / LOCK_NAME)
    lock = lock.with_input(lock_source_tree(root))
    return config, lock


def _platforms(args, config, lock):
    if config.systems == DEFAULT_SYSTEMS:
        platforms = default_platforms(lock)
    else:
        platforms = enumerate_platforms(config.systems)
    only = getattr(args, "platform", None)
    if only is None:
        return platforms
    try:
        wanted = Platform.parse(only)
    except ValueError as e:
        raise UsageError(str(e)) from None
    if wanted not in platforms:
        raise UsageError(f"platform {only} is not supported by this flake "
                         f"(supported: {', '.join(str(p) for p in platforms)})")
    return enumerate_platforms(config.systems, only=[wanted])


def _evaluate(args):
    config, lock = _load(args)
    platforms = _platforms(args, config, lock)
    result = evaluate(
        lock,
        config.load_overlays(lock),
        config.package,
        config.shell,
        platforms=platforms,
        channel=config.channel,
        jobs=args.jobs or config.jobs,
    )
    for failure in result.failures.values():
        print(f"error: {failure}", file=sys.stderr)
    return result


def _emit(args, output):
    result = _evaluate(args)
    recipes = {p: outputs.select(output) for p, outputs in result.outputs.items()}
    if args.format == "aterm":
        for recipe in recipes.values():
            print(f"# {recipe.drv_path}")
            print(derivation.serialize(recipe.derivation))
    else:
        json.dump({p.system: r.to_json() for p, r in recipes.items()},
                  sys.stdout, indent=2)
        print()
    return EXIT_OK if result.ok else EXIT_FAILED


def cmd_build(args):
    return _emit(args, "package")


def cmd_shell(args):
    return _emit(args, "shell")


def cmd_show(args):
    result = _evaluate(args)
    info = {
        "packages": {p.system: {"default": o.package.to_json()}
                     for p, o in result.outputs.items()},
        "devShell": {p.system: o.shell.to_json() for p, o in result.outputs.items()},
        "failures": {p.system: str(f.cause) for p, f in result.failures.items()},
    }
    json.dump(info, sys.stdout, indent=2)
    print()
    return EXIT_OK if result.ok else EXIT_FAILED


def cmd_platforms(args):
    config, lock = _load(args)
    for platform in _platforms(args, config, lock):
        print(platform)
    return EXIT_OK


def cmd_verify(args):
    lock = load_lock(Path(args.flake) / LOCK_NAME)
    try:
        locked = lock.verify_path(args.name, args.path)
    except HashMismatch as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    print(f"{locked.name}: {locked.content_hash} ok")
    return EXIT_OK


def cmd_hash_path(args):
    print(nar_hash(args.path).sri)
    return EXIT_OK


def make_parser():
    parser = argparse.ArgumentParser(prog="pixflake",
                                     description="Evaluate a flake into build recipes")
    parser.add_argument("--flake", default=".", help="Flake directory (default: .)")
    parser.add_argument("-j", "--jobs", type=int, help="Platforms evaluated in parallel")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    # build / shell
    for name, func, what in (("build", cmd_build, "package"),
                             ("shell", cmd_shell, "development shell")):
        p = sub.add_parser(name, help=f"Print the {what} recipe")
        p.add_argument("--platform", help="Only this platform, e.g. x86_64-linux")
        p.add_argument("--format", choices=("json", "aterm"), default="json")
        p.set_defaults(func=func)

    # show
    p = sub.add_parser("show", help="Print every output as JSON")
    p.set_defaults(func=cmd_show)

    # platforms
    p = sub.add_parser("platforms", help="List the platforms evaluated")
    p.set_defaults(func=cmd_platforms)

    # verify
    p = sub.add_parser("verify", help="Check fetched content against flake.lock")
    p.add_argument("name")
    p.add_argument("path")
    p.set_defaults(func=cmd_verify)

    # hash-path
    p = sub.add_parser("hash-path", help="NAR hash of a path, as in flake.lock")
    p.add_argument("path")
    p.set_defaults(func=cmd_hash_path)

    return parser


def main(argv=None):
    parser = make_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return EXIT_USAGE
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if args.jobs is not None and args.jobs < 1:
        parser.error("--jobs must be at least 1")
    try:
        return args.func(args)
    except (UsageError, FlakeError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
