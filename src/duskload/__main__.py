"""CLI entry point: `duskload plan deps.json NAME...` or `python -m duskload convert game.deps`."""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional


def _plan(args) -> int:
    from .resolver import Loader, SimulatedUnitLoader
    from .shared.errors import ImportListError

    units = SimulatedUnitLoader()
    loader = Loader(units)
    try:
        loader.import_list(args.list)
    except ImportListError as e:
        sys.stderr.write(f"duskload: error: {e}\n")
        return 1

    for name in args.names:
        loader.import_(name)
    units.run_all()

    for number, batch in enumerate(loader.scheduler.batch_log, 1):
        print(f"batch {number}: {', '.join(batch)}")
    if units.externals:
        print(f"external: {', '.join(units.externals)}")

    missing = [name for name in args.names if not loader.is_imported(name)]
    if missing:
        loader.reporter.print_diagnostics()
        sys.stderr.write(f"duskload: error: never provided: {', '.join(missing)}\n")
        return 1
    return 0


def _convert(args) -> int:
    from .frontend.parser import parse_manifest
    from .shared.errors import ManifestParseError

    path: Path = args.manifest
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        sys.stderr.write(f"duskload: error: could not read file: {e}\n")
        return 1
    try:
        entries = parse_manifest(source, str(path))
    except ManifestParseError as e:
        sys.stderr.write(f"{e}\n")
        return 1
    print(json.dumps([entry.as_list() for entry in entries], indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(prog="duskload", description="Inspect namespace dependency lists.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Show the batches that importing NAMEs would dispatch")
    plan.add_argument("list", help="Dependency list (.json or .deps, path or URL)")
    plan.add_argument("names", nargs="+", help="Namespaces to import")
    plan.set_defaults(func=_plan)

    convert = sub.add_parser("convert", help="Print a .deps manifest as a JSON dependency list")
    convert.add_argument("manifest", type=Path, help="Path to .deps manifest")
    convert.set_defaults(func=_convert)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
