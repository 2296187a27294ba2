"""Command line entry point: `folio build` and `folio init`."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .build import build
from .config import CONFIG_FILENAME, load_config
from .errors import FolioError, ManifestValidationError
from .models import Diagnostics

STARTER_CONFIG = """\
title: Principia  # populated into publication.json; defaults to the first entry's title
author: Isaac Newton
language: la  # defaults to `en`
theme: ./style.css  # .css file, local theme directory, npm package, or https:// URL
entryContext: ./manuscripts  # entry paths are relative to this directory
entry:
  - introduction.md  # title is guessed from the file (frontmatter > first heading)
  - path: epigraph.md
    title: Epigraph  # overrides the guessed title
  - glossary.html  # html is accepted too
toc: true  # generate index.html; a string sets another destination
output:
  - book.pdf
"""


def cmd_build(args: argparse.Namespace) -> int:
    config_path = Path(args.config)
    diagnostics = Diagnostics()
    try:
        config = load_config(config_path)
        result = build(config, diagnostics, clean=not args.no_clean)
    except ManifestValidationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        if e.detail:
            print(e.detail, file=sys.stderr)
        return 1
    except FolioError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    finally:
        for d in diagnostics:
            loc = f" ({d.path})" if d.path else ""
            print(f"[{d.kind}] {d.message}{loc}")

    root = config.workspace_dir
    for target in result.written:
        print(f"  ✓ {os.path.relpath(target, root)} → {target}")
    if result.manifest is not None:
        print(f"  ✓ Manifest → {config.manifest_path}")
    print(f"\nDone. {len(result.written)} documents compiled into {root}")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.dir) / CONFIG_FILENAME
    if target.exists():
        print(f"error: {target} already exists", file=sys.stderr)
        return 2
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(STARTER_CONFIG, encoding="utf-8")
    print(f"Generated {target}")
    return 0


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="folio", description="Compile a publication project")
    sub = ap.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="Compile entries, manifest and assets into the workspace")
    p_build.add_argument("-c", "--config", default=CONFIG_FILENAME, help=f"Project file (default: {CONFIG_FILENAME})")
    p_build.add_argument("--no-clean", action="store_true", help="Keep existing workspace files")
    p_build.set_defaults(func=cmd_build)

    p_init = sub.add_parser("init", help=f"Write a starter {CONFIG_FILENAME}")
    p_init.add_argument("--dir", default=".", help="Directory to write into (default: cwd)")
    p_init.set_defaults(func=cmd_init)

    args = ap.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
