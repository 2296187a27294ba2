"""Static asset discovery and mirroring into the workspace.

Two named ignore sets decide what is copied:

- `strict`: explicit excludes plus generated outputs, the workspace and
  entry template sources. Applies to every pass.
- `weak`: dependency directories and theme-package examples. Applies only to
  the extension allow-list pass, so an explicit include pattern can still
  reach into them.
"""

from __future__ import annotations

import fnmatch
import os
import posixpath
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from .models import ContentsEntry, CoverEntry, PackageTheme, ProjectConfig
from .paths import path_contains, path_equals, relpath

DEFAULT_ASSET_EXTENSIONS = [
    "png", "jpg", "jpeg", "svg", "gif", "webp", "apng", "avif",
    "ttf", "otf", "woff", "woff2",
    "css",
]

WEAK_IGNORE_PATTERNS = [
    "**/node_modules/**",
    "**/.venv/**",
    "**/__pycache__/**",
    "**/.git/**",
]


@dataclass
class IgnoreRules:
    strict: list[str] = field(default_factory=list)
    weak: list[str] = field(default_factory=list)


def _match_segments(path: list[str], pattern: list[str]) -> bool:
    if not pattern:
        return not path
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(path[i:], rest) for i in range(len(path) + 1))
    return bool(path) and fnmatch.fnmatchcase(path[0], head) and _match_segments(path[1:], rest)


def _segments(p: str) -> list[str]:
    if p.startswith("./"):
        p = p[2:]
    return [s for s in p.split("/") if s]


def matches(rel_path: str, pattern: str) -> bool:
    """Glob match where `*` stays within one segment and `**` spans any number."""
    return _match_segments(_segments(rel_path), _segments(pattern))


def prunes(rel_dir: str, pattern: str) -> bool:
    """True when `pattern` ignores everything below `rel_dir`."""
    if not pattern.endswith("/**"):
        return False
    return matches(rel_dir, pattern[:-3])


def is_ignored(rel_path: str, patterns: Iterable[str]) -> bool:
    return any(matches(rel_path, p) for p in patterns)


def build_ignore_rules(config: ProjectConfig) -> IgnoreRules:
    ctx = config.entry_context_dir
    strict = list(config.exclude_assets)

    # generated outputs
    for output in config.outputs:
        if not path_contains(ctx, output.path):
            continue
        rel = relpath(output.path, ctx)
        strict.append(posixpath.join(rel, "**") if output.format == "webpub" else rel)

    if path_contains(ctx, config.workspace_dir):
        strict.append(posixpath.join(relpath(config.workspace_dir, ctx), "**"))

    for entry in config.entries:
        if isinstance(entry, (ContentsEntry, CoverEntry)) and entry.template:
            if path_contains(ctx, entry.template):
                strict.append(relpath(entry.template, ctx))

    weak = list(WEAK_IGNORE_PATTERNS)
    for theme in config.theme_indexes:
        if isinstance(theme, PackageTheme) and path_contains(ctx, theme.location):
            rel = relpath(theme.location, ctx)
            weak.append(posixpath.join(rel, "example", "**"))
            weak.append(posixpath.join(rel, "examples", "**"))

    return IgnoreRules(strict=strict, weak=weak)


def _walk(root: str, ignore: list[str]) -> Iterator[str]:
    """Yield file paths relative to `root`, pruning ignored directories."""
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        rel_dir = relpath(dirpath, root)
        rel_dir = "" if rel_dir == "." else rel_dir
        kept = []
        for d in sorted(dirnames):
            rel = posixpath.join(rel_dir, d)
            if not any(prunes(rel, p) for p in ignore):
                kept.append(d)
        dirnames[:] = kept
        for name in sorted(filenames):
            rel = posixpath.join(rel_dir, name)
            if not is_ignored(rel, ignore):
                yield rel


def glob_asset_files(config: ProjectConfig, rules: IgnoreRules | None = None) -> set[str]:
    """Return asset paths relative to the entry context."""
    rules = rules or build_ignore_rules(config)
    extensions = {e.lower().lstrip(".") for e in (config.asset_extensions or DEFAULT_ASSET_EXTENSIONS)}
    ctx = config.entry_context_dir

    assets: set[str] = set()
    for rel in _walk(ctx, rules.strict + rules.weak):
        ext = posixpath.splitext(rel)[1].lower().lstrip(".")
        if ext in extensions:
            assets.add(rel)

    if config.include_assets:
        for rel in _walk(ctx, rules.strict):
            if any(matches(rel, p) for p in config.include_assets):
                assets.add(rel)
    return assets


def copy_assets(config: ProjectConfig) -> list[str]:
    """Mirror matched assets into the workspace; returns what was copied."""
    if path_equals(config.entry_context_dir, config.workspace_dir):
        return []
    copied = []
    for asset in sorted(glob_asset_files(config)):
        target = Path(config.workspace_dir) / asset
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(Path(config.entry_context_dir) / asset, target)
        copied.append(asset)
    return copied
