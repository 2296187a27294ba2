"""Theme resolution and installation.

A theme resolves to one or more stylesheet hrefs relative to the document
that links it. Package themes are npm packages installed under
`<themesDir>/node_modules/<name>`; their style entry point is read from
`package.json` in this order:

    folio.theme.style  >  style  >  main
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Union

from .errors import ConfigError, FolioError
from .models import FileTheme, PackageTheme, Theme, UriTheme
from .paths import normalize, path_contains, relpath


def _import_locators(import_path: Union[str, Iterable[str]]) -> list[str]:
    if isinstance(import_path, str):
        return [import_path]
    return list(import_path)


def read_package_metadata(theme: PackageTheme) -> dict:
    pkg_json = Path(theme.location) / "package.json"
    if not pkg_json.is_file():
        raise ConfigError(
            f"Could not find package.json for the theme: {theme.name} ({theme.location})."
        )
    try:
        data = json.loads(pkg_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid package.json for the theme {theme.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid package.json for the theme: {theme.name}.")
    return data


def style_entry_point(metadata: dict) -> str | None:
    namespaced = metadata.get("folio")
    if isinstance(namespaced, dict):
        theme_meta = namespaced.get("theme")
        if isinstance(theme_meta, dict) and theme_meta.get("style"):
            return str(theme_meta["style"])
    for key in ("style", "main"):
        if metadata.get(key):
            return str(metadata[key])
    return None


def locate_theme_path(theme: Theme, from_dir: str) -> Union[str, list[str]]:
    """Return the stylesheet href(s) for `theme` as seen from `from_dir`.

    URI themes come back verbatim. Package themes with an explicit import
    path return a list, in declaration order; every other case returns a
    single path.
    """
    if isinstance(theme, UriTheme):
        return theme.location
    if isinstance(theme, FileTheme):
        return relpath(theme.location, from_dir)
    if isinstance(theme, PackageTheme):
        if theme.import_path:
            located = []
            for locator in _import_locators(theme.import_path):
                resolved = normalize(os.path.join(theme.location, locator))
                if not path_contains(theme.location, resolved) or not os.path.exists(resolved):
                    raise ConfigError(
                        f"Could not find a style path {locator} for the theme: {theme.name}."
                    )
                located.append(relpath(resolved, from_dir))
            return located
        style = style_entry_point(read_package_metadata(theme))
        if not style:
            raise ConfigError(
                f"Could not find a style file for the theme: {theme.name}. "
                "Please ensure this package sets a `folio.theme.style` property."
            )
        return relpath(os.path.join(theme.location, style), from_dir)
    raise TypeError(f"Unknown theme type: {type(theme).__name__}")


def resolve_stylesheets(themes: Iterable[Theme], from_dir: str) -> list[str]:
    """Flatten every theme's hrefs; later entries override earlier ones."""
    styles: list[str] = []
    for theme in themes:
        located = locate_theme_path(theme, from_dir)
        if isinstance(located, list):
            styles.extend(located)
        else:
            styles.append(located)
    return styles


# ── Installation ──────────────────────────────────────────────────


def _installable(themes_dir: str, theme_indexes: Iterable[Theme]) -> list[PackageTheme]:
    return [
        t
        for t in theme_indexes
        if isinstance(t, PackageTheme) and t.specifier and path_contains(themes_dir, t.location)
    ]


def check_theme_installation_necessity(themes_dir: str, theme_indexes: Iterable[Theme]) -> bool:
    """True when some package theme under `themes_dir` is not installed yet."""
    return any(
        not (Path(t.location) / "package.json").is_file()
        for t in _installable(themes_dir, theme_indexes)
    )


def install_theme_dependencies(themes_dir: str, theme_indexes: Iterable[Theme]) -> None:
    packages = _installable(themes_dir, theme_indexes)
    if not packages:
        return
    npm = shutil.which("npm")
    if npm is None:
        raise FolioError("npm is required to install theme packages but was not found on PATH.")
    Path(themes_dir).mkdir(parents=True, exist_ok=True)
    cmd = [npm, "install", "--no-save", "--prefix", themes_dir]
    cmd.extend(t.specifier for t in packages)
    p = subprocess.run(cmd, cwd=themes_dir)
    if p.returncode != 0:
        raise FolioError(f"Theme installation failed (npm exited with {p.returncode}).")
    for t in packages:
        if not (Path(t.location) / "package.json").is_file():
            raise ConfigError(f"Theme package {t.specifier} did not install into {t.location}.")
