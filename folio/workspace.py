"""Workspace lifecycle and output-destination guard."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional

from .errors import ConfigError
from .models import Diagnostics, FileTheme, ProjectConfig, Theme
from .paths import path_contains, path_equals
from .theme import check_theme_installation_necessity, install_theme_dependencies

Installer = Callable[[str, Iterable[Theme]], None]


def copy_path(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    if src.is_dir():
        shutil.copytree(src, dst, dirs_exist_ok=True)
    else:
        shutil.copy2(src, dst)


def cleanup_workspace(config: ProjectConfig) -> bool:
    """Remove the workspace, carrying a nested theme cache across.

    Returns False without touching anything when the workspace is the entry
    context or one of its ancestors. The cache round-trip is not crash-safe:
    a failure between removal and restore loses the cache.
    """
    workspace = Path(config.workspace_dir)
    themes = Path(config.themes_dir)
    if path_equals(workspace, config.entry_context_dir) or path_contains(
        workspace, config.entry_context_dir
    ):
        return False

    with tempfile.TemporaryDirectory(prefix="folio-themes-") as tmp:
        moved: Optional[Path] = None
        if path_contains(workspace, themes) and themes.exists():
            moved = Path(tmp) / "themes"
            copy_path(themes, moved)
        if workspace.exists():
            shutil.rmtree(workspace)
        if moved is not None:
            copy_path(moved, themes)
    return True


def prepare_theme_directory(
    config: ProjectConfig,
    diagnostics: Optional[Diagnostics] = None,
    installer: Installer = install_theme_dependencies,
) -> None:
    """Install missing theme packages, then copy file themes into place."""
    if check_theme_installation_necessity(config.themes_dir, config.theme_indexes):
        installer(config.themes_dir, config.theme_indexes)
        if diagnostics is not None:
            diagnostics.info("Installed theme packages", config.themes_dir)

    for theme in config.theme_indexes:
        if isinstance(theme, FileTheme) and not path_equals(theme.source, theme.location):
            copy_path(Path(theme.source), Path(theme.location))


def check_overwrite_violation(config: ProjectConfig, target: str, file_information: str) -> None:
    """Refuse output destinations that would land on the sources or the workspace."""
    if path_equals(target, config.entry_context_dir) or path_contains(
        config.entry_context_dir, target
    ):
        raise ConfigError(
            f"{target} is set as output destination of {file_information}, however, "
            "this output path will overwrite the manuscript file(s). Please specify other paths."
        )
    if path_equals(target, config.workspace_dir) or path_contains(config.workspace_dir, target):
        raise ConfigError(
            f"{target} is set as output destination of {file_information}, however, "
            "this output path will overwrite the working directory. Please specify other paths."
        )
