"""Whole-pipeline orchestration."""

from __future__ import annotations

from typing import Optional

from .assets import copy_assets
from .compile import CompileResult, compile
from .models import Diagnostics, ProjectConfig
from .theme import install_theme_dependencies
from .workspace import (
    Installer,
    check_overwrite_violation,
    cleanup_workspace,
    prepare_theme_directory,
)


def check_outputs(config: ProjectConfig) -> None:
    for output in config.outputs:
        check_overwrite_violation(config, output.path, f"the {output.format} output")


def build(
    config: ProjectConfig,
    diagnostics: Optional[Diagnostics] = None,
    *,
    clean: bool = True,
    installer: Installer = install_theme_dependencies,
) -> CompileResult:
    """Guard outputs, reset the workspace, install themes, compile, copy assets.

    Any error aborts the remaining steps; files already written stay in place
    and a re-run overwrites them.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    check_outputs(config)
    if clean:
        cleanup_workspace(config)
    prepare_theme_directory(config, diagnostics, installer=installer)
    result = compile(config, diagnostics)
    copied = copy_assets(config)
    if copied:
        diagnostics.info(f"Copied {len(copied)} asset(s)", config.workspace_dir)
    return result
