"""Shared fixtures: a project tree under tmp_path."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from folio.models import ProjectConfig


@pytest.fixture
def root(tmp_path: Path) -> Path:
    (tmp_path / "manuscripts").mkdir()
    return tmp_path


@pytest.fixture
def context_dir(root: Path) -> Path:
    return root / "manuscripts"


@pytest.fixture
def workspace_dir(root: Path) -> Path:
    return root / ".folio"


@pytest.fixture
def make_config(root: Path, context_dir: Path, workspace_dir: Path):
    """Factory for a ProjectConfig rooted in the temporary project."""

    def _make(entries=(), **kwargs) -> ProjectConfig:
        kwargs.setdefault("themes_dir", str(workspace_dir / "themes"))
        kwargs.setdefault("manifest_path", str(workspace_dir / "publication.json"))
        return ProjectConfig(
            entry_context_dir=str(context_dir),
            workspace_dir=str(workspace_dir),
            entries=list(entries),
            **kwargs,
        )

    return _make


@pytest.fixture
def write_package():
    """Create an npm-style theme package directory with the given package.json."""

    def _write(location: Path, metadata: dict, files=()) -> Path:
        location.mkdir(parents=True, exist_ok=True)
        (location / "package.json").write_text(json.dumps(metadata), encoding="utf-8")
        for name in files:
            f = location / name
            f.parent.mkdir(parents=True, exist_ok=True)
            f.write_text("body { margin: 0; }\n", encoding="utf-8")
        return location

    return _write
