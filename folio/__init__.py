"""Compile a publication project into a workspace tree plus a publication manifest."""

from .build import build
from .compile import CompileResult
from .config import load_config
from .errors import ConfigError, FolioError, ManifestValidationError
from .models import (
    ContentsEntry,
    CoverEntry,
    Diagnostic,
    Diagnostics,
    FileTheme,
    ManuscriptEntry,
    PackageTheme,
    ProjectConfig,
    UriTheme,
)

__version__ = "0.1.0"

__all__ = [
    "CompileResult",
    "ConfigError",
    "ContentsEntry",
    "CoverEntry",
    "Diagnostic",
    "Diagnostics",
    "FileTheme",
    "FolioError",
    "ManifestValidationError",
    "ManuscriptEntry",
    "PackageTheme",
    "ProjectConfig",
    "UriTheme",
    "build",
    "load_config",
]
