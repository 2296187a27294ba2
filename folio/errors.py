"""Error types raised by the compile pipeline."""

from __future__ import annotations


class FolioError(Exception):
    """Base exception for all folio errors."""


class ConfigError(FolioError):
    """The project description cannot be compiled as configured."""


class ManifestValidationError(FolioError):
    """The assembled publication manifest does not satisfy the schema.

    `detail` holds the validator's full report; the manifest file is not
    written when this is raised.
    """

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
