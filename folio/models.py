"""Data model for one compile invocation.

Entries and themes are tagged unions: every dispatch site matches on the
concrete class and raises on anything it does not know.
"""

from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Union

MARKDOWN = "text/markdown"
HTML = "text/html"
XHTML = "application/xhtml+xml"

TOC_TITLE = "Table of Contents"

_EXTENSION_TYPES = {
    ".md": MARKDOWN,
    ".markdown": MARKDOWN,
    ".html": HTML,
    ".htm": HTML,
    ".xhtml": XHTML,
}


def content_type_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    if ext in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[ext]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


# ── Themes ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UriTheme:
    location: str


@dataclass(frozen=True)
class FileTheme:
    source: str
    location: str


@dataclass(frozen=True)
class PackageTheme:
    name: str
    location: str
    specifier: str = ""
    import_path: Union[str, tuple[str, ...], None] = None


Theme = Union[UriTheme, FileTheme, PackageTheme]


# ── Entries ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ManuscriptEntry:
    source: str
    target: str
    content_type: str
    title: Optional[str] = None
    themes: tuple[Theme, ...] = ()
    rel: Optional[str] = None


@dataclass(frozen=True)
class ContentsEntry:
    """Generated table of contents."""

    target: str
    title: Optional[str] = None
    themes: tuple[Theme, ...] = ()
    toc_title: Optional[str] = None
    section_depth: int = 0
    transform: Optional[Callable[[str], str]] = None
    template: Optional[str] = None
    rel: str = field(default="contents", init=False)


@dataclass(frozen=True)
class CoverEntry:
    """Generated cover page wrapping a single image."""

    target: str
    cover_image_src: str
    cover_image_alt: str = ""
    title: Optional[str] = None
    themes: tuple[Theme, ...] = ()
    template: Optional[str] = None
    rel: str = field(default="cover", init=False)


Entry = Union[ManuscriptEntry, ContentsEntry, CoverEntry]

ENTRY_RELS = ("contents", "cover")


# ── Project ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Output:
    path: str
    format: str = "pdf"


@dataclass(frozen=True)
class CoverConfig:
    src: str
    name: str = ""


@dataclass
class ProjectConfig:
    """Resolved project description handed to the pipeline."""

    entry_context_dir: str
    workspace_dir: str
    themes_dir: str
    manifest_path: str
    entries: list[Entry] = field(default_factory=list)
    theme_indexes: list[Theme] = field(default_factory=list)
    need_to_generate_manifest: bool = True
    title: Optional[str] = None
    author: Optional[str] = None
    language: Optional[str] = None
    reading_progression: Optional[str] = None
    cover: Optional[CoverConfig] = None
    outputs: list[Output] = field(default_factory=list)
    include_assets: list[str] = field(default_factory=list)
    exclude_assets: list[str] = field(default_factory=list)
    asset_extensions: list[str] = field(default_factory=list)
    markdown_extensions: list[str] = field(default_factory=lambda: ["extra", "toc"])
    links: list = field(default_factory=list)
    resources: list = field(default_factory=list)


# ── Diagnostics ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    path: str = ""


class Diagnostics:
    """Collects non-fatal conditions for the caller to report."""

    def __init__(self) -> None:
        self.items: list[Diagnostic] = []

    def warn(self, message: str, path: str = "") -> None:
        self.items.append(Diagnostic(kind="warning", message=message, path=path))

    def info(self, message: str, path: str = "") -> None:
        self.items.append(Diagnostic(kind="info", message=message, path=path))

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.items if d.kind == "warning"]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
