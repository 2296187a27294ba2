"""Entry compilation.

    preflight  ->  phase 1: manuscripts  ->  barrier  ->  phase 2: ToC / cover  ->  manifest

Preflight resolves every stylesheet and rejects unsafe targets before the
first write. Phase 2 only starts once every phase-1 document is on disk,
since navigation reads the final set of compiled paths (and their headings).
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .html import is_cover_html, is_toc_html, process_manuscript_html
from .manifest import ManifestEntry, write_publication_manifest
from .manuscript import process_markdown
from .models import (
    ENTRY_RELS,
    HTML,
    MARKDOWN,
    XHTML,
    ContentsEntry,
    CoverEntry,
    Diagnostics,
    Entry,
    ManuscriptEntry,
    ProjectConfig,
)
from .navigation import process_cover_html, process_toc_html
from .paths import dirname, normalize, path_equals, relpath
from .theme import resolve_stylesheets


@dataclass
class PlannedEntry:
    entry: Entry
    stylesheets: list[str]


@dataclass
class CompileResult:
    written: list[str] = field(default_factory=list)
    manifest: Optional[dict] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


def _write(target: str, content: str) -> None:
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def check_entries(entries: list[Entry]) -> None:
    seen: dict[str, Entry] = {}
    for entry in entries:
        if entry.rel is not None and entry.rel not in ENTRY_RELS:
            raise ConfigError(f"Unknown rel {entry.rel!r} for {entry.target}.")
        key = normalize(entry.target)
        if key in seen:
            raise ConfigError(f"{entry.target} is the output of more than one entry.")
        seen[key] = entry


def preflight(config: ProjectConfig) -> list[PlannedEntry]:
    """Validate the entry set and resolve stylesheets without writing anything."""
    check_entries(config.entries)

    for entry in config.entries:
        target = Path(entry.target)
        if isinstance(entry, ContentsEntry) and target.exists() and not is_toc_html(entry.target):
            raise ConfigError(
                f"{entry.target} is set as a destination to create a ToC HTML file, but there is "
                "already a document other than the ToC file in this location. Please move this "
                "file, or set a `toc` option to specify another destination for the ToC file."
            )
        if isinstance(entry, CoverEntry) and target.exists() and not is_cover_html(entry.target):
            raise ConfigError(
                f"{entry.target} is set as a destination to create a cover page HTML file, but "
                "there is already a document other than the cover page file in this location."
            )

    return [
        PlannedEntry(entry=e, stylesheets=resolve_stylesheets(e.themes, dirname(e.target)))
        for e in config.entries
    ]


def compile_manuscript(
    entry: ManuscriptEntry,
    stylesheets: list[str],
    config: ProjectConfig,
    diagnostics: Diagnostics,
) -> bool:
    """Write one manuscript's target; False when it was left untouched."""
    if entry.content_type == MARKDOWN:
        _write(
            entry.target,
            process_markdown(
                entry.source,
                style=stylesheets,
                title=entry.title,
                language=config.language,
                extensions=config.markdown_extensions,
            ),
        )
        return True

    if path_equals(entry.source, entry.target):
        diagnostics.info("Source and target are the same file; left in place", entry.target)
        return False

    if entry.content_type in (HTML, XHTML):
        _write(
            entry.target,
            process_manuscript_html(
                entry.source,
                style=stylesheets,
                title=entry.title,
                content_type=entry.content_type,
                language=config.language,
            ),
        )
    else:
        Path(entry.target).parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(entry.source, entry.target)
    return True


def compile_manuscripts(
    plans: list[PlannedEntry], config: ProjectConfig, diagnostics: Diagnostics
) -> list[str]:
    written = []
    for plan in plans:
        if isinstance(plan.entry, ManuscriptEntry):
            if compile_manuscript(plan.entry, plan.stylesheets, config, diagnostics):
                written.append(plan.entry.target)
    return written


def compile_navigation(plans: list[PlannedEntry], config: ProjectConfig) -> list[str]:
    manuscripts = [p.entry for p in plans if isinstance(p.entry, ManuscriptEntry)]
    queue: list[tuple[str, str]] = []
    for plan in plans:
        entry = plan.entry
        if isinstance(entry, ContentsEntry):
            queue.append((entry.target, process_toc_html(entry, config, manuscripts, plan.stylesheets)))
        elif isinstance(entry, CoverEntry):
            queue.append((entry.target, process_cover_html(entry, config, plan.stylesheets)))
        elif not isinstance(entry, ManuscriptEntry):
            raise TypeError(f"Unknown entry type: {type(entry).__name__}")
    for target, markup in queue:
        _write(target, markup)
    return [target for target, _ in queue]


def manifest_entries(config: ProjectConfig) -> list[ManifestEntry]:
    out = []
    for entry in config.entries:
        encoding_format = None
        if isinstance(entry, ManuscriptEntry) and entry.content_type not in (MARKDOWN, HTML):
            encoding_format = entry.content_type
        out.append(
            ManifestEntry(
                path=relpath(entry.target, config.workspace_dir),
                title=entry.title,
                encoding_format=encoding_format,
                rel=entry.rel,
            )
        )
    return out


def compile(
    config: ProjectConfig,
    diagnostics: Optional[Diagnostics] = None,
    modified: Optional[str] = None,
) -> CompileResult:
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    result = CompileResult(diagnostics=diagnostics)

    plans = preflight(config)
    result.written.extend(compile_manuscripts(plans, config, diagnostics))
    # barrier: every phase-1 document is on disk past this point
    result.written.extend(compile_navigation(plans, config))

    if config.need_to_generate_manifest:
        result.manifest = write_publication_manifest(
            config, manifest_entries(config), diagnostics, modified
        )
    return result
