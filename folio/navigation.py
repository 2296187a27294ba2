"""Table of contents and cover page generation.

Both run after every manuscript has been written: ToC links are computed
against the final target paths, and section links are read from the
compiled documents themselves.
"""

from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from .html import (
    COVER_MARKER,
    TOC_MARKER,
    TocItem,
    generate_cover_html,
    generate_toc_html,
    insert_fragment,
    link_publication,
    render_cover_section,
    render_template,
    render_toc_nav,
    template_output_type,
)
from .models import (
    ENTRY_RELS,
    HTML,
    MARKDOWN,
    TOC_TITLE,
    XHTML,
    ContentsEntry,
    CoverEntry,
    ManuscriptEntry,
    ProjectConfig,
)
from .paths import dirname, encode_uri, normalize, relpath

HEADING_TAG_RE = re.compile(r"^h([1-6])$")


def read_headings(path: str, depth: int) -> list[tuple[int, str, str]]:
    """(level, id, text) for every h1..h<depth> carrying an id, in document order."""
    if depth <= 0 or not os.path.isfile(path):
        return []
    soup = BeautifulSoup(Path(path).read_text(encoding="utf-8"), "html.parser")
    out = []
    for el in soup.find_all(HEADING_TAG_RE):
        level = int(el.name[1])
        if level > depth or not el.get("id"):
            continue
        out.append((level, el["id"], el.get_text(" ", strip=True)))
    return out


def nest_headings(headings: list[tuple[int, str, str]], href: str) -> list[TocItem]:
    roots: list[TocItem] = []
    stack: list[tuple[int, TocItem]] = []
    for level, hid, text in headings:
        item = TocItem(href=f"{href}#{encode_uri(hid)}", title=text)
        while stack and stack[-1][0] >= level:
            stack.pop()
        (stack[-1][1].children if stack else roots).append(item)
        stack.append((level, item))
    return roots


def build_toc_items(
    manuscripts: Iterable[ManuscriptEntry], dist_dir: str, section_depth: int
) -> list[TocItem]:
    items = []
    for entry in manuscripts:
        if entry.rel in ENTRY_RELS:
            continue
        href = encode_uri(relpath(entry.target, dist_dir))
        title = entry.title or posixpath.basename(normalize(entry.target))
        children = []
        if entry.content_type in (MARKDOWN, HTML, XHTML):
            children = nest_headings(read_headings(entry.target, section_depth), href)
        items.append(TocItem(href=href, title=title, children=children))
    return items


def toc_heading(entry: ContentsEntry) -> str:
    return entry.toc_title or entry.title or TOC_TITLE


def process_toc_html(
    entry: ContentsEntry,
    config: ProjectConfig,
    manuscripts: list[ManuscriptEntry],
    stylesheets: list[str],
) -> str:
    # Recomputed for every ToC: each one links from its own directory.
    dist_dir = dirname(entry.target)
    items = build_toc_items(manuscripts, dist_dir, entry.section_depth)
    heading = toc_heading(entry)
    manifest_href: Optional[str] = None
    if config.need_to_generate_manifest:
        manifest_href = encode_uri(relpath(config.manifest_path, dist_dir))

    if entry.template:
        document = render_template(
            entry.template,
            style=stylesheets,
            title=config.title or heading,
            language=config.language,
            markdown_extensions=config.markdown_extensions,
        )
        template_type = template_output_type(entry.template)
        markup = insert_fragment(
            document, render_toc_nav(items, heading), TOC_MARKER, template_type
        )
        if manifest_href:
            markup = link_publication(markup, manifest_href, template_type)
    else:
        markup = generate_toc_html(
            items=items,
            toc_title=heading,
            title=config.title,
            language=config.language,
            stylesheets=stylesheets,
            manifest_href=manifest_href,
        )

    if entry.transform is not None:
        markup = entry.transform(markup)
    return markup


def cover_image_href(entry: CoverEntry, config: ProjectConfig) -> str:
    """Image path as seen from where the cover page sits relative to the sources."""
    placed = posixpath.join(
        normalize(config.entry_context_dir),
        relpath(entry.target, config.workspace_dir),
        "..",
    )
    return relpath(entry.cover_image_src, placed)


def process_cover_html(
    entry: CoverEntry, config: ProjectConfig, stylesheets: list[str]
) -> str:
    image_src = cover_image_href(entry, config)
    if entry.template:
        document = render_template(
            entry.template,
            style=stylesheets,
            title=entry.title,
            language=config.language,
            markdown_extensions=config.markdown_extensions,
        )
        return insert_fragment(
            document,
            render_cover_section(image_src, entry.cover_image_alt),
            COVER_MARKER,
            template_output_type(entry.template),
        )
    return generate_cover_html(
        image_src=image_src,
        image_alt=entry.cover_image_alt,
        title=entry.title,
        language=config.language,
        stylesheets=stylesheets,
    )
