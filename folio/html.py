"""HTML injection and the generated ToC / cover documents."""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bs4 import BeautifulSoup, Doctype

from .errors import ConfigError
from .manuscript import process_markdown, render_document
from .models import HTML, MARKDOWN, XHTML, content_type_for

TOC_MARKER = "data-folio-toc"
COVER_MARKER = "data-folio-cover"

COVER_STYLE = """
  <style>
    html, body { margin: 0; padding: 0; }
    section[aria-label="Cover"] { page-break-after: always; }
    img[role="doc-cover"] { display: block; width: 100%; height: 100vh; object-fit: contain; }
  </style>"""


@dataclass
class TocItem:
    href: str
    title: str
    children: list[TocItem] = field(default_factory=list)


def _parse(markup: str, content_type: str = HTML) -> BeautifulSoup:
    # XHTML is XML: attribute case (svg viewBox) must survive
    return BeautifulSoup(markup, "xml" if content_type == XHTML else "html.parser")


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


def _ensure_document(soup: BeautifulSoup):
    """Return (html, head, body), creating whichever is missing."""
    root = soup.find("html")
    if root is None:
        root = soup.new_tag("html")
        for child in list(soup.contents):
            if isinstance(child, Doctype):
                continue
            root.append(child.extract())
        soup.append(root)
    head = root.find("head")
    if head is None:
        head = soup.new_tag("head")
        root.insert(0, head)
    body = root.find("body")
    if body is None:
        body = soup.new_tag("body")
        for child in list(root.contents):
            if child is head:
                continue
            body.append(child.extract())
        root.append(body)
    return root, head, body


def process_manuscript_html(
    source: str,
    *,
    style: list[str],
    title: Optional[str] = None,
    content_type: str = "text/html",
    language: Optional[str] = None,
) -> str:
    """Inject stylesheet links, title, language and content type into `source`."""
    soup = _parse(Path(source).read_text(encoding="utf-8"), content_type)
    root, head, _ = _ensure_document(soup)

    has_charset = head.find("meta", attrs={"charset": True}) is not None
    has_content_type = any(
        (m.get("http-equiv") or "").lower() == "content-type" for m in head.find_all("meta")
    )
    if not has_charset and not has_content_type:
        meta = soup.new_tag("meta")
        meta["http-equiv"] = "Content-Type"
        meta["content"] = f"{content_type}; charset=UTF-8"
        head.insert(0, meta)

    if language and not root.get("lang"):
        root["lang"] = language
        if content_type == XHTML:
            root["xml:lang"] = language

    if title:
        title_tag = head.find("title")
        if title_tag is None:
            title_tag = soup.new_tag("title")
            head.append(title_tag)
        title_tag.string = title

    for href in style:
        link = soup.new_tag("link", rel="stylesheet", type="text/css", href=href)
        head.append(link)

    return str(soup)


def render_template(
    source: str,
    *,
    style: list[str],
    title: Optional[str] = None,
    language: Optional[str] = None,
    markdown_extensions: Optional[list[str]] = None,
) -> str:
    """Process a ToC/cover template the way a manuscript of its type is processed."""
    content_type = content_type_for(source)
    if content_type == MARKDOWN:
        return process_markdown(
            source, style=style, title=title, language=language, extensions=markdown_extensions
        )
    if content_type in (HTML, XHTML):
        return process_manuscript_html(
            source, style=style, title=title, content_type=content_type, language=language
        )
    raise ConfigError(f"Unsupported template type {content_type} for {source}.")


def template_output_type(source: str) -> str:
    """Markdown templates render to HTML; HTML and XHTML keep their type."""
    return XHTML if content_type_for(source) == XHTML else HTML


def insert_fragment(document: str, fragment: str, marker: str, content_type: str = HTML) -> str:
    """Place `fragment` inside the element carrying `marker`, else at the end of body."""
    soup = _parse(document, content_type)
    _, _, body = _ensure_document(soup)
    slot = soup.find(attrs={marker: True}) or body
    for node in list(_parse(fragment).contents):
        slot.append(node.extract())
    return str(soup)


def link_publication(document: str, manifest_href: str, content_type: str = HTML) -> str:
    soup = _parse(document, content_type)
    _, head, _ = _ensure_document(soup)
    head.append(
        soup.new_tag("link", rel="publication", type="application/ld+json", href=manifest_href)
    )
    return str(soup)


# ── Generated documents ───────────────────────────────────────────


def render_toc_list(items: list[TocItem], indent: str = "    ") -> str:
    lines = [f"{indent}<ol>"]
    for item in items:
        link = f'<a href="{html.escape(item.href)}">{html.escape(item.title)}</a>'
        if item.children:
            lines.append(f"{indent}  <li>{link}")
            lines.append(render_toc_list(item.children, indent + "    "))
            lines.append(f"{indent}  </li>")
        else:
            lines.append(f"{indent}  <li>{link}</li>")
    lines.append(f"{indent}</ol>")
    return "\n".join(lines)


def render_toc_nav(items: list[TocItem], toc_title: str) -> str:
    return f"""  <nav id="toc" role="doc-toc">
    <h2>{html.escape(toc_title)}</h2>
{render_toc_list(items)}
  </nav>"""


def generate_toc_html(
    *,
    items: list[TocItem],
    toc_title: str,
    title: Optional[str] = None,
    language: Optional[str] = None,
    stylesheets: list[str],
    manifest_href: Optional[str] = None,
) -> str:
    head_extra = ""
    if manifest_href:
        head_extra = (
            f'\n  <link rel="publication" type="application/ld+json" href="{html.escape(manifest_href)}">'
        )
    heading = f"  <h1>{html.escape(title)}</h1>\n" if title else ""
    return render_document(
        heading + render_toc_nav(items, toc_title),
        title=title or toc_title,
        language=language,
        style=stylesheets,
        head_extra=head_extra,
    )


def render_cover_section(image_src: str, image_alt: str) -> str:
    return f"""  <section role="region" aria-label="Cover">
    <img role="doc-cover" src="{html.escape(image_src)}" alt="{html.escape(image_alt)}">
  </section>"""


def generate_cover_html(
    *,
    image_src: str,
    image_alt: str,
    title: Optional[str] = None,
    language: Optional[str] = None,
    stylesheets: list[str],
) -> str:
    return render_document(
        render_cover_section(image_src, image_alt),
        title=title,
        language=language,
        style=stylesheets,
        head_extra=COVER_STYLE,
    )


def read_title(path: str) -> Optional[str]:
    soup = _parse(_read(path))
    if soup.title and soup.title.string:
        return soup.title.string.strip() or None
    return None


def is_toc_html(path: str) -> bool:
    soup = _parse(_read(path))
    return soup.find("nav", attrs={"role": "doc-toc"}) is not None


def is_cover_html(path: str) -> bool:
    soup = _parse(_read(path))
    return soup.find(attrs={"role": "doc-cover"}) is not None
