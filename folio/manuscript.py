"""Markdown manuscripts to standalone HTML documents."""

from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Optional

import markdown
import yaml

from .errors import ConfigError

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)\n(?:---|\.\.\.)[ \t]*(?:\n|\Z)", re.S)
HEADING_RE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.M)


def split_frontmatter(text: str) -> tuple[dict, str]:
    m = FRONTMATTER_RE.match(text)
    if not m:
        return {}, text
    try:
        meta = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid frontmatter: {e}") from e
    if not isinstance(meta, dict):
        meta = {}
    return meta, text[m.end():]


def guess_markdown_title(text: str) -> Optional[str]:
    """Frontmatter title, else the first heading."""
    meta, body = split_frontmatter(text)
    if meta.get("title"):
        return str(meta["title"])
    m = HEADING_RE.search(body)
    return m.group(1).strip() if m else None


def render_document(
    body_html: str,
    *,
    title: Optional[str],
    language: Optional[str],
    style: list[str],
    head_extra: str = "",
) -> str:
    lang_attr = f' lang="{html.escape(language)}"' if language else ""
    links = "".join(
        f'\n  <link rel="stylesheet" type="text/css" href="{html.escape(href)}">' for href in style
    )
    title_tag = f"\n  <title>{html.escape(title)}</title>" if title else ""
    return f"""<!DOCTYPE html>
<html{lang_attr}>
<head>
  <meta charset="utf-8">{title_tag}{links}{head_extra}
</head>
<body>
{body_html}
</body>
</html>
"""


def process_markdown(
    source: str,
    *,
    style: list[str],
    title: Optional[str] = None,
    language: Optional[str] = None,
    extensions: Optional[list[str]] = None,
) -> str:
    """Convert a markdown file into a full HTML document linking `style`."""
    text = Path(source).read_text(encoding="utf-8")
    meta, body = split_frontmatter(text)
    md = markdown.Markdown(extensions=extensions if extensions is not None else ["extra", "toc"])
    body_html = md.convert(body)
    return render_document(
        body_html,
        title=title or (str(meta["title"]) if meta.get("title") else None),
        language=language or (str(meta["lang"]) if meta.get("lang") else None),
        style=style,
    )
