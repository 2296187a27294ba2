"""Project file (`folio.yaml`) loading.

Relative paths resolve against the directory holding the project file.
"""

from __future__ import annotations

import importlib
import os
import re
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from .assets import DEFAULT_ASSET_EXTENSIONS
from .errors import ConfigError
from .html import read_title
from .manuscript import guess_markdown_title
from .models import (
    HTML,
    MARKDOWN,
    XHTML,
    ContentsEntry,
    CoverConfig,
    CoverEntry,
    Entry,
    FileTheme,
    ManuscriptEntry,
    Output,
    PackageTheme,
    ProjectConfig,
    Theme,
    UriTheme,
    content_type_for,
)
from .paths import normalize, path_contains, relpath

CONFIG_FILENAME = "folio.yaml"

DEFAULTS: dict[str, Any] = {
    "title": None,
    "author": None,
    "language": "en",
    "readingProgression": None,
    "entryContext": ".",
    "workspaceDir": ".folio",
    "themesDir": None,
    "theme": None,
    "entry": [],
    "toc": False,
    "tocTitle": None,
    "sectionDepth": 0,
    "cover": None,
    "output": [],
    "includeAssets": [],
    "excludeAssets": [],
    "assetExtensions": None,
    "manifest": True,
    "markdown": {},
    "links": [],
    "resources": [],
}

URI_RE = re.compile(r"^https?://", re.IGNORECASE)
PACKAGE_NAME_RE = re.compile(r"^(@[^/@\s]+/[^/@\s]+|[^/@\s.][^/@\s]*)(?:@.+)?$")


def load_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level.")
    return data


def load_config(path: str | os.PathLike) -> ProjectConfig:
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Project file not found: {p}")
    cfg = DEFAULTS.copy()
    cfg.update({k: v for k, v in load_yaml(p).items() if v is not None})
    return resolve_config(cfg, Path(os.path.abspath(p)).parent)


# ── Themes ────────────────────────────────────────────────────────


class _Resolver:
    def __init__(self, cfg: dict, root: Path) -> None:
        self.cfg = cfg
        self.root = root
        self.context = normalize(root / cfg["entryContext"])
        self.workspace = normalize(root / cfg["workspaceDir"])
        self.themes_dir = normalize(
            root / cfg["themesDir"] if cfg.get("themesDir") else Path(self.workspace) / "themes"
        )
        self.theme_indexes: dict[Theme, None] = {}

    def path(self, value: str, base: Optional[str] = None) -> str:
        return normalize(Path(base or self.root) / str(value))

    def parse_theme(self, spec: Any) -> Theme:
        import_path = None
        if isinstance(spec, dict):
            import_path = spec.get("import")
            spec = spec.get("specifier")
            if isinstance(import_path, list):
                import_path = tuple(str(i) for i in import_path)
        if not isinstance(spec, str) or not spec.strip():
            raise ConfigError(f"Invalid theme specifier: {spec!r}")
        spec = spec.strip()

        if URI_RE.match(spec):
            theme: Theme = UriTheme(location=spec)
        else:
            local = Path(self.path(spec))
            if local.is_file():
                if path_contains(self.context, local):
                    location = normalize(Path(self.workspace) / relpath(local, self.context))
                else:
                    location = normalize(Path(self.themes_dir) / "files" / local.name)
                theme = FileTheme(source=str(local), location=location)
            elif local.is_dir():
                theme = PackageTheme(name=local.name, location=str(local))
            elif spec.startswith((".", "/")) or spec.endswith(".css"):
                raise ConfigError(f"Theme file not found: {spec}")
            else:
                m = PACKAGE_NAME_RE.match(spec)
                if not m:
                    raise ConfigError(f"Invalid theme package name: {spec}")
                name = m.group(1)
                theme = PackageTheme(
                    name=name,
                    location=normalize(Path(self.themes_dir) / "node_modules" / name),
                    specifier=spec,
                )

        if import_path:
            if not isinstance(theme, PackageTheme):
                raise ConfigError(f"`import` is only supported for package themes: {spec}")
            theme = PackageTheme(
                name=theme.name,
                location=theme.location,
                specifier=theme.specifier,
                import_path=import_path,
            )
        self.theme_indexes.setdefault(theme, None)
        return theme

    def parse_themes(self, value: Any) -> tuple[Theme, ...]:
        if value is None:
            return ()
        if not isinstance(value, list):
            value = [value]
        return tuple(self.parse_theme(v) for v in value)

    # ── Entries ───────────────────────────────────────────────────

    def workspace_target(self, rel: str) -> str:
        return normalize(Path(self.workspace) / rel)

    def manuscript(self, item: dict, root_themes: tuple[Theme, ...]) -> ManuscriptEntry:
        if not item.get("path"):
            raise ConfigError(f"Entry is missing a `path`: {item!r}")
        source = self.path(item["path"], self.context)
        if not os.path.isfile(source):
            raise ConfigError(f"Entry file not found: {source}")
        if not path_contains(self.context, source):
            raise ConfigError(f"Entry {source} is outside the entry context {self.context}.")
        content_type = content_type_for(source)
        rel = relpath(source, self.context)
        if content_type == MARKDOWN:
            rel = os.path.splitext(rel)[0] + ".html"

        title = item.get("title")
        if not title:
            if content_type == MARKDOWN:
                title = guess_markdown_title(Path(source).read_text(encoding="utf-8"))
            elif content_type in (HTML, XHTML):
                title = read_title(source)

        themes = self.parse_themes(item["theme"]) if "theme" in item else root_themes
        return ManuscriptEntry(
            source=source,
            target=self.workspace_target(rel),
            content_type=content_type,
            title=title,
            themes=themes,
            rel=item.get("rel"),
        )

    def contents(self, item: dict, root_themes: tuple[Theme, ...]) -> ContentsEntry:
        template = item.get("template")
        return ContentsEntry(
            target=self.workspace_target(item.get("output") or "index.html"),
            title=item.get("title"),
            themes=self.parse_themes(item["theme"]) if "theme" in item else root_themes,
            toc_title=item.get("tocTitle") or self.cfg.get("tocTitle"),
            section_depth=int(item.get("sectionDepth", self.cfg.get("sectionDepth") or 0)),
            transform=load_callable(item["transform"]) if item.get("transform") else None,
            template=self.path(template, self.context) if template else None,
        )

    def cover(self, item: dict, root_themes: tuple[Theme, ...]) -> CoverEntry:
        cover_cfg = self.cfg.get("cover") or {}
        src = item.get("imageSrc") or cover_cfg.get("src")
        if not src:
            raise ConfigError("A cover entry needs an `imageSrc` (or a top-level `cover.src`).")
        template = item.get("template")
        return CoverEntry(
            target=self.workspace_target(item.get("output") or "cover.html"),
            cover_image_src=self.path(src, self.context),
            cover_image_alt=item.get("imageAlt") or cover_cfg.get("name") or "Cover image",
            title=item.get("title") or self.cfg.get("title"),
            themes=self.parse_themes(item["theme"]) if "theme" in item else root_themes,
            template=self.path(template, self.context) if template else None,
        )

    def entries(self) -> list[Entry]:
        root_themes = self.parse_themes(self.cfg.get("theme"))
        raw = self.cfg.get("entry") or []
        if not isinstance(raw, list):
            raw = [raw]

        entries: list[Entry] = []
        for item in raw:
            if isinstance(item, str):
                item = {"path": item}
            if not isinstance(item, dict):
                raise ConfigError(f"Invalid entry: {item!r}")
            rel = item.get("rel")
            if rel == "contents":
                entries.append(self.contents(item, root_themes))
            elif rel == "cover" and "path" not in item:
                entries.append(self.cover(item, root_themes))
            else:
                entries.append(self.manuscript(item, root_themes))

        toc = self.cfg.get("toc")
        if toc and not any(isinstance(e, ContentsEntry) for e in entries):
            output = "index.html" if toc is True else str(toc)
            entries.insert(0, self.contents({"output": output}, root_themes))

        cover_cfg = self.cfg.get("cover")
        if isinstance(cover_cfg, dict) and not any(isinstance(e, CoverEntry) for e in entries):
            html_path = cover_cfg.get("htmlPath", "cover.html")
            if html_path:
                entries.insert(0, self.cover({"output": html_path}, root_themes))
        return entries


def load_callable(ref: str) -> Callable[[str], str]:
    """`package.module:function` to the function object."""
    module_name, _, attr = str(ref).partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Invalid transform reference {ref!r}; expected `module:function`.")
    try:
        fn = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Could not load transform {ref}: {e}") from e
    if not callable(fn):
        raise ConfigError(f"Transform {ref} is not callable.")
    return fn


def parse_outputs(value: Any, root: Path) -> list[Output]:
    if not value:
        return []
    if not isinstance(value, list):
        value = [value]
    outputs = []
    for item in value:
        if isinstance(item, str):
            item = {"path": item}
        if not isinstance(item, dict) or not item.get("path"):
            raise ConfigError(f"Invalid output: {item!r}")
        path = normalize(root / str(item["path"]))
        fmt = item.get("format") or ("pdf" if path.lower().endswith(".pdf") else "webpub")
        outputs.append(Output(path=path, format=fmt))
    return outputs


def resolve_config(cfg: dict, root: Path) -> ProjectConfig:
    r = _Resolver(cfg, root)
    entries = r.entries()

    cover = None
    cover_cfg = cfg.get("cover")
    if isinstance(cover_cfg, dict) and cover_cfg.get("src"):
        cover = CoverConfig(src=r.path(cover_cfg["src"], r.context), name=str(cover_cfg.get("name") or ""))

    markdown_cfg = cfg.get("markdown") or {}
    return ProjectConfig(
        entry_context_dir=r.context,
        workspace_dir=r.workspace,
        themes_dir=r.themes_dir,
        manifest_path=normalize(Path(r.workspace) / "publication.json"),
        entries=entries,
        theme_indexes=list(r.theme_indexes),
        need_to_generate_manifest=bool(cfg.get("manifest")),
        title=cfg.get("title"),
        author=cfg.get("author"),
        language=cfg.get("language"),
        reading_progression=cfg.get("readingProgression"),
        cover=cover,
        outputs=parse_outputs(cfg.get("output"), root),
        include_assets=list(cfg.get("includeAssets") or []),
        exclude_assets=list(cfg.get("excludeAssets") or []),
        asset_extensions=list(cfg.get("assetExtensions") or DEFAULT_ASSET_EXTENSIONS),
        markdown_extensions=list(markdown_cfg.get("extensions") or ["extra", "toc"]),
        links=list(cfg.get("links") or []),
        resources=list(cfg.get("resources") or []),
    )
