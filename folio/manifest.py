"""Publication manifest assembly, validation and serialization.

https://www.w3.org/TR/pub-manifest/
"""

from __future__ import annotations

import json
import mimetypes
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Optional

import jsonschema
from PIL import Image, UnidentifiedImageError

from .errors import ManifestValidationError
from .models import Diagnostics, ProjectConfig
from .paths import encode_uri, relpath

SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "publication.schema.json"

PUB_CONTEXT = ["https://schema.org", "https://www.w3.org/ns/pub-context"]
CONFORMS_TO = "https://github.com/folio-press/folio"


@dataclass(frozen=True)
class ManifestEntry:
    path: str
    title: Optional[str] = None
    encoding_format: Optional[str] = None
    rel: Optional[str] = None


@dataclass(frozen=True)
class CoverLink:
    url: str
    name: str = ""
    path: Optional[str] = None


@lru_cache(maxsize=1)
def load_schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def detect_cover_type(url: str, path: Optional[str] = None) -> Optional[str]:
    """MIME type from the URL; falls back to reading the image header."""
    mime, _ = mimetypes.guess_type(url)
    if mime:
        return mime
    if path and os.path.isfile(path):
        try:
            with Image.open(path) as img:
                return Image.MIME.get(img.format or "")
        except (UnidentifiedImageError, OSError):
            return None
    return None


def link_object(entry: ManifestEntry) -> dict:
    link: dict = {"url": encode_uri(entry.path)}
    if entry.title:
        link["name"] = entry.title
    if entry.encoding_format:
        link["encodingFormat"] = entry.encoding_format
    if entry.rel:
        link["rel"] = entry.rel
    if entry.rel in ("contents", "cover"):
        link["type"] = "LinkedResource"
    return link


def validate_manifest(publication: dict, output_path: str) -> None:
    validator = jsonschema.Draft7Validator(load_schema())
    errors = sorted(validator.iter_errors(publication), key=lambda e: e.json_path)
    if not errors:
        return
    detail = "\n".join(
        f"{e.json_path}: {e.message} (schema path: {'/'.join(str(p) for p in e.absolute_schema_path)})"
        for e in errors
    )
    raise ManifestValidationError(
        f"Validation of publication manifest failed. Please check the schema: {output_path}",
        detail,
    )


def generate_manifest(
    output_path: str,
    *,
    entries: list[ManifestEntry],
    modified: str,
    title: Optional[str] = None,
    author: Optional[str] = None,
    language: Optional[str] = None,
    reading_progression: Optional[str] = None,
    cover: Optional[CoverLink] = None,
    links: Optional[list] = None,
    resources: Optional[list] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> dict:
    """Build, validate and write the manifest; nothing is written if it is invalid."""
    reading_order = [link_object(e) for e in entries]
    links = list(links or [])
    resources = list(resources or [])

    if cover is not None:
        mime = detect_cover_type(cover.url, cover.path)
        if mime:
            resource = {"rel": "cover", "url": encode_uri(cover.url)}
            if cover.name:
                resource["name"] = cover.name
            resource["encodingFormat"] = mime
            resources.append(resource)
        elif diagnostics is not None:
            diagnostics.warn(
                f'Cover image "{cover.url}" was set in your configuration but its image type '
                "could not be detected. Please check a valid cover file is placed.",
                cover.path or cover.url,
            )

    publication: dict = {
        "@context": list(PUB_CONTEXT),
        "type": "Book",
        "conformsTo": CONFORMS_TO,
    }
    if title:
        publication["name"] = title
    if author:
        publication["author"] = author
    if language:
        publication["inLanguage"] = language
    if reading_progression:
        publication["readingProgression"] = reading_progression
    publication["dateModified"] = modified
    publication["readingOrder"] = reading_order
    publication["resources"] = resources
    publication["links"] = links

    validate_manifest(publication, output_path)

    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(publication, indent=2, ensure_ascii=False), encoding="utf-8")
    return publication


def write_publication_manifest(
    config: ProjectConfig,
    entries: list[ManifestEntry],
    diagnostics: Optional[Diagnostics] = None,
    modified: Optional[str] = None,
) -> dict:
    cover = None
    if config.cover is not None:
        cover = CoverLink(
            url=relpath(config.cover.src, config.entry_context_dir),
            name=config.cover.name,
            path=config.cover.src,
        )
    return generate_manifest(
        config.manifest_path,
        entries=entries,
        modified=modified or now_iso(),
        title=config.title,
        author=config.author,
        language=config.language,
        reading_progression=config.reading_progression,
        cover=cover,
        links=config.links,
        resources=config.resources,
        diagnostics=diagnostics,
    )
