"""Tests for the two-phase entry compiler."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from folio.compile import check_entries, compile, manifest_entries, preflight
from folio.errors import ConfigError
from folio.models import (
    ContentsEntry,
    CoverConfig,
    CoverEntry,
    Diagnostics,
    FileTheme,
    ManuscriptEntry,
    PackageTheme,
)


def files_under(root: Path) -> dict[str, bytes]:
    if not root.exists():
        return {}
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


@pytest.fixture
def markdown_entry(context_dir, workspace_dir):
    (context_dir / "a.md").write_text("Some *processed* content.\n", encoding="utf-8")
    return ManuscriptEntry(
        source=str(context_dir / "a.md"),
        target=str(workspace_dir / "a.html"),
        content_type="text/markdown",
    )


class TestEndToEnd:
    """Whole compile runs."""

    def test_single_markdown_manuscript(self, make_config, workspace_dir, markdown_entry):
        """One markdown entry yields its HTML and a one-item reading order."""
        config = make_config([markdown_entry], language="en")
        start = datetime.now(timezone.utc)
        result = compile(config)
        end = datetime.now(timezone.utc)

        html = (workspace_dir / "a.html").read_text(encoding="utf-8")
        assert "<em>processed</em>" in html
        assert '<html lang="en">' in html

        manifest = json.loads((workspace_dir / "publication.json").read_text(encoding="utf-8"))
        assert manifest["readingOrder"] == [{"url": "a.html"}]
        assert manifest["inLanguage"] == "en"
        modified = datetime.fromisoformat(manifest["dateModified"].replace("Z", "+00:00"))
        assert start - timedelta(milliseconds=1) <= modified <= end
        assert result.manifest == manifest

    def test_idempotent(self, make_config, context_dir, workspace_dir, markdown_entry):
        """Two runs on the same input produce byte-identical documents."""
        (context_dir / "b.html").write_text("<html><body><h1 id='b'>B</h1></body></html>", encoding="utf-8")
        (context_dir / "pic.png").write_bytes(b"\x89PNG")
        entries = [
            ContentsEntry(target=str(workspace_dir / "index.html"), section_depth=1),
            markdown_entry,
            ManuscriptEntry(
                source=str(context_dir / "b.html"),
                target=str(workspace_dir / "b.html"),
                content_type="text/html",
                title="B",
            ),
            ManuscriptEntry(
                source=str(context_dir / "pic.png"),
                target=str(workspace_dir / "pic.png"),
                content_type="image/png",
            ),
        ]
        config = make_config(entries)
        compile(config, modified="2026-01-01T00:00:00.000Z")
        first = files_under(workspace_dir)
        compile(config, modified="2026-01-01T00:00:00.000Z")
        assert files_under(workspace_dir) == first

    def test_escaping_import_path_writes_nothing(self, make_config, root, workspace_dir, markdown_entry, write_package):
        """A theme import path outside its package fails before any write."""
        pkg = write_package(root / "theme", {"name": "theme"})
        (root / "evil.css").write_text("", encoding="utf-8")
        theme = PackageTheme(name="theme", location=str(pkg), import_path="../evil.css")
        styled = ManuscriptEntry(
            source=markdown_entry.source,
            target=str(workspace_dir / "b.html"),
            content_type=markdown_entry.content_type,
            themes=(theme,),
        )
        with pytest.raises(ConfigError, match="style path"):
            compile(make_config([markdown_entry, styled]))
        assert files_under(workspace_dir) == {}

    def test_reading_order_matches_entries(self, make_config, context_dir, workspace_dir):
        """readingOrder has the entries' length and order, generated entries included."""
        (context_dir / "cover.png").write_bytes(b"\x89PNG")
        for name in ("one", "two"):
            (context_dir / f"{name}.md").write_text(f"# {name}\n", encoding="utf-8")
        entries = [
            CoverEntry(target=str(workspace_dir / "cover.html"), cover_image_src=str(context_dir / "cover.png")),
            ContentsEntry(target=str(workspace_dir / "index.html"), title="Contents"),
            ManuscriptEntry(
                source=str(context_dir / "two.md"),
                target=str(workspace_dir / "two.html"),
                content_type="text/markdown",
                title="two",
            ),
            ManuscriptEntry(
                source=str(context_dir / "one.md"),
                target=str(workspace_dir / "one.html"),
                content_type="text/markdown",
                title="one",
            ),
        ]
        config = make_config(entries, cover=CoverConfig(src=str(context_dir / "cover.png"), name="Cover"))
        pub = compile(config).manifest
        assert pub["readingOrder"] == [
            {"url": "cover.html", "rel": "cover", "type": "LinkedResource"},
            {"url": "index.html", "name": "Contents", "rel": "contents", "type": "LinkedResource"},
            {"url": "two.html", "name": "two"},
            {"url": "one.html", "name": "one"},
        ]
        assert pub["resources"][0]["rel"] == "cover"

    def test_no_manifest_requested(self, make_config, workspace_dir, markdown_entry):
        """The manifest is skipped when not requested."""
        result = compile(make_config([markdown_entry], need_to_generate_manifest=False))
        assert result.manifest is None
        assert not (workspace_dir / "publication.json").exists()


class TestPhases:
    """Phase 1 / phase 2 behaviour."""

    def test_toc_sees_compiled_headings(self, make_config, context_dir, workspace_dir):
        """A ToC listed before its manuscripts still reads their compiled headings."""
        (context_dir / "ch.md").write_text("# Opening\n\n## Detail\n", encoding="utf-8")
        entries = [
            ContentsEntry(target=str(workspace_dir / "index.html"), section_depth=2),
            ManuscriptEntry(
                source=str(context_dir / "ch.md"),
                target=str(workspace_dir / "ch.html"),
                content_type="text/markdown",
                title="Chapter",
            ),
        ]
        compile(make_config(entries))
        soup = BeautifulSoup((workspace_dir / "index.html").read_text(encoding="utf-8"), "html.parser")
        nav = soup.find("nav", attrs={"role": "doc-toc"})
        assert [a["href"] for a in nav.find_all("a")] == ["ch.html", "ch.html#opening", "ch.html#detail"]

    def test_stylesheets_relative_to_target(self, make_config, root, context_dir, workspace_dir):
        """Each document links themes relative to its own directory."""
        (context_dir / "part").mkdir()
        (context_dir / "part" / "c.md").write_text("text\n", encoding="utf-8")
        theme = FileTheme(source=str(root / "s.css"), location=str(workspace_dir / "s.css"))
        entry = ManuscriptEntry(
            source=str(context_dir / "part" / "c.md"),
            target=str(workspace_dir / "part" / "c.html"),
            content_type="text/markdown",
            themes=(theme,),
        )
        compile(make_config([entry]))
        soup = BeautifulSoup((workspace_dir / "part" / "c.html").read_text(encoding="utf-8"), "html.parser")
        assert soup.find("link", rel="stylesheet")["href"] == "../s.css"

    def test_html_in_place_left_untouched(self, make_config, context_dir):
        """An HTML manuscript whose source is its target is not rewritten."""
        page = context_dir / "page.html"
        page.write_text("<p>authored</p>", encoding="utf-8")
        entry = ManuscriptEntry(source=str(page), target=str(page), content_type="text/html")
        diagnostics = Diagnostics()
        result = compile(make_config([entry], need_to_generate_manifest=False), diagnostics)
        assert page.read_text(encoding="utf-8") == "<p>authored</p>"
        assert result.written == []
        assert len(diagnostics) == 1

    def test_other_types_copied(self, make_config, context_dir, workspace_dir):
        """Non-document entries are byte-copied."""
        (context_dir / "data.bin").write_bytes(b"\x00\x01\x02")
        entry = ManuscriptEntry(
            source=str(context_dir / "data.bin"),
            target=str(workspace_dir / "data.bin"),
            content_type="application/octet-stream",
        )
        compile(make_config([entry], need_to_generate_manifest=False))
        assert (workspace_dir / "data.bin").read_bytes() == b"\x00\x01\x02"


class TestPreflight:
    """Tests for preflight checks."""

    def test_hand_written_toc_target_refused(self, make_config, workspace_dir, markdown_entry):
        """An existing non-ToC file at the ToC destination aborts compilation."""
        workspace_dir.mkdir()
        (workspace_dir / "index.html").write_text("<h1>My own index</h1>", encoding="utf-8")
        config = make_config([ContentsEntry(target=str(workspace_dir / "index.html")), markdown_entry])
        with pytest.raises(ConfigError, match="ToC"):
            compile(config)
        assert not (workspace_dir / "a.html").exists()

    def test_binary_toc_target_refused(self, make_config, workspace_dir, markdown_entry):
        """A non-text file at the ToC destination is refused like any other document."""
        workspace_dir.mkdir()
        (workspace_dir / "index.html").write_bytes(b"\xff\xfe\x00binary")
        config = make_config([ContentsEntry(target=str(workspace_dir / "index.html")), markdown_entry])
        with pytest.raises(ConfigError, match="ToC"):
            preflight(config)

    def test_hand_written_cover_target_refused(self, make_config, context_dir, workspace_dir):
        """An existing non-cover file at the cover destination aborts compilation."""
        workspace_dir.mkdir()
        (workspace_dir / "cover.html").write_text("<p>mine</p>", encoding="utf-8")
        entry = CoverEntry(target=str(workspace_dir / "cover.html"), cover_image_src=str(context_dir / "c.png"))
        with pytest.raises(ConfigError, match="cover page"):
            preflight(make_config([entry]))

    def test_previous_generated_toc_accepted(self, make_config, workspace_dir, markdown_entry):
        """A ToC generated by a previous run may be replaced."""
        config = make_config([ContentsEntry(target=str(workspace_dir / "index.html")), markdown_entry])
        compile(config)
        compile(config)

    def test_duplicate_targets(self, workspace_dir):
        """Two entries compiling to the same target are refused."""
        a = ContentsEntry(target=str(workspace_dir / "index.html"))
        b = CoverEntry(target=str(workspace_dir / "index.html"), cover_image_src="c.png")
        with pytest.raises(ConfigError, match="more than one entry"):
            check_entries([a, b])

    def test_unknown_rel(self, workspace_dir):
        entry = ManuscriptEntry(source="a.html", target=str(workspace_dir / "a.html"), content_type="text/html", rel="appendix")
        with pytest.raises(ConfigError, match="Unknown rel"):
            check_entries([entry])


def test_manifest_entries_encoding_format(make_config, workspace_dir):
    """Markdown and HTML omit encodingFormat; other types carry it."""
    entries = [
        ManuscriptEntry(source="a.md", target=str(workspace_dir / "a.html"), content_type="text/markdown"),
        ManuscriptEntry(source="b.html", target=str(workspace_dir / "b.html"), content_type="text/html"),
        ManuscriptEntry(source="c.xhtml", target=str(workspace_dir / "c.xhtml"), content_type="application/xhtml+xml"),
        ContentsEntry(target=str(workspace_dir / "toc" / "index.html")),
    ]
    out = manifest_entries(make_config(entries))
    assert [e.encoding_format for e in out] == [None, None, "application/xhtml+xml", None]
    assert out[3].path == "toc/index.html"
    assert out[3].rel == "contents"
