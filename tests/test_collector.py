# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Unit tests for sitechrome.css.collector (no network)."""

from __future__ import annotations

import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from sitechrome import DESKTOP, SourceOrigin, StylesheetSource
from sitechrome.css.collector import (
    build_document,
    collect_stylesheets,
    fetch_stylesheet,
    find_imports,
    gather_sources,
)
from tests._fakes import FakeRenderer

PAGE = "https://example.org/portal/"

# ── helpers ──────────────────────────────────────────────────────────


def _mock_response(body: str = "", charset: str | None = "utf-8"):
    """Create a mock HTTP response for urllib.request.urlopen."""
    resp = MagicMock()
    resp.status = 200
    resp.read.return_value = body.encode(charset or "utf-8")
    resp.headers = MagicMock()
    resp.headers.get_content_charset.return_value = charset
    resp.__enter__ = MagicMock(return_value=resp)
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def _serve(routes: dict[str, str | Exception]):
    """urlopen side effect answering by request URL."""

    def _urlopen(req, timeout=None):
        answer = routes.get(req.full_url)
        if answer is None:
            raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, None)
        if isinstance(answer, Exception):
            raise answer
        return _mock_response(answer)

    return _urlopen


# ── find_imports ─────────────────────────────────────────────────────


class TestFindImports:
    def test_quoted_and_url_forms(self):
        css = '@import "a.css";\n@import url(b.css);\n@import url("c.css") screen;\n@import \'d.css\';'
        assert find_imports(css, PAGE) == [
            "https://example.org/portal/a.css",
            "https://example.org/portal/b.css",
            "https://example.org/portal/c.css",
            "https://example.org/portal/d.css",
        ]

    def test_resolved_against_base(self):
        assert find_imports('@import "/root.css";', "https://cdn.example.org/css/main.css") == [
            "https://cdn.example.org/root.css"
        ]

    def test_absolute_kept(self):
        assert find_imports("@import url(https://fonts.example.com/f.css);", PAGE) == ["https://fonts.example.com/f.css"]

    def test_duplicates_and_data_urls_dropped(self):
        css = '@import "a.css"; @import "a.css"; @import url(data:text/css,a{});'
        assert find_imports(css, PAGE) == ["https://example.org/portal/a.css"]

    def test_no_imports(self):
        assert find_imports(".a { color: red }", PAGE) == []


# ── fetch_stylesheet ────────────────────────────────────────────────


class TestFetchStylesheet:
    @pytest.mark.asyncio
    async def test_success(self):
        with patch("sitechrome.css.collector.urllib.request.urlopen") as mock_open:
            mock_open.return_value = _mock_response(".a{color:red}")
            source = await fetch_stylesheet("https://example.org/a.css", timeout=3)
        assert source.ok
        assert source.content == ".a{color:red}"
        assert source.origin is SourceOrigin.LINK
        assert mock_open.call_args.kwargs["timeout"] == 3

    @pytest.mark.asyncio
    async def test_declared_charset_used(self):
        with patch("sitechrome.css.collector.urllib.request.urlopen") as mock_open:
            mock_open.return_value = _mock_response('.a::after{content:"é"}', charset="latin-1")
            source = await fetch_stylesheet("https://example.org/a.css")
        assert source.content == '.a::after{content:"é"}'

    @pytest.mark.asyncio
    async def test_http_error_recorded(self):
        with patch("sitechrome.css.collector.urllib.request.urlopen") as mock_open:
            mock_open.side_effect = urllib.error.HTTPError("https://example.org/x.css", 404, "Not Found", {}, None)
            source = await fetch_stylesheet("https://example.org/x.css")
        assert not source.ok
        assert source.error == "HTTP 404"
        assert source.content is None

    @pytest.mark.asyncio
    async def test_timeout_recorded(self):
        with patch("sitechrome.css.collector.urllib.request.urlopen") as mock_open:
            mock_open.side_effect = TimeoutError("timed out")
            source = await fetch_stylesheet("https://example.org/slow.css", timeout=1)
        assert not source.ok
        assert "timed out" in source.error

    @pytest.mark.asyncio
    async def test_network_error_recorded(self):
        with patch("sitechrome.css.collector.urllib.request.urlopen") as mock_open:
            mock_open.side_effect = urllib.error.URLError("Name or service not known")
            source = await fetch_stylesheet("https://nope.invalid/a.css")
        assert not source.ok
        assert "Name or service not known" in source.error

    @pytest.mark.asyncio
    async def test_user_agent_sent(self):
        with patch("sitechrome.css.collector.urllib.request.urlopen") as mock_open:
            mock_open.return_value = _mock_response("")
            await fetch_stylesheet("https://example.org/a.css", user_agent="TestAgent/1.0")
        req = mock_open.call_args.args[0]
        assert req.get_header("User-agent") == "TestAgent/1.0"


# ── gather_sources ──────────────────────────────────────────────────


class TestGatherSources:
    @pytest.mark.asyncio
    async def test_order_links_imports_inline(self):
        routes = {
            "https://example.org/main.css": '@import "deep.css";\n.main{}',
            "https://example.org/deep.css": ".deep{}",
            "https://example.org/portal/inline-import.css": ".ii{}",
        }
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)):
            collection = await gather_sources(
                PAGE,
                ["https://example.org/main.css"],
                ['@import "inline-import.css";', ".inline{}"],
            )
        assert [(s.origin, s.url) for s in collection.sources] == [
            (SourceOrigin.LINK, "https://example.org/main.css"),
            (SourceOrigin.IMPORT, "https://example.org/deep.css"),
            (SourceOrigin.IMPORT, "https://example.org/portal/inline-import.css"),
            (SourceOrigin.INLINE, "inline <style> #1"),
            (SourceOrigin.INLINE, "inline <style> #2"),
        ]

    @pytest.mark.asyncio
    async def test_failed_sibling_does_not_cancel_others(self):
        routes = {
            "https://example.org/a.css": ".a{}",
            "https://example.org/c.css": ".c{}",
        }
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)):
            collection = await gather_sources(
                PAGE,
                ["https://example.org/a.css", "https://example.org/b.css", "https://example.org/c.css"],
                [],
            )
        assert [s.url for s in collection.fetched] == ["https://example.org/a.css", "https://example.org/c.css"]
        assert [s.url for s in collection.failed] == ["https://example.org/b.css"]
        assert "https://example.org/b.css" not in collection.document.text

    @pytest.mark.asyncio
    async def test_import_depth_limit(self):
        routes = {
            "https://example.org/l0.css": '@import "l1.css";',
            "https://example.org/l1.css": '@import "l2.css";',
            "https://example.org/l2.css": '@import "l3.css";',
            "https://example.org/l3.css": ".l3{}",
        }
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)):
            collection = await gather_sources(PAGE, ["https://example.org/l0.css"], [], import_depth=2)
        urls = [s.url for s in collection.sources]
        assert urls == ["https://example.org/l0.css", "https://example.org/l1.css", "https://example.org/l2.css"]
        assert [s.depth for s in collection.sources] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_zero_depth_follows_nothing(self):
        routes = {"https://example.org/l0.css": '@import "l1.css";'}
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)) as mock_open:
            collection = await gather_sources(PAGE, ["https://example.org/l0.css"], [], import_depth=0)
        assert len(collection.sources) == 1
        assert mock_open.call_count == 1

    @pytest.mark.asyncio
    async def test_import_cycles_fetched_once(self):
        routes = {
            "https://example.org/a.css": '@import "b.css";',
            "https://example.org/b.css": '@import "a.css";',
        }
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)) as mock_open:
            collection = await gather_sources(PAGE, ["https://example.org/a.css"], [], import_depth=5)
        assert mock_open.call_count == 2
        assert len(collection.sources) == 2

    @pytest.mark.asyncio
    async def test_duplicate_links_fetched_once(self):
        routes = {"https://example.org/a.css": ".a{}"}
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)) as mock_open:
            collection = await gather_sources(PAGE, ["https://example.org/a.css"] * 3, [])
        assert mock_open.call_count == 1
        assert len(collection.sources) == 1

    @pytest.mark.asyncio
    async def test_blank_inline_blocks_skipped(self):
        collection = await gather_sources(PAGE, [], ["  \n", ".x{}"])
        assert [s.url for s in collection.sources] == ["inline <style> #1"]


# ── build_document ──────────────────────────────────────────────────


class TestBuildDocument:
    def test_banners_in_order(self):
        doc = build_document(
            [
                StylesheetSource(SourceOrigin.LINK, "https://a/x.css", content=".x{}"),
                StylesheetSource(SourceOrigin.LINK, "https://a/broken.css", error="HTTP 500"),
                StylesheetSource(SourceOrigin.IMPORT, "https://a/y.css", content=".y{}", depth=1),
                StylesheetSource(SourceOrigin.INLINE, "inline <style> #1", content=".z{}"),
            ]
        )
        assert doc.text == (
            "/* CSS from https://a/x.css */\n.x{}\n\n"
            "/* CSS from @import https://a/y.css */\n.y{}\n\n"
            "/* CSS from inline <style> #1 */\n.z{}"
        )

    def test_empty(self):
        assert build_document([]).text == ""


# ── collect_stylesheets ─────────────────────────────────────────────


class TestCollectStylesheets:
    @pytest.mark.asyncio
    async def test_discovers_through_renderer(self):
        renderer = FakeRenderer(
            discovery={"url": PAGE, "links": ["https://example.org/a.css"], "inline": [".inline{}"]}
        )
        routes = {"https://example.org/a.css": ".a{}"}
        with patch("sitechrome.css.collector.urllib.request.urlopen", side_effect=_serve(routes)):
            collection = await collect_stylesheets(renderer, PAGE, DESKTOP, settle_delay_ms=2000)
        assert renderer.calls == [(PAGE, "desktop", 2000)]
        assert renderer.open_pages == 0
        assert ".a{}" in collection.document.text
        assert ".inline{}" in collection.document.text

    @pytest.mark.asyncio
    async def test_page_without_styles(self):
        renderer = FakeRenderer()
        collection = await collect_stylesheets(renderer, PAGE, DESKTOP)
        assert collection.sources == []
        assert collection.document.text == ""
