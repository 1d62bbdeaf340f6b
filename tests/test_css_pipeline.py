# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""End-to-end tests for the four-stage CSS pipeline."""

from __future__ import annotations

from unittest.mock import patch

from sitechrome import CSSDocument
from sitechrome.css.pipeline import run_pipeline
from tests._fakes import FOOTER_HTML, HEADER_HTML

HEADER_NS = ".external-header-container"
FOOTER_NS = ".external-footer-container"

COLLECTED = """/* CSS from https://example.org/site.css */
@charset "utf-8";
@import url("theme.css");
:root { --brand: #336699 }
body { margin: 0; margin: 0 }
main .content { padding: 2rem }
.ods-front-header { background: var(--brand) }
.nav-link { color: #ffffff }
.nav-link:hover { text-decoration: underline }
.site-footer .legal { font-size: 12px }
.never-used { color: red }
.ods-responsive-menu--collapsed .ods-responsive-menu-collapsible { display: none }
@font-face { font-family: "Brand"; src: url(brand.woff2) }
@keyframes fade { from { opacity: 0 } to { opacity: 1 } }
@media (max-width: 1279px) {
    .nav-link { display: block }
    .never-used { display: none }
}

/* CSS from inline <style> #1 */
.empty {}
"""


class TestRunPipeline:
    def test_stage_order_recorded(self):
        result = run_pipeline(CSSDocument(COLLECTED), HEADER_HTML, HEADER_NS)
        assert result.history == ("repair", "clean", "purge", "font-face sweep", "prefix")
        assert result.passthrough == ()

    def test_header_css(self):
        text = run_pipeline(CSSDocument(COLLECTED), HEADER_HTML, HEADER_NS).text
        assert f"{HEADER_NS} .nav-link" in text
        assert f"{HEADER_NS} .ods-front-header" in text
        assert f"{HEADER_NS} .ods-responsive-menu--collapsed" in text
        assert "@media" in text
        assert "@keyframes" in text
        assert "#fff" in text
        assert ".site-footer" not in text
        assert ".never-used" not in text
        assert "main" not in text
        assert "@font-face" not in text
        assert "@import" not in text
        assert "@charset" not in text
        assert "/*" not in text
        assert ".empty" not in text

    def test_footer_css_scoped_to_footer(self):
        text = run_pipeline(CSSDocument(COLLECTED), FOOTER_HTML, FOOTER_NS).text
        assert f"{FOOTER_NS} .site-footer .legal" in text
        assert ".nav-link" not in text
        assert HEADER_NS not in text

    def test_root_and_body_rescoped(self):
        text = run_pipeline(CSSDocument(COLLECTED), HEADER_HTML, HEADER_NS).text
        assert "--brand" in text
        assert ":root" not in text
        assert "body" not in text

    def test_input_not_mutated(self):
        doc = CSSDocument(COLLECTED)
        run_pipeline(doc, HEADER_HTML, HEADER_NS)
        assert doc.text == COLLECTED
        assert doc.history == ()

    def test_empty_css(self):
        result = run_pipeline(CSSDocument(""), HEADER_HTML, HEADER_NS)
        assert result.text == ""
        assert result.passthrough == ()

    def test_failing_stage_passes_through_and_pipeline_continues(self):
        with patch("sitechrome.css.purge.MarkupInventory.from_markup", side_effect=RuntimeError("boom")):
            result = run_pipeline(CSSDocument(".nav-link { color: red }\n.gone { color: blue }"), HEADER_HTML, HEADER_NS)
        assert result.passthrough == ("purge",)
        # purge skipped, but prefix still scoped everything
        assert f"{HEADER_NS} .gone" in result.text
        assert f"{HEADER_NS} .nav-link" in result.text

    def test_modern_css_survives_every_stage(self):
        markup = '<header class="menu"><a class="nav-link" href="/">Home</a></header>'
        css = (
            "@media (width >= 600px) { .nav-link { gap: 1rem } }\n"
            ".menu { color: rgb(0 0 0 / 50%); width: clamp(10rem, 50vw, 40rem); inset: 0 }\n"
            ".nav-link:is(:hover, :focus) { text-decoration: underline }\n"
            "@container (min-width: 400px) { .menu { padding: 1rem } }\n"
            "@layer base { .menu { margin: 0 } }\n"
            "@supports (display: grid) { .menu { display: grid } }\n"
        )
        result = run_pipeline(CSSDocument(css), markup, HEADER_NS)
        text = result.text
        assert result.passthrough == ()
        assert "@media (width >= 600px) {" in text
        assert f"{HEADER_NS} .nav-link {{" in text
        assert "color: rgb(0 0 0 / 50%);" in text
        assert "width: clamp(10rem, 50vw, 40rem);" in text
        assert f"{HEADER_NS} .nav-link:is(:hover, :focus) {{" in text
        assert "@container (min-width: 400px) {" in text
        assert "padding: 1rem;" in text
        assert "@layer base {" in text
        assert "margin: 0;" in text
        assert "@supports (display: grid) {" in text
        assert "display: grid;" in text
