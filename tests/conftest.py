# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import sitechrome  # noqa: F401
except ImportError:
    raise ImportError("sitechrome is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from sitechrome.config import BuildConfig


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real Chromium launches in unit tests.

    Build tests pass a fake ``session_factory``; anything that forgets to
    gets a clear error instead of silently starting a browser. Tests that
    exercise the launch path with their own patch can opt out with::

        @pytest.mark.allow_real_browser
    """
    if "allow_real_browser" in request.keywords:
        return

    def _no_real_playwright():
        raise RuntimeError(
            "Test tried to start a real browser. Pass a fake session_factory or patch "
            "'sitechrome.browser_session.async_playwright'."
        )

    monkeypatch.setattr("sitechrome.browser_session.async_playwright", _no_real_playwright)


@pytest.fixture
def build_config(tmp_path):
    """BuildConfig writing under tmp_path, with no settle delays."""
    return BuildConfig(
        target_url="https://example.org/?flg=fr",
        units_dir=tmp_path / "src" / "external",
        stylesheet_path=tmp_path / "src" / "styles" / "auto-generated.css",
        settle_delay_ms=0,
        css_settle_delay_ms=0,
    )
