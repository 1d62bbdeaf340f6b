# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright browser session management for Site Chrome.

One Chromium process per run. Every page lives in its own browser context and
is closed when its scope exits, success or failure. The extractor and the CSS
collector only see the :class:`PageRenderer` protocol, so the rendering engine
can be swapped (or faked in tests) without touching them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from . import Viewport
from .config import DEFAULT_USER_AGENT, BuildConfig
from .errors import LaunchFailure, NavigationFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OUTER_HTML_JS = "(selector) => { const el = document.querySelector(selector); return el ? el.outerHTML : null; }"


@dataclass(frozen=True, slots=True)
class BrowserConfig:
    """Browser launch and navigation configuration."""

    headless: bool = True
    no_sandbox: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    timeout_ms: int = 30000
    settle_delay_ms: int = 3000

    @classmethod
    def from_build(cls, config: BuildConfig) -> BrowserConfig:
        return cls(
            headless=config.headless,
            no_sandbox=config.no_sandbox,
            user_agent=config.user_agent,
            timeout_ms=config.navigation_timeout_ms,
            settle_delay_ms=config.settle_delay_ms,
        )


def chromium_launch_args(config: BrowserConfig) -> list[str]:
    """Return deterministic, CI-friendly Chromium launch arguments."""
    args = [
        "--disable-gpu",
        "--disable-dev-shm-usage",
        "--disable-extensions",
        "--disable-background-networking",
        "--disable-sync",
        "--no-first-run",
        "--disable-breakpad",
        "--disable-component-update",
        "--noerrdialogs",
    ]
    if config.no_sandbox:
        # root containers cannot use the setuid sandbox
        args += ["--no-sandbox", "--disable-setuid-sandbox"]
    return args


class RenderedPage(Protocol):
    """A page that has been navigated and settled."""

    @property
    def url(self) -> str: ...

    async def outer_html(self, selector: str) -> str | None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...


class PageRenderer(Protocol):
    """Capability: render ``url`` at ``viewport`` and expose query/evaluate."""

    def render(
        self, url: str, viewport: Viewport, *, settle_delay_ms: int | None = None
    ) -> AbstractAsyncContextManager[RenderedPage]: ...


class PlaywrightPage:
    """RenderedPage backed by a Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def outer_html(self, selector: str) -> str | None:
        return await self._page.evaluate(_OUTER_HTML_JS, selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return await self._page.evaluate(script)
        return await self._page.evaluate(script, arg)


class BrowserSession:
    """Owns one headless Chromium process for the duration of a run."""

    def __init__(self, config: BrowserConfig | None = None):
        self.config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._open_pages = 0

    @property
    def browser(self) -> Browser:
        if self._browser is None:
            raise RuntimeError("Browser session not started. Use async with or call start().")
        return self._browser

    @property
    def open_pages(self) -> int:
        """Pages currently acquired and not yet released."""
        return self._open_pages

    async def start(self) -> None:
        """Launch Chromium. Any failure is a LaunchFailure."""
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=chromium_launch_args(self.config),
            )
        except Exception as exc:
            await self.stop()
            if "executable doesn't exist" in str(exc).lower():
                raise LaunchFailure(
                    "Chromium is not installed. Please run: playwright install chromium"
                ) from exc
            raise LaunchFailure(f"Could not launch Chromium: {exc}") from exc
        logger.info("Browser session started (headless=%s)", self.config.headless)

    async def stop(self) -> None:
        """Close browser and playwright. Safe to call on a crashed or unstarted browser."""
        if self._browser:
            with suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
        logger.info("Browser session stopped")

    async def __aenter__(self) -> BrowserSession:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    @asynccontextmanager
    async def page(self, viewport: Viewport) -> AsyncIterator[Page]:
        """Scoped page: its isolated context is always closed on exit."""
        context = await self.browser.new_context(
            viewport=viewport.as_playwright(),
            user_agent=self.config.user_agent,
            service_workers="block",
            accept_downloads=False,
        )
        self._open_pages += 1
        try:
            page = await context.new_page()
            yield page
        finally:
            self._open_pages -= 1
            with suppress(Exception):
                await context.close()

    async def with_page(self, viewport: Viewport, fn: Callable[[Page], Awaitable[T]]) -> T:
        """Run ``fn`` against a fresh page that is closed afterwards."""
        async with self.page(viewport) as page:
            return await fn(page)

    async def navigate(self, page: Page, url: str, *, settle_delay_ms: int | None = None) -> None:
        """Go to ``url``, wait for network idle, then a fixed settle delay.

        Frameworks that keep mutating the DOM after the network goes quiet get
        the settle delay to finish.
        """
        viewport = page.viewport_size or {}
        label = f"{viewport.get('width', '?')}x{viewport.get('height', '?')}"
        try:
            await page.goto(url, wait_until="networkidle", timeout=self.config.timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationFailure(
                f"Navigation timed out after {self.config.timeout_ms}ms: {url}", url=url, viewport=label
            ) from exc
        except PlaywrightError as exc:
            raise NavigationFailure(f"Navigation failed: {exc}", url=url, viewport=label) from exc

        delay = self.config.settle_delay_ms if settle_delay_ms is None else settle_delay_ms
        if delay > 0:
            logger.debug("Settling %dms for client-side rendering", delay)
            await asyncio.sleep(delay / 1000)

    @asynccontextmanager
    async def render(
        self, url: str, viewport: Viewport, *, settle_delay_ms: int | None = None
    ) -> AsyncIterator[RenderedPage]:
        """PageRenderer implementation: scoped page, navigated and settled."""
        async with self.page(viewport) as page:
            logger.info("Rendering %s at %s (%dx%d)", url, viewport.label, viewport.width, viewport.height)
            await self.navigate(page, url, settle_delay_ms=settle_delay_ms)
            yield PlaywrightPage(page)


@asynccontextmanager
async def open_session(
    config: BrowserConfig | None = None,
) -> AsyncGenerator[BrowserSession, None]:
    """Context manager to create and manage a browser session."""
    session = BrowserSession(config)
    await session.start()
    try:
        yield session
    finally:
        await session.stop()
