# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Collect every stylesheet the rendered page uses.

Order of the combined text:
  1. linked stylesheets, in document order
  2. @import targets, breadth first, up to ``import_depth`` levels
  3. inline <style> blocks, in document order

Each source is preceded by a banner comment naming where it came from. A
sheet that cannot be fetched is logged and skipped; it never aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
import re
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from urllib.parse import urljoin

from .. import CSSDocument, SourceOrigin, StylesheetSource, Viewport
from ..browser_session import PageRenderer
from ..config import DEFAULT_USER_AGENT
from ..errors import FetchFailure

logger = logging.getLogger(__name__)

_DISCOVER_JS = """() => ({
  url: location.href,
  links: Array.from(document.querySelectorAll('link[rel~="stylesheet"][href]')).map((l) => l.href),
  inline: Array.from(document.querySelectorAll('style')).map((s) => s.textContent || ''),
})"""

_IMPORT_RE = re.compile(
    r"""@import\s+(?:url\(\s*)?(?:"([^"]+)"|'([^']+)'|([^\s'"();]+))\s*\)?[^;]*;""",
    re.IGNORECASE,
)


@dataclass
class StylesheetCollection:
    """Every discovered source, fetched or not, in cascade order."""

    sources: list[StylesheetSource] = field(default_factory=list)

    @property
    def fetched(self) -> list[StylesheetSource]:
        return [s for s in self.sources if s.ok]

    @property
    def failed(self) -> list[StylesheetSource]:
        return [s for s in self.sources if not s.ok]

    @property
    def document(self) -> CSSDocument:
        return build_document(self.sources)


def build_document(sources: Iterable[StylesheetSource]) -> CSSDocument:
    """Concatenate every fetched source, in order, each behind its banner."""
    return CSSDocument(text="\n\n".join(f"{s.banner}\n{s.content}" for s in sources if s.ok))


def _unique(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(u for u in urls if u))


def find_imports(css_text: str, base_url: str) -> list[str]:
    """Absolute URLs of the @import targets in ``css_text``."""
    found = []
    for match in _IMPORT_RE.finditer(css_text):
        target = (match.group(1) or match.group(2) or match.group(3) or "").strip()
        if not target or target.startswith("data:"):
            continue
        found.append(urljoin(base_url, target))
    return _unique(found)


async def fetch_stylesheet(
    url: str,
    *,
    origin: SourceOrigin = SourceOrigin.LINK,
    depth: int = 0,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 10.0,
) -> StylesheetSource:
    """Fetch one stylesheet. Failures come back as a source with ``error`` set."""

    def _sync_fetch() -> StylesheetSource:
        try:
            req = urllib.request.Request(url, headers={"User-Agent": user_agent, "Accept": "text/css,*/*;q=0.1"})
            with urllib.request.urlopen(req, timeout=timeout) as resp:  # noqa: S310  # nosec B310
                charset = resp.headers.get_content_charset() or "utf-8"
                body = resp.read().decode(charset, errors="replace")
                return StylesheetSource(origin=origin, url=url, content=body, depth=depth)
        except urllib.error.HTTPError as e:
            return StylesheetSource(origin=origin, url=url, error=f"HTTP {e.code}", depth=depth)
        except Exception as e:
            logger.debug("Stylesheet fetch failed for %s", url, exc_info=True)
            return StylesheetSource(origin=origin, url=url, error=str(e) or type(e).__name__, depth=depth)

    try:
        source = await asyncio.wait_for(asyncio.to_thread(_sync_fetch), timeout=timeout + 5)
    except TimeoutError:
        source = StylesheetSource(origin=origin, url=url, error="timed out", depth=depth)

    if source.ok:
        logger.info("Fetched %s (%d chars)", url, len(source.content or ""))
    else:
        logger.warning("%s", FetchFailure(f"Skipping stylesheet {url}: {source.error}", url=url))
    return source


async def gather_sources(
    page_url: str,
    links: Sequence[str],
    inline_blocks: Sequence[str],
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 10.0,
    import_depth: int = 2,
) -> StylesheetCollection:
    """Fetch ``links`` concurrently, follow their @imports, append inline blocks."""
    links = _unique(links)
    seen = set(links)
    sources: list[StylesheetSource] = list(
        await asyncio.gather(
            *(fetch_stylesheet(u, origin=SourceOrigin.LINK, user_agent=user_agent, timeout=timeout) for u in links)
        )
    )

    pending = [imp for s in sources if s.ok for imp in find_imports(s.content or "", s.url)]
    pending += [imp for block in inline_blocks for imp in find_imports(block, page_url)]
    depth = 1
    while pending and depth <= import_depth:
        batch = [u for u in _unique(pending) if u not in seen]
        seen.update(batch)
        fetched = await asyncio.gather(
            *(
                fetch_stylesheet(u, origin=SourceOrigin.IMPORT, depth=depth, user_agent=user_agent, timeout=timeout)
                for u in batch
            )
        )
        sources.extend(fetched)
        pending = [imp for s in fetched if s.ok for imp in find_imports(s.content or "", s.url)]
        depth += 1
    if pending:
        logger.debug("Not following %d @import(s) beyond depth %d", len(pending), import_depth)

    for index, block in enumerate((b for b in inline_blocks if b.strip()), start=1):
        sources.append(StylesheetSource(origin=SourceOrigin.INLINE, url=f"inline <style> #{index}", content=block))

    collected = StylesheetCollection(sources=sources)
    logger.info(
        "Collected %d stylesheet(s), %d failed, %d chars",
        len(collected.fetched),
        len(collected.failed),
        len(collected.document),
    )
    return collected


async def collect_stylesheets(
    renderer: PageRenderer,
    url: str,
    viewport: Viewport,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 10.0,
    import_depth: int = 2,
    settle_delay_ms: int | None = None,
) -> StylesheetCollection:
    """Render ``url`` once more and gather the stylesheets it references.

    Raises:
        NavigationFailure: the page could not be loaded.
    """
    async with renderer.render(url, viewport, settle_delay_ms=settle_delay_ms) as page:
        found = await page.evaluate(_DISCOVER_JS) or {}

    page_url = found.get("url") or url
    links = found.get("links") or []
    inline_blocks = found.get("inline") or []
    logger.info("Discovered %d linked stylesheet(s), %d inline block(s)", len(links), len(inline_blocks))
    return await gather_sources(
        page_url,
        links,
        inline_blocks,
        user_agent=user_agent,
        timeout=timeout,
        import_depth=import_depth,
    )
