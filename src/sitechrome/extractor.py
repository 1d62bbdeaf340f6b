# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Viewport extraction and desktop-first fragment reconciliation.

Flow:
  for each viewport (configured order)
    → render (network idle + settle delay)
    → outerHTML of the first <header> / <footer>, or absent
  → reconcile: primary viewport wins, later viewports only fill gaps

Responsive behaviour is left to the CSS media queries, so the structurally
richer desktop DOM is kept whole rather than merged with the mobile one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from . import CanonicalFragment, RawFragment, Region, Viewport
from .browser_session import PageRenderer

logger = logging.getLogger(__name__)

_EXTRACT_JS = """() => {
  const header = document.querySelector('header');
  const footer = document.querySelector('footer');
  return {
    header: header ? header.outerHTML : null,
    footer: footer ? footer.outerHTML : null,
  };
}"""


async def extract_viewport(renderer: PageRenderer, url: str, viewport: Viewport) -> list[RawFragment]:
    """Capture every region's outer markup at one viewport.

    Raises:
        NavigationFailure: page load or stabilization failed.
    """
    async with renderer.render(url, viewport) as page:
        result = await page.evaluate(_EXTRACT_JS) or {}

    fragments = [
        RawFragment(region=region, viewport_label=viewport.label, markup=result.get(region.value))
        for region in Region
    ]
    for fragment in fragments:
        logger.info(
            "%s %s: %s",
            viewport.label,
            fragment.region.value,
            f"{len(fragment.markup)} chars" if fragment.present else "absent",
        )
    return fragments


async def extract_all(renderer: PageRenderer, url: str, viewports: Sequence[Viewport]) -> list[RawFragment]:
    """Sequential extraction across ``viewports`` (one page at a time)."""
    fragments: list[RawFragment] = []
    for viewport in viewports:
        fragments.extend(await extract_viewport(renderer, url, viewport))
    return fragments


def reconcile(
    fragments: Iterable[RawFragment],
    primary_label: str = "desktop",
) -> dict[Region, CanonicalFragment | None]:
    """Pick one canonical fragment per region.

    The primary viewport's markup is authoritative whenever present. Only when
    it is absent does the first other viewport (in capture order) with markup
    become canonical. ``None`` means no viewport had the region.

    Known limitation: elements that only the non-primary view injects are
    dropped when the primary view has the region.
    """
    by_region: dict[Region, list[RawFragment]] = {region: [] for region in Region}
    for fragment in fragments:
        by_region[fragment.region].append(fragment)

    canonical: dict[Region, CanonicalFragment | None] = {}
    for region, captures in by_region.items():
        primary = [f for f in captures if f.viewport_label == primary_label and f.present]
        others = [f for f in captures if f.viewport_label != primary_label and f.present]
        chosen = primary[0] if primary else (others[0] if others else None)

        if chosen is None:
            logger.warning("No <%s> found at any viewport", region.selector)
            canonical[region] = None
            continue

        if chosen.viewport_label != primary_label:
            logger.info("%s: %s markup missing, using %s", region.value, primary_label, chosen.viewport_label)
        elif others and any(f.markup != chosen.markup for f in others):
            logger.debug("%s: %s markup differs from other viewports; keeping %s", region.value, primary_label, primary_label)

        canonical[region] = CanonicalFragment(
            region=region,
            markup=chosen.markup or "",
            viewport_label=chosen.viewport_label,
        )
    return canonical
