# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Replace legacy icon-font markers with inline SVG.

Best-effort allowlist: only the markers below are rewritten, everything else
(including unknown ``fa-*`` icons) is left byte-for-byte untouched so the
emitted fragment never depends on the icon font being loaded.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass

from . import CanonicalFragment

logger = logging.getLogger(__name__)

_BARS_SVG = (
    '<svg aria-hidden="true" focusable="false" data-prefix="fas" data-icon="bars" '
    'class="svg-inline--fa fa-bars fa-w-14" role="img" xmlns="http://www.w3.org/2000/svg" '
    'viewBox="0 0 448 512" style="width: 20px; height: 20px; color: white;">'
    '<path fill="currentColor" d="M16 132h416c8.837 0 16-7.163 16-16V76c0-8.837-7.163-16-16-16H16C7.163 '
    "60 0 67.163 0 76v40c0 8.837 7.163 16 16 16zm0 160h416c8.837 0 16-7.163 16-16v-40c0-8.837-7.163-16-16-16H16"
    "c-8.837 0-16 7.163-16 16v40c0 8.837 7.163 16 16 16zm0 160h416c8.837 0 16-7.163 16-16v-40c0-8.837-7.163-16"
    '-16-16H16c-8.837 0-16 7.163-16 16v40c0 8.837 7.163 16 16 16z"></path></svg>'
)

_TIMES_SVG = (
    '<svg aria-hidden="true" focusable="false" data-prefix="fas" data-icon="times" '
    'class="svg-inline--fa fa-times fa-w-11" role="img" xmlns="http://www.w3.org/2000/svg" '
    'viewBox="0 0 352 512" style="width: 20px; height: 20px; color: white;">'
    '<path fill="currentColor" d="M242.72 256l100.07-100.07c12.28-12.28 12.28-32.19 0-44.48l-22.24-22.24'
    "c-12.28-12.28-32.19-12.28-44.48 0L176 189.28 75.93 89.21c-12.28-12.28-32.19-12.28-44.48 0L9.21 111.45"
    "c-12.28 12.28-12.28 32.19 0 44.48L109.28 256 9.21 356.07c-12.28 12.28-12.28 32.19 0 44.48l22.24 22.24"
    "c12.28 12.28 32.19 12.28 44.48 0L176 322.72l100.07 100.07c12.28 12.28 32.19 12.28 44.48 0l22.24-22.24"
    'c12.28-12.28 12.28-32.19 0-44.48L242.72 256z"></path></svg>'
)


@dataclass(frozen=True, slots=True)
class IconSpec:
    """One allowlisted icon: any of ``markers`` (class-token sets) maps to ``svg``."""

    name: str
    markers: tuple[frozenset[str], ...]
    svg: str

    def matches(self, tokens: set[str]) -> bool:
        return any(marker <= tokens for marker in self.markers)


ICONS: tuple[IconSpec, ...] = (
    IconSpec("FaBars", (frozenset({"fa", "fa-bars"}),), _BARS_SVG),
    IconSpec("FaTimes", (frozenset({"fa", "fa-times"}), frozenset({"fa", "fa-close"})), _TIMES_SVG),
)

# Empty <i> elements only: icon fonts render through ::before, never content
_ICON_ELEMENT_RE = re.compile(r"<i\b([^>]*)>\s*</i\s*>", re.IGNORECASE)
_CLASS_ATTR_RE = re.compile(r"""\bclass\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class IconResult:
    markup: str
    substituted: tuple[str, ...]


def _class_tokens(attrs: str) -> set[str]:
    match = _CLASS_ATTR_RE.search(attrs)
    if not match:
        return set()
    return set((match.group(1) or match.group(2) or "").split())


def normalize_icons(markup: str | None, icons: tuple[IconSpec, ...] = ICONS) -> IconResult:
    """Substitute allowlisted icon markers in ``markup`` with inline SVG."""
    if not markup:
        return IconResult(markup=markup or "", substituted=())

    used: set[str] = set()

    def _replace(match: re.Match[str]) -> str:
        tokens = _class_tokens(match.group(1))
        for spec in icons:
            if spec.matches(tokens):
                used.add(spec.name)
                return spec.svg
        return match.group(0)

    processed = _ICON_ELEMENT_RE.sub(_replace, markup)
    substituted = tuple(spec.name for spec in icons if spec.name in used)
    return IconResult(markup=processed, substituted=substituted)


def normalize_fragment(fragment: CanonicalFragment) -> CanonicalFragment:
    """Return a new fragment with icons substituted (the input is left as is)."""
    result = normalize_icons(fragment.markup)
    logger.info(
        "%s icons substituted: %s",
        fragment.region.value,
        ", ".join(result.substituted) or "none",
    )
    return dataclasses.replace(
        fragment,
        markup=result.markup,
        icons=(*fragment.icons, *result.substituted),
    )
