# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Site Chrome: lift a live site's header/footer into embeddable components.

Visits a JavaScript-rendered page, extracts the header and footer under
several viewports, and emits:
- one self-contained component per region (live markup or an inert placeholder)
- a single stylesheet holding each region's purged, namespaced CSS
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class Region(StrEnum):
    """Page region lifted into its own component."""

    HEADER = "header"
    FOOTER = "footer"

    @property
    def selector(self) -> str:
        """DOM query used to find the region (first match wins)."""
        return self.value

    @property
    def stem(self) -> str:
        """Component stem: Header, Footer."""
        return self.value.capitalize()


class MountBehavior(StrEnum):
    RESPONSIVE_MENU = "responsive-menu"
    NONE = "none"


class SourceOrigin(StrEnum):
    LINK = "link"
    IMPORT = "import"
    INLINE = "inline"


@dataclass(frozen=True, slots=True)
class Viewport:
    label: str  # desktop, mobile, ...
    width: int
    height: int

    def as_playwright(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


DESKTOP = Viewport("desktop", 1920, 1080)
MOBILE = Viewport("mobile", 375, 667)


@dataclass(frozen=True, slots=True)
class ExtractionTarget:
    """Page to lift and the viewports to capture it under (first = primary)."""

    url: str
    viewports: tuple[Viewport, ...] = (DESKTOP, MOBILE)

    def __post_init__(self) -> None:
        if not self.viewports:
            raise ValueError("ExtractionTarget needs at least one viewport")

    @property
    def primary(self) -> Viewport:
        return self.viewports[0]


@dataclass(frozen=True, slots=True)
class RawFragment:
    """One region captured at one viewport. ``markup`` is None when absent."""

    region: Region
    viewport_label: str
    markup: str | None = None

    @property
    def present(self) -> bool:
        return bool(self.markup and self.markup.strip())


@dataclass(frozen=True, slots=True)
class CanonicalFragment:
    """The authoritative markup for a region after reconciliation."""

    region: Region
    markup: str
    viewport_label: str
    icons: tuple[str, ...] = ()  # icon ids substituted by the normalizer


@dataclass(frozen=True, slots=True)
class StylesheetSource:
    """A stylesheet discovered on the page; exactly one of content/error is set."""

    origin: SourceOrigin
    url: str
    content: str | None = None
    error: str | None = None
    depth: int = 0  # @import nesting level (0 = referenced by the page)

    @property
    def ok(self) -> bool:
        return self.content is not None and self.error is None

    @property
    def banner(self) -> str:
        if self.origin is SourceOrigin.IMPORT:
            return f"/* CSS from @import {self.url} */"
        return f"/* CSS from {self.url} */"


@dataclass(frozen=True, slots=True)
class CSSDocument:
    """CSS text flowing through the transform stages (never mutated)."""

    text: str
    history: tuple[str, ...] = ()  # stages applied, in order
    passthrough: tuple[str, ...] = ()  # stages that failed and passed input through

    def evolve(self, text: str, stage: str) -> CSSDocument:
        return CSSDocument(text=text, history=(*self.history, stage), passthrough=self.passthrough)

    def passed_through(self, stage: str) -> CSSDocument:
        return CSSDocument(
            text=self.text,
            history=(*self.history, stage),
            passthrough=(*self.passthrough, stage),
        )

    def __len__(self) -> int:
        return len(self.text)


@dataclass(frozen=True, slots=True)
class LiveUnit:
    """A region emitted with real, extracted markup."""

    region: Region
    markup: str
    source_url: str
    generated_at: str
    icons: tuple[str, ...] = ()

    @property
    def mount_behavior(self) -> MountBehavior:
        if self.region is Region.HEADER:
            return MountBehavior.RESPONSIVE_MENU
        return MountBehavior.NONE

    @property
    def is_placeholder(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class PlaceholderUnit:
    """An inert stand-in that renders nothing (no partial content)."""

    region: Region
    reason: str
    source_url: str
    generated_at: str

    @property
    def mount_behavior(self) -> MountBehavior:
        return MountBehavior.NONE

    @property
    def is_placeholder(self) -> bool:
        return True


EmittedUnit = LiveUnit | PlaceholderUnit


class BuildStatus(StrEnum):
    LIVE = "live"  # every region emitted with real markup
    DEGRADED = "degraded"  # run completed, some regions not captured this time
    FALLBACK = "fallback"  # fatal failure, placeholders filled the gaps


@dataclass
class BuildReport:
    """Outcome of one build run."""

    status: BuildStatus
    # units written this run; a region in kept_live has none
    units: dict[Region, EmittedUnit] = field(default_factory=dict)
    written: list[str] = field(default_factory=list)
    stylesheets_collected: int = 0
    stylesheets_failed: int = 0
    css_bytes: dict[Region, int] = field(default_factory=dict)
    error: str = ""
    # regions missing this run whose live unit from an earlier run stayed on disk
    kept_live: list[Region] = field(default_factory=list)

    def exit_code(self, *, allow_fallback: bool = False) -> int:
        if self.status is BuildStatus.FALLBACK and not allow_fallback:
            return 1
        return 0

    @property
    def placeholders(self) -> list[Region]:
        return [region for region, unit in self.units.items() if unit.is_placeholder]
