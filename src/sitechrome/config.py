# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Build configuration, resolved once and passed explicitly through a run.

Values come from environment variables or a ``.env`` file in the working
directory (loaded by :meth:`BuildConfig.from_env`). Nothing here is module
level mutable state: callers hold the frozen ``BuildConfig`` they built.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv

from . import DESKTOP, MOBILE, ExtractionTarget, Region, Viewport
from .errors import ConfigError

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SiteChrome-Builder/1.0)"
DEFAULT_UNITS_DIR = Path("src") / "external"
DEFAULT_STYLESHEET = Path("src") / "styles" / "auto-generated.css"

# Legacy variable used by the consuming Next.js app for its data API host
_LEGACY_BASE_URL_VAR = "NEXT_PUBLIC_HUWISE_API_URL"
_LEGACY_PAGE_SUFFIX = "/?flg=fr"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclasses.dataclass(frozen=True, slots=True)
class Safelist:
    """Selectors the purge stage keeps even without a static markup match.

    Classes added by client-side logic after first render never appear in the
    scraped markup, so they are matched by name instead.
    """

    classes: tuple[str, ...] = (
        "ods-responsive-menu--collapsed",
        "ods-responsive-menu--expanded",
        "ods-responsive-menu-placeholder--active",
        "ods-responsive-menu-collapsible--collapsed",
        "ods-responsive-menu-collapsible--expanded",
    )
    prefixes: tuple[str, ...] = ("ods-responsive-menu", "aos-")
    # matched at the end of a class token
    suffixes: tuple[str, ...] = ("--active", "--collapsed", "--expanded", "--visible", "--hidden")
    # matched anywhere inside a class token
    infixes: tuple[str, ...] = ()
    blocked_tags: tuple[str, ...] = ("main",)


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class BuildConfig:
    """Everything one build run needs."""

    target_url: str
    units_dir: Path = DEFAULT_UNITS_DIR
    stylesheet_path: Path = DEFAULT_STYLESHEET
    viewports: tuple[Viewport, ...] = (DESKTOP, MOBILE)
    user_agent: str = DEFAULT_USER_AGENT
    headless: bool = True
    no_sandbox: bool = False
    navigation_timeout_ms: int = 30000
    settle_delay_ms: int = 3000  # after network idle, for late client-side rendering
    css_settle_delay_ms: int = 2000
    fetch_timeout_s: float = 10.0
    import_depth: int = 2  # @import levels followed inside fetched sheets
    namespaces: Mapping[Region, str] = dataclasses.field(
        default_factory=lambda: {
            Region.HEADER: ".external-header-container",
            Region.FOOTER: ".external-footer-container",
        }
    )
    component_prefix: str = "External"
    listener_delay_ms: int = 100
    safelist: Safelist = dataclasses.field(default_factory=Safelist)
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def target(self) -> ExtractionTarget:
        return ExtractionTarget(url=self.target_url, viewports=self.viewports)

    def namespace_for(self, region: Region) -> str:
        return self.namespaces[region]

    def component_name(self, region: Region) -> str:
        return f"{self.component_prefix}{region.stem}"

    def unit_path(self, region: Region) -> Path:
        return self.units_dir / f"{self.component_name(region)}.tsx"

    @property
    def manifest_path(self) -> Path:
        return self.units_dir / "index.ts"

    def with_overrides(self, **changes: object) -> BuildConfig:
        """Return a copy with the non-None ``changes`` applied."""
        applied = {k: v for k, v in changes.items() if v is not None}
        return dataclasses.replace(self, **applied) if applied else self

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, *, dotenv_path: Path | None = None) -> BuildConfig:
        """Build a config from ``env`` (default: ``os.environ`` after loading ``.env``).

        Raises:
            ConfigError: a numeric variable holds something that is not a number.
        """
        if env is None:
            load_dotenv(dotenv_path, override=False)
            env = os.environ

        def _get(name: str, default: str) -> str:
            value = env.get(name, "").strip()
            return value or default

        def _number(name: str, default: str, kind: type[int] | type[float] = int) -> int | float:
            raw = _get(name, default)
            try:
                return kind(raw)
            except ValueError:
                expected = "an integer" if kind is int else "a number"
                raise ConfigError(f"{name} must be {expected}, got {raw!r}", variable=name) from None

        target = env.get("SITECHROME_TARGET_URL", "").strip()
        if not target:
            base = env.get(_LEGACY_BASE_URL_VAR, "").strip()
            target = f"{base.rstrip('/')}{_LEGACY_PAGE_SUFFIX}" if base else ""

        return cls(
            target_url=target,
            units_dir=Path(_get("SITECHROME_UNITS_DIR", str(DEFAULT_UNITS_DIR))),
            stylesheet_path=Path(_get("SITECHROME_STYLESHEET", str(DEFAULT_STYLESHEET))),
            user_agent=_get("SITECHROME_USER_AGENT", DEFAULT_USER_AGENT),
            no_sandbox=_get("SITECHROME_NO_SANDBOX", "").lower() in _TRUTHY,
            navigation_timeout_ms=_number("SITECHROME_NAV_TIMEOUT_MS", "30000"),
            settle_delay_ms=_number("SITECHROME_SETTLE_MS", "3000"),
            fetch_timeout_s=_number("SITECHROME_FETCH_TIMEOUT", "10", float),
            import_depth=_number("SITECHROME_IMPORT_DEPTH", "2"),
            log_level=_get("SITECHROME_LOG_LEVEL", "INFO"),
            json_logs=_get("SITECHROME_LOG_JSON", "").lower() in _TRUTHY,
        )
