# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""One build run, end to end.

Flow:
  placeholders for missing outputs
  → browser session
    → extract every viewport → reconcile → icon normalization
    → collect stylesheets (primary viewport)
  → CSS pipeline per live region, scoped to its namespace
  → emit units, manifest, stylesheet

A launch or navigation failure (or anything unexpected) turns the run into a
fallback: placeholders fill every region that has no live unit on disk. Only
a write failure escapes, since then not even the fallback can be trusted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime

from . import BuildReport, BuildStatus, CanonicalFragment, EmittedUnit, LiveUnit, Region
from .browser_session import BrowserConfig, PageRenderer, open_session
from .config import BuildConfig
from .css.collector import StylesheetCollection, collect_stylesheets
from .css.pipeline import run_pipeline
from .emitter import emit
from .errors import ExtractionMiss, LaunchFailure, NavigationFailure, SiteChromeError, WriteFailure
from .extractor import extract_all, reconcile
from .fallback import ensure_placeholders, fill_gaps, placeholder_for
from .icons import normalize_fragment
from .logging_config import run_context

logger = logging.getLogger(__name__)

SessionFactory = Callable[[BrowserConfig], AbstractAsyncContextManager[PageRenderer]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def _capture(
    renderer: PageRenderer, config: BuildConfig
) -> tuple[dict[Region, CanonicalFragment], StylesheetCollection]:
    target = config.target
    raw = await extract_all(renderer, target.url, target.viewports)
    canonical = reconcile(raw, target.primary.label)
    fragments = {region: normalize_fragment(f) for region, f in canonical.items() if f is not None}
    if not fragments:
        return fragments, StylesheetCollection()
    collection = await collect_stylesheets(
        renderer,
        target.url,
        target.primary,
        user_agent=config.user_agent,
        timeout=config.fetch_timeout_s,
        import_depth=config.import_depth,
        settle_delay_ms=config.css_settle_delay_ms,
    )
    return fragments, collection


def _fallback(config: BuildConfig, reason: str, generated_at: str) -> BuildReport:
    gaps = fill_gaps(config, reason, generated_at=generated_at)
    return BuildReport(
        status=BuildStatus.FALLBACK,
        units=dict(gaps.units),
        written=[str(p) for p in gaps.written],
        error=reason,
        kept_live=list(gaps.kept_live),
    )


async def run_build(
    config: BuildConfig,
    *,
    session_factory: SessionFactory = open_session,
    now: Callable[[], datetime] | None = None,
) -> BuildReport:
    """Run one build and report what was emitted.

    Raises:
        WriteFailure: an output file could not be written.
    """
    generated_at = (now or _utcnow)().isoformat(timespec="seconds")
    with run_context(config.target_url):
        return await _run(config, session_factory, generated_at)


async def _run(config: BuildConfig, session_factory: SessionFactory, generated_at: str) -> BuildReport:
    ensure_placeholders(config, generated_at=generated_at)

    if not config.target_url:
        logger.error("No target URL configured (set SITECHROME_TARGET_URL or pass --url)")
        return _fallback(config, "no target URL configured", generated_at)

    try:
        async with session_factory(BrowserConfig.from_build(config)) as renderer:
            fragments, collection = await _capture(renderer, config)

        units: dict[Region, EmittedUnit] = {}
        css: dict[Region, str] = {}
        document = collection.document
        for region in Region:
            fragment = fragments.get(region)
            if fragment is None:
                miss = ExtractionMiss(f"no <{region.selector}> found at any viewport", region=region.value)
                logger.warning("%s; emitting placeholder", miss)
                units[region] = placeholder_for(region, str(miss), config.target_url, generated_at)
                continue
            units[region] = LiveUnit(
                region=region,
                markup=fragment.markup,
                source_url=config.target_url,
                generated_at=generated_at,
                icons=fragment.icons,
            )
            css[region] = run_pipeline(
                document, fragment.markup, config.namespace_for(region), config.safelist
            ).text

        emission = emit(units, css, config, generated_at=generated_at)
    except WriteFailure:
        raise
    except (LaunchFailure, NavigationFailure) as exc:
        logger.error("Build failed: %s", exc)
        return _fallback(config, str(exc), generated_at)
    except SiteChromeError as exc:
        logger.error("Build failed: %s", exc, exc_info=True)
        return _fallback(config, str(exc), generated_at)
    except Exception as exc:
        logger.exception("Unexpected build failure")
        return _fallback(config, f"unexpected error: {exc}", generated_at)

    for region in emission.kept_live:
        del units[region]
    report = BuildReport(
        status=BuildStatus.LIVE,
        units=units,
        written=[str(p) for p in emission.written],
        stylesheets_collected=len(collection.fetched),
        stylesheets_failed=len(collection.failed),
        css_bytes={region: len(text.encode("utf-8")) for region, text in css.items()},
        kept_live=emission.kept_live,
    )
    if report.placeholders or report.kept_live:
        report.status = BuildStatus.DEGRADED
    states = {r: "placeholder" if u.is_placeholder else "live" for r, u in units.items()}
    states.update(dict.fromkeys(report.kept_live, "kept-live"))
    logger.info("Build %s: %s", report.status.value, ", ".join(f"{r.value}={s}" for r, s in states.items()))
    return report
