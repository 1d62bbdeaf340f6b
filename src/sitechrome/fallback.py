# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Placeholder units that keep the consuming app building.

A placeholder renders nothing. It is written:
- at start, for any unit file that does not exist yet, so imports resolve
  even if the run is killed half-way
- on the failure path, for every region, except where a live unit from an
  earlier run already sits on disk
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import PlaceholderUnit, Region
from .config import BuildConfig
from .emitter import render_stylesheet, render_unit, write_manifest, write_text, write_unit

logger = logging.getLogger(__name__)

STARTUP_REASON = "build has not produced this unit yet"


def placeholder_for(region: Region, reason: str, url: str, generated_at: str) -> PlaceholderUnit:
    return PlaceholderUnit(region=region, reason=reason, source_url=url, generated_at=generated_at)


@dataclass
class GapFill:
    """What the failure path left on disk."""

    units: dict[Region, PlaceholderUnit] = field(default_factory=dict)
    written: list[Path] = field(default_factory=list)
    kept_live: list[Region] = field(default_factory=list)


def _write_shared_if_missing(config: BuildConfig, generated_at: str) -> list[Path]:
    written = []
    if not config.manifest_path.exists():
        written.append(write_manifest(config))
    if not config.stylesheet_path.exists():
        stylesheet = render_stylesheet({}, source_url=config.target_url, generated_at=generated_at)
        written.append(write_text(config.stylesheet_path, stylesheet))
    return written


def ensure_placeholders(config: BuildConfig, *, generated_at: str, reason: str = STARTUP_REASON) -> list[Path]:
    """Create placeholder units, manifest and stylesheet where files are missing.

    Raises:
        WriteFailure: an output could not be written.
    """
    written = []
    for region in Region:
        path = config.unit_path(region)
        if path.exists():
            continue
        unit = placeholder_for(region, reason, config.target_url, generated_at)
        written.append(write_text(path, render_unit(unit, config)))
    written += _write_shared_if_missing(config, generated_at)
    if written:
        logger.info("Created %d placeholder output(s) ahead of the build", len(written))
    return written


def fill_gaps(config: BuildConfig, reason: str, *, generated_at: str) -> GapFill:
    """Answer a fatal failure with placeholders, never replacing a live unit.

    Raises:
        WriteFailure: a placeholder could not be written.
    """
    result = GapFill()
    for region in Region:
        unit = placeholder_for(region, reason, config.target_url, generated_at)
        path = write_unit(unit, config)
        if path is None:
            result.kept_live.append(region)
            continue
        result.units[region] = unit
        result.written.append(path)
    result.written += _write_shared_if_missing(config, generated_at)
    logger.warning(
        "Fallback: %d placeholder(s) written, live unit(s) kept for %s",
        len(result.units),
        ", ".join(r.value for r in result.kept_live) or "none",
    )
    return result
