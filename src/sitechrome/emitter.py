# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Render and write the build outputs.

Outputs (under the configured paths, overwritten on each run):
- ``ExternalHeader.tsx`` / ``ExternalFooter.tsx``: live or placeholder unit
- ``index.ts``: barrel manifest re-exporting both units
- the stylesheet: one banner-delimited section per region

Every unit starts with a provenance block whose ``Status:`` line records
whether it holds live markup. A placeholder is never written over a unit
whose provenance says ``live``.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Environment, PackageLoader, StrictUndefined

from . import EmittedUnit, LiveUnit, PlaceholderUnit, Region
from .config import BuildConfig
from .errors import WriteFailure

logger = logging.getLogger(__name__)

STATUS_LIVE = "live"
STATUS_PLACEHOLDER = "placeholder"

_STATUS_RE = re.compile(r"^\s*\*\s*Status:\s*([\w-]+)", re.MULTILINE)
# one banner-delimited region section of an emitted stylesheet
_SECTION_RE = re.compile(
    r"^\s*(?P<title>[A-Z]+) AUTO-GENERATED STYLES\n\s*=+ \*/\n(?P<css>.*?)(?=^/\* =+$|\Z)",
    re.MULTILINE | re.DOTALL,
)


@functools.lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("sitechrome", "templates"),
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def escape_template_literal(markup: str) -> str:
    """Escape markup for embedding inside a JS template literal.

    Backslashes go first so the escapes added for backticks and ``$`` are not
    doubled.
    """
    return markup.replace("\\", "\\\\").replace("`", "\\`").replace("$", "\\$")


def render_unit(unit: EmittedUnit, config: BuildConfig) -> str:
    context = {
        "component": config.component_name(unit.region),
        "container_class": config.namespace_for(unit.region).lstrip("."),
        "source_url": unit.source_url,
        "generated_at": unit.generated_at,
        "icons": (),
        "reason": "",
    }
    if isinstance(unit, PlaceholderUnit):
        template = "placeholder.tsx.j2"
        context.update(status=STATUS_PLACEHOLDER, reason=unit.reason)
    else:
        template = "header.tsx.j2" if unit.region is Region.HEADER else "footer.tsx.j2"
        context.update(
            status=STATUS_LIVE,
            icons=unit.icons,
            markup=escape_template_literal(unit.markup),
            listener_delay_ms=config.listener_delay_ms,
        )
    return _environment().get_template(template).render(**context)


def render_manifest(config: BuildConfig) -> str:
    components = [config.component_name(region) for region in Region]
    return _environment().get_template("index.ts.j2").render(components=components)


def render_stylesheet(css: Mapping[Region, str], *, source_url: str, generated_at: str) -> str:
    sections = [{"title": region.value.upper(), "css": css.get(region, "")} for region in Region]
    return _environment().get_template("stylesheet.css.j2").render(
        sections=sections,
        source_url=source_url,
        generated_at=generated_at,
    )


def write_text(path: Path, content: str) -> Path:
    """Write ``content`` as UTF-8, creating parent directories.

    Raises:
        WriteFailure: the file could not be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise WriteFailure(f"Could not write {path}: {e}", path=str(path)) from e
    logger.info("Wrote %s (%d chars)", path, len(content))
    return path


def unit_status(path: Path) -> str | None:
    """Provenance status of an existing unit file (None if missing or unmarked)."""
    try:
        head = path.read_text(encoding="utf-8")[:2048]
    except (FileNotFoundError, IsADirectoryError):
        return None
    except OSError:
        logger.debug("Could not read %s", path, exc_info=True)
        return None
    match = _STATUS_RE.search(head)
    return match.group(1) if match else None


def read_stylesheet_section(path: Path, region: Region) -> str:
    """CSS of ``region`` in an already emitted stylesheet, "" if there is none."""
    try:
        text = path.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError):
        return ""
    except OSError:
        logger.debug("Could not read %s", path, exc_info=True)
        return ""
    for match in _SECTION_RE.finditer(text):
        if match.group("title") == region.value.upper():
            css = match.group("css").strip()
            return f"{css}\n" if css else ""
    return ""


def write_unit(unit: EmittedUnit, config: BuildConfig) -> Path | None:
    """Write one unit. Returns None when a placeholder would replace a live unit."""
    path = config.unit_path(unit.region)
    if isinstance(unit, PlaceholderUnit) and unit_status(path) == STATUS_LIVE:
        logger.warning("Keeping existing live %s at %s (placeholder not written)", unit.region.value, path)
        return None
    return write_text(path, render_unit(unit, config))


def write_manifest(config: BuildConfig) -> Path:
    return write_text(config.manifest_path, render_manifest(config))


def write_stylesheet(config: BuildConfig, css: Mapping[Region, str], *, generated_at: str) -> Path:
    return write_text(
        config.stylesheet_path,
        render_stylesheet(css, source_url=config.target_url, generated_at=generated_at),
    )


@dataclass
class Emission:
    """What one emit pass left on disk."""

    written: list[Path] = field(default_factory=list)
    # regions whose live unit from an earlier run was kept over a placeholder
    kept_live: list[Region] = field(default_factory=list)


def emit(
    units: Mapping[Region, EmittedUnit],
    css: Mapping[Region, str],
    config: BuildConfig,
    *,
    generated_at: str,
) -> Emission:
    """Write every unit, the manifest and the stylesheet.

    A region that keeps its earlier live unit also keeps its earlier
    stylesheet section, read back before the stylesheet is rewritten.
    """
    result = Emission()
    sections = dict(css)
    for region, unit in units.items():
        path = write_unit(unit, config)
        if path is not None:
            result.written.append(path)
            continue
        result.kept_live.append(region)
        if not sections.get(region):
            sections[region] = read_stylesheet_section(config.stylesheet_path, region)
    result.written.append(write_manifest(config))
    result.written.append(write_stylesheet(config, sections, generated_at=generated_at))
    live = sum(isinstance(unit, LiveUnit) for unit in units.values())
    logger.info(
        "Emitted %d live and %d placeholder unit(s), kept %d earlier live unit(s)",
        live,
        len(units) - live - len(result.kept_live),
        len(result.kept_live),
    )
    return result
