# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for startup placeholders and the failure-path gap fill."""

from __future__ import annotations

from sitechrome import LiveUnit, Region
from sitechrome.emitter import unit_status, write_unit
from sitechrome.fallback import STARTUP_REASON, ensure_placeholders, fill_gaps, placeholder_for

WHEN = "2026-01-02T03:04:05+00:00"


class TestPlaceholderFor:
    def test_fields(self):
        unit = placeholder_for(Region.FOOTER, "timeout", "https://example.org/", WHEN)
        assert unit.region is Region.FOOTER
        assert unit.reason == "timeout"
        assert unit.is_placeholder


class TestEnsurePlaceholders:
    def test_fresh_checkout_gets_every_output(self, build_config):
        written = ensure_placeholders(build_config, generated_at=WHEN)
        assert set(written) == {
            build_config.unit_path(Region.HEADER),
            build_config.unit_path(Region.FOOTER),
            build_config.manifest_path,
            build_config.stylesheet_path,
        }
        header = build_config.unit_path(Region.HEADER).read_text()
        assert "return null;" in header
        assert f" * Reason: {STARTUP_REASON}" in header
        assert "ExternalHeader" in build_config.manifest_path.read_text()
        assert "HEADER AUTO-GENERATED STYLES" in build_config.stylesheet_path.read_text()

    def test_existing_files_left_alone(self, build_config):
        live = LiveUnit(
            region=Region.HEADER,
            markup="<header>kept</header>",
            source_url=build_config.target_url,
            generated_at=WHEN,
        )
        header_path = write_unit(live, build_config)
        before = header_path.read_text()

        written = ensure_placeholders(build_config, generated_at=WHEN)
        assert header_path not in written
        assert header_path.read_text() == before
        assert build_config.unit_path(Region.FOOTER) in written

    def test_second_call_writes_nothing(self, build_config):
        ensure_placeholders(build_config, generated_at=WHEN)
        assert ensure_placeholders(build_config, generated_at=WHEN) == []


class TestFillGaps:
    def test_every_region_placeholdered(self, build_config):
        gaps = fill_gaps(build_config, "browser did not start", generated_at=WHEN)
        assert set(gaps.units) == {Region.HEADER, Region.FOOTER}
        assert gaps.kept_live == []
        for region in Region:
            path = build_config.unit_path(region)
            assert path in gaps.written
            assert unit_status(path) == "placeholder"
            assert " * Reason: browser did not start" in path.read_text()

    def test_live_units_kept(self, build_config):
        live = LiveUnit(
            region=Region.FOOTER,
            markup="<footer>previous run</footer>",
            source_url=build_config.target_url,
            generated_at=WHEN,
        )
        footer_path = write_unit(live, build_config)

        gaps = fill_gaps(build_config, "navigation timed out", generated_at=WHEN)
        assert gaps.kept_live == [Region.FOOTER]
        assert footer_path not in gaps.written
        assert "<footer>previous run</footer>" in footer_path.read_text()
        assert set(gaps.units) == {Region.HEADER}
        assert unit_status(build_config.unit_path(Region.HEADER)) == "placeholder"

    def test_placeholder_replaced_by_newer_placeholder(self, build_config):
        fill_gaps(build_config, "first", generated_at=WHEN)
        fill_gaps(build_config, "second", generated_at=WHEN)
        assert " * Reason: second" in build_config.unit_path(Region.HEADER).read_text()

    def test_shared_outputs_created_when_missing(self, build_config):
        gaps = fill_gaps(build_config, "boom", generated_at=WHEN)
        assert build_config.manifest_path in gaps.written
        assert build_config.stylesheet_path in gaps.written
