# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Site Chrome exception hierarchy.

All errors inherit from SiteChromeError. ConfigError stops a run before it
starts. LaunchFailure, NavigationFailure and WriteFailure are fatal to a run; the others are caught where they originate
and downgraded to a degraded-but-complete result.
"""

from __future__ import annotations


class SiteChromeError(Exception):
    """Base exception for all Site Chrome errors."""


class ConfigError(SiteChromeError):
    """A configuration value could not be parsed."""

    def __init__(self, message: str, *, variable: str = "") -> None:
        super().__init__(message)
        self.variable = variable


class LaunchFailure(SiteChromeError):
    """The Chromium process could not be started."""


class NavigationFailure(SiteChromeError):
    """Page load or stabilization failed or timed out."""

    def __init__(self, message: str, *, url: str = "", viewport: str = "") -> None:
        super().__init__(message)
        self.url = url
        self.viewport = viewport


class ExtractionMiss(SiteChromeError):
    """Page loaded but a region was not found at any viewport."""

    def __init__(self, message: str, *, region: str = "") -> None:
        super().__init__(message)
        self.region = region


class FetchFailure(SiteChromeError):
    """A single stylesheet could not be fetched."""

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class TransformFailure(SiteChromeError):
    """A CSS transform stage failed internally."""

    def __init__(self, message: str, *, stage: str = "") -> None:
        super().__init__(message)
        self.stage = stage


class WriteFailure(SiteChromeError):
    """An output file could not be persisted."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path
