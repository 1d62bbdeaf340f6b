# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Run one region's CSS through repair → clean → purge → prefix.

Every stage is total: a failing stage is recorded in
``CSSDocument.passthrough`` and the previous stage's output flows on, so the
pipeline always yields a document.
"""

from __future__ import annotations

import logging

from .. import CSSDocument
from ..config import Safelist
from .clean import clean
from .prefix import prefix
from .purge import discard_font_faces, purge
from .repair import repair

logger = logging.getLogger(__name__)


def run_pipeline(
    document: CSSDocument,
    markup: str | None,
    namespace: str,
    safelist: Safelist | None = None,
) -> CSSDocument:
    """Transform the collected CSS for the region whose markup is ``markup``."""
    before = len(document)
    result = repair(document)
    result = clean(result)
    result = purge(result, markup, safelist)
    result = discard_font_faces(result)
    result = prefix(result, namespace)

    after = len(result)
    reduction = 100 * (before - after) / before if before else 0.0
    logger.info(
        "CSS for %s: %d → %d chars (%.1f%% smaller)%s",
        namespace,
        before,
        after,
        reduction,
        f", passed through: {', '.join(result.passthrough)}" if result.passthrough else "",
    )
    return result
