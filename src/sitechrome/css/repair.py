# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Stage 1: parse-repair.

Re-serialize through tinycss2's forgiving parser. Unclosed blocks are closed,
invalid declarations and unparsable selectors are dropped, and what comes out
is syntactically well-formed. Syntax the parser has no grammar for (modern
colour functions, range media queries, @container, @layer) is carried over
as written. Comments survive for the clean stage to drop.
"""

from __future__ import annotations

import logging

from . import at_keyword, format_rule, join_rules, parse_stylesheet, rewrite_rules, total_stage

logger = logging.getLogger(__name__)


def _visit(node) -> str | None:
    # the output is always written as UTF-8
    if at_keyword(node) == "@charset":
        return None
    return format_rule(node)


@total_stage("repair")
def repair(text: str) -> str:
    if not text.strip():
        return ""
    nodes = parse_stylesheet(text, keep_comments=True)
    skipped = sum(1 for node in nodes if node.type == "error")
    if skipped:
        logger.debug("Repair skipped %d unparsable top-level constructs", skipped)
    return join_rules(rewrite_rules(nodes, _visit))
