# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Stage 2: conservative clean-up.

Nothing here changes what the CSS means:
- comments, empty rules and empty @media blocks are dropped
- @charset / @import are dropped (the collector already inlined imports)
- exact duplicate declarations within a rule collapse to the last one;
  same-property fallbacks with different values (vendor fallbacks) stay
- colour hashes are shortened

Output stays beautified, one declaration per line, so runs diff cleanly.
"""

from __future__ import annotations

import logging
import re

from tinycss2.ast import Declaration, FunctionBlock, HashToken

from . import (
    at_keyword,
    body_of,
    compact,
    format_rule,
    has_error,
    is_style_rule,
    join_rules,
    parse_stylesheet,
    rewrite_rules,
    selectors_of,
    style_rule_text,
    total_stage,
)

logger = logging.getLogger(__name__)

_DROPPED = frozenset({"@charset", "@import"})
_LONG_HASH_RE = re.compile(r"([0-9a-fA-F])\1([0-9a-fA-F])\2([0-9a-fA-F])\3")


def shorten_hashes(tokens: list) -> list:
    """``#aabbcc`` → ``#abc``, inside function arguments too."""
    out = []
    for token in tokens:
        if token.type == "hash" and _LONG_HASH_RE.fullmatch(token.value):
            token = HashToken(token.source_line, token.source_column, token.value[::2], False)
        elif token.type == "function":
            token = FunctionBlock(token.source_line, token.source_column, token.name, shorten_hashes(token.arguments))
        out.append(token)
    return out


def dedupe_declarations(items: list) -> list:
    """Drop exact (name, value, priority) repeats, keeping the last."""
    seen: set[tuple[str, str, bool]] = set()
    unique = []
    for item in reversed(items):
        if item.type == "declaration":
            key = (item.lower_name, compact(item.value), item.important)
            if key in seen:
                continue
            seen.add(key)
        unique.append(item)
    unique.reverse()
    return unique


def _minified(item):
    if item.type != "declaration":
        return item
    return Declaration(
        item.source_line,
        item.source_column,
        item.name,
        item.lower_name,
        shorten_hashes(item.value),
        item.important,
    )


def _visit(node) -> str | None:
    if at_keyword(node) in _DROPPED:
        return None
    if not is_style_rule(node) or has_error(node.prelude):
        return format_rule(node)
    items = body_of(node)
    unique = dedupe_declarations(items)
    if len(unique) < len(items):
        logger.debug("Dropped %d duplicate declarations", len(items) - len(unique))
    return style_rule_text(selectors_of(node), [_minified(item) for item in unique])


@total_stage("clean")
def clean(text: str) -> str:
    if not text.strip():
        return ""
    return join_rules(rewrite_rules(parse_stylesheet(text), _visit))
