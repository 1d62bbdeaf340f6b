# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CSS collection and the four-stage transform pipeline.

Shared tinycss2 plumbing lives here: a parser that follows CSS Syntax 3
(modern colour, selector and at-rule syntax round-trips untouched), a
beautifying serializer, the rule walker every stage uses, and the
``total_stage`` guard that turns a stage failure into a pass-through.
"""

from __future__ import annotations

import functools
import logging
import textwrap
from collections.abc import Callable, Iterable
from typing import Any

import tinycss2
from tinycss2.ast import WhitespaceToken

from .. import CSSDocument
from ..errors import TransformFailure

logger = logging.getLogger(__name__)

INDENT = "    "

# At-rules whose block holds ordinary style rules
GROUPING_AT_RULES = frozenset(
    {
        "@media",
        "@supports",
        "@layer",
        "@container",
        "@document",
        "@-moz-document",
        "@scope",
        "@starting-style",
    }
)


def parse_stylesheet(text: str, *, keep_comments: bool = False) -> list:
    """Parse leniently: malformed input is healed or reported, never rejected.

    Unclosed blocks are closed at end of input. Unparsable constructs come
    back as ``error`` nodes, which the walker skips.
    """
    return tinycss2.parse_stylesheet(text, skip_comments=not keep_comments, skip_whitespace=True)


def compact(tokens: Iterable) -> str:
    """Serialize component values with every whitespace run collapsed to one space."""
    return tinycss2.serialize(
        WhitespaceToken(token.source_line, token.source_column, " ") if token.type == "whitespace" else token
        for token in tokens
    ).strip()


def has_error(tokens: Iterable) -> bool:
    return any(token.type == "error" for token in tokens)


def at_keyword(node) -> str | None:
    """``@media``-style keyword of an at-rule (lower case), None for anything else."""
    if node.type != "at-rule":
        return None
    return f"@{node.lower_at_keyword}"


def is_style_rule(node) -> bool:
    return node.type == "qualified-rule"


def is_grouping_rule(node) -> bool:
    return at_keyword(node) in GROUPING_AT_RULES and node.content is not None


def wrap_block(prelude: str, inner: list[str]) -> str:
    """``prelude { inner }`` or "" when nothing is left inside."""
    if not inner:
        return ""
    body = textwrap.indent("\n".join(inner), INDENT)
    return f"{prelude} {{\n{body}\n}}"


def selectors_of(rule) -> list[str]:
    """Split a style rule's prelude on its top-level commas.

    Commas inside ``:is()``, ``:not()`` and attribute brackets belong to
    their block and do not split.
    """
    selectors: list[str] = []
    current: list = []
    for token in rule.prelude:
        if token.type == "literal" and token.value == ",":
            selectors.append(compact(current))
            current = []
        else:
            current.append(token)
    selectors.append(compact(current))
    return [selector for selector in selectors if selector]


def body_of(rule) -> list:
    """Declarations, nested rules and comments inside a block, errors dropped.

    Used for every block, so declarations nested directly in @media and
    style rules nested in style rules both come back intact.
    """
    items = tinycss2.parse_blocks_contents(rule.content, skip_whitespace=True)
    return [
        item
        for item in items
        if item.type != "error" and not (item.type == "declaration" and has_error(item.value))
    ]


def declaration_text(declaration) -> str:
    value = compact(declaration.value)
    important = " !important" if declaration.important else ""
    return f"{tinycss2.serialize_identifier(declaration.name)}: {value}{important};"


def at_rule_prelude(rule) -> str:
    prelude = compact(rule.prelude)
    return f"@{rule.at_keyword} {prelude}" if prelude else f"@{rule.at_keyword}"


def style_rule_text(selectors: Iterable[str], items: list) -> str:
    """Serialize a style rule with replacement selectors ("" if nothing is left)."""
    selector_text = ", ".join(selectors)
    if not selector_text:
        return ""
    return wrap_block(selector_text, [text for text in map(format_rule, items) if text])


def format_rule(node) -> str:
    """Beautified text of any rule, declaration, comment or statement.

    Empty blocks and errors come back as "".
    """
    if node.type == "declaration":
        return declaration_text(node)
    if node.type == "comment":
        return f"/*{node.value}*/"
    if node.type == "qualified-rule":
        if has_error(node.prelude):
            return ""
        return style_rule_text([compact(node.prelude)], body_of(node))
    if node.type != "at-rule":
        return ""
    if node.content is None:
        return f"{at_rule_prelude(node)};"
    return wrap_block(at_rule_prelude(node), [text for text in map(format_rule, body_of(node)) if text])


def rewrite_rules(rules: Iterable, visit: Callable[[Any], str | None]) -> list[str]:
    """Walk ``rules``, descending into @media and the other grouping at-rules.

    ``visit`` serializes every other rule (None or "" drops it). Error nodes
    are skipped and containers left empty are dropped.
    """
    out: list[str] = []
    for rule in rules:
        if rule.type in ("error", "whitespace"):
            continue
        if is_grouping_rule(rule):
            text = wrap_block(at_rule_prelude(rule), rewrite_rules(body_of(rule), visit))
        else:
            text = visit(rule)
        if text:
            out.append(text)
    return out


def join_rules(rules: Iterable[str]) -> str:
    text = "\n".join(rule for rule in rules if rule and rule.strip())
    return f"{text}\n" if text else ""


def total_stage(name: str) -> Callable:
    """Make a ``text -> text`` stage a total ``CSSDocument -> CSSDocument`` one.

    Any exception inside the stage is logged as a TransformFailure and the
    input document is passed through unchanged.
    """

    def decorator(fn: Callable[..., str]) -> Callable[..., CSSDocument]:
        @functools.wraps(fn)
        def stage(document: CSSDocument, *args: Any, **kwargs: Any) -> CSSDocument:
            try:
                text = fn(document.text, *args, **kwargs)
            except Exception as exc:
                failure = TransformFailure(f"{name} stage failed: {exc}", stage=name)
                logger.warning("%s; passing input through", failure, exc_info=True)
                return document.passed_through(name)
            logger.debug("CSS %s: %d → %d chars", name, len(document.text), len(text))
            return document.evolve(text, name)

        stage.stage_name = name  # type: ignore[attr-defined]
        return stage

    return decorator
