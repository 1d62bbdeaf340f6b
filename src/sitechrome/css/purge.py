# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Stage 3: purge selectors that the region's markup never uses.

Selectors are decided individually, so ``.a, .b`` keeps ``.a`` alone when
only ``.a`` is in the markup. Decision order per selector:
1. a blocked tag (``main``) anywhere in the selector drops it
2. a rule that declares or reads custom properties is kept whole
3. a safelisted class keeps it (state classes added at runtime)
4. otherwise every tag, class, id and attribute it names must occur
   in the markup

@font-face, @keyframes and other non-style at-rules are kept by this step;
font faces are dropped wholesale afterwards by :func:`discard_font_faces`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import lxml.html
import tinycss2

from ..config import Safelist
from . import (
    at_keyword,
    body_of,
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

_ATTRIBUTE_RE = re.compile(r"\[\s*(?:[\w-]*\|)?([\w-]+)[^\]]*\]")
_PSEUDO_RE = re.compile(r"(?<!\\)::?[\w-]+(?:\((?:[^()]|\([^()]*\))*\))?")
_CLASS_RE = re.compile(r"\.((?:[\w-]|\\.)+)")
_ID_RE = re.compile(r"#((?:[\w-]|\\.)+)")
_TAG_RE = re.compile(r"(?:^|[\s>+~])([a-zA-Z][\w-]*)")
_ESCAPE_RE = re.compile(r"\\(.)")


@dataclass(frozen=True, slots=True)
class MarkupInventory:
    """Every tag, class, id and attribute name used in a fragment."""

    tags: frozenset[str] = frozenset()
    classes: frozenset[str] = frozenset()
    ids: frozenset[str] = frozenset()
    attributes: frozenset[str] = frozenset()

    @classmethod
    def from_markup(cls, markup: str | None) -> MarkupInventory:
        if not markup or not markup.strip():
            return cls()
        tags: set[str] = set()
        classes: set[str] = set()
        ids: set[str] = set()
        attributes: set[str] = set()
        for node in lxml.html.fragments_fromstring(markup):
            if isinstance(node, str):
                continue
            for element in node.iter():
                # comments and processing instructions carry a callable tag
                if not isinstance(element.tag, str):
                    continue
                tags.add(element.tag.lower())
                classes.update(element.get("class", "").split())
                if element.get("id"):
                    ids.add(element.get("id"))
                attributes.update(name.lower() for name in element.attrib)
        return cls(frozenset(tags), frozenset(classes), frozenset(ids), frozenset(attributes))


@dataclass(frozen=True, slots=True)
class SelectorTokens:
    tags: tuple[str, ...] = ()
    classes: tuple[str, ...] = ()
    ids: tuple[str, ...] = ()
    attributes: tuple[str, ...] = ()

    @property
    def empty(self) -> bool:
        return not (self.tags or self.classes or self.ids or self.attributes)


def _unescape(token: str) -> str:
    return _ESCAPE_RE.sub(r"\1", token)


def selector_tokens(selector: str) -> SelectorTokens:
    """Split one selector into the names it requires from the markup.

    Pseudo-classes and pseudo-elements (including their arguments) are
    ignored: they describe state, not structure.
    """
    attributes = tuple(name.lower() for name in _ATTRIBUTE_RE.findall(selector))
    rest = _ATTRIBUTE_RE.sub(" ", selector)
    rest = _PSEUDO_RE.sub("", rest)
    classes = tuple(_unescape(name) for name in _CLASS_RE.findall(rest))
    ids = tuple(_unescape(name) for name in _ID_RE.findall(rest))
    rest = _ID_RE.sub("", _CLASS_RE.sub("", rest))
    tags = tuple(name.lower() for name in _TAG_RE.findall(rest))
    return SelectorTokens(tags=tags, classes=classes, ids=ids, attributes=attributes)


def is_safelisted(tokens: SelectorTokens, safelist: Safelist) -> bool:
    for name in tokens.classes:
        if name in safelist.classes:
            return True
        if any(name.startswith(prefix) for prefix in safelist.prefixes):
            return True
        if any(name.endswith(suffix) for suffix in safelist.suffixes):
            return True
        if any(infix in name for infix in safelist.infixes):
            return True
    return False


def keep_selector(selector: str, inventory: MarkupInventory, safelist: Safelist) -> bool:
    tokens = selector_tokens(selector)
    if any(tag in safelist.blocked_tags for tag in tokens.tags):
        return False
    if is_safelisted(tokens, safelist):
        return True
    # *, :root and friends apply to whatever is there
    if tokens.empty:
        return True
    return (
        all(tag in inventory.tags for tag in tokens.tags)
        and all(name in inventory.classes for name in tokens.classes)
        and all(name in inventory.ids for name in tokens.ids)
        and all(name in inventory.attributes for name in tokens.attributes)
    )


def uses_custom_properties(items: list) -> bool:
    """True when any declaration defines a custom property or reads one through var()."""
    return any(
        item.name.startswith("--") or "var(" in tinycss2.serialize(item.value).lower()
        for item in items
        if item.type == "declaration"
    )


def _blocked(selector: str, safelist: Safelist) -> bool:
    return any(tag in safelist.blocked_tags for tag in selector_tokens(selector).tags)


@total_stage("purge")
def purge(text: str, markup: str | None, safelist: Safelist | None = None) -> str:
    if not text.strip():
        return ""
    safelist = safelist or Safelist()
    inventory = MarkupInventory.from_markup(markup)
    dropped = 0

    def _visit(node) -> str | None:
        nonlocal dropped
        if not is_style_rule(node) or has_error(node.prelude):
            return format_rule(node)
        selectors = selectors_of(node)
        items = body_of(node)
        if uses_custom_properties(items):
            kept = [s for s in selectors if not _blocked(s, safelist)]
        else:
            kept = [s for s in selectors if keep_selector(s, inventory, safelist)]
        dropped += len(selectors) - len(kept)
        return style_rule_text(kept, items)

    result = join_rules(rewrite_rules(parse_stylesheet(text), _visit))
    logger.debug("Purge dropped %d selectors", dropped)
    return result


@total_stage("font-face sweep")
def discard_font_faces(text: str) -> str:
    """Drop every @font-face, nested ones included (the host app owns fonts)."""
    if not text.strip():
        return ""

    def _visit(node) -> str | None:
        if at_keyword(node) == "@font-face":
            return None
        return format_rule(node)

    return join_rules(rewrite_rules(parse_stylesheet(text), _visit))
