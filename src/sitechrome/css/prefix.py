# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Stage 4: scope every selector under the region's namespace selector.

``html``, ``body`` and ``:root`` become the namespace itself, selectors that
already start with it are left alone, everything else gets ``<ns> `` in
front. Style rules inside @media and grouping at-rules are prefixed too;
@keyframes, @font-face and @page bodies are never touched.
"""

from __future__ import annotations

import logging
import re

from . import (
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

_ROOT_RE = re.compile(r"^(?:html|body|:root)(?![\w-])", re.IGNORECASE)


def prefix_selector(selector: str, namespace: str) -> str:
    selector = selector.strip()
    if re.match(rf"{re.escape(namespace)}(?![\w-])", selector):
        return selector
    root = _ROOT_RE.match(selector)
    if root:
        return f"{namespace}{selector[root.end():]}"
    return f"{namespace} {selector}"


@total_stage("prefix")
def prefix(text: str, namespace: str) -> str:
    if not namespace.strip():
        raise ValueError("namespace selector must not be empty")
    if not text.strip():
        return ""

    def _visit(node) -> str | None:
        if not is_style_rule(node):
            return format_rule(node)
        selectors = selectors_of(node)
        if not selectors or has_error(node.prelude):
            # an unscoped rule would leak into the host page
            logger.warning("Dropping rule that could not be namespaced: %.80s", compact(node.prelude) or "{...}")
            return None
        return style_rule_text((prefix_selector(s, namespace) for s in selectors), body_of(node))

    return join_rules(rewrite_rules(parse_stylesheet(text), _visit))
