"""
Tag-balance checks for rendered HTML fragments.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from pcsheets.notation.utils import create_context_snippet

TAG_PATTERN = re.compile(r"</?([A-Za-z][A-Za-z0-9-]*)[^>]*>")

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img",
    "input", "link", "meta", "param", "source", "track", "wbr",
})


@dataclass
class HtmlValidationResult:
    is_valid: bool
    message: Optional[str] = None
    context_snippet: Optional[str] = None


def validate_html_structure(html: str) -> HtmlValidationResult:
    """Check that every non-void tag is closed in order."""
    stack: List[tuple] = []

    for match in TAG_PATTERN.finditer(html):
        full_tag = match.group(0)
        tag_name = match.group(1).lower()
        if full_tag.endswith("/>") or tag_name in VOID_ELEMENTS:
            continue

        if not full_tag.startswith("</"):
            stack.append((tag_name, match.start()))
            continue

        if not stack:
            return HtmlValidationResult(
                False,
                f"Unexpected closing tag </{tag_name}> at index {match.start()}.",
                create_context_snippet(html, match.start()),
            )

        expected, _ = stack.pop()
        if expected != tag_name:
            return HtmlValidationResult(
                False,
                f"Mismatched closing tag </{tag_name}>. Expected </{expected}>.",
                create_context_snippet(html, match.start()),
            )

    if stack:
        tag_name, index = stack[-1]
        return HtmlValidationResult(
            False,
            f"Unclosed tag <{tag_name}> detected.",
            create_context_snippet(html, index),
        )

    return HtmlValidationResult(True)


def find_disallowed_tags(html: str, allowed_tags: Iterable[str]) -> Set[str]:
    allowed = set(allowed_tags)
    return {
        match.group(1).lower()
        for match in TAG_PATTERN.finditer(html)
        if match.group(1).lower() not in allowed
    }
