"""
Renders advantage text fields through the notation processor.
"""

import re
from typing import Optional

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.processor import NotationProcessor

_LEADING_PARAGRAPH = re.compile(r"^<p[\s>]", re.IGNORECASE)
_FIRST_PARAGRAPH_TAG = re.compile(r"<p([^>]*)>", re.IGNORECASE)
_NESTED_OPEN = re.compile(r"<p>\s*<p>", re.IGNORECASE)
_NESTED_CLOSE = re.compile(r"</p>\s*</p>", re.IGNORECASE)
_ADJACENT = re.compile(r"</p>\s*<p>", re.IGNORECASE)


def wrap_paragraphs(text: str, prefix: Optional[str] = None) -> str:
    """Ensure ``text`` sits in ``<p>`` tags, optionally led by a bold prefix."""
    normalized = text.strip()
    if not normalized:
        return text

    if not _LEADING_PARAGRAPH.match(normalized):
        normalized = f"<p>{normalized}</p>"

    if prefix:
        normalized = _FIRST_PARAGRAPH_TAG.sub(
            lambda match: f"<p{match.group(1)}><strong>{prefix}</strong> ", normalized, count=1
        )

    normalized = _NESTED_OPEN.sub("<p>", normalized)
    normalized = _NESTED_CLOSE.sub("</p>", normalized)
    return _ADJACENT.sub("</p><p>", normalized)


class AdvantageTextRenderer:
    """Expands notations in a text field, then wraps it in paragraphs.

    Tooltip placeholders are only swapped in after wrapping, so paragraph
    normalisation never touches tooltip markup.
    """

    def __init__(self, processor: NotationProcessor):
        self.processor = processor

    def process(
        self,
        value: Optional[str],
        context: ProcessingContext,
        wrap: bool = True,
        prefix: Optional[str] = None,
    ) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return value

        processed = self.processor.process(value, context, finalize_tooltips=False)
        wrapped = wrap_paragraphs(processed, prefix) if wrap else processed
        return self.processor.finalize_tooltip_placeholders(wrapped, context)
