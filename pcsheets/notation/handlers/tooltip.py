"""
TOOLTIP handler.

``{{TOOLTIP:[classes,]anchor,content}}`` renders an anchor span followed by a
floating tooltip span. The markup is handed to the processor as a deferred
replacement so the surrounding text only ever sees a placeholder token.
"""

from typing import Any, Dict, Tuple

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.handlers.base import ResolvingHandler
from pcsheets.notation.html_validation import find_disallowed_tags, validate_html_structure
from pcsheets.notation.utils import extract_first_top_level_arg, is_number, stringify

ALLOWED_TOOLTIP_TAGS = frozenset({
    "span", "strong", "em", "b", "i", "u", "small", "sub", "sup", "mark",
    "code", "kbd", "samp", "var", "abbr", "cite", "dfn", "q", "a", "br",
})

REFERENCE_PREFIXES = ("context.", "this.", "vars.", "json.")


class TooltipHandler(ResolvingHandler):
    name = "TOOLTIP"

    def process(self, content, context, processor):
        anchor_expr, tooltip_expr, classes = self._arguments(content, context)
        processor.diagnose("handler:parsed", {
            "anchorExpression": anchor_expr,
            "tooltipExpression": tooltip_expr,
            "tooltipClasses": classes,
        })

        anchor_text = processor.process(anchor_expr, context)
        tooltip_html = self._content(tooltip_expr, context, processor)
        self._validate(tooltip_html, tooltip_expr, context)

        anchor_id = processor.config.new_id()
        markup = (
            f'<span class="has-tooltip" style="anchor-name: --{anchor_id};">{anchor_text}</span>'
            f'<span class="{classes}" style="position-anchor: --{anchor_id};">{tooltip_html}</span>'
        )
        processor.diagnose("handler:markup-generated", {"anchorId": anchor_id, "markup": markup})
        return processor.register_tooltip_replacement(markup)

    def _arguments(self, raw: str, context: ProcessingContext) -> Tuple[str, str, str]:
        first, remainder = extract_first_top_level_arg(raw)
        if not first or remainder is None:
            raise self.error("TOOLTIP requires at least anchor and content arguments.", context, f"TOOLTIP:{raw}")

        second, rest = extract_first_top_level_arg(remainder)
        if rest is None:
            return first, second, "tooltip"

        class_list = first.split()
        if not class_list:
            raise self.error("TOOLTIP class argument cannot be empty.", context, f"TOOLTIP:{raw}")
        return second, rest, " ".join(["tooltip"] + class_list)

    def _content(self, expression: str, context: ProcessingContext, processor) -> str:
        expression = expression.strip()
        if not expression.startswith(REFERENCE_PREFIXES):
            return processor.process(expression, context)

        resolved = self.resolve(expression, context)
        if isinstance(resolved, str):
            return resolved
        if isinstance(resolved, dict):
            return self.render_descriptor(resolved, context, processor)
        raise self.error(
            "TOOLTIP reference must resolve to a string of raw HTML or a tooltip descriptor.",
            context,
            f"TOOLTIP:{expression}",
        )

    def render_descriptor(self, descriptor: Dict[str, Any], context: ProcessingContext, processor) -> str:
        """Render ``{title, subtitle, blocks, citation}`` as tooltip spans."""
        parts = []
        for field in ("title", "subtitle"):
            if descriptor.get(field):
                text = processor.process(stringify(descriptor[field]), context)
                parts.append(f"<span class='tooltip-{field}'>{text}</span>")

        blocks = descriptor.get("blocks") or []
        if not isinstance(blocks, list):
            raise self.error("TOOLTIP descriptor 'blocks' must be a list.", context)
        for block in blocks:
            if isinstance(block, dict):
                label = block.get("label")
                text = processor.process(stringify(block.get("text", "")), context)
                if label:
                    text = f"<strong>{processor.process(stringify(label), context)}:</strong> {text}"
            elif isinstance(block, str) or is_number(block):
                text = processor.process(stringify(block), context)
            else:
                raise self.error("TOOLTIP descriptor blocks must be text or {label, text} objects.", context)
            parts.append(f"<span class='tooltip-block'>{text}</span>")

        citation = descriptor.get("citation")
        if citation:
            text = processor.process(stringify(citation), context)
            parts.append(f"<span class='tooltip-citation'>{text}</span>")

        if not parts:
            raise self.error("TOOLTIP descriptor has no title, subtitle, blocks or citation.", context)
        return "".join(parts)

    def _validate(self, html: str, expression: str, context: ProcessingContext) -> None:
        structure = validate_html_structure(html)
        if not structure.is_valid:
            raise self.error(
                f"TOOLTIP content contains malformed HTML: {structure.message}",
                context,
                f"TOOLTIP:{expression}",
            )

        disallowed = find_disallowed_tags(html, ALLOWED_TOOLTIP_TAGS)
        if disallowed:
            snippet = html[:160] + ("…" if len(html) > 160 else "")
            raise self.error(
                f"TOOLTIP content contains disallowed tag(s): {', '.join(sorted(disallowed))}. Context: {snippet}",
                context,
                f"TOOLTIP:{expression}",
            )
