"""
Conditional handlers: IFTRUE, IFFALSE, IF, IFNA, IFIN, IFNOTIN and SWITCH.
"""

from typing import Any, Tuple

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.errors import NotationError
from pcsheets.notation.handlers.base import NotationHandler, ResolvingHandler, strip_quotes
from pcsheets.notation.utils import (
    extract_first_top_level_arg,
    is_number,
    is_truthy,
    parse_number,
    split_top_level_args,
    stringify,
)

_FALSY_TEXT = {"", "0", "false", "null", "undefined", "[]"}


class _ConditionHandler(ResolvingHandler):
    """Evaluates a condition argument.

    A condition holding notations is expanded and judged by its text; a bare
    expression is resolved as a reference and judged by JSON truthiness.
    """

    def evaluate_condition(self, expression: str, context: ProcessingContext, processor) -> bool:
        expression = expression.strip()
        if "{{" in expression:
            text = processor.process(expression, context).strip()
            number = parse_number(text)
            if number is not None:
                return number != 0
            return text.lower() not in _FALSY_TEXT
        return is_truthy(self.resolve(expression, context))


class IfTrueHandler(_ConditionHandler):
    """``{{IFTRUE:condition,content}}``"""
    name = "IFTRUE"
    render_when = True

    def process(self, content, context, processor):
        condition, remainder = extract_first_top_level_arg(content)
        if not condition:
            raise self.error(f"{self.name} requires a condition argument.", context, f"{self.name}:{content}")
        if remainder is None:
            raise self.error(f"{self.name} requires content after the condition.", context, f"{self.name}:{content}")

        if self.evaluate_condition(condition, context, processor) != self.render_when:
            return ""
        return processor.process(remainder.strip(), context)


class IfFalseHandler(IfTrueHandler):
    """``{{IFFALSE:condition,content}}``"""
    name = "IFFALSE"
    render_when = False


class IfHandler(_ConditionHandler):
    """``{{IF:condition,then[,else]}}``"""
    name = "IF"

    def process(self, content, context, processor):
        condition, remainder = extract_first_top_level_arg(content)
        if not condition or remainder is None:
            raise self.error("IF requires a condition and a value to render.", context, f"IF:{content}")
        when_true, when_false = extract_first_top_level_arg(remainder)

        if self.evaluate_condition(condition, context, processor):
            return processor.process(when_true, context)
        return processor.process(when_false.strip(), context) if when_false else ""


class IfNaHandler(NotationHandler):
    """``{{IFNA:expression,fallback}}`` renders the fallback when the expression fails."""
    name = "IFNA"

    def process(self, content, context, processor):
        primary, fallback = extract_first_top_level_arg(content)
        if not primary:
            raise self.error("IFNA requires an expression argument.", context, f"IFNA:{content}")

        try:
            return processor.process(primary, context.derive(strict=True))
        except NotationError:
            if not fallback or not fallback.strip():
                return ""
            return processor.process(fallback, context)


class _MembershipHandler(ResolvingHandler):
    """``{{IFIN:needle,haystack,content}}`` and its negation.

    The needle is expanded as notation text, the haystack is resolved as a
    reference. Lists are searched by equality, objects by key.
    """
    render_on_match = True

    def process(self, content, context, processor):
        needle_expr, haystack_expr, body = self._arguments(content, context)
        processed = processor.process(needle_expr, context).strip()
        literal = strip_quotes(processed)
        needle = processed if literal is None else literal
        haystack = self.resolve(haystack_expr, context)

        found = self._contains(needle, haystack, haystack_expr, content, context)
        if found != self.render_on_match or not body:
            return ""
        return processor.process(body, context)

    def _arguments(self, content: str, context: ProcessingContext) -> Tuple[str, str, str]:
        needle, after_needle = extract_first_top_level_arg(content)
        if not needle:
            raise self.error(
                f"{self.name} requires a needle argument before the first comma.", context, f"{self.name}:{content}"
            )
        if after_needle is None:
            raise self.error(
                f"{self.name} requires a haystack argument after the needle.", context, f"{self.name}:{content}"
            )
        haystack, body = extract_first_top_level_arg(after_needle)
        if not haystack:
            raise self.error(
                f"{self.name} requires a haystack argument following the needle.", context, f"{self.name}:{content}"
            )
        return needle, haystack, body or ""

    def _contains(self, needle: str, haystack: Any, haystack_expr: str, content: str, context) -> bool:
        if isinstance(haystack, list):
            number = parse_number(needle)
            return any(
                entry == needle or (is_number(entry) and number is not None and entry == number)
                for entry in haystack
            )
        if isinstance(haystack, dict):
            return needle in haystack
        raise self.error(
            f"{self.name} haystack '{haystack_expr}' must resolve to an array or object "
            f"(received {type(haystack).__name__}).",
            context,
            f"{self.name}:{content}",
        )


class IfInHandler(_MembershipHandler):
    name = "IFIN"
    render_on_match = True


class IfNotInHandler(_MembershipHandler):
    name = "IFNOTIN"
    render_on_match = False


class SwitchHandler(ResolvingHandler):
    """``{{SWITCH:ref,case1,result1,case2,result2...}}``"""
    name = "SWITCH"

    def process(self, content, context, processor):
        segments = split_top_level_args(content)
        if len(segments) < 3 or len(segments) % 2 == 0:
            raise self.error("SWITCH requires a reference followed by case/result pairs.", context, f"SWITCH:{content}")

        resolved = self.resolve(segments[0], context)
        if resolved is None:
            raise self.error("SWITCH reference resolved to null.", context, segments[0])
        value = stringify(resolved)

        for case_label, result in zip(segments[1::2], segments[2::2]):
            if case_label == value:
                return processor.process(result, context)

        raise self.error(f"SWITCH did not find a matching case for value '{value}'.", context, f"SWITCH:{content}")
