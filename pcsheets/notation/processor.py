"""
Curly-notation processor.

Expands ``{{...}}`` spans in template text. Each span is either a pronoun
keyword, ``NAME``, ``BR`` or ``HANDLER:content``; handlers may call back into
:meth:`NotationProcessor.process` for nested spans, so inner notations are
expanded before the outer one sees its arguments.

Usage:
    processor = NotationProcessor(NotationConfig(strict=False))
    html = processor.process("{{NAMEVALUE:this}}", ProcessingContext(context=sheet, this_entity=merit))
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from pcsheets.config import NotationConfig
from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.errors import NotationError
from pcsheets.notation.handlers import (
    PRONOUN_PATTERN,
    BaseKeyHandler,
    BreakHandler,
    CalcHandler,
    CountHandler,
    DisplayHandler,
    IfFalseHandler,
    IfHandler,
    IfInHandler,
    IfNaHandler,
    IfNotInHandler,
    IfTrueHandler,
    InlineListHandler,
    InlineOptionHandler,
    MaxHandler,
    MinHandler,
    NameHandler,
    NameValueHandler,
    NotationHandler,
    OptionListHandler,
    PronounHandler,
    RawHandler,
    RoundupHandler,
    RounddownHandler,
    SourceHandler,
    SwitchHandler,
    TooltipHandler,
    UseHandler,
    ValueHandler,
)
from pcsheets.notation.html_validation import validate_html_structure
from pcsheets.notation.resolver import ReferenceResolver
from pcsheets.notation.shorthand import ShorthandResolver
from pcsheets.notation.system_data import SystemDataLoader
from pcsheets.notation.utils import create_context_snippet, format_number, is_number

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"@@TOOLTIP-[a-z0-9]+@@", re.IGNORECASE)
RESIDUAL_NOTATION_PATTERN = re.compile(r"\{\{[^{}]+\}\}")
TAG_SPLIT_PATTERN = re.compile(r"(<[^>]+>)")
EM_DASH_PATTERN = re.compile(r"\s*--+\s*")
SPACED_HYPHEN_PATTERN = re.compile(r"\s+-\s+")
NEGATIVE_NUMBER_PATTERN = re.compile(r"(^|[\s(\[{])-(\d)")

SNIPPET_RADIUS = 80


@dataclass
class NotationSpan:
    start: int
    end: int
    raw: str

    @property
    def content(self) -> str:
        return self.raw[2:-2]


def find_next_notation(text: str, start: int = 0) -> Optional[NotationSpan]:
    """Locate the next balanced ``{{...}}`` span at or after ``start``."""
    opening = text.find("{{", start)
    if opening == -1:
        return None

    depth = 1
    j = opening + 2
    length = len(text)
    while j < length - 1:
        pair = text[j:j + 2]
        if pair == "{{":
            depth += 1
            j += 2
        elif pair == "}}":
            depth -= 1
            j += 2
            if depth == 0:
                return NotationSpan(opening, j, text[opening:j])
        else:
            j += 1

    snippet = text[opening:opening + 120]
    raise NotationError(
        f'Unclosed curly notation detected near "{snippet}".',
        snippet,
        context="Parser could not find matching '}}'.",
    )


def apply_general_replacements(html: str) -> str:
    """Typography fixes applied to text outside of tags."""
    segments = TAG_SPLIT_PATTERN.split(html)
    for index, segment in enumerate(segments):
        if not segment or (segment.startswith("<") and segment.endswith(">")):
            continue
        segment = EM_DASH_PATTERN.sub(" — ", segment)
        segment = SPACED_HYPHEN_PATTERN.sub(" − ", segment)
        segment = NEGATIVE_NUMBER_PATTERN.sub(r"\1−\2", segment)
        segments[index] = segment
    return "".join(segments)


def _escape_braces(html: str) -> str:
    return html.replace("{", "&#123;").replace("}", "&#125;")


class NotationProcessor:
    """Expands curly notations with a registry of named handlers."""

    def __init__(self, config: Optional[NotationConfig] = None, resolver: Optional[ReferenceResolver] = None):
        self.config = config or NotationConfig()
        if resolver is None:
            loader = SystemDataLoader(self.config.data_dir())
            resolver = ReferenceResolver(loader, ShorthandResolver(loader.data_dir))
        self.resolver = resolver
        self.handlers: Dict[str, NotationHandler] = {}
        self._queues: List[List[tuple]] = []
        self._pending: Dict[str, str] = {}
        self._depth = 0

        self._pronoun_handler = PronounHandler()
        self._name_handler = NameHandler()
        self._break_handler = BreakHandler()
        self._register_default_handlers()

    def register_notation(self, name: str, handler: NotationHandler) -> None:
        self.handlers[name.upper()] = handler

    def _register_default_handlers(self) -> None:
        resolver = self.resolver
        for handler in (
            ValueHandler(resolver),
            NameValueHandler(resolver),
            SourceHandler(),
            CalcHandler(),
            MaxHandler(),
            MinHandler(),
            RoundupHandler(),
            RounddownHandler(),
            DisplayHandler(resolver),
            InlineListHandler(resolver),
            RawHandler(resolver),
            IfTrueHandler(resolver),
            IfFalseHandler(resolver),
            IfHandler(resolver),
            IfNaHandler(),
            IfInHandler(resolver),
            IfNotInHandler(resolver),
            SwitchHandler(resolver),
            OptionListHandler(resolver),
            InlineOptionHandler(resolver),
            TooltipHandler(resolver),
            UseHandler(resolver),
            BaseKeyHandler(),
            CountHandler(resolver),
        ):
            self.register_notation(handler.name, handler)

    def process(self, text: str, context: ProcessingContext, finalize_tooltips: bool = True) -> str:
        """Expand every notation in ``text``.

        Args:
            text: Template text.
            context: Scopes and metadata; ``context.strict`` overrides the
                configured error policy when set.
            finalize_tooltips: When False, tooltip placeholders are left in
                the result for a later :meth:`finalize_tooltip_placeholders`.

        Returns:
            The expanded text. In the outermost call it has also been through
            typography normalisation and HTML structure validation.
        """
        self._depth += 1
        top_level = self._depth == 1
        strict = self.config.strict if context.strict is None else context.strict
        context = context.derive(strict=strict)
        self._queues.append([])
        if top_level and "TOOLTIP" in text:
            self.diagnose("process:start", {"file": context.file_path, "strict": strict})

        try:
            result = self._expand(text, context, strict)
            queue = self._queues[-1]

            if queue and (self.config.keep_placeholders or not finalize_tooltips):
                reason = "finalize_tooltips=False" if not finalize_tooltips else "keep_placeholders"
                self.diagnose("substitution:deferred", {"placeholderCount": len(queue), "reason": reason})
            elif queue:
                result = self._apply_queue(result, queue)

            if not finalize_tooltips:
                return result

            self._assert_no_residual_notation(result)
            if top_level:
                result = apply_general_replacements(result)
                self._assert_valid_html(result, context)
            return result
        finally:
            self._queues.pop()
            self._depth -= 1

    def _expand(self, text: str, context: ProcessingContext, strict: bool) -> str:
        result = text
        search_from = 0
        while True:
            span = find_next_notation(result, search_from)
            if span is None:
                return result

            try:
                value = self._dispatch(span, context, result)
                replacement = format_number(value) if is_number(value) else str(value)
                search_from = span.start
            except NotationError as exc:
                if strict:
                    raise
                logger.warning("Inline notation error in %s: %s", context.file_path or "<template>", exc.message)
                replacement = _escape_braces(exc.to_inline_error())
                search_from = span.start + len(replacement)
            result = result[:span.start] + replacement + result[span.end:]

    def _dispatch(self, span: NotationSpan, context: ProcessingContext, container: str):
        expression = span.content.strip()

        if PRONOUN_PATTERN.match(expression):
            return self._pronoun_handler.process(expression, context, self)

        name, colon, content = expression.partition(":")
        if not colon:
            keyword = expression.upper()
            if keyword == "NAME":
                return self._name_handler.process("", context, self)
            if keyword == "BR":
                return self._break_handler.process("", context, self)
            raise self._unsupported(expression, span, container, context)

        handler = self.handlers.get(name.strip().upper())
        if handler is None:
            raise self._unsupported(expression, span, container, context)
        return handler.process(content.strip(), context, self)

    @staticmethod
    def _unsupported(expression, span, container, context) -> NotationError:
        snippet = create_context_snippet(container, span.start, SNIPPET_RADIUS)
        return NotationError(
            f"Unsupported naked notation '{expression}'. "
            f"Use explicit handlers such as NAMEVALUE/DISPLAY/VALUE/USE. Context: {snippet}",
            expression,
            context.file_path,
            context.line_number,
        )

    def register_tooltip_replacement(self, html: str) -> str:
        """Queue ``html`` for insertion and return the placeholder standing in for it."""
        if not self._queues:
            return html
        placeholder = f"@@TOOLTIP-{self.config.new_id()}@@"
        self._queues[-1].append((placeholder, html))
        self._pending[placeholder] = html
        self.diagnose("placeholder:queued", {"placeholder": placeholder, "queueDepth": len(self._queues[-1])})
        return placeholder

    def _apply_queue(self, text: str, queue: List[tuple]) -> str:
        for placeholder, html in queue:
            text = text.replace(placeholder, html)
            self._pending.pop(placeholder, None)
            self.diagnose("placeholder:apply", {"placeholder": placeholder})
        queue.clear()
        return text

    def finalize_tooltip_placeholders(self, text, context: Optional[ProcessingContext] = None):
        """Swap deferred placeholders left by ``finalize_tooltips=False`` for their markup."""
        if not isinstance(text, str):
            return text
        if self.config.keep_placeholders:
            self.diagnose("finalize:placeholders-preserved", {"text": text})
            return text

        self.diagnose("finalize:start", {"pending": len(self._pending)})
        applied = 0

        def substitute(match: re.Match) -> str:
            nonlocal applied
            placeholder = match.group(0)
            html = self._pending.pop(placeholder, None)
            if html is None:
                return placeholder
            applied += 1
            return html

        finalized = PLACEHOLDER_PATTERN.sub(substitute, text)
        self._assert_no_residual_notation(finalized)
        if context is None or context.strict is not False:
            finalized = apply_general_replacements(finalized)
        self.diagnose("finalize:end", {"replacementsApplied": applied})
        return finalized

    def diagnose(self, stage: str, payload: Dict) -> None:
        logger.debug("tooltip %s %s", stage, payload)
        self.config.emit(stage, payload)

    @staticmethod
    def _assert_no_residual_notation(text: str) -> None:
        if not RESIDUAL_NOTATION_PATTERN.search(text):
            return
        preview = create_context_snippet(text, text.find("{{"), SNIPPET_RADIUS)
        raise NotationError(
            f'General replacement attempted before all curly notations were resolved. Context: "{preview}"',
            "GENERAL_REPLACEMENT",
            context=f"Remaining snippet: {preview}",
        )

    @staticmethod
    def _assert_valid_html(html: str, context: ProcessingContext) -> None:
        validation = validate_html_structure(html)
        if validation.is_valid:
            return
        suffix = f" Context: {validation.context_snippet}" if validation.context_snippet else ""
        raise NotationError(
            f"HTML validation failed: {validation.message}{suffix}",
            "HTML_VALIDATION",
            context.file_path,
            context.line_number,
        )
