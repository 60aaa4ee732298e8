"""
Handlers over the current entity's ``options`` map: OPTIONLIST and INLINEOPTION.
"""

from typing import Any, Dict, List

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.handlers.base import ResolvingHandler, strip_quotes
from pcsheets.notation.utils import is_number, split_top_level_args, stringify


class _OptionsHandler(ResolvingHandler):

    def options_map(self, context: ProcessingContext) -> Dict[str, Any]:
        options = (context.this_entity or {}).get("options")
        if not isinstance(options, dict):
            raise self.error(f"{self.name} requires the current entity to define an 'options' map.", context)
        return options

    def resolve_source(self, segment: str, context: ProcessingContext) -> Any:
        segment = segment.strip()
        literal = strip_quotes(segment)
        if literal is not None:
            return literal
        return self.resolve(segment, context)


class OptionListHandler(_OptionsHandler):
    """``{{OPTIONLIST:source[,source...]}}`` -> ``<ul class="option-list">``.

    Each source is a quoted keyword list or a reference resolving to one.
    A keyword whose option is null is skipped; an unknown keyword is an error.
    """
    name = "OPTIONLIST"

    def process(self, content, context, processor):
        segments = split_top_level_args(content)
        if not segments:
            raise self.error("OPTIONLIST requires at least one option source.", context, f"OPTIONLIST:{content}")

        keywords: List[str] = []
        for segment in segments:
            self._collect(self.resolve_source(segment, context), keywords, segment, content, context)
        if not keywords:
            raise self.error("OPTIONLIST did not resolve any option keywords.", context, f"OPTIONLIST:{content}")

        options = self.options_map(context)
        items = []
        for keyword in keywords:
            if keyword not in options:
                raise self.error(
                    f"OPTIONLIST option '{keyword}' is not defined for this entity.", context, f"OPTIONLIST:{content}"
                )
            template = options[keyword]
            if template is None:
                continue
            if not isinstance(template, str):
                raise self.error(
                    f"OPTIONLIST option '{keyword}' must be a string template or null.",
                    context,
                    f"OPTIONLIST:{content}",
                )
            items.append(f"<li>{processor.process(template, context)}</li>")

        return f'<ul class="option-list">{"".join(items)}</ul>'

    def _collect(self, value: Any, keywords: List[str], segment: str, content: str, context) -> None:
        if value is None:
            return
        if isinstance(value, list):
            for entry in value:
                self._collect(entry, keywords, segment, content, context)
        elif isinstance(value, str):
            keywords.extend(token.strip() for token in value.split(",") if token.strip())
        elif is_number(value) or isinstance(value, bool):
            keywords.append(stringify(value))
        else:
            raise self.error(
                f"OPTIONLIST source '{segment}' must resolve to a string or array.", context, f"OPTIONLIST:{content}"
            )


class InlineOptionHandler(_OptionsHandler):
    """``{{INLINEOPTION:keyword}}`` renders one option's text inline."""
    name = "INLINEOPTION"

    def process(self, content, context, processor):
        segments = split_top_level_args(content)
        if not segments:
            raise self.error("INLINEOPTION requires a single option source.", context, f"INLINEOPTION:{content}")
        if len(segments) > 1:
            raise self.error("INLINEOPTION accepts exactly one argument.", context, f"INLINEOPTION:{content}")

        keyword = self.resolve_source(segments[0], context)
        if keyword is None:
            raise self.error("INLINEOPTION reference resolved to null.", context, segments[0])
        keyword = stringify(keyword)

        template = self.options_map(context).get(keyword)
        if not isinstance(template, str):
            raise self.error(
                f"INLINEOPTION keyword '{keyword}' is not defined for this entity.",
                context,
                f"INLINEOPTION:{content}",
            )
        return processor.process(template, context)
