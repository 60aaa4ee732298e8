"""
Common base for notation handlers.
"""

from typing import TYPE_CHECKING, Any, Union

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.errors import NotationError

if TYPE_CHECKING:
    from pcsheets.notation.processor import NotationProcessor
    from pcsheets.notation.resolver import ReferenceResolver

HandlerResult = Union[str, int, float]


class NotationHandler:
    """A named operator invoked for ``{{NAME:content}}`` spans."""
    name = ""

    def process(
        self,
        content: str,
        context: ProcessingContext,
        processor: "NotationProcessor",
    ) -> HandlerResult:
        raise NotImplementedError

    def error(self, message: str, context: ProcessingContext, notation: str = "", detail: str = None) -> NotationError:
        """Build a NotationError tagged with this handler and the context location."""
        return NotationError(
            message,
            notation or self.name,
            context.file_path,
            context.line_number,
            detail,
        )


class ResolvingHandler(NotationHandler):
    """Handler that looks references up through a shared ReferenceResolver."""

    def __init__(self, resolver: "ReferenceResolver"):
        self.resolver = resolver

    def resolve(self, reference: str, context: ProcessingContext) -> Any:
        return self.resolver.resolve(reference, context)


def strip_quotes(text: str) -> Union[str, None]:
    """Return the inner text of a quoted literal, or None when not quoted."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return None
