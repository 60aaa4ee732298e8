"""
Error types raised while expanding curly notations.
"""

from typing import Optional


class NotationError(Exception):
    """A notation could not be expanded.

    Carries enough detail to render a visible inline marker when the
    processor runs in lenient mode.
    """

    def __init__(
        self,
        message: str,
        notation: str,
        file_path: Optional[str] = None,
        line_number: Optional[int] = None,
        context: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.notation = notation
        self.file_path = file_path
        self.line_number = line_number
        self.context = context

    def to_inline_error(self) -> str:
        details = [self.message]
        if self.notation:
            details.append(f"Notation: {self.notation}")
        if self.context:
            details.append(f"Context: {self.context}")
        if self.file_path:
            location = f"{self.file_path}:{self.line_number}" if self.line_number else self.file_path
            details.append(f"Location: {location}")
        return f"<span class='inline-error'>{' | '.join(details)}</span>"


class ReferenceResolutionError(NotationError):
    """A reference expression could not be resolved against its scope."""
