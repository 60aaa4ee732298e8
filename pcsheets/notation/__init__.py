"""
Curly-notation interpreter.

Usage:
    from pcsheets.notation import NotationProcessor, ProcessingContext
"""

from .errors import NotationError, ReferenceResolutionError
from .context import ProcessingContext
from .system_data import SystemDataLoader, SYSTEM_DATA_FILE_MAP, clear_cache
from .shorthand import ShorthandResolver
from .resolver import ReferenceResolver, merge_system_data
from .html_validation import HtmlValidationResult, validate_html_structure
from .arithmetic import evaluate_arithmetic
from .processor import NotationProcessor, apply_general_replacements, find_next_notation

__all__ = [
    # Errors
    "NotationError",
    "ReferenceResolutionError",
    # Context
    "ProcessingContext",
    # Data
    "SystemDataLoader",
    "SYSTEM_DATA_FILE_MAP",
    "clear_cache",
    "ShorthandResolver",
    "ReferenceResolver",
    "merge_system_data",
    # Processing
    "HtmlValidationResult",
    "validate_html_structure",
    "evaluate_arithmetic",
    "NotationProcessor",
    "apply_general_replacements",
    "find_next_notation",
]
