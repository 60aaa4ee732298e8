"""
pcsheets - character-sheet rendering for the wiki.

Usage:
    from pcsheets import PCSheet, PCSheetPage, NotationProcessor, ProcessingContext
"""

from .config import NotationConfig
from .notation import (
    NotationError,
    ReferenceResolutionError,
    ProcessingContext,
    SystemDataLoader,
    ShorthandResolver,
    ReferenceResolver,
    NotationProcessor,
)
from .advantage import AdvantageError, MeritProcessor, VariationProcessor, ScarProcessor
from .sheet import PCSheet
from .page import PCSheetPage

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "NotationConfig",
    # Notation
    "NotationError",
    "ReferenceResolutionError",
    "ProcessingContext",
    "SystemDataLoader",
    "ShorthandResolver",
    "ReferenceResolver",
    "NotationProcessor",
    # Advantages
    "AdvantageError",
    "MeritProcessor",
    "VariationProcessor",
    "ScarProcessor",
    # Sheets
    "PCSheet",
    "PCSheetPage",
]
