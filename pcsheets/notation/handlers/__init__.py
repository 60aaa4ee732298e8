"""
Built-in notation handlers.
"""

from .base import NotationHandler, ResolvingHandler
from .values import (
    ValueHandler,
    NameValueHandler,
    UseHandler,
    RawHandler,
    BaseKeyHandler,
    CountHandler,
)
from .numeric import CalcHandler, MaxHandler, MinHandler, RoundupHandler, RounddownHandler
from .text import (
    DisplayHandler,
    InlineListHandler,
    SourceHandler,
    NameHandler,
    BreakHandler,
    PronounHandler,
    PRONOUN_PATTERN,
)
from .conditionals import (
    IfTrueHandler,
    IfFalseHandler,
    IfHandler,
    IfNaHandler,
    IfInHandler,
    IfNotInHandler,
    SwitchHandler,
)
from .options import OptionListHandler, InlineOptionHandler
from .tooltip import TooltipHandler, ALLOWED_TOOLTIP_TAGS

__all__ = [
    # Base
    "NotationHandler",
    "ResolvingHandler",
    # Values
    "ValueHandler",
    "NameValueHandler",
    "UseHandler",
    "RawHandler",
    "BaseKeyHandler",
    "CountHandler",
    # Numeric
    "CalcHandler",
    "MaxHandler",
    "MinHandler",
    "RoundupHandler",
    "RounddownHandler",
    # Text
    "DisplayHandler",
    "InlineListHandler",
    "SourceHandler",
    "NameHandler",
    "BreakHandler",
    "PronounHandler",
    "PRONOUN_PATTERN",
    # Conditionals
    "IfTrueHandler",
    "IfFalseHandler",
    "IfHandler",
    "IfNaHandler",
    "IfInHandler",
    "IfNotInHandler",
    "SwitchHandler",
    # Options
    "OptionListHandler",
    "InlineOptionHandler",
    # Tooltip
    "TooltipHandler",
    "ALLOWED_TOOLTIP_TAGS",
]
