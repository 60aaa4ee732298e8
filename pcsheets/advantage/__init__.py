"""
Advantage pipeline - merits, variations and scars merged with rule data.

Usage:
    from pcsheets.advantage import MeritProcessor, VariationProcessor, ScarProcessor
"""

from .helpers import (
    AdvantageError,
    RegexpReplacement,
    DeviationResult,
    merge_advantage_data,
    merit_purchase_level,
    ranged_purchase_level,
    apply_advantage_deviations,
    select_effect_template,
    apply_regexp_replacements,
    build_advantage_dotline,
    build_value_dots,
)
from .models import Advantage, Merit, Variation, Scar
from .text_renderer import AdvantageTextRenderer, wrap_paragraphs
from .base import BaseAdvantageProcessor, PreparedAdvantage
from .merit import MeritProcessor, VariationInput
from .variation import VariationProcessor
from .scar import ScarProcessor, derive_scar_attributes

__all__ = [
    # Helpers
    "AdvantageError",
    "RegexpReplacement",
    "DeviationResult",
    "merge_advantage_data",
    "merit_purchase_level",
    "ranged_purchase_level",
    "apply_advantage_deviations",
    "select_effect_template",
    "apply_regexp_replacements",
    "build_advantage_dotline",
    "build_value_dots",
    # Models
    "Advantage",
    "Merit",
    "Variation",
    "Scar",
    # Rendering
    "AdvantageTextRenderer",
    "wrap_paragraphs",
    # Processors
    "BaseAdvantageProcessor",
    "PreparedAdvantage",
    "MeritProcessor",
    "VariationInput",
    "VariationProcessor",
    "ScarProcessor",
    "derive_scar_attributes",
]
