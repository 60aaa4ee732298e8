"""
Common preparation steps for merits, variations and scars.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pcsheets.advantage.helpers import (
    RegexpReplacement,
    apply_advantage_deviations,
    apply_regexp_replacements,
    merge_advantage_data,
    ranged_purchase_level,
    select_effect_template,
)
from pcsheets.advantage.text_renderer import AdvantageTextRenderer
from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.processor import NotationProcessor
from pcsheets.notation.utils import format_signed, is_number

logger = logging.getLogger(__name__)


@dataclass
class PreparedAdvantage:
    merged: Dict[str, Any]
    purchase_level: Any
    adjusted_value: Any
    effect_template: Optional[str]
    raw_value: Any = None
    regexp_replacements: List[RegexpReplacement] = field(default_factory=list)


def slugify(text: str) -> str:
    return "-".join("".join(ch if ch.isalnum() else " " for ch in text.lower()).split())


class BaseAdvantageProcessor:
    """Loads rule data for one category and prepares player entries against it."""

    alias = ""
    value_order: Sequence[str] = ()

    def __init__(self, processor: Optional[NotationProcessor] = None):
        self.processor = processor or NotationProcessor()
        self.system_data = self.processor.resolver.system_data
        self.text_renderer = AdvantageTextRenderer(self.processor)

    def purchase_level(self, data: Dict[str, Any], merged: Dict[str, Any]):
        raw = data["value"] if data.get("value") is not None else merged.get("value")
        return ranged_purchase_level(raw, self.value_order)

    def prepare_advantage(
        self,
        data: Dict[str, Any],
        deviation_keys: Sequence[str] = (),
        require_effect: bool = True,
    ) -> PreparedAdvantage:
        """Merge, level, apply deviations and select the effect text.

        Args:
            data: The player's JSON entry; must carry ``key``.
            deviation_keys: Selected deviation keys, applied in order.
            require_effect: When False an entry with no effect data at all
                yields ``effect_template=None`` instead of an error.
        """
        key = data["key"]
        system_record = self.system_data.get_system_data(self.alias, key)
        if system_record is None:
            logger.debug("No %s rule data for %s", self.alias, key)
        merged = merge_advantage_data(data, system_record)

        raw_value = data["value"] if data.get("value") is not None else merged.get("value")
        purchase_level = self.purchase_level(data, merged)
        merged["value"] = purchase_level

        adjusted = purchase_level
        replacements: List[RegexpReplacement] = []
        if deviation_keys:
            result = apply_advantage_deviations(purchase_level, merged, deviation_keys, key)
            adjusted = result.adjusted_value
            merged = result.merged_data
            replacements = result.regexp_replacements

        effect = merged.get("effect")
        if effect is None and not require_effect:
            template = None
        else:
            template = select_effect_template(effect, purchase_level, key)

        return PreparedAdvantage(merged, purchase_level, adjusted, template, raw_value, replacements)

    def apply_regexp_replacements(
        self,
        value: Optional[str],
        replacements: Sequence[RegexpReplacement],
        context: ProcessingContext,
    ) -> Optional[str]:
        def render(text: str) -> str:
            return self.text_renderer.process(text, context, wrap=False) or ""

        return apply_regexp_replacements(value, replacements, render)

    @staticmethod
    def processing_context(pc_data: Dict[str, Any], entity: Dict[str, Any], variables: Any) -> ProcessingContext:
        return ProcessingContext(
            context=pc_data,
            this_entity=entity,
            vars=variables if isinstance(variables, dict) else None,
        )

    @staticmethod
    def selected_deviation_keys(data: Dict[str, Any]) -> List[str]:
        """``selectedDeviations``, falling back to a legacy ``deviations`` list."""
        for name in ("selectedDeviations", "deviations"):
            value = data.get(name)
            if isinstance(value, list):
                return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]
        return []

    @staticmethod
    def pick_string(*values: Any) -> Optional[str]:
        for value in values:
            if isinstance(value, str) and value:
                return value
        return None

    @staticmethod
    def copy_properties(merged: Dict[str, Any], data: Dict[str, Any], names: Iterable[str]) -> Dict[str, Any]:
        """Player value first, then the merged record, for each of ``names``."""
        result = {}
        for name in names:
            if data.get(name) is not None:
                result[name] = data[name]
            elif merged.get(name) is not None:
                result[name] = merged[name]
        return result

    def keyword_badges(self, keywords: Any) -> List[Dict[str, str]]:
        badges = []
        for keyword in keywords or []:
            if not isinstance(keyword, str) or not keyword.strip():
                continue
            class_name = f"keyword-{slugify(keyword)}"
            badges.append({
                "key": keyword,
                "className": class_name,
                "html": f"<span class='keyword-badge {class_name}'>{keyword.strip().title()}</span>",
            })
        return badges

    def deviation_badges(self, merged: Dict[str, Any], keys: Sequence[str], context: ProcessingContext):
        definitions = merged.get("deviations")
        if not isinstance(definitions, dict):
            return []
        badges = []
        for key in keys:
            deviation = definitions.get(key)
            if not isinstance(deviation, dict):
                continue
            mag_mod = deviation.get("magMod", 0) if is_number(deviation.get("magMod")) else 0
            name = self.text_renderer.process(self.pick_string(deviation.get("name"), key), context, wrap=False)
            suffix = f" ({format_signed(mag_mod)})" if mag_mod else ""
            badges.append({
                "key": key,
                "magMod": mag_mod,
                "html": f"<span class='deviation-badge'>{name}{suffix}</span>",
            })
        return badges

