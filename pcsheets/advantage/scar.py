"""
Scar processing and the scar-derived attribute stats.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from pcsheets.advantage.base import BaseAdvantageProcessor
from pcsheets.advantage.helpers import (
    SCAR_VALUE_ORDER,
    AdvantageError,
    build_advantage_dotline,
    has_dotline_structure,
)
from pcsheets.advantage.models import Scar
from pcsheets.notation.resolver import SCAR_STATS, SCAR_TYPES, attribute_category, normalize_scar_type
from pcsheets.notation.utils import format_number, is_number

logger = logging.getLogger(__name__)

ACTIVATION_TAGS = ("controlled", "involuntary", "persistent")

_ACTIVATION_SPLIT = re.compile(r"[\s,/]+")


def derive_scar_attributes(scar_type: str, pc_data: Dict[str, Any]) -> Dict[str, Any]:
    """Map each scar stat to the base rating of its attribute for ``scar_type``.

    Missing attributes count as 0.
    """
    if scar_type not in SCAR_TYPES:
        raise AdvantageError(f'Unknown scar type "{scar_type}" (must be physical, mental, or social).')

    attributes = pc_data.get("attributes") or {}
    stats = {}
    for stat, (_display, attribute_map) in SCAR_STATS.items():
        attribute_key = attribute_map[scar_type]
        record = (attributes.get(attribute_category(attribute_key)) or {}).get(attribute_key)
        value = record.get("value") if isinstance(record, dict) else None
        if isinstance(value, dict):
            rating = value.get("base") if is_number(value.get("base")) else value.get("total")
        else:
            rating = value
        stats[stat] = rating if is_number(rating) else 0
    return stats


def activation_tags(activation: Any, key: str) -> List[str]:
    if not isinstance(activation, str) or not activation.strip():
        return []
    tags = []
    for token in _ACTIVATION_SPLIT.split(activation.strip().lower()):
        if not token:
            continue
        if token not in ACTIVATION_TAGS:
            raise AdvantageError(
                f'Scar "{key}" has unknown activation "{token}". Expected one of: {", ".join(ACTIVATION_TAGS)}.'
            )
        if token not in tags:
            tags.append(token)
    return tags


class ScarProcessor(BaseAdvantageProcessor):
    alias = "scars"
    value_order = SCAR_VALUE_ORDER

    def process_scar(self, data: Dict[str, Any], pc_data: Dict[str, Any]) -> Scar:
        key = data["key"]
        selected = self.selected_deviation_keys(data)
        prepared = self.prepare_advantage(data, selected)
        merged = prepared.merged
        if selected:
            merged["selectedDeviations"] = selected

        scar_type = normalize_scar_type(data.get("type") or merged.get("type")) or "physical"
        merged["type"] = scar_type

        context = self.processing_context(pc_data, merged, data.get("vars"))
        render = self.text_renderer.process

        effect = render(prepared.effect_template, context, prefix="Effect:") or ""
        effect = self.apply_regexp_replacements(effect, prepared.regexp_replacements, context)
        narrative = render(self.pick_string(data.get("narrative"), merged.get("narrative")), context)
        narrative = self.apply_regexp_replacements(narrative, prepared.regexp_replacements, context)

        display_source = self.pick_string(data.get("display"), merged.get("display"), merged.get("name"))
        display = render(display_source, context, wrap=False) if display_source else key

        entangled = data.get("entangledVariations")
        if entangled is None and isinstance(merged.get("entangledVariations"), list):
            entangled = merged["entangledVariations"]

        activation = self.pick_string(data.get("activation"), merged.get("activation"))
        tags = activation_tags(activation, key)

        dotline_source = data.get("value") if data.get("value") is not None else (
            prepared.raw_value if has_dotline_structure(prepared.raw_value) else None
        )

        source = data.get("source") or merged.get("source")
        return Scar(
            key=key,
            display=display or key,
            narrative=narrative,
            effect=effect,
            purchase_level=prepared.purchase_level,
            source=source if isinstance(source, dict) else None,
            deviations=merged.get("deviations") if isinstance(merged.get("deviations"), dict) else {},
            extra=self.copy_properties(merged, data, ("vars", "keywords", "tags")),
            type=scar_type,
            final_magnitude=prepared.adjusted_value,
            entangled_variations=entangled,
            activation=activation,
            activation_tags=tags,
            value_dots=build_advantage_dotline(
                dotline_source if dotline_source is not None else prepared.adjusted_value
            ),
            info_line=self.info_line(scar_type, tags, pc_data),
            keyword_badges=self.keyword_badges(merged.get("keywords")),
            deviation_badges=self.deviation_badges(merged, selected, context),
        )

    @staticmethod
    def info_line(scar_type: str, tags: List[str], pc_data: Dict[str, Any]) -> Dict[str, Any]:
        """Type label, activation badges and the three scar stats for display."""
        values = derive_scar_attributes(scar_type, pc_data)
        stats = []
        for stat, (label, _attribute_map) in SCAR_STATS.items():
            value = values[stat]
            stats.append({
                "key": stat,
                "label": label,
                "value": value,
                "valueHtml": f"<span class='scar-stat-value'>{format_number(value)}</span>",
            })

        line: Dict[str, Any] = {"typeLabel": scar_type.capitalize(), "stats": stats}
        activation_html: Optional[str] = "".join(
            f"<span class='activation-badge activation-{tag}'>{tag.capitalize()}</span>" for tag in tags
        )
        if activation_html:
            line["activationHtml"] = activation_html
        return line
