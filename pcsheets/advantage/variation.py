"""
Variation processing.

A variation's physical/mental/social type is either declared directly or
taken from the scar it is entangled with. Secondary variations inherit both
from their parent.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from pcsheets.advantage.base import BaseAdvantageProcessor
from pcsheets.advantage.helpers import (
    VARIATION_VALUE_ORDER,
    AdvantageError,
    build_advantage_dotline,
    has_dotline_structure,
)
from pcsheets.advantage.merit import VariationInput
from pcsheets.advantage.models import Variation
from pcsheets.notation.resolver import find_scar, normalize_scar_type

logger = logging.getLogger(__name__)

COPIED_PROPERTIES = ("activation", "tags", "keywords", "source", "vars")


def entangled_scar_key(data: Dict[str, Any], merged: Dict[str, Any]) -> Optional[str]:
    candidate = data.get("entangledScar")
    if not isinstance(candidate, str):
        candidate = merged.get("entangledScar")
    if not isinstance(candidate, str):
        return None
    candidate = candidate.strip()
    if not candidate or candidate.lower() == "none":
        return None
    return candidate


class VariationProcessor(BaseAdvantageProcessor):
    alias = "variations"
    value_order = VARIATION_VALUE_ORDER

    def process_variation(self, data: Dict[str, Any], pc_data: Dict[str, Any]) -> Variation:
        key = data["key"]
        selected = self.selected_deviation_keys(data)
        prepared = self.prepare_advantage(data, selected)
        merged = prepared.merged
        if selected:
            merged["selectedDeviations"] = selected

        scar_key = entangled_scar_key(data, merged)
        variation_type = self.resolve_type(data, merged, pc_data, scar_key)
        merged["type"] = variation_type

        variables = {**self._vars(merged.get("vars")), **self._vars(data.get("vars"))}
        context = self.processing_context(pc_data, merged, variables or data.get("vars"))
        render = self.text_renderer.process

        effect = render(prepared.effect_template, context, prefix="Effect:") or ""
        effect = self.apply_regexp_replacements(effect, prepared.regexp_replacements, context)

        narrative = render(self.pick_string(data.get("narrative"), merged.get("narrative")), context)
        narrative = self.apply_regexp_replacements(narrative, prepared.regexp_replacements, context)

        display_source = self.pick_string(data.get("display"), merged.get("display"), merged.get("name"), key)
        display = render(display_source, context, wrap=False)

        if data.get("value") is not None:
            dotline_source = data["value"]
        elif has_dotline_structure(prepared.raw_value):
            dotline_source = prepared.raw_value
        else:
            dotline_source = None

        extra = self.copy_properties(merged, data, COPIED_PROPERTIES)
        return Variation(
            key=key,
            display=display or key,
            narrative=narrative,
            effect=effect,
            purchase_level=prepared.purchase_level,
            source=extra.pop("source", None),
            deviations=merged.get("deviations") if isinstance(merged.get("deviations"), dict) else {},
            extra=extra,
            final_magnitude=prepared.adjusted_value,
            type=variation_type,
            entangled_scar=scar_key,
            value_dots=build_advantage_dotline(
                dotline_source if dotline_source is not None else prepared.adjusted_value
            ),
            keyword_badges=self.keyword_badges(merged.get("keywords")),
            deviation_badges=self.deviation_badges(merged, selected, context),
            secondary_variations=[
                copy.deepcopy(child) for child in merged.get("secondaryVariations") or [] if isinstance(child, dict)
            ],
        )

    @staticmethod
    def _vars(value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    def resolve_type(
        self,
        data: Dict[str, Any],
        merged: Dict[str, Any],
        pc_data: Dict[str, Any],
        scar_key: Optional[str],
    ) -> str:
        """Declared type, else the type of the entangled scar."""
        key = data["key"]
        direct = normalize_scar_type(data.get("type") or merged.get("type"))
        if direct:
            return direct

        if not scar_key:
            raise AdvantageError(
                f'Variation "{key}" must define either "entangledScar" or "type".'
            )

        scar = find_scar(scar_key, pc_data)
        if scar is None:
            raise AdvantageError(
                f'Variation "{key}" references entangled scar "{scar_key}", but that scar was not found.'
            )
        scar_type = normalize_scar_type(scar.get("type"))
        if not scar_type:
            raise AdvantageError(
                f'Entangled scar "{scar_key}" (referenced by variation "{key}") is missing a valid type '
                '("physical", "mental", or "social").'
            )
        return scar_type

    def process_forest(self, inputs: List[VariationInput], pc_data: Dict[str, Any]) -> List[Variation]:
        """Process variations and their secondary variations depth-first.

        Each node is emitted before its children, and children keep their
        declaration order.
        """
        results: List[Variation] = []
        stack = list(reversed(inputs))

        while stack:
            node = stack.pop()
            data = copy.deepcopy(node.variation)
            if not data.get("entangledScar") and node.inherited_scar:
                data["entangledScar"] = node.inherited_scar
            if not data.get("type") and node.inherited_type:
                data["type"] = node.inherited_type
            if node.require_context and not data.get("entangledScar") and not data.get("type"):
                raise AdvantageError(
                    f'Secondary variation "{data.get("key", "unknown")}" must define either "entangledScar" or "type".'
                )

            variation = self.process_variation(data, pc_data)
            variation.parent_variation_key = node.parent_variation_key
            variation.parent_merit_key = node.parent_merit_key

            children = [
                VariationInput(
                    child,
                    parent_variation_key=variation.key,
                    parent_merit_key=variation.parent_merit_key,
                    inherited_scar=variation.entangled_scar,
                    inherited_type=variation.type,
                    require_context=True,
                )
                for child in variation.secondary_variations
            ]
            variation.secondary_variations = []
            stack.extend(reversed(children))

            logger.debug("Processed variation %s (%s)", variation.key, variation.type)
            results.append(variation)
        return results
