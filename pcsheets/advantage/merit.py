"""
Merit processing, including the secondary merit/variation tree.
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pcsheets.advantage.base import BaseAdvantageProcessor
from pcsheets.advantage.helpers import merit_purchase_level
from pcsheets.advantage.models import Merit

logger = logging.getLogger(__name__)


@dataclass
class VariationInput:
    """A variation waiting to be processed, with the keys of whatever spawned it."""
    variation: Dict[str, Any]
    parent_variation_key: Optional[str] = None
    parent_merit_key: Optional[str] = None
    inherited_scar: Optional[str] = None
    inherited_type: Optional[str] = None
    require_context: bool = False


class MeritProcessor(BaseAdvantageProcessor):
    alias = "merits"

    def purchase_level(self, data, merged):
        return merit_purchase_level(data.get("value"), merged.get("value"), data["key"])

    def process_merit(self, data: Dict[str, Any], pc_data: Dict[str, Any]) -> Merit:
        key = data["key"]
        prepared = self.prepare_advantage(data, require_effect=False)
        merged = prepared.merged
        purchase_level = prepared.purchase_level
        context = self.processing_context(pc_data, merged, data.get("vars"))
        render = self.text_renderer.process

        effect = render(prepared.effect_template, context, wrap=False) if prepared.effect_template else None
        narrative = render(self.pick_string(data.get("narrative"), merged.get("narrative")), context, wrap=False)
        name_source = self.pick_string(data.get("display"), merged.get("name"), key)
        drawback = render(self.pick_string(data.get("drawback"), merged.get("drawback")), context, wrap=False)

        source = data.get("source") if isinstance(data.get("source"), dict) else merged.get("source")
        tags = merged.get("tags")

        merit = Merit(
            key=key,
            display=render(name_source, context, wrap=False),
            narrative=narrative,
            effect=effect,
            purchase_level=purchase_level,
            source=source if isinstance(source, dict) else None,
            deviations=merged.get("deviations") if isinstance(merged.get("deviations"), dict) else {},
            extra=self.copy_properties(merged, data, ("vars", "cssClasses")),
            value=purchase_level if purchase_level > 0 else None,
            drawback=drawback,
            levels=self._levels(merged.get("levels"), context),
            tags=tags if isinstance(tags, list) else None,
            secondary_merits=self._children(merged.get("secondaryMerits")),
            secondary_variations=self._children(merged.get("secondaryVariations")),
        )
        logger.debug("Processed merit %s at level %s", key, purchase_level)
        return merit

    def _levels(self, levels: Any, context) -> Optional[Dict[int, Dict[str, Any]]]:
        if not isinstance(levels, dict):
            return None

        processed = {}
        for level_key, level in levels.items():
            try:
                number = int(level_key)
            except (TypeError, ValueError):
                continue
            if not isinstance(level, dict):
                continue
            entry = {
                "name": level.get("name") if isinstance(level.get("name"), str) else "",
                "effect": self.text_renderer.process(level.get("effect"), context, wrap=False)
                if isinstance(level.get("effect"), str) else "",
            }
            if isinstance(level.get("drawback"), str):
                entry["drawback"] = self.text_renderer.process(level["drawback"], context, wrap=False)
            processed[number] = entry
        return processed

    @staticmethod
    def _children(value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            return []
        return [copy.deepcopy(entry) for entry in value if isinstance(entry, dict)]

    def process_tree(
        self, merits: List[Dict[str, Any]], pc_data: Dict[str, Any]
    ) -> Tuple[List[Merit], List[VariationInput]]:
        """Process merits breadth-first, queueing each merit's secondary merits.

        Returns:
            The processed merits in visit order, and the secondary variations
            they declared, tagged with their parent merit key.
        """
        processed: List[Merit] = []
        emitted: List[VariationInput] = []
        queue = deque((copy.deepcopy(entry), None) for entry in merits)

        while queue:
            data, parent_key = queue.popleft()
            merit = self.process_merit(data, pc_data)
            merit.parent_merit_key = parent_key

            for child in merit.secondary_merits:
                queue.append((child, merit.key))
            for child in merit.secondary_variations:
                emitted.append(VariationInput(child, parent_merit_key=merit.key, require_context=True))
            merit.secondary_merits = []
            merit.secondary_variations = []

            processed.append(merit)
        return processed, emitted
