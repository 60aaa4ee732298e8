"""
PCSheet - turns a player-character JSON file into the rendering context.

Fills defaults, builds trait records with dot-lines and tooltips, and runs
merits, scars and variations through the advantage pipeline so page
templates only ever see finished HTML.

Usage:
    sheet = PCSheet.from_file("characters/ada.json")
    data = sheet.get_data()
"""

import copy
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pcsheets.advantage import MeritProcessor, ScarProcessor, VariationInput, VariationProcessor, build_value_dots
from pcsheets.config import NotationConfig
from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.processor import NotationProcessor
from pcsheets.notation.resolver import ATTRIBUTE_CATEGORIES, ATTRIBUTE_DISPLAY_NAMES, attribute_category
from pcsheets.notation.utils import is_number

logger = logging.getLogger(__name__)

TRAIT_CATEGORIES = ("mental", "physical", "social")

SKILL_CATEGORIES = {
    "mental": ("academics", "computer", "crafts", "investigation", "medicine", "occult", "politics", "science"),
    "physical": ("athletics", "brawl", "drive", "firearms", "larceny", "stealth", "survival", "weaponry"),
    "social": (
        "animalKen", "empathy", "expression", "intimidation",
        "persuasion", "socialize", "streetwise", "subterfuge",
    ),
}

TRAIT_TAGS = ("asset", "hypercompetent", "overt")
TRAIT_PRIORITIES = ("primary", "secondary", "tertiary")

# tag -> (anchor, tooltip text)
SPECIALIZATION_TAGS = {
    "interdisciplinary": ("⁂", "<center>Interdisciplinary</center>"),
    "expert": ("+2", "<center>Area of Expertise</center>"),
}

DERIVED_TRAIT_MAX = {"health": 10, "willpower": 10, "acclimation": 5, "stability": 10}

ATTRIBUTE_TOOLTIP_MAX_LEVEL = 20
SKILL_TOOLTIP_MAX_LEVEL = 5

HEADER_FIELDS = (
    "player", "name", "sex", "dob", "ddv", "imageUrl", "concept",
    "origin", "clade", "forms", "overview", "bio",
)
STAT_FIELDS = ("size", "defense", "initiative", "speed", "armor")


def skill_category(key: str) -> Optional[str]:
    for category, keys in SKILL_CATEGORIES.items():
        if key in keys:
            return category
    return None


def skill_display_name(key: str) -> str:
    """``animalKen`` -> ``Animal Ken``"""
    words = []
    current = ""
    for char in key:
        if char.isupper() and current:
            words.append(current)
            current = char
        else:
            current += char
    words.append(current)
    return " ".join(word[:1].upper() + word[1:] for word in words if word)


def _number(value: Any, default=0):
    return value if is_number(value) else default


def extract_trait_value(raw: Any) -> Dict[str, Any]:
    """Normalise a trait entry (bare number or object) into base/bonus/broken/total/max."""
    if is_number(raw):
        base, bonus, broken, total = raw, 0, 0, raw
    elif isinstance(raw, dict):
        value = raw.get("value")
        if is_number(value):
            base = value
            bonus = _number(raw.get("bonus"))
            broken = _number(raw.get("broken"))
            total = _number(raw.get("total"), base + bonus)
        elif isinstance(value, dict):
            base = _number(value.get("base"))
            bonus = _number(value.get("bonus"), _number(raw.get("bonus")))
            broken = _number(value.get("broken"), _number(raw.get("broken")))
            total = _number(value.get("total"), _number(raw.get("total"), base + bonus))
        else:
            base = 0
            bonus = _number(raw.get("bonus"))
            broken = _number(raw.get("broken"))
            total = _number(raw.get("total"))
    else:
        base = bonus = broken = total = 0

    return {"base": base, "bonus": bonus, "broken": broken, "total": total, "max": 10 if base > 5 else 5}


def build_css_classes(tags: List[str], priority: Optional[str] = None) -> List[str]:
    classes = [f"trait-{tag}" for tag in tags]
    if priority:
        classes.append(f"priority-{priority}")
    return classes


class PCSheet:
    """Builds the template context for one player character."""

    def __init__(
        self,
        json_data: Dict[str, Any],
        system_data_dir: Optional[Union[str, Path]] = None,
        config: Optional[NotationConfig] = None,
    ):
        config = config or NotationConfig()
        if system_data_dir is not None:
            config = replace(config, system_data_dir=system_data_dir)

        self.json_data = json_data
        self.config = config
        self.notation_processor = NotationProcessor(config)
        self.system_data = self.notation_processor.resolver.system_data
        self.merit_processor = MeritProcessor(self.notation_processor)
        self.variation_processor = VariationProcessor(self.notation_processor)
        self.scar_processor = ScarProcessor(self.notation_processor)

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs: Any) -> "PCSheet":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Character file {path} must contain a JSON object")
        return cls(data, **kwargs)

    # --- Traits ---

    def default_trait(self, key: str, maximum: int = 5, base: int = 0) -> Dict[str, Any]:
        maximum = max(maximum, base)
        return {
            "key": key,
            "value": {"base": base, "bonus": 0, "broken": 0, "total": base, "max": maximum},
            "dotline": {"dots": build_value_dots(base, maximum)},
            "tags": [],
            "specs": [],
            "cssClasses": [],
        }

    def get_defaults(self) -> Dict[str, Any]:
        return {
            "player": "",
            "name": "",
            "sex": "u",
            "dob": "?? / ?? / ??",
            "ddv": "?? / ?? / ??",
            "imageUrl": "",
            "concept": "",
            "origin": "",
            "clade": "",
            "forms": [],
            "overview": "Needs overview.",
            "health": self.default_trait("health", 10),
            "willpower": self.default_trait("willpower", 10),
            "acclimation": self.default_trait("acclimation", 5),
            "stability": self.default_trait("stability", 10),
            "size": 5,
            "defense": 0,
            "initiative": 0,
            "speed": 0,
            "armor": {"general": 0, "ballistic": 0},
            "attributes": {
                category: {key: self.default_trait(key) for key in keys}
                for category, keys in ATTRIBUTE_CATEGORIES.items()
            },
            "attributePriorities": {category: "tertiary" for category in TRAIT_CATEGORIES},
            "skills": {
                category: {key: self.default_trait(key) for key in keys}
                for category, keys in SKILL_CATEGORIES.items()
            },
            "skillPriorities": {category: "tertiary" for category in TRAIT_CATEGORIES},
        }

    def build_specialization_tooltip(self, anchor: str, content: str) -> str:
        anchor_id = self.config.new_id()
        return (
            f'<span class="has-tooltip" style="anchor-name: --{anchor_id};">{anchor}</span>'
            f'<div class="tooltip tiny-tooltip" style="position-anchor: --{anchor_id};">{content}</div>'
        )

    def parse_specializations(self, specs: Any) -> List[Dict[str, Any]]:
        """``"Electricity,interdisciplinary,expert"`` -> text, tags and tag markup."""
        parsed = []
        for spec in specs or []:
            if not isinstance(spec, str):
                continue
            parts = [part.strip() for part in spec.split(",") if part.strip()]
            if not parts:
                continue
            tags = [part for part in parts[1:] if part in SPECIALIZATION_TAGS]
            tag_markup = [self.build_specialization_tooltip(*SPECIALIZATION_TAGS[tag]) for tag in tags]
            parsed.append({"text": parts[0], "tags": tags, "tagString": ", ".join(tag_markup)})
        return parsed

    def extract_trait(self, key: str, raw: Any, priority: Optional[str] = None) -> Dict[str, Any]:
        value = extract_trait_value(raw)
        if key in DERIVED_TRAIT_MAX:
            value["max"] = DERIVED_TRAIT_MAX[key]

        tags: List[str] = []
        specs: List[Dict[str, Any]] = []
        trait: Dict[str, Any] = {"key": key}
        if isinstance(raw, dict):
            tags = [tag for tag in raw.get("tags") or [] if isinstance(tag, str)]
            unknown = [tag for tag in tags if tag not in TRAIT_TAGS]
            if unknown:
                logger.warning("Trait %s has unrecognised tags: %s", key, ", ".join(unknown))
            specs = self.parse_specializations(raw.get("specs"))
            if isinstance(raw.get("narrative"), str):
                trait["narrative"] = raw["narrative"]

        trait.update({
            "value": value,
            "dotline": {"dots": build_value_dots(value["base"], value["max"], value["bonus"], value["broken"])},
            "tags": tags,
            "specs": specs,
            "cssClasses": build_css_classes(tags, priority),
        })
        return trait

    def _categorised_traits(self, entries: Any, categorise, priorities: Any, kind: str) -> Dict[str, Dict]:
        grouped: Dict[str, Dict[str, Any]] = {category: {} for category in TRAIT_CATEGORIES}
        priorities = priorities if isinstance(priorities, dict) else {}
        for key, raw in (entries or {}).items():
            category = categorise(key)
            if category is None:
                raise ValueError(f"Unknown {kind} '{key}' in character data")
            grouped[category][key] = self.extract_trait(key, raw, priorities.get(category))
        return grouped

    def process_json_data(self) -> Dict[str, Any]:
        data = self.json_data
        result: Dict[str, Any] = {}

        for name in HEADER_FIELDS + STAT_FIELDS:
            if data.get(name) is not None:
                result[name] = copy.deepcopy(data[name])

        for name in DERIVED_TRAIT_MAX:
            if data.get(name) is not None:
                result[name] = self.extract_trait(name, data[name])

        if data.get("attributes") is not None:
            result["attributes"] = self._categorised_traits(
                data["attributes"], attribute_category, data.get("attributePriorities"), "attribute"
            )
        if data.get("skills") is not None:
            result["skills"] = self._categorised_traits(
                data["skills"], skill_category, data.get("skillPriorities"), "skill"
            )
        for name in ("attributePriorities", "skillPriorities"):
            if isinstance(data.get(name), dict):
                unknown = set(data[name].values()) - set(TRAIT_PRIORITIES)
                if unknown:
                    raise ValueError(f"Invalid {name} value(s): {', '.join(sorted(map(str, unknown)))}")
                result[name] = dict(data[name])
        return result

    @staticmethod
    def merge_data(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(target)
        for key, value in source.items():
            if key in ("attributes", "skills"):
                result[key] = {
                    category: {**target[key].get(category, {}), **value.get(category, {})}
                    for category in TRAIT_CATEGORIES
                }
            else:
                result[key] = value
        for key, maximum in DERIVED_TRAIT_MAX.items():
            result[key]["value"]["max"] = maximum
        return result

    # --- Tooltips ---

    def iter_traits(self, data: Dict[str, Any]):
        for group, display in (("attributes", self.attribute_display), ("skills", skill_display_name)):
            for category in TRAIT_CATEGORIES:
                for key, trait in data[group][category].items():
                    yield group, key, trait, display(key)

    @staticmethod
    def attribute_display(key: str) -> str:
        return ATTRIBUTE_DISPLAY_NAMES.get(key, key)

    def build_tooltip(self, group: str, key: str, trait: Dict[str, Any], display: str, data: Dict[str, Any]):
        """Tooltip markup for an attribute or skill from its rule-data level text."""
        definition = self.system_data.get_system_data(group, key)
        if not definition or not isinstance(definition.get("levels"), dict):
            return None

        total = trait["value"]["total"]
        ceiling = ATTRIBUTE_TOOLTIP_MAX_LEVEL if group == "attributes" else SKILL_TOOLTIP_MAX_LEVEL
        level_key = str(int(min(total, ceiling)))
        level_text = definition["levels"].get(level_key)
        if not isinstance(level_text, str):
            return None

        context = ProcessingContext(
            context=data,
            this_entity={"name": display, "display": display, "value": {"total": total}},
        )
        description = self.process_template(definition.get("description") or "", data, context)
        level_html = self.process_template(level_text, data, context)

        tooltip_id = self.config.new_id()
        html = (
            f'<div class="tooltip" style="position-anchor: --{tooltip_id};">'
            f"<span class='tooltip-title tooltip-title-white tooltip-title-left'>{display}: {total}</span>"
            f"<span class='trait-desc-general tooltip-block'>{description}</span>"
            f"<span class='trait-desc-specific tooltip-block'>{level_html}</span>"
            "</div>"
        )
        return html, tooltip_id

    def build_all_tooltips(self, data: Dict[str, Any]) -> None:
        for group, key, trait, display in self.iter_traits(data):
            tooltip = self.build_tooltip(group, key, trait, display, data)
            if tooltip:
                trait["tooltip"], trait["tooltipID"] = tooltip

    # --- Assembly ---

    def get_data(self) -> Dict[str, Any]:
        """Defaults, player data, tooltips, then merits, scars and variations."""
        data = self.merge_data(self.get_defaults(), self.process_json_data())
        self.build_all_tooltips(data)

        emitted: List[VariationInput] = []
        raw_merits = self.json_data.get("merits")
        if isinstance(raw_merits, list):
            merits, emitted = self.merit_processor.process_tree(raw_merits, data)
            data["merits"] = [merit.to_dict() for merit in merits]

        raw_scars = self.json_data.get("scars")
        if isinstance(raw_scars, list):
            scars = [self.scar_processor.process_scar(copy.deepcopy(entry), data) for entry in raw_scars]
            data["scars"] = [scar.to_dict() for scar in scars]
            data["scarsByKey"] = {scar["key"]: scar for scar in data["scars"]}

        raw_variations = self.json_data.get("variations")
        inputs = [VariationInput(entry) for entry in raw_variations] if isinstance(raw_variations, list) else []
        inputs.extend(emitted)
        if inputs:
            variations = [v.to_dict() for v in self.variation_processor.process_forest(inputs, data)]
            by_scar: Dict[str, List[Dict[str, Any]]] = {}
            for variation in variations:
                by_scar.setdefault(variation.get("entangledScar") or "__ungrouped__", []).append(variation)
            data["variations"] = variations
            data["variationsByScar"] = by_scar

        logger.debug(
            "Built sheet for %s: %d merits, %d scars, %d variations",
            data.get("name") or "<unnamed>",
            len(data.get("merits", [])),
            len(data.get("scars", [])),
            len(data.get("variations", [])),
        )
        return data

    def process_template(
        self,
        text: str,
        pc_data: Dict[str, Any],
        context: Optional[ProcessingContext] = None,
    ) -> str:
        """Expand notations in ``text`` against ``pc_data``."""
        if context is None:
            context = ProcessingContext(context=pc_data)
        return self.notation_processor.process(text, context)
