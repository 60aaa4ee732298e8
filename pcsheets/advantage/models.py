"""
Processed advantage records.

Merits, variations and scars share a common core (key, display text, effect,
purchase level, source) and keep any rule-defined extension fields in
``extra`` so templates can still reach them. ``to_dict`` produces the
camelCase shape that notations and page templates consume.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional


@dataclass
class Advantage:
    key: str
    display: str
    narrative: Optional[str] = None
    effect: Optional[str] = None
    purchase_level: Any = 1
    source: Optional[Dict[str, Any]] = None
    deviations: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[str] = "advantage"

    def numeric_value(self):
        return self.purchase_level

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "key": self.key,
            "kind": self.kind,
            "display": self.display,
            "purchaseLevel": self.purchase_level,
        })
        for name, value in (("narrative", self.narrative), ("effect", self.effect), ("source", self.source)):
            if value is not None:
                data[name] = value
        return data


@dataclass
class Merit(Advantage):
    """A merit; level-gated merits also carry their processed ``levels``."""
    value: Any = None
    drawback: Optional[str] = None
    levels: Optional[Dict[int, Dict[str, Any]]] = None
    tags: Optional[List[str]] = None
    parent_merit_key: Optional[str] = None
    secondary_merits: List[Dict[str, Any]] = field(default_factory=list)
    secondary_variations: List[Dict[str, Any]] = field(default_factory=list)

    kind: ClassVar[str] = "merit"

    def numeric_value(self):
        return self.value if self.value is not None else self.purchase_level

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["name"] = self.display
        optional = {
            "value": self.value,
            "drawback": self.drawback,
            "levels": self.levels,
            "tags": self.tags,
            "parentMeritKey": self.parent_merit_key,
        }
        data.update({name: value for name, value in optional.items() if value is not None})
        return data


@dataclass
class Variation(Advantage):
    final_magnitude: Any = 1
    type: Optional[str] = None
    entangled_scar: Optional[str] = None
    value_dots: Optional[List[str]] = None
    keyword_badges: List[Dict[str, str]] = field(default_factory=list)
    deviation_badges: List[Dict[str, Any]] = field(default_factory=list)
    parent_variation_key: Optional[str] = None
    parent_merit_key: Optional[str] = None
    secondary_variations: List[Dict[str, Any]] = field(default_factory=list)

    kind: ClassVar[str] = "variation"

    def numeric_value(self):
        return self.final_magnitude

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["finalMagnitude"] = self.final_magnitude
        data.pop("entangledScar", None)
        optional = {
            "type": self.type,
            "entangledScar": self.entangled_scar,
            "valueDots": self.value_dots,
            "keywordBadges": self.keyword_badges or None,
            "deviationBadges": self.deviation_badges or None,
            "parentVariationKey": self.parent_variation_key,
            "parentMeritKey": self.parent_merit_key,
        }
        data.update({name: value for name, value in optional.items() if value is not None})
        return data


@dataclass
class Scar(Advantage):
    type: str = "physical"
    final_magnitude: Any = 1
    entangled_variations: Optional[List[str]] = None
    activation: Optional[str] = None
    activation_tags: List[str] = field(default_factory=list)
    value_dots: Optional[List[str]] = None
    info_line: Optional[Dict[str, Any]] = None
    keyword_badges: List[Dict[str, str]] = field(default_factory=list)
    deviation_badges: List[Dict[str, Any]] = field(default_factory=list)

    kind: ClassVar[str] = "scar"

    def numeric_value(self):
        return self.final_magnitude

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["type"] = self.type
        data["finalMagnitude"] = self.final_magnitude
        optional = {
            "entangledVariations": self.entangled_variations,
            "activation": self.activation,
            "activationTags": self.activation_tags or None,
            "valueDots": self.value_dots,
            "infoLine": self.info_line,
            "keywordBadges": self.keyword_badges or None,
            "deviationBadges": self.deviation_badges or None,
        }
        data.update({name: value for name, value in optional.items() if value is not None})
        return data
