"""
Shared helpers for merits, variations and scars.

Covers merging player JSON over rule data, purchase-level selection,
deviation application, effect template selection and dot-line building.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pcsheets.notation.utils import format_number, is_number


class AdvantageError(ValueError):
    """Rule-data or configuration conflict in an advantage definition."""


VARIATION_VALUE_ORDER = ("total", "base")
SCAR_VALUE_ORDER = ("total", "base", "min")

DOT_FULL = "full"
DOT_BONUS = "bonus"
DOT_BROKEN = "broken"
DOT_EMPTY = "empty"


@dataclass
class RegexpReplacement:
    pattern: str
    replace: str
    source_deviation: str


@dataclass
class DeviationResult:
    adjusted_value: float
    merged_data: Dict[str, Any]
    regexp_replacements: List[RegexpReplacement] = field(default_factory=list)


def dedupe(items: Iterable[Any]) -> List[Any]:
    seen = set()
    result = []
    for item in items:
        marker = json.dumps(item, sort_keys=True) if isinstance(item, (dict, list)) else str(item)
        if marker not in seen:
            seen.add(marker)
            result.append(item)
    return result


def merge_advantage_data(
    context_data: Dict[str, Any],
    system_data: Optional[Dict[str, Any]],
    allow_system_deviations: bool = False,
) -> Dict[str, Any]:
    """Overlay player JSON on a rule record.

    Player lists replace rule lists (deduplicated), dicts are shallow-merged
    and scalars override. The rule ``deviations`` map survives a player
    ``deviations`` list unless ``allow_system_deviations`` is set.
    """
    if not system_data:
        return dict(context_data)

    result = dict(system_data)
    for key, value in context_data.items():
        system_value = system_data.get(key)
        if key == "deviations" and not allow_system_deviations:
            continue
        if isinstance(value, list):
            result[key] = dedupe(value)
        elif isinstance(value, dict) and isinstance(system_value, dict):
            result[key] = {**system_value, **value}
        else:
            result[key] = value
    return result


def merit_purchase_level(player_value: Any, system_value: Any, key: str):
    if player_value is not None:
        if not is_number(player_value):
            raise AdvantageError(
                f'Merit "{key}" has an invalid value in PC file: {json.dumps(player_value)}. Expected a number.'
            )
        return player_value
    if is_number(system_value):
        return system_value
    if isinstance(system_value, dict):
        raise AdvantageError(
            f'Merit "{key}" requires a value to be specified in the PC file. '
            f"System data defines it as a range: {json.dumps(system_value)}"
        )
    return 1


def ranged_purchase_level(value: Any, order: Sequence[str]):
    """A bare number, else the first numeric field of ``order``, else 1."""
    if is_number(value):
        return value
    if isinstance(value, dict):
        for name in order:
            if is_number(value.get(name)):
                return value[name]
    return 1


def apply_advantage_deviations(
    base_value,
    merged_advantage: Dict[str, Any],
    deviation_keys: Sequence[str],
    context_key: str,
    allow_mag_mod: bool = True,
) -> DeviationResult:
    """Apply the selected deviations found in the rule ``deviations`` map."""
    merged = dict(merged_advantage)
    system_deviations = merged_advantage.get("deviations")
    if not isinstance(system_deviations, dict):
        system_deviations = {}
    replaced_by: Dict[str, str] = {}
    adjusted = base_value
    replacements: List[RegexpReplacement] = []

    for deviation_key in deviation_keys:
        deviation = system_deviations.get(deviation_key)
        if not isinstance(deviation, dict):
            continue

        if allow_mag_mod and is_number(deviation.get("magMod")):
            adjusted += deviation["magMod"]

        overrides = deviation.get("replace")
        if isinstance(overrides, dict):
            for prop, value in overrides.items():
                previous = replaced_by.get(prop)
                if previous:
                    raise AdvantageError(
                        f'Advantage "{context_key}" has conflicting replace definitions for "{prop}" '
                        f'between deviations "{previous}" and "{deviation_key}".'
                    )
                replaced_by[prop] = deviation_key
                merged[prop] = value

        rules = deviation.get("regexpReplace")
        if isinstance(rules, list):
            for rule in rules:
                if not isinstance(rule, dict) or not isinstance(rule.get("pattern"), str) \
                        or not isinstance(rule.get("replace"), str):
                    raise AdvantageError(
                        f'Advantage "{context_key}" deviation "{deviation_key}" defines an invalid regexpReplace entry.'
                    )
                replacements.append(RegexpReplacement(rule["pattern"], rule["replace"], deviation_key))

    return DeviationResult(adjusted, merged, replacements)


def select_effect_template(effect_data: Any, purchase_level, context_key: str) -> str:
    """Pick the effect text for ``purchase_level`` from a string or a level map."""
    if isinstance(effect_data, str):
        return effect_data

    level = format_number(purchase_level)
    if isinstance(effect_data, dict):
        text = effect_data.get(level)
        if isinstance(text, str):
            return text
        available = ", ".join(effect_data) or "none"
        raise AdvantageError(
            f'Advantage "{context_key}" has no effect text for purchase level {level}. Available levels: {available}.'
        )

    raise AdvantageError(
        f'Advantage "{context_key}" is missing effect data entirely; cannot resolve purchase level {level}.'
    )


_JS_GROUP_PATTERN = re.compile(r"\$(\$|&|\d+)")


def _python_replacement(template: str) -> str:
    """Translate ``$1``/``$&``/``$$`` replacement syntax for ``re.sub``."""
    escaped = template.replace("\\", "\\\\")

    def convert(match: re.Match) -> str:
        token = match.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return r"\g<0>"
        return rf"\g<{token}>"

    return _JS_GROUP_PATTERN.sub(convert, escaped)


def apply_regexp_replacements(
    value: Optional[str],
    replacements: Sequence[RegexpReplacement],
    render: Callable[[str], str],
) -> Optional[str]:
    """Rewrite ``value`` with each rule; ``render`` expands notations in the rule texts."""
    if not isinstance(value, str) or not replacements:
        return value

    updated = value
    for rule in replacements:
        pattern_text = render(rule.pattern) or ""
        replace_text = render(rule.replace) or ""
        if not pattern_text:
            raise AdvantageError(
                f'regexpReplace from deviation "{rule.source_deviation}" produced an empty pattern.'
            )
        try:
            updated = re.sub(pattern_text, _python_replacement(replace_text), updated)
        except re.error as exc:
            raise AdvantageError(
                f'Invalid regexpReplace pattern "{pattern_text}" from deviation "{rule.source_deviation}".'
            ) from exc
    return updated


def _positive_int(value: Any) -> int:
    if not is_number(value) or value <= 0:
        return 0
    return math.floor(value)


def _signed_int(value: Any) -> int:
    if not is_number(value) or value == 0:
        return 0
    return math.floor(value) if value > 0 else -math.floor(abs(value))


def has_dotline_structure(value: Any) -> bool:
    return isinstance(value, dict) and any(name in value for name in ("base", "deviation", "free"))


def build_advantage_dotline(raw_value: Any) -> Optional[List[str]]:
    """CSS class strings for an advantage's dots.

    Negative deviation ghosts out trailing dots, positive deviation appends
    ``deviation-dot`` entries, and at most one live dot is marked free.
    """
    if raw_value is None:
        return None

    deviation = free = 0
    if is_number(raw_value):
        base = _positive_int(raw_value)
    elif isinstance(raw_value, dict):
        base = 0
        for name in ("total", "base", "max", "min"):
            count = _positive_int(raw_value.get(name))
            if count > 0:
                base = count
                break
        deviation = _signed_int(raw_value.get("deviation"))
        free = min(1, _positive_int(raw_value.get("free")))
    else:
        return None

    dots = [["full-dot"] for _ in range(base)]
    if deviation < 0:
        for index in range(min(len(dots), -deviation)):
            dots[len(dots) - 1 - index] = ["ghost-dot"]
    elif deviation > 0:
        dots.extend(["deviation-dot"] for _ in range(deviation))

    if free:
        for classes in reversed(dots):
            if "ghost-dot" not in classes:
                classes.append("free-dot")
                break

    if not dots:
        return None
    return [" ".join(classes) for classes in dots]


def build_value_dots(base: int, maximum: int, bonus: int = 0, broken: int = 0) -> List[str]:
    """Dot types for a rated trait; always exactly ``maximum`` entries.

    Base dots come first, then bonus dots, both clipped to ``maximum``.
    Broken dots overwrite from the left and never exceed the filled dots.
    """
    maximum = max(0, int(maximum))
    full = min(max(0, int(base)), maximum)
    extra = min(max(0, int(bonus)), maximum - full)

    dots = [DOT_FULL] * full + [DOT_BONUS] * extra
    for index in range(min(max(0, int(broken)), len(dots))):
        dots[index] = DOT_BROKEN
    dots.extend([DOT_EMPTY] * (maximum - len(dots)))
    return dots
