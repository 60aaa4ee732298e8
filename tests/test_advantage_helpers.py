import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pcsheets.advantage import (
    AdvantageError,
    RegexpReplacement,
    apply_advantage_deviations,
    apply_regexp_replacements,
    build_advantage_dotline,
    build_value_dots,
    merge_advantage_data,
    merit_purchase_level,
    ranged_purchase_level,
    select_effect_template,
    wrap_paragraphs,
)
from pcsheets.advantage.helpers import SCAR_VALUE_ORDER, VARIATION_VALUE_ORDER, dedupe


def test_merge_player_over_rule_data():
    merged = merge_advantage_data(
        {"key": "x", "tags": ["a", "a", "b"], "vars": {"n": 1}, "name": "Mine"},
        {"tags": ["z"], "vars": {"m": 2}, "effect": "E", "name": "Rule"},
    )
    assert merged == {"key": "x", "tags": ["a", "b"], "vars": {"m": 2, "n": 1}, "effect": "E", "name": "Mine"}


def test_merge_keeps_rule_deviation_map():
    rules = {"deviations": {"focused": {"magMod": 1}}}
    merged = merge_advantage_data({"key": "x", "deviations": ["focused"]}, rules)
    assert merged["deviations"] == {"focused": {"magMod": 1}}

    overridden = merge_advantage_data({"key": "x", "deviations": ["focused"]}, rules, allow_system_deviations=True)
    assert overridden["deviations"] == ["focused"]


def test_merge_without_rule_data_copies_player_data():
    data = {"key": "x", "effect": "E"}
    merged = merge_advantage_data(data, None)
    assert merged == data
    assert merged is not data


def test_dedupe_keeps_first_occurrence():
    assert dedupe(["a", "b", "a", "c"]) == ["a", "b", "c"]
    assert dedupe([{"x": 1}, {"x": 1}, {"x": 2}]) == [{"x": 1}, {"x": 2}]


def test_merit_purchase_level():
    assert merit_purchase_level(None, None, "k") == 1
    assert merit_purchase_level(None, 2, "k") == 2
    assert merit_purchase_level(3, {"min": 1, "max": 3}, "k") == 3
    with pytest.raises(AdvantageError, match="invalid value in PC file"):
        merit_purchase_level("two", None, "k")
    with pytest.raises(AdvantageError, match="requires a value to be specified"):
        merit_purchase_level(None, {"min": 1, "max": 3}, "k")


def test_ranged_purchase_level():
    assert ranged_purchase_level(5, SCAR_VALUE_ORDER) == 5
    assert ranged_purchase_level({"total": 4, "base": 2}, SCAR_VALUE_ORDER) == 4
    assert ranged_purchase_level({"base": 2}, VARIATION_VALUE_ORDER) == 2
    assert ranged_purchase_level({"min": 2}, SCAR_VALUE_ORDER) == 2
    assert ranged_purchase_level({"min": 2}, VARIATION_VALUE_ORDER) == 1
    assert ranged_purchase_level(None, SCAR_VALUE_ORDER) == 1


def test_deviation_magnitudes_add_up():
    merged = {"deviations": {"a": {"magMod": 1}, "b": {"magMod": 2}, "c": {"name": "No change"}}}
    result = apply_advantage_deviations(3, merged, ["a", "b", "c", "unknown"], "k")
    assert result.adjusted_value == 6
    assert result.regexp_replacements == []


def test_deviation_magnitudes_can_be_disabled():
    merged = {"deviations": {"a": {"magMod": 1}}}
    assert apply_advantage_deviations(3, merged, ["a"], "k", allow_mag_mod=False).adjusted_value == 3


def test_deviation_replace_and_conflicts():
    merged = {
        "effect": "Original",
        "deviations": {
            "a": {"replace": {"effect": "X"}},
            "b": {"replace": {"effect": "Y"}},
            "c": {"replace": {"narrative": "N"}},
        },
    }
    result = apply_advantage_deviations(1, merged, ["a", "c"], "k")
    assert result.merged_data["effect"] == "X"
    assert result.merged_data["narrative"] == "N"
    assert merged["effect"] == "Original"

    with pytest.raises(AdvantageError, match='conflicting replace definitions for "effect"'):
        apply_advantage_deviations(1, merged, ["a", "b"], "k")


def test_deviation_regexp_entries_are_validated():
    merged = {"deviations": {
        "good": {"regexpReplace": [{"pattern": "foo", "replace": "bar"}]},
        "bad": {"regexpReplace": [{"pattern": "foo"}]},
    }}
    result = apply_advantage_deviations(1, merged, ["good"], "k")
    assert result.regexp_replacements == [RegexpReplacement("foo", "bar", "good")]

    with pytest.raises(AdvantageError, match="invalid regexpReplace entry"):
        apply_advantage_deviations(1, merged, ["bad"], "k")


def test_non_dict_deviation_map_is_ignored():
    assert apply_advantage_deviations(2, {"deviations": ["a"]}, ["a"], "k").adjusted_value == 2


def test_select_effect_template():
    assert select_effect_template("E", 3, "k") == "E"
    assert select_effect_template({"1": "one", "2": "two"}, 2, "k") == "two"
    assert select_effect_template({"1": "one", "2": "two"}, 2.0, "k") == "two"
    with pytest.raises(AdvantageError, match="no effect text for purchase level 3. Available levels: 1"):
        select_effect_template({"1": "one"}, 3, "k")
    with pytest.raises(AdvantageError, match="missing effect data entirely"):
        select_effect_template(None, 1, "k")


def test_regexp_replacements_use_group_references():
    rules = [RegexpReplacement(r"(\w+) perception", "$1 sight", "d")]
    assert apply_regexp_replacements("roll perception", rules, lambda text: text) == "roll sight"

    literal = [RegexpReplacement("cost", "$$5", "d")]
    assert apply_regexp_replacements("cost", literal, lambda text: text) == "$5"

    assert apply_regexp_replacements(None, rules, lambda text: text) is None
    assert apply_regexp_replacements("unchanged", [], lambda text: text) == "unchanged"


def test_regexp_replacement_errors():
    with pytest.raises(AdvantageError, match="produced an empty pattern"):
        apply_regexp_replacements("x", [RegexpReplacement("", "y", "d")], lambda text: text)
    with pytest.raises(AdvantageError, match="Invalid regexpReplace pattern"):
        apply_regexp_replacements("x", [RegexpReplacement("(", "y", "d")], lambda text: text)


def test_advantage_dotline():
    assert build_advantage_dotline(3) == ["full-dot", "full-dot", "full-dot"]
    assert build_advantage_dotline({"base": 3, "deviation": -1}) == ["full-dot", "full-dot", "ghost-dot"]
    assert build_advantage_dotline({"base": 2, "deviation": 2}) == [
        "full-dot", "full-dot", "deviation-dot", "deviation-dot",
    ]
    assert build_advantage_dotline({"base": 2, "free": 1}) == ["full-dot", "full-dot free-dot"]
    assert build_advantage_dotline(0) is None
    assert build_advantage_dotline(None) is None
    assert build_advantage_dotline("3") is None


def test_value_dots_always_fill_to_maximum():
    assert build_value_dots(3, 5) == ["full", "full", "full", "empty", "empty"]
    assert build_value_dots(3, 5, bonus=1, broken=1) == ["broken", "full", "full", "bonus", "empty"]
    assert build_value_dots(7, 5) == ["full"] * 5
    assert build_value_dots(2, 5, broken=4) == ["broken", "broken", "empty", "empty", "empty"]
    assert len(build_value_dots(4, 10, bonus=9)) == 10


def test_wrap_paragraphs():
    assert wrap_paragraphs("text", "Effect:") == "<p><strong>Effect:</strong> text</p>"
    assert wrap_paragraphs("<p>a</p> <p>b</p>") == "<p>a</p><p>b</p>"
    assert wrap_paragraphs("<p><p>x</p></p>") == "<p>x</p>"
    assert wrap_paragraphs("   ") == "   "


if __name__ == "__main__":
    pytest.main([__file__])
