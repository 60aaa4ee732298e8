import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pcsheets.advantage import (
    AdvantageError,
    MeritProcessor,
    ScarProcessor,
    VariationInput,
    VariationProcessor,
    derive_scar_attributes,
)
from pcsheets.config import NotationConfig
from pcsheets.notation import NotationProcessor

DATA_DIR = ROOT_DIR / "data" / "system-data"


def rating(base):
    return {"value": {"base": base, "total": base}}


@pytest.fixture(scope="module")
def processor():
    return NotationProcessor(NotationConfig(system_data_dir=DATA_DIR))


@pytest.fixture
def pc_data():
    return {
        "name": "Ada Voss",
        "sex": "f",
        "attributes": {
            "mental": {"int": rating(4), "wit": rating(3), "res": rating(2)},
            "physical": {"str": rating(3), "dex": rating(2), "sta": rating(2)},
            "social": {"pre": rating(1), "man": rating(2), "com": rating(3)},
        },
        "scars": [{"key": "chronic-pain", "type": "physical"}],
    }


# --- Merits ---

def test_merit_with_player_level(processor, pc_data):
    merit = MeritProcessor(processor).process_merit({"key": "fast-reflexes", "value": 2}, pc_data)
    assert merit.display == "Fast Reflexes"
    assert merit.effect == "Add 2 to Initiative."
    assert merit.purchase_level == 2
    assert merit.source == {"book": "CoD", "page": 52}

    data = merit.to_dict()
    assert data["name"] == "Fast Reflexes"
    assert data["kind"] == "merit"
    assert data["value"] == 2


def test_ranged_merit_needs_player_level(processor, pc_data):
    with pytest.raises(AdvantageError, match='Merit "fast-reflexes" requires a value'):
        MeritProcessor(processor).process_merit({"key": "fast-reflexes"}, pc_data)


def test_merit_without_rule_data_defaults_to_one(processor, pc_data):
    merit = MeritProcessor(processor).process_merit(
        {"key": "custom", "display": "Custom", "effect": "Does {{VALUE:this}} thing."}, pc_data
    )
    assert merit.purchase_level == 1
    assert merit.effect == "Does 1 thing."


def test_merit_levels_and_drawbacks(processor, pc_data):
    merit = MeritProcessor(processor).process_merit({"key": "street-fighting", "value": 2}, pc_data)
    assert merit.effect is None
    assert merit.tags == ["style"]
    assert merit.levels[1]["name"] == "Duck and Weave"
    assert merit.levels[2]["drawback"] == "Costs a Willpower point."
    assert "effect" not in merit.to_dict()


def test_merit_tree_is_breadth_first(processor, pc_data):
    merits, emitted = MeritProcessor(processor).process_tree([
        {"key": "street-fighting", "value": 2},
        {"key": "custom", "display": "Custom", "secondaryVariations": [{"key": "venom", "type": "physical"}]},
    ], pc_data)

    assert [m.key for m in merits] == ["street-fighting", "custom", "danger-sense"]
    assert merits[2].parent_merit_key == "street-fighting"
    assert merits[2].purchase_level == 2
    assert merits[0].secondary_merits == []

    assert len(emitted) == 1
    assert emitted[0].variation["key"] == "venom"
    assert emitted[0].parent_merit_key == "custom"
    assert emitted[0].require_context


# --- Variations ---

def test_variation_with_deviation(processor, pc_data):
    variation = VariationProcessor(processor).process_variation(
        {"key": "enhanced-senses", "value": 2, "type": "physical", "selectedDeviations": ["focused"]}, pc_data
    )
    assert variation.effect == (
        "<p><strong>Effect:</strong> Ada adds 2 to perception rolls and ignores darkness penalties.</p>"
    )
    assert variation.purchase_level == 2
    assert variation.final_magnitude == 3
    assert variation.type == "physical"
    assert variation.value_dots == ["full-dot", "full-dot"]
    assert variation.deviation_badges == [
        {"key": "focused", "magMod": 1, "html": "<span class='deviation-badge'>Focused (+1)</span>"},
    ]
    assert variation.keyword_badges[0] == {
        "key": "perception",
        "className": "keyword-perception",
        "html": "<span class='keyword-badge keyword-perception'>Perception</span>",
    }


def test_variation_regexp_deviation(processor, pc_data):
    variation = VariationProcessor(processor).process_variation(
        {"key": "enhanced-senses", "value": 1, "type": "physical", "selectedDeviations": ["sensory-overload"]},
        pc_data,
    )
    assert variation.effect == "<p><strong>Effect:</strong> Ada adds 1 to sight-based rolls.</p>"
    assert variation.final_magnitude == 0


def test_variation_type_from_entangled_scar(processor, pc_data):
    variation = VariationProcessor(processor).process_variation(
        {"key": "claws", "entangledScar": "chronic-pain"}, pc_data
    )
    assert variation.type == "physical"
    assert variation.entangled_scar == "chronic-pain"
    assert variation.purchase_level == 2
    assert "<strong class='trait-def'>Scar Power (+3)</strong>" in variation.effect
    assert variation.value_dots == ["full-dot", "full-dot"]


def test_variation_type_errors(processor, pc_data):
    variations = VariationProcessor(processor)
    with pytest.raises(AdvantageError, match='must define either "entangledScar" or "type"'):
        variations.process_variation({"key": "venom"}, pc_data)
    with pytest.raises(AdvantageError, match="that scar was not found"):
        variations.process_variation({"key": "venom", "entangledScar": "missing"}, pc_data)
    pc_data["scars"].append({"key": "odd", "type": "spiritual"})
    with pytest.raises(AdvantageError, match="missing a valid type"):
        variations.process_variation({"key": "venom", "entangledScar": "odd"}, pc_data)


def test_entangled_scar_none_means_absent(processor, pc_data):
    variation = VariationProcessor(processor).process_variation(
        {"key": "venom", "entangledScar": "None", "type": "social"}, pc_data
    )
    assert variation.entangled_scar is None
    assert variation.type == "social"


def test_variation_forest_is_preorder(processor, pc_data):
    variations = VariationProcessor(processor).process_forest([
        VariationInput({"key": "claws", "entangledScar": "chronic-pain"}),
        VariationInput({"key": "enhanced-senses", "value": 1, "type": "mental"}),
    ], pc_data)

    assert [v.key for v in variations] == ["claws", "venom", "enhanced-senses"]
    venom = variations[1]
    assert venom.parent_variation_key == "claws"
    assert venom.entangled_scar == "chronic-pain"
    assert venom.type == "physical"
    assert venom.effect == "<p><strong>Effect:</strong> Victims take 1 extra damage.</p>"
    assert variations[0].secondary_variations == []


def test_secondary_variation_needs_context(processor, pc_data):
    with pytest.raises(AdvantageError, match='Secondary variation "venom" must define'):
        VariationProcessor(processor).process_forest([VariationInput({"key": "venom"}, require_context=True)], pc_data)


# --- Scars ---

def test_scar_processing(processor, pc_data):
    scar = ScarProcessor(processor).process_scar({"key": "chronic-pain", "value": 2}, pc_data)
    assert scar.display == "Chronic Pain"
    assert scar.type == "physical"
    assert scar.effect == "<p><strong>Effect:</strong> Suffer a −2 penalty to physical actions while wounded.</p>"
    assert scar.purchase_level == 2
    assert scar.activation_tags == ["persistent"]
    assert scar.value_dots == ["full-dot", "full-dot"]

    info = scar.info_line
    assert info["typeLabel"] == "Physical"
    assert [(s["label"], s["value"]) for s in info["stats"]] == [
        ("Scar Power", 3), ("Scar Finesse", 2), ("Scar Resistance", 2),
    ]
    assert info["activationHtml"] == "<span class='activation-badge activation-persistent'>Persistent</span>"

    data = scar.to_dict()
    assert data["finalMagnitude"] == 2
    assert data["activationTags"] == ["persistent"]


def test_scar_defaults_to_min_level(processor, pc_data):
    scar = ScarProcessor(processor).process_scar({"key": "chronic-pain"}, pc_data)
    assert scar.purchase_level == 1
    assert "Suffer a −1 penalty to physical actions." in scar.effect


def test_mental_scar_stats(processor, pc_data):
    scar = ScarProcessor(processor).process_scar({"key": "paranoia"}, pc_data)
    assert scar.type == "mental"
    assert "<strong class='trait-def'>Scar Resistance (+2)</strong>" in scar.effect
    assert scar.activation_tags == ["involuntary"]


def test_unknown_activation_is_rejected(processor, pc_data):
    with pytest.raises(AdvantageError, match='unknown activation "sometimes"'):
        ScarProcessor(processor).process_scar(
            {"key": "homebrew", "display": "Homebrew", "effect": "E", "activation": "sometimes"}, pc_data
        )


def test_derive_scar_attributes(pc_data):
    assert derive_scar_attributes("social", pc_data) == {"scarPower": 1, "scarFinesse": 2, "scarResistance": 3}
    assert derive_scar_attributes("mental", {"attributes": {}}) == {
        "scarPower": 0, "scarFinesse": 0, "scarResistance": 0,
    }
    with pytest.raises(AdvantageError):
        derive_scar_attributes("spiritual", pc_data)


if __name__ == "__main__":
    pytest.main([__file__])
