import json
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pcsheets import NotationConfig, PCSheet
from pcsheets.advantage import AdvantageError
from pcsheets.sheet import extract_trait_value, skill_display_name

DATA_DIR = ROOT_DIR / "data" / "system-data"
EXAMPLE = ROOT_DIR / "data" / "characters" / "example.json"


def load_example():
    with open(EXAMPLE, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture(scope="module")
def sheet_data():
    sheet = PCSheet(load_example(), system_data_dir=DATA_DIR, config=NotationConfig.seeded(3))
    return sheet.get_data()


def test_trait_value_shapes():
    assert extract_trait_value(3) == {"base": 3, "bonus": 0, "broken": 0, "total": 3, "max": 5}
    assert extract_trait_value(6)["max"] == 10
    assert extract_trait_value({"value": 2, "bonus": 1}) == {"base": 2, "bonus": 1, "broken": 0, "total": 3, "max": 5}
    assert extract_trait_value({"value": {"base": 2, "bonus": 2, "total": 5}})["total"] == 5
    assert extract_trait_value(None) == {"base": 0, "bonus": 0, "broken": 0, "total": 0, "max": 5}


def test_skill_display_name():
    assert skill_display_name("animalKen") == "Animal Ken"
    assert skill_display_name("science") == "Science"


def test_defaults_fill_missing_fields():
    data = PCSheet({"name": "Blank"}, system_data_dir=DATA_DIR).get_data()
    assert data["sex"] == "u"
    assert data["dob"] == "?? / ?? / ??"
    assert data["ddv"] == "?? / ?? / ??"
    assert data["overview"] == "Needs overview."
    assert data["armor"] == {"general": 0, "ballistic": 0}
    assert data["health"]["value"]["max"] == 10
    assert data["acclimation"]["value"]["max"] == 5
    assert data["attributePriorities"] == {"mental": "tertiary", "physical": "tertiary", "social": "tertiary"}
    assert len(data["skills"]["social"]) == 8
    assert data["skills"]["physical"]["brawl"]["dotline"]["dots"] == ["empty"] * 5
    assert "merits" not in data


def test_player_fields(sheet_data):
    assert sheet_data["name"] == "Dr. Ada Voss"
    assert sheet_data["sex"] == "f"
    assert sheet_data["dob"] == "?? / ?? / ??"
    assert sheet_data["forms"] == ["Feline"]
    assert sheet_data["armor"] == {"general": 1, "ballistic": 0}


def test_attribute_records(sheet_data):
    dex = sheet_data["attributes"]["physical"]["dex"]
    assert dex["value"] == {"base": 3, "bonus": 1, "broken": 0, "total": 4, "max": 5}
    assert dex["dotline"]["dots"] == ["full", "full", "full", "bonus", "empty"]
    assert dex["cssClasses"] == ["trait-asset", "priority-secondary"]
    assert sheet_data["attributes"]["mental"]["int"]["cssClasses"] == ["priority-primary"]


def test_derived_traits(sheet_data):
    willpower = sheet_data["willpower"]
    assert willpower["value"] == {"base": 5, "bonus": 0, "broken": 1, "total": 5, "max": 10}
    assert willpower["dotline"]["dots"] == ["broken"] + ["full"] * 4 + ["empty"] * 5
    assert sheet_data["acclimation"]["value"]["max"] == 5
    assert len(sheet_data["acclimation"]["dotline"]["dots"]) == 5
    assert sheet_data["health"]["value"]["total"] == 8


def test_specializations(sheet_data):
    specs = sheet_data["skills"]["mental"]["science"]["specs"]
    assert [s["text"] for s in specs] == ["Biology", "Genetics"]
    assert specs[0]["tags"] == ["expert"]
    assert "+2</span>" in specs[0]["tagString"]
    assert "<center>Area of Expertise</center>" in specs[0]["tagString"]
    assert "<center>Interdisciplinary</center>" in specs[1]["tagString"]


def test_trait_tooltips(sheet_data):
    strength = sheet_data["attributes"]["physical"]["str"]
    assert "Strength: 3</span>" in strength["tooltip"]
    assert "Fit; her body is used to hard work." in strength["tooltip"]
    assert f"position-anchor: --{strength['tooltipID']};" in strength["tooltip"]

    assert "Graceful and precise." in sheet_data["attributes"]["physical"]["dex"]["tooltip"]
    assert "Published expert." in sheet_data["skills"]["mental"]["science"]["tooltip"]
    assert "tooltip" not in sheet_data["attributes"]["mental"]["wit"]


def test_merits(sheet_data):
    merits = sheet_data["merits"]
    assert [m["key"] for m in merits] == ["fast-reflexes", "street-fighting", "danger-sense"]
    assert merits[0]["effect"] == "Add 2 to Initiative."
    assert merits[2]["parentMeritKey"] == "street-fighting"


def test_scars(sheet_data):
    assert [s["key"] for s in sheet_data["scars"]] == ["chronic-pain"]
    scar = sheet_data["scarsByKey"]["chronic-pain"]
    assert scar["type"] == "physical"
    assert scar["infoLine"]["stats"][0]["value"] == 3


def test_variations(sheet_data):
    assert [v["key"] for v in sheet_data["variations"]] == ["enhanced-senses", "claws", "venom"]
    senses = sheet_data["variations"][0]
    assert senses["finalMagnitude"] == 3
    assert senses["effect"].startswith("<p><strong>Effect:</strong> Dr. Ada adds 2 to perception rolls")

    grouped = sheet_data["variationsByScar"]
    assert [v["key"] for v in grouped["__ungrouped__"]] == ["enhanced-senses"]
    assert [v["key"] for v in grouped["chronic-pain"]] == ["claws", "venom"]
    assert grouped["chronic-pain"][1]["parentVariationKey"] == "claws"


def test_seeded_sheets_are_reproducible():
    first = PCSheet(load_example(), system_data_dir=DATA_DIR, config=NotationConfig.seeded(11)).get_data()
    second = PCSheet(load_example(), system_data_dir=DATA_DIR, config=NotationConfig.seeded(11)).get_data()
    assert first == second


def test_process_template(sheet_data):
    sheet = PCSheet(load_example(), system_data_dir=DATA_DIR)
    assert sheet.process_template("{{NAMEVALUE:str}} for {{NAME}}", sheet_data) == (
        "<strong class='trait-def'>Strength (+3)</strong> for Dr. Ada"
    )


def test_from_file():
    sheet = PCSheet.from_file(EXAMPLE, system_data_dir=DATA_DIR)
    assert sheet.json_data["player"] == "Sam"
    assert sheet.config.data_dir() == DATA_DIR


def test_invalid_input_is_rejected():
    with pytest.raises(ValueError, match="Unknown attribute 'luck'"):
        PCSheet({"attributes": {"luck": 3}}, system_data_dir=DATA_DIR).get_data()
    with pytest.raises(ValueError, match="Invalid skillPriorities"):
        PCSheet({"skillPriorities": {"mental": "first"}}, system_data_dir=DATA_DIR).get_data()
    with pytest.raises(AdvantageError):
        PCSheet({"merits": [{"key": "fast-reflexes"}]}, system_data_dir=DATA_DIR).get_data()


if __name__ == "__main__":
    pytest.main([__file__])
