import json
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pcsheets.notation import (
    ProcessingContext,
    ReferenceResolutionError,
    ReferenceResolver,
    ShorthandResolver,
    SystemDataLoader,
    clear_cache,
    merge_system_data,
)

DATA_DIR = ROOT_DIR / "data" / "system-data"


@pytest.fixture
def rules_dir(tmp_path):
    clear_cache()
    (tmp_path / "_merits.json").write_text(json.dumps({
        "alpha": {"name": "Alpha", "list": [{"x": 1}, {"x": 2}]},
        "broken": "not an object",
    }), encoding="utf-8")
    (tmp_path / "_scars.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "_tilts.json").write_text("[1, 2]", encoding="utf-8")
    (tmp_path / "_widgets.json").write_text(json.dumps({"w": {"name": "Widget"}}), encoding="utf-8")
    yield tmp_path
    clear_cache()


@pytest.fixture(scope="module")
def resolver():
    loader = SystemDataLoader(DATA_DIR)
    return ReferenceResolver(loader, ShorthandResolver(DATA_DIR))


@pytest.fixture
def sheet():
    return {
        "name": "Ada Voss",
        "sex": "f",
        "attributes": {
            "physical": {
                "str": {"key": "str", "value": {"base": 3, "total": 3}},
                "dex": {"key": "dex", "value": {"base": 2, "bonus": 1, "total": 3}},
                "sta": {"key": "sta", "value": {"base": 2, "total": 2}},
            },
            "mental": {
                "int": {"key": "int", "value": {"base": 4, "total": 4}},
            },
        },
        "merits": [{"key": "fast-reflexes", "display": "Quick", "value": 2}],
        "scars": [{"key": "chronic-pain", "type": "physical"}, {"key": "untyped"}],
    }


def test_loader_reads_and_looks_up_records(rules_dir):
    loader = SystemDataLoader(rules_dir)
    assert loader.get_system_data("merits", "alpha")["name"] == "Alpha"
    assert loader.get_system_data("merits", "broken") is None
    assert loader.get_system_data("merits", "missing") is None
    assert loader.get_system_data("widgets", "w") == {"name": "Widget"}


def test_loader_treats_bad_files_as_empty(rules_dir):
    loader = SystemDataLoader(rules_dir)
    assert loader.get_data("scars") is None
    assert loader.get_data("tilts") is None
    assert loader.get_data("conditions") is None
    assert loader.get_data("") is None


def test_loader_json_reference_walks_lists(rules_dir):
    loader = SystemDataLoader(rules_dir)
    assert loader.get_json_reference("merits", ["alpha", "list", "1", "x"]) == 2
    assert loader.get_json_reference("merits", ["alpha", "list", "5"]) is None
    assert loader.get_json_reference("merits", ["alpha", "list", "first"]) is None
    assert loader.get_json_reference("merits", ["alpha", "name", "deeper"]) is None


def test_shorthand_expands_dot_free_aliases():
    shorthand = ShorthandResolver(DATA_DIR)
    assert shorthand.resolve("str") == "attributes.physical.str"
    assert shorthand.resolve("attributes.physical.str") is None
    assert shorthand.resolve("unknown") is None


def test_shorthand_without_table(tmp_path):
    assert ShorthandResolver(tmp_path).resolve("str") is None


def test_merge_system_data_unions_lists():
    merged = merge_system_data({"tags": ["b", "c"], "name": "Mine"}, {"tags": ["a", "b"], "name": "Rule", "x": 1})
    assert merged == {"tags": ["a", "b", "c"], "name": "Mine", "x": 1}


def test_resolve_shorthand_merges_system_record(resolver, sheet):
    value = resolver.resolve("str", ProcessingContext(context=sheet))
    assert value["name"] == "Strength"
    assert value["value"] == {"base": 3, "total": 3}
    assert "levels" in value


def test_resolve_list_segment_matches_key(resolver, sheet):
    value = resolver.resolve("merits.fast-reflexes", ProcessingContext(context=sheet))
    assert value["display"] == "Quick"
    assert value["value"] == 2
    assert value["name"] == "Fast Reflexes"


def test_resolve_scopes(resolver, sheet):
    context = ProcessingContext(context=sheet, this_entity={"key": "e", "value": 4}, vars={"color": "red"})
    assert resolver.resolve("this.value", context) == 4
    assert resolver.resolve("this", context)["key"] == "e"
    assert resolver.resolve("vars.color", context) == "red"
    assert resolver.resolve("context.name", context) == "Ada Voss"
    assert resolver.resolve("json.merits.fast-reflexes.name", context) == "Fast Reflexes"


def test_resolve_errors(resolver, sheet):
    context = ProcessingContext(context=sheet)
    with pytest.raises(ReferenceResolutionError, match="Property 'missing' not found"):
        resolver.resolve("missing", context)
    with pytest.raises(ReferenceResolutionError, match="Entity 'nope' not found in array"):
        resolver.resolve("merits.nope", context)
    with pytest.raises(ReferenceResolutionError, match="no entity context"):
        resolver.resolve("this.value", context)
    with pytest.raises(ReferenceResolutionError, match="no vars context"):
        resolver.resolve("vars.color", context)
    with pytest.raises(ReferenceResolutionError, match="could not be resolved"):
        resolver.resolve("json.merits.unknown", context)
    with pytest.raises(ReferenceResolutionError, match="file alias and at least one key"):
        resolver.resolve("json.merits", context)


def test_number_on_sheet_needs_value_in_system_record(resolver):
    context = ProcessingContext(context={"attributes": {"physical": {"str": 3}}})
    with pytest.raises(ReferenceResolutionError, match="does not have 'value'"):
        resolver.resolve("attributes.physical.str", context)


def test_scar_stats_follow_entity_type(resolver, sheet):
    physical = ProcessingContext(context=sheet, this_entity={"key": "v", "type": "physical"})
    assert resolver.resolve("scarPower", physical)["value"] == {"base": 3, "total": 3}

    entangled = ProcessingContext(context=sheet, this_entity={"key": "v", "entangledScar": "chronic-pain"})
    assert resolver.resolve("scarFinesse", entangled)["display"] == "Scar Finesse"
    assert resolver.resolve("scarFinesse", entangled)["value"]["base"] == 2

    mental = ProcessingContext(context=sheet, this_entity={"key": "v", "type": "mental"})
    assert resolver.resolve("scarPower", mental)["value"]["base"] == 4


def test_scar_stat_errors(resolver, sheet):
    with pytest.raises(ReferenceResolutionError, match="outside of a scar or variation"):
        resolver.resolve("scarPower", ProcessingContext(context=sheet))
    with pytest.raises(ReferenceResolutionError, match="was not found"):
        resolver.resolve("scarPower", ProcessingContext(context=sheet, this_entity={"entangledScar": "gone"}))
    with pytest.raises(ReferenceResolutionError, match="missing a valid type"):
        resolver.resolve("scarPower", ProcessingContext(context=sheet, this_entity={"entangledScar": "untyped"}))
    with pytest.raises(ReferenceResolutionError, match="Unable to resolve scar type"):
        resolver.resolve("scarPower", ProcessingContext(context=sheet, this_entity={"key": "v"}))
    with pytest.raises(ReferenceResolutionError, match="Attribute 'pre' is unavailable"):
        resolver.resolve("scarPower", ProcessingContext(context=sheet, this_entity={"type": "social"}))


def test_base_attribute_reference(resolver, sheet):
    value = resolver.resolve("baseDex", ProcessingContext(context=sheet))
    assert value["display"] == "Base Dexterity"
    assert value["value"] == {"base": 2, "total": 2}
    assert value["signedOutput"] is False


if __name__ == "__main__":
    pytest.main([__file__])
