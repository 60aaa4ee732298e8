import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pcsheets.config import NotationConfig, seeded_id_factory
from pcsheets.notation import (
    NotationError,
    apply_general_replacements,
    evaluate_arithmetic,
    find_next_notation,
    validate_html_structure,
)
from pcsheets.notation.utils import (
    extract_first_top_level_arg,
    format_number,
    format_signed,
    is_truthy,
    parse_number,
    resolve_book_title,
    split_top_level_args,
)


def test_split_keeps_nested_notations_together():
    assert split_top_level_args("a, {{VALUE:x,signed}}, b") == ["a", "{{VALUE:x,signed}}", "b"]
    assert split_top_level_args(r"a\,b,c") == ["a,b", "c"]
    assert split_top_level_args("a,,b") == ["a", "b"]


def test_extract_first_arg_returns_untouched_remainder():
    assert extract_first_top_level_arg("cond, rest, more") == ("cond", " rest, more")
    assert extract_first_top_level_arg("{{IF:a,b}}") == ("{{IF:a,b}}", None)


def test_number_formatting():
    assert format_number(3.0) == "3"
    assert format_number(2.5) == "2.5"
    assert format_signed(3) == "+3"
    assert format_signed(0) == "+0"
    assert format_signed(-2) == "−2"


def test_parse_number_accepts_unicode_minus():
    assert parse_number("−4") == -4
    assert parse_number(" 2.5 ") == 2.5
    assert parse_number("abc") is None
    assert parse_number("") is None
    assert parse_number(True) is None


def test_truthiness_follows_json_rules():
    assert not is_truthy(None)
    assert not is_truthy(0)
    assert not is_truthy("")
    assert not is_truthy([])
    assert is_truthy({})
    assert is_truthy("0")


def test_book_titles():
    assert resolve_book_title("CoD") == "Chronicles of Darkness"
    assert resolve_book_title(" DtR ") == "Deviant: the Renegades"
    assert resolve_book_title("Homebrew") == "Homebrew"


def test_arithmetic_is_restricted():
    assert evaluate_arithmetic("2 + 3 * 4") == 14
    assert evaluate_arithmetic("(1 + 2) / 2") == 1.5
    assert evaluate_arithmetic("-3 + 1") == -2
    assert evaluate_arithmetic("1 / 0") is None
    assert evaluate_arithmetic("2 ** 3") is None
    assert evaluate_arithmetic("__import__('os')") is None
    assert evaluate_arithmetic("abc") is None


def test_html_structure_validation():
    assert validate_html_structure("<p><strong>x</strong><br></p>").is_valid
    assert validate_html_structure("<img src='a.png'><br/>").is_valid

    mismatched = validate_html_structure("<p><em>x</p>")
    assert not mismatched.is_valid
    assert mismatched.message == "Mismatched closing tag </p>. Expected </em>."

    unclosed = validate_html_structure("<div>open")
    assert unclosed.message == "Unclosed tag <div> detected."

    stray = validate_html_structure("text</span>")
    assert stray.message.startswith("Unexpected closing tag </span>")


def test_find_next_notation_handles_nesting():
    span = find_next_notation("a {{CALC:{{VALUE:x}} + 1}} b")
    assert span.start == 2
    assert span.raw == "{{CALC:{{VALUE:x}} + 1}}"
    assert span.content == "CALC:{{VALUE:x}} + 1"
    assert find_next_notation("no notations here") is None


def test_find_next_notation_rejects_unclosed_span():
    with pytest.raises(NotationError) as exc:
        find_next_notation("text {{VALUE:x")
    assert exc.value.message.startswith("Unclosed curly notation detected near")


def test_general_replacements_skip_tags():
    html = "a -- b - c -3 <span data-x='--y'>-4</span>"
    assert apply_general_replacements(html) == "a — b − c −3 <span data-x='--y'>−4</span>"


def test_seeded_ids_are_reproducible():
    first = NotationConfig.seeded(42)
    second = NotationConfig.seeded(42)
    ids = [first.new_id() for _ in range(3)]
    assert ids == [second.new_id() for _ in range(3)]
    assert len(set(ids)) == 3
    assert all(len(i) == 8 and i.isalnum() and i == i.lower() for i in ids)
    assert seeded_id_factory(42)() == ids[0]


def test_config_defaults():
    config = NotationConfig()
    assert config.strict
    assert not config.keep_placeholders
    assert config.data_dir() == Path("data") / "system-data"
    assert NotationConfig(system_data_dir="rules").data_dir() == Path("rules")


def test_diagnostics_sink_receives_events():
    events = []
    config = NotationConfig(diagnostics=lambda stage, payload: events.append((stage, payload)))
    config.emit("stage", {"a": 1})
    NotationConfig().emit("ignored", {})
    assert events == [("stage", {"a": 1})]


if __name__ == "__main__":
    pytest.main([__file__])
