"""
Handlers that produce display text: DISPLAY, INLINELIST, SOURCE, NAME, BR
and the pronoun keywords.
"""

import re
from typing import List

from pcsheets.notation.errors import NotationError
from pcsheets.notation.handlers.base import NotationHandler, ResolvingHandler
from pcsheets.notation.utils import is_number, resolve_book_title, stringify

ATTRIBUTE_DISPLAY_MAP = {
    "int": "Intelligence",
    "wit": "Wits",
    "res": "Resolve",
    "str": "Strength",
    "dex": "Dexterity",
    "sta": "Stamina",
    "pre": "Presence",
    "man": "Manipulation",
    "com": "Composure",
}

SKILL_DISPLAY_MAP = {
    "academics": "Academics",
    "computer": "Computer",
    "crafts": "Crafts",
    "investigation": "Investigation",
    "medicine": "Medicine",
    "occult": "Occult",
    "politics": "Politics",
    "science": "Science",
    "athletics": "Athletics",
    "brawl": "Brawl",
    "drive": "Drive",
    "firearms": "Firearms",
    "larceny": "Larceny",
    "stealth": "Stealth",
    "survival": "Survival",
    "weaponry": "Weaponry",
    "animalKen": "Animal Ken",
    "empathy": "Empathy",
    "expression": "Expression",
    "intimidation": "Intimidation",
    "persuasion": "Persuasion",
    "socialize": "Socialize",
    "streetwise": "Streetwise",
    "subterfuge": "Subterfuge",
}

TITLE_CASE_MINOR_WORDS = frozenset({
    "a", "an", "the",
    "of", "in", "on", "at", "to", "for", "with", "by",
    "and", "or", "but", "nor", "so", "yet",
})


def to_title_case(text: str) -> str:
    """Capitalise words except minor ones after the first; mixed-case words are kept."""
    words = re.split(r"\s+", text)
    result = []
    for index, word in enumerate(words):
        if word != word.lower():
            result.append(word)
        elif index == 0 or word not in TITLE_CASE_MINOR_WORDS:
            result.append(word[:1].upper() + word[1:])
        else:
            result.append(word)
    return " ".join(result)


def apply_format(text: str, fmt: str) -> str:
    fmt = fmt.lower()
    if fmt == "proper":
        return to_title_case(text)
    if fmt == "capitalize":
        return text[:1].upper() + text[1:]
    if fmt == "upper":
        return text.upper()
    if fmt == "lower":
        return text.lower()
    return text


class DisplayHandler(ResolvingHandler):
    """``{{DISPLAY:ref[,format][,class...]}}``"""
    name = "DISPLAY"

    def process(self, content, context, processor):
        parts = [part.strip() for part in content.split(",")]
        reference = parts[0]
        fmt = parts[1] if len(parts) > 1 else "proper"
        classes = [part for part in parts[2:] if part]

        resolved = self.resolve(reference, context)
        if isinstance(resolved, dict):
            if isinstance(resolved.get("display"), str):
                text = resolved["display"]
            elif isinstance(resolved.get("name"), str):
                text = resolved["name"]
            else:
                raise self.error("Cannot derive display text from object", context, f"DISPLAY:{reference}")
        else:
            text = stringify(resolved)

        text = processor.process(text, context)
        trimmed = text.strip()
        text = ATTRIBUTE_DISPLAY_MAP.get(trimmed) or SKILL_DISPLAY_MAP.get(trimmed) or text

        formatted = apply_format(text, fmt)
        if classes:
            return f"<span class='{' '.join(classes)}'>{formatted}</span>"
        return formatted


def format_inline_list(items: List[str]) -> str:
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


class InlineListHandler(ResolvingHandler):
    """``{{INLINELIST:ref[,ref...]}}`` -> "A, B, and C"."""
    name = "INLINELIST"

    def process(self, content, context, processor):
        references = [ref.strip() for ref in content.split(",") if ref.strip()]
        if not references:
            raise self.error("INLINELIST requires at least one reference", context)

        items: List[str] = []
        for reference in references:
            resolved = self.resolve(reference, context)
            if resolved is None:
                continue
            if isinstance(resolved, list):
                values, kind = resolved, "array"
            elif isinstance(resolved, dict):
                values, kind = list(resolved.values()), "object"
            else:
                items.append(stringify(resolved))
                continue
            for value in values:
                if not (isinstance(value, str) or is_number(value)):
                    raise self.error(
                        f"INLINELIST {kind} contains non-string/number value: {type(value).__name__}",
                        context,
                        f"INLINELIST:{reference}",
                    )
                items.append(stringify(value))

        if not items:
            raise self.error("INLINELIST resulted in empty array", context)
        return format_inline_list(items)


class SourceHandler(NotationHandler):
    """``{{SOURCE:CoD/123}}`` book citation."""
    name = "SOURCE"

    def process(self, content, context, processor):
        parts = content.split("/")
        if len(parts) != 2:
            return "<span class='source-citation'><span class='source-title'>Invalid source</span></span>"
        title = resolve_book_title(parts[0])
        page = parts[1].strip()
        return (
            f"<span class='source-citation'><span class='source-title'>{title}</span>"
            f"<span class='source-page'>p.{page}</span></span>"
        )


NAME_PREFIX_WORDS = frozenset({
    "a", "an", "the", "dr.", "mr.", "ms.", "mrs.", "prof.", "rev.", "fr.", "sr.", "jr.",
})


def short_name(name: str) -> str:
    """First full word of a name, keeping any leading articles and titles."""
    kept = []
    for word in name.split(" "):
        lower = word.lower()
        kept.append(word)
        if not (lower in NAME_PREFIX_WORDS or lower.endswith(".")):
            break
    return " ".join(kept).strip()


class NameHandler(NotationHandler):
    """``{{NAME}}``: the character's short name (never the current entity's)."""
    name = "NAME"

    def process(self, content, context, processor):
        if content.strip():
            raise self.error(f'{{{{NAME}}}} notation does not accept parameters. Found: "{content}"', context)

        sheet = context.context
        display = sheet.get("display")
        if isinstance(display, str):
            return short_name(display)
        character_name = sheet.get("name")
        if not character_name:
            raise self.error("Character name not found in context for {{NAME}} notation.", context)
        return short_name(str(character_name))


class BreakHandler(NotationHandler):
    """``{{BR}}``"""
    name = "BR"

    def process(self, content, context, processor):
        return "<br><br>"


PRONOUN_MAP = {
    "he": {"m": "he", "f": "she", "a": "it", "default": "they"},
    "his": {"m": "his", "f": "hers", "a": "its", "default": "theirs"},
    "hiss": {"m": "his", "f": "her", "a": "its", "default": "their"},
    "him": {"m": "him", "f": "her", "a": "it", "default": "them"},
    "himself": {"m": "himself", "f": "herself", "a": "itself", "default": "themself"},
    "he's": {"m": "he's", "f": "she's", "a": "it's", "default": "they're"},
}

PRONOUN_PATTERN = re.compile(r"^(he|his|hiss|him|himself|he's)$", re.IGNORECASE)


class PronounHandler(NotationHandler):
    """``{{he}}``, ``{{His}}``... by the character's recorded sex.

    ``hiss`` is the determiner form (his/her/its/their) where ``his`` is the
    standalone possessive (his/hers/its/theirs).
    """
    name = "PRONOUN"

    def process(self, content, context, processor):
        token = content.strip()
        forms = PRONOUN_MAP.get(token.lower())
        if forms is None:
            raise NotationError(f"Unknown pronoun notation '{token}'.", token, context.file_path, context.line_number)

        sex = context.context.get("sex")
        replacement = forms.get(sex, forms["default"]) if sex in ("m", "f", "a") else forms["default"]
        if token[:1].isupper():
            return replacement[:1].upper() + replacement[1:]
        return replacement
