"""
Handlers that pull values out of resolved references.

VALUE, NAMEVALUE, USE, RAW, BASEKEY and COUNT.
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.errors import NotationError
from pcsheets.notation.handlers.base import NotationHandler, ResolvingHandler
from pcsheets.notation.utils import (
    format_number,
    format_signed,
    is_number,
    parse_number,
    round_half_up,
    stringify,
)

VALUE_PRIORITY = ("total", "value", "base", "min")

ATTRIBUTE_KEYS = ("int", "wit", "res", "str", "dex", "sta", "pre", "man", "com")

logger = logging.getLogger(__name__)


def first_number(mapping: Dict[str, Any], keys: Iterable[str]) -> Optional[float]:
    for key in keys:
        if key in mapping and is_number(mapping[key]):
            return mapping[key]
    return None


def _parse_options(tokens: Iterable[str]) -> set:
    return {token.strip().lower() for token in tokens if token.strip()}


class ValueHandler(ResolvingHandler):
    """``{{VALUE:ref[:default][,signed][,base]}}``"""
    name = "VALUE"

    def process(self, content, context, processor):
        segments = [segment.strip() for segment in content.split(",")]
        reference_part = segments.pop(0) if segments else ""
        options = _parse_options(segments)

        reference, _, default_text = reference_part.partition(":")
        reference = reference.strip()
        default = parse_number(default_text) if default_text.strip() else None

        resolved = self.resolve(reference, context)
        number = self.extract_number(resolved, prefer_base="base" in options)
        if number is None:
            if default is None:
                raise self.error(
                    f"Cannot extract numeric value from reference: {reference}",
                    context,
                    f"VALUE:{reference}",
                    f"Resolved type: {type(resolved).__name__}",
                )
            number = default

        return format_signed(number) if "signed" in options else number

    @staticmethod
    def extract_number(resolved: Any, prefer_base: bool = False) -> Optional[float]:
        if is_number(resolved):
            return resolved
        if not isinstance(resolved, dict):
            return None
        if is_number(resolved.get("value")):
            return resolved["value"]

        source = resolved["value"] if isinstance(resolved.get("value"), dict) else resolved
        if prefer_base and is_number(source.get("base")):
            return source["base"]
        return first_number(source, VALUE_PRIORITY)


class NameValueHandler(ResolvingHandler):
    """``{{NAMEVALUE:ref[,unsigned]}}`` renders ``Name (+n)``."""
    name = "NAMEVALUE"

    DISPLAY_NAME_OVERRIDES = {
        "acclimation": "Acclimation",
        "stability": "Stability",
        "health": "Health",
        "willpower": "Willpower",
        "size": "Size",
        "defense": "Defense",
        "initiative": "Initiative Mod",
        "speed": "Speed",
    }

    # Bare numbers on the sheet that still deserve a label.
    NUMERIC_REFERENCE_OVERRIDES = {
        "size": ("Size", False),
        "defense": ("Defense", False),
        "initiative": ("Initiative Mod", True),
        "speed": ("Speed", False),
    }

    def process(self, content, context, processor):
        reference_part, *option_parts = content.split(",")
        reference = reference_part.strip()
        options = _parse_options(option_parts)

        resolved = self.resolve(reference, context)

        armor = self._armor_markup(reference, resolved)
        if armor is not None:
            return armor

        entity = self._wrap_number(reference, resolved)
        if entity is None:
            entity = resolved
        if not isinstance(entity, dict):
            snippet = f" Context: {entity[:80]}" if isinstance(entity, str) else ""
            raise self.error(
                f"NAMEVALUE requires an object, got: {type(entity).__name__}.{snippet}",
                context,
                f"NAMEVALUE:{reference}",
            )

        display_name = self._display_name(entity, context, processor, reference)
        value = self._value(entity, context, "unsigned" in options)
        return f"<strong class='trait-def'>{display_name} ({value})</strong>"

    def _display_name(self, entity, context, processor, reference) -> str:
        display_name = None
        if isinstance(entity.get("display"), str):
            display_name = entity["display"]
        elif isinstance(entity.get("name"), str):
            display_name = entity["name"]
        elif isinstance(entity.get("key"), str):
            display_name = self.DISPLAY_NAME_OVERRIDES.get(entity["key"])

        if not display_name:
            keys = ", ".join(entity.keys()) or "(none)"
            raise self.error(
                "Cannot derive display name: entity has no 'display' or 'name' property",
                context,
                f"NAMEVALUE:{reference}",
                f"Keys: {keys}",
            )
        return processor.process(display_name, context)

    def _value(self, entity: Dict[str, Any], context: ProcessingContext, unsigned: bool) -> str:
        if isinstance(entity.get("value"), dict):
            value = first_number(entity["value"], VALUE_PRIORITY)
        elif is_number(entity.get("value")):
            value = entity["value"]
        else:
            value = first_number(entity, ("total", "base", "min"))

        if value is None:
            keys = ", ".join(entity.keys()) or "(none)"
            raise self.error(
                "Cannot derive value: entity has no numeric value property",
                context,
                detail=f"Keys: {keys}",
            )

        signed = bool(entity["signedOutput"]) if "signedOutput" in entity else not unsigned
        if not signed or (unsigned and value >= 0):
            return format_number(value)
        return format_signed(value)

    def _armor_markup(self, reference: str, resolved: Any) -> Optional[str]:
        normalized = reference.strip().lower()
        if normalized == "armor":
            if not isinstance(resolved, dict):
                raise NotationError(
                    "Armor reference must resolve to an object with 'general' and 'ballistic'.",
                    "NAMEVALUE:armor",
                )
            general = self._armor_number(resolved.get("general"), "general")
            ballistic = self._armor_number(resolved.get("ballistic"), "ballistic")
            return f"<strong class='trait-def'>Armor ({general}/{ballistic})</strong>"
        if normalized == "armor.general":
            return f"<strong class='trait-def'>General Armor ({self._armor_number(resolved, 'general')})</strong>"
        if normalized == "armor.ballistic":
            return f"<strong class='trait-def'>Ballistic Armor ({self._armor_number(resolved, 'ballistic')})</strong>"
        return None

    @staticmethod
    def _armor_number(source: Any, label: str) -> str:
        number = parse_number(source)
        if number is None:
            snippet = f" Context: {source[:80]}" if isinstance(source, str) else ""
            raise NotationError(f"Armor {label} value must be a number.{snippet}", f"NAMEVALUE:armor.{label}")
        return format_number(number)

    def _wrap_number(self, reference: str, resolved: Any) -> Optional[Dict[str, Any]]:
        if not is_number(resolved):
            return None
        key = reference.strip().lower()
        for prefix in ("context.", "this."):
            if key.startswith(prefix):
                key = key[len(prefix):]
        override = self.NUMERIC_REFERENCE_OVERRIDES.get(key)
        if override is None:
            return None
        display, signed = override
        return {
            "key": key,
            "name": display,
            "display": display,
            "signedOutput": signed,
            "value": {"base": resolved, "total": resolved},
        }


class UseHandler(ResolvingHandler):
    """``{{USE:ref}}`` inserts the resolved value as is."""
    name = "USE"

    def process(self, content, context, processor):
        reference = content.strip()
        if not reference:
            raise self.error("USE requires a reference argument.", context)

        value = self.resolve(reference, context)
        if value is None:
            raise self.error(f"USE reference '{reference}' resolved to null.", context, f"USE:{reference}")
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        if isinstance(value, bool):
            raise self.error(
                f"USE reference '{reference}' must resolve to a string or number, got bool.",
                context,
                f"USE:{reference}",
            )
        return value


class RawHandler(ResolvingHandler):
    """``{{RAW:ref}}`` inserts resolved HTML, expanding any notations inside it."""
    name = "RAW"

    def process(self, content, context, processor):
        resolved = self.resolve(content.strip(), context)
        return processor.process(stringify(resolved), context)


class BaseKeyHandler(NotationHandler):
    """``{{BASEKEY:dex}}`` -> ``baseDex``"""
    name = "BASEKEY"

    def process(self, content, context, processor):
        normalized = processor.process(content, context).strip()
        if not normalized:
            raise self.error("BASEKEY requires a non-empty attribute reference.", context, f"BASEKEY:{content}")

        lower = normalized.lower()
        if lower not in ATTRIBUTE_KEYS:
            raise self.error(
                f"BASEKEY only supports attribute keys ({', '.join(ATTRIBUTE_KEYS)}), got '{normalized}'.",
                context,
                f"BASEKEY:{content}",
            )
        return f"base{lower[0].upper()}{lower[1:]}"


class CountHandler(ResolvingHandler):
    """``{{COUNT:x}}`` counts whatever ``x`` turns out to be.

    Strings count characters, lists and objects count entries, numbers are
    rounded, booleans are 1/0 and null is 0. Never raises for an unknown
    value: the text is tried as a reference, then JSON, then a number.
    """
    name = "COUNT"

    def process(self, content, context, processor):
        processed = processor.process(content.strip(), context, finalize_tooltips=False)
        return self._count(self._interpret(processed, context))

    def _interpret(self, processed: str, context: ProcessingContext) -> Any:
        if not processed:
            return ""
        try:
            return self.resolve(processed, context)
        except NotationError as exc:
            logger.debug("COUNT argument %r is not a reference: %s", processed, exc.message)
        try:
            return json.loads(processed)
        except ValueError:
            logger.debug("COUNT argument %r is not JSON", processed)
        number = parse_number(processed)
        if number is not None:
            return number
        lowered = processed.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return processed

    @staticmethod
    def _count(value: Any) -> int:
        if value is None:
            return 0
        if isinstance(value, bool):
            return 1 if value else 0
        if is_number(value):
            return round_half_up(value)
        if isinstance(value, (str, list, dict)):
            return len(value)
        return 0
