"""
Reference resolution for curly notations.

A reference is a dot path (``skills.physical.athletics``), optionally
prefixed with a scope (``this.``, ``context.``, ``vars.``, ``json.<alias>.``),
a shorthand alias, or one of the synthetic stats derived from attributes
(``scarPower``, ``baseDex``...). Values found on the character sheet are
merged over the matching system-data record before being returned.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pcsheets.notation.context import ProcessingContext
from pcsheets.notation.errors import ReferenceResolutionError
from pcsheets.notation.shorthand import ShorthandResolver
from pcsheets.notation.system_data import SystemDataLoader

logger = logging.getLogger(__name__)

SCAR_TYPES = ("physical", "mental", "social")

ATTRIBUTE_CATEGORIES = {
    "mental": ("int", "wit", "res"),
    "physical": ("str", "dex", "sta"),
    "social": ("pre", "man", "com"),
}

ATTRIBUTE_DISPLAY_NAMES = {
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

# stat -> (display, {scar type -> attribute})
SCAR_STATS = {
    "scarPower": ("Scar Power", {"physical": "str", "mental": "int", "social": "pre"}),
    "scarFinesse": ("Scar Finesse", {"physical": "dex", "mental": "wit", "social": "man"}),
    "scarResistance": ("Scar Resistance", {"physical": "sta", "mental": "res", "social": "com"}),
}

BASE_ATTRIBUTE_REFERENCES = {f"base{key[0].upper()}{key[1:]}": key for key in ATTRIBUTE_DISPLAY_NAMES}


def attribute_category(attribute_key: str) -> Optional[str]:
    for category, keys in ATTRIBUTE_CATEGORIES.items():
        if attribute_key in keys:
            return category
    return None


def normalize_scar_type(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.lower()
    return normalized if normalized in SCAR_TYPES else None


def entity_label(entity: Dict[str, Any]) -> str:
    for field in ("name", "key"):
        if isinstance(entity.get(field), str) and entity[field].strip():
            return entity[field]
    return "the current entity"


def find_scar(key: str, sheet: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    by_key = sheet.get("scarsByKey")
    if isinstance(by_key, dict) and by_key.get(key):
        return by_key[key]
    for scar in sheet.get("scars") or []:
        if isinstance(scar, dict) and scar.get("key") == key:
            return scar
    return None


def merge_arrays(system_items: List[Any], context_items: List[Any]) -> List[Any]:
    """Concatenate, keeping the first occurrence of each element."""
    seen = set()
    result = []
    for item in system_items + context_items:
        marker = json.dumps(item, sort_keys=True) if isinstance(item, (dict, list)) else repr(item)
        if marker not in seen:
            seen.add(marker)
            result.append(item)
    return result


def merge_system_data(context_data: Dict[str, Any], system_data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay sheet data on a system record; lists from both sides are merged."""
    result = dict(system_data)
    for key, value in context_data.items():
        system_value = system_data.get(key)
        if isinstance(value, list) and isinstance(system_value, list):
            result[key] = merge_arrays(system_value, value)
        else:
            result[key] = value
    return result


class ReferenceResolver:
    """Turns reference expressions into values."""

    def __init__(
        self,
        system_data: Optional[SystemDataLoader] = None,
        shorthand: Optional[ShorthandResolver] = None,
    ):
        self.system_data = system_data or SystemDataLoader()
        self.shorthand = shorthand or ShorthandResolver(self.system_data.data_dir)

    def resolve(self, reference: str, context: ProcessingContext) -> Any:
        reference = reference.strip()

        if reference in SCAR_STATS:
            return self._scar_stat(reference, context)
        if reference in BASE_ATTRIBUTE_REFERENCES:
            return self._base_attribute(reference, context)
        if reference.startswith("json."):
            return self._json_reference(reference[len("json."):], context)

        if reference == "this" or reference.startswith("this."):
            if context.this_entity is None:
                raise self._error("Cannot resolve 'this' reference: no entity context available", reference, context)
            if reference == "this":
                return context.this_entity
            return self.resolve_dot_key(reference[len("this."):], context.this_entity)

        if reference.startswith("vars."):
            if context.vars is None:
                raise self._error("Cannot resolve 'vars' reference: no vars context available", reference, context)
            return self.resolve_dot_key(reference[len("vars."):], context.vars)

        if reference.startswith("context."):
            dot_key = reference[len("context."):]
        else:
            expanded = self.shorthand.resolve(reference)
            if expanded:
                return self.resolve(expanded, context)
            dot_key = reference

        value = self.resolve_dot_key(dot_key, context.context)
        return self._merge_with_system_data(dot_key, value)

    def resolve_dot_key(self, dot_key: str, root: Any) -> Any:
        """Walk ``dot_key`` from ``root``; list segments match an element's ``key``."""
        if not dot_key:
            return root

        current = root
        for segment in dot_key.split("."):
            if current is None:
                return None
            if isinstance(current, list):
                found = next(
                    (item for item in current if isinstance(item, dict) and item.get("key") == segment),
                    None,
                )
                if found is None:
                    raise ReferenceResolutionError(
                        f"Entity '{segment}' not found in array",
                        dot_key,
                        context=f"Array search for key: {segment}",
                    )
                current = found
            elif isinstance(current, dict):
                if segment not in current:
                    raise ReferenceResolutionError(
                        f"Property '{segment}' not found",
                        dot_key,
                        context=f"Object property access: {segment}",
                    )
                current = current[segment]
            else:
                raise ReferenceResolutionError(
                    f"Cannot access property '{segment}' on non-object value",
                    dot_key,
                    context=f"Type: {type(current).__name__}",
                )
        return current

    def _merge_with_system_data(self, dot_key: str, value: Any) -> Any:
        if value is None:
            return None
        segments = dot_key.split(".")
        system_record = self.system_data.get_system_data(segments[0], segments[-1])
        if not system_record:
            return value

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "value" not in system_record:
                raise ReferenceResolutionError(
                    "System data does not have 'value' property for number context data",
                    dot_key,
                    context="System data merge",
                )
            return {**system_record, "value": value}
        if isinstance(value, dict):
            return merge_system_data(value, system_record)
        return value

    def _json_reference(self, path: str, context: ProcessingContext) -> Any:
        segments = [segment for segment in path.split(".") if segment]
        if len(segments) < 2:
            raise self._error(
                "JSON references must include a file alias and at least one key.", f"json.{path}", context
            )
        alias, keys = segments[0], segments[1:]
        resolved = self.system_data.get_json_reference(alias, keys)
        if resolved is None:
            raise self._error(
                f"JSON reference '{alias}' with path '{'.'.join(keys)}' could not be resolved.",
                f"json.{path}",
                context,
            )
        return resolved

    def _scar_stat(self, stat: str, context: ProcessingContext) -> Dict[str, Any]:
        entity = context.this_entity
        if entity is None:
            raise self._error(f"Cannot resolve '{stat}' outside of a scar or variation context.", stat, context)

        display, attribute_map = SCAR_STATS[stat]
        scar_type = self.resolve_scar_type(entity, context, stat)
        attribute_key = attribute_map[scar_type]
        record = self._attribute_record(attribute_key, context, stat)
        value = record.get("value")
        base = value.get("base") if isinstance(value, dict) else None
        if not isinstance(base, (int, float)):
            raise self._error(
                f"Attribute '{attribute_key}' is missing a base value while resolving '{stat}'.", stat, context
            )
        return {"key": stat, "name": display, "display": display, "value": {"base": base, "total": base}}

    def resolve_scar_type(self, entity: Dict[str, Any], context: ProcessingContext, reference: str) -> str:
        direct = normalize_scar_type(entity.get("type"))
        if direct:
            return direct

        scar_key = entity.get("entangledScar")
        scar_key = scar_key.strip() if isinstance(scar_key, str) else ""
        if scar_key:
            scar = find_scar(scar_key, context.context)
            if scar is None:
                raise self._error(
                    f"Entangled scar '{scar_key}' (referenced by '{entity_label(entity)}') "
                    "was not found in the character data.",
                    reference,
                    context,
                )
            scar_type = normalize_scar_type(scar.get("type"))
            if not scar_type:
                raise self._error(
                    f"Entangled scar '{scar_key}' is missing a valid type (must be physical, mental, or social).",
                    reference,
                    context,
                )
            return scar_type

        raise self._error(
            f"Unable to resolve scar type for '{entity_label(entity)}'. "
            "Add a 'type' property or specify an entangled scar.",
            reference,
            context,
        )

    def _base_attribute(self, reference: str, context: ProcessingContext) -> Dict[str, Any]:
        attribute_key = BASE_ATTRIBUTE_REFERENCES[reference]
        record = self._attribute_record(attribute_key, context, reference)
        value = record.get("value") if isinstance(record.get("value"), dict) else {}
        base = value.get("base", value.get("total"))
        if not isinstance(base, (int, float)):
            raise self._error(
                f"Attribute '{attribute_key}' is missing a base value while resolving '{reference}'.",
                reference,
                context,
            )
        display = f"Base {ATTRIBUTE_DISPLAY_NAMES[attribute_key]}"
        return {
            "key": reference,
            "name": display,
            "display": display,
            "value": {"base": base, "total": base},
            "signedOutput": False,
        }

    def _attribute_record(self, attribute_key: str, context: ProcessingContext, reference: str) -> Dict[str, Any]:
        category = attribute_category(attribute_key)
        attributes = context.context.get("attributes") or {}
        record = (attributes.get(category) or {}).get(attribute_key)
        if not isinstance(record, dict):
            raise self._error(
                f"Attribute '{attribute_key}' is unavailable while resolving '{reference}'.", reference, context
            )
        return record

    @staticmethod
    def _error(message: str, reference: str, context: ProcessingContext) -> ReferenceResolutionError:
        return ReferenceResolutionError(message, reference, context.file_path, context.line_number)
