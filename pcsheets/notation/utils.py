"""
Small helpers shared by the notation handlers.
"""

import json
import math
from typing import Any, List, Optional, Tuple

MINUS_SIGN = "−"

BOOK_MAP = {
    "CoD": "Chronicles of Darkness",
    "HL": "Hurt Locker",
    "DtR": "Deviant: the Renegades",
    "SG": "Shallow Graves",
    "CC": "The Clade Companion",
}


def resolve_book_title(book_key: str) -> str:
    key = book_key.strip()
    return BOOK_MAP.get(key, key)


def _scan_top_level(content: str, stop_at_first: bool) -> Tuple[List[str], Optional[int]]:
    """Walk ``content`` splitting on commas outside braces.

    A backslash escapes the next character. Returns the collected parts and,
    when ``stop_at_first`` is set, the index of the first top-level comma.
    """
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    escape_next = False

    for i, char in enumerate(content):
        if escape_next:
            current.append(char)
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            if stop_at_first:
                return parts, i
            current = []
            continue
        current.append(char)

    parts.append("".join(current).strip())
    return parts, None


def split_top_level_args(content: str) -> List[str]:
    """Split on commas that are not inside ``{{...}}``; empty parts are dropped."""
    parts, _ = _scan_top_level(content, stop_at_first=False)
    return [part for part in parts if part]


def extract_first_top_level_arg(content: str) -> Tuple[str, Optional[str]]:
    """Return the first argument and the untouched remainder (None if no comma)."""
    parts, comma_index = _scan_top_level(content, stop_at_first=True)
    if comma_index is None:
        return parts[0], None
    return parts[0], content[comma_index + 1:]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def format_signed(value: float) -> str:
    """``+n`` for zero and positives, U+2212 minus for negatives."""
    if value < 0:
        return f"{MINUS_SIGN}{format_number(abs(value))}"
    return f"+{format_number(abs(value))}"


def parse_number(text: Any) -> Optional[float]:
    """Parse a processed handler result into a number, or None."""
    if is_number(text):
        return text
    if not isinstance(text, str):
        return None
    candidate = text.strip().replace(MINUS_SIGN, "-")
    if not candidate:
        return None
    try:
        number = float(candidate)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def is_truthy(value: Any) -> bool:
    """JSON-style truthiness: null, false, 0, "" and [] are false."""
    if value is None or value is False:
        return False
    if is_number(value):
        return value != 0
    if isinstance(value, (str, list)):
        return len(value) > 0
    return True


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return ""
    return str(value)


def create_context_snippet(text: str, index: int, radius: int = 80) -> str:
    start = max(0, index - radius)
    end = min(len(text), index + radius)
    prefix = "…" if start > 0 else ""
    suffix = "…" if end < len(text) else ""
    return f"{prefix}{text[start:end]}{suffix}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
