"""
Loader for the shared rule-definition ("system data") JSON files.

Every category lives in its own ``_<category>.json`` file inside the
system-data directory, mapping entity keys to rule records. Files are read
once and cached for the life of the process; a missing or malformed file is
treated as "no system data" rather than an error.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pcsheets.config import DEFAULT_SYSTEM_DATA_DIR

logger = logging.getLogger(__name__)

SYSTEM_DATA_FILE_MAP = {
    "skills": "_skills.json",
    "attributes": "_attributes.json",
    "merits": "_merits.json",
    "variations": "_variations.json",
    "adaptations": "_adaptations.json",
    "scars": "_scars.json",
    "conditions": "_conditions.json",
    "tilts": "_tilts.json",
}

_CACHE: Dict[Tuple[str, str], Dict[str, Any]] = {}
_CACHE_LOCK = threading.Lock()


def clear_cache() -> None:
    with _CACHE_LOCK:
        _CACHE.clear()


def _file_name_for(alias: str) -> str:
    return SYSTEM_DATA_FILE_MAP.get(alias, f"_{alias}.json")


def _read_json_object(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug("No system data file at %s", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable system data file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring system data file %s: top level is not an object", path)
        return {}
    return data


class SystemDataLoader:
    """Reads and caches rule data by alias."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else DEFAULT_SYSTEM_DATA_DIR

    def get_data(self, alias: str) -> Optional[Dict[str, Any]]:
        """Return the whole definition map for ``alias`` or None when empty."""
        if not alias:
            return None
        cache_key = (str(self.data_dir.resolve()), alias)
        with _CACHE_LOCK:
            if cache_key not in _CACHE:
                _CACHE[cache_key] = _read_json_object(self.data_dir / _file_name_for(alias))
            data = _CACHE[cache_key]
        return data or None

    def get_system_data(self, alias: str, key: str) -> Optional[Dict[str, Any]]:
        data = self.get_data(alias)
        if not data:
            return None
        record = data.get(key)
        return record if isinstance(record, dict) else None

    def get_json_reference(self, alias: str, path: Sequence[str]) -> Any:
        """Walk ``path`` through the alias file; any dead end yields None."""
        current: Any = self.get_data(alias)
        for segment in path:
            if current is None:
                return None
            if isinstance(current, list):
                if not segment.isdigit():
                    return None
                index = int(segment)
                if index >= len(current):
                    return None
                current = current[index]
            elif isinstance(current, dict):
                current = current.get(segment)
            else:
                return None
        return current
