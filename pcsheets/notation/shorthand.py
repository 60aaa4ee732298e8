"""
Shorthand aliases for long reference paths.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from pcsheets.config import DEFAULT_SYSTEM_DATA_DIR

logger = logging.getLogger(__name__)

SHORTHAND_FILE = "_shorthand_reference.json"


class ShorthandResolver:
    """Maps dot-free aliases (e.g. ``str``) to full reference paths."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else DEFAULT_SYSTEM_DATA_DIR
        self._map: Optional[Dict[str, str]] = None

    def resolve(self, reference: str) -> Optional[str]:
        if "." in reference:
            return None
        return self._load().get(reference)

    def _load(self) -> Dict[str, str]:
        if self._map is not None:
            return self._map
        path = self.data_dir / SHORTHAND_FILE
        self._map = {}
        if not path.exists():
            return self._map
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring malformed shorthand table %s: %s", path, exc)
            return self._map
        if isinstance(data, dict):
            self._map = {k: v for k, v in data.items() if isinstance(v, str)}
        return self._map
