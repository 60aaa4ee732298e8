"""
Processing context threaded through notation expansion.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ProcessingContext:
    """Scopes a notation may reference, plus error-reporting metadata.

    ``context`` is the whole character sheet, ``this_entity`` the record being
    rendered (merit, scar, variation...) and ``vars`` per-instance variables.
    ``strict`` left as None defers to the processor's configured default.
    """
    context: Dict[str, Any] = field(default_factory=dict)
    this_entity: Optional[Dict[str, Any]] = None
    vars: Optional[Dict[str, Any]] = None
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    strict: Optional[bool] = None

    def derive(self, **overrides: Any) -> "ProcessingContext":
        return replace(self, **overrides)
