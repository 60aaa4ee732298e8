"""
Construction-time settings for the notation processor.
"""

import random
import secrets
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

DiagnosticsSink = Callable[[str, Dict[str, Any]], None]
IdFactory = Callable[[], str]

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 8

DEFAULT_SYSTEM_DATA_DIR = Path("data") / "system-data"


def random_id() -> str:
    """Collision-resistant base-36 identifier used for tooltip anchors."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def seeded_id_factory(seed: int) -> IdFactory:
    rng = random.Random(seed)

    def factory() -> str:
        return "".join(rng.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))

    return factory


@dataclass(frozen=True)
class NotationConfig:
    """Behaviour switches handed to NotationProcessor at construction."""
    strict: bool = True
    keep_placeholders: bool = False
    diagnostics: Optional[DiagnosticsSink] = None
    id_factory: Optional[IdFactory] = None
    system_data_dir: Optional[Union[str, Path]] = None

    @classmethod
    def seeded(cls, seed: int, **kwargs: Any) -> "NotationConfig":
        return cls(id_factory=seeded_id_factory(seed), **kwargs)

    def new_id(self) -> str:
        factory = self.id_factory or random_id
        return factory()

    def data_dir(self) -> Path:
        if self.system_data_dir is None:
            return DEFAULT_SYSTEM_DATA_DIR
        return Path(self.system_data_dir)

    def emit(self, stage: str, payload: Dict[str, Any]) -> None:
        if self.diagnostics is not None:
            self.diagnostics(stage, payload)
