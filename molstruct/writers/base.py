"""Abstract interface for structure serializers.

Writers only read the Structure; a failed write leaves it untouched.
"""

from __future__ import annotations

import gzip
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from molstruct.structure.structure import Structure


@dataclass(frozen=True)
class WriterOptions:
    """Sections to emit besides the coordinates."""

    header: bool = True
    conect: bool = True


class StructureWriter(ABC):
    """Serialize a Structure into one text format."""

    def __init__(self, options: Optional[WriterOptions] = None):
        self.options = options or WriterOptions()

    @abstractmethod
    def write(self, structure: Structure) -> str:
        """Return the full text encoding of ``structure``."""
        ...

    def write_file(self, structure: Structure, path: Path) -> Path:
        """Serialize to ``path``; a .gz suffix writes gzip-compressed text."""
        path = Path(path)
        text = self.write(structure)
        path.parent.mkdir(parents=True, exist_ok=True)
        opener = gzip.open if path.suffix == ".gz" else open
        with opener(path, "wt", encoding="utf-8") as f:
            f.write(text)
        return path

    @staticmethod
    @abstractmethod
    def extensions() -> list[str]:
        """File extensions this writer produces (first one is the default)."""
        ...
