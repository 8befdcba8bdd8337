"""Abstract interface for structure readers.

Readers populate the Structure model and guarantee its invariants before
handing it over: unique asym ids per model, one EntityInfo per polymer
chain, immutable polymer flags.
"""

from __future__ import annotations

import gzip
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from molstruct.structure.structure import Structure

_ENTRY_RE = re.compile(r"(?:pdb)?([0-9][a-z0-9]{3})", re.I)


def read_lines(path: Path) -> list[str]:
    """Read a text file, transparently decompressing .gz."""
    opener = gzip.open if path.suffix == ".gz" else open
    mode = "rt" if path.suffix == ".gz" else "r"
    with opener(path, mode, encoding="utf-8", errors="ignore") as f:
        return f.read().splitlines()


def entry_id_from_path(path: Optional[Path]) -> str:
    """Guess a PDB code such as '4HHB' from names like pdb4hhb.ent.gz."""
    if path is None:
        return ""
    m = _ENTRY_RE.search(path.name.split(".")[0])
    return m.group(1).upper() if m else ""


def asym_label(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA, 27 -> BA, ... (mmCIF-style asym ids)."""
    label = ""
    while True:
        label += chr(ord("A") + index % 26)
        index = index // 26 - 1
        if index < 0:
            return label


class StructureParser(ABC):
    """Parse a file into a Structure object.

    Single Responsibility: one parser per format.
    """

    def parse(self, path: Path) -> Structure:
        """Parse a file and return a Structure."""
        path = Path(path)
        structure = self.parse_lines(read_lines(path))
        if not structure.pdb_code:
            structure.pdb_code = entry_id_from_path(path)
        return structure

    def parse_string(self, text: str) -> Structure:
        return self.parse_lines(text.splitlines())

    @abstractmethod
    def parse_lines(self, lines: list[str]) -> Structure: ...

    @staticmethod
    @abstractmethod
    def extensions() -> list[str]:
        """File extensions this parser handles (e.g. ['.cif', '.cif.gz'])."""
        ...
