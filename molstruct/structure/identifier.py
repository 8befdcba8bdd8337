"""Provenance identifiers: which part of a source entry a Structure holds.

Textual form (one entry, optional comma-separated residue ranges)::

    1ABC                 whole entry
    1ABC.A               chain A
    1ABC.A_5-100,B       residues 5-100 of chain A plus chain B
    1ABC.A_-5--1         negative residue numbers
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from molstruct.structure.base import Chain, ResidueNumber

if TYPE_CHECKING:
    from molstruct.structure.structure import Structure

_RANGE_RE = re.compile(r"^\s*([^\s_:,.]+)(?:[_:](-?\d+[A-Za-z]?)-(-?\d+[A-Za-z]?))?\s*$")


@dataclass(frozen=True)
class ResidueRange:
    """All of a chain (start/end None) or an inclusive residue span of it."""

    chain_name: str
    start: Optional[ResidueNumber] = None
    end: Optional[ResidueNumber] = None

    @classmethod
    def parse(cls, text: str) -> "ResidueRange":
        m = _RANGE_RE.match(text)
        if not m:
            raise ValueError(f"Invalid residue range: '{text}'")
        chain, start, end = m.groups()
        if start is None:
            return cls(chain)
        return cls(chain, ResidueNumber.parse(start), ResidueNumber.parse(end))

    def contains(self, chain_name: str, number: ResidueNumber) -> bool:
        if chain_name != self.chain_name:
            return False
        if self.start is None:
            return True
        return self.start <= number <= self.end

    def __str__(self) -> str:
        if self.start is None:
            return self.chain_name
        return f"{self.chain_name}_{self.start}-{self.end}"


class StructureIdentifier(ABC):
    """Describes how an in-memory Structure was carved out of its source."""

    @property
    @abstractmethod
    def identifier(self) -> str:
        """The string originally used to request the structure."""
        ...

    @abstractmethod
    def to_canonical(self) -> "SubstructureIdentifier": ...

    def reduce(self, structure: "Structure") -> "Structure":
        return self.to_canonical().reduce(structure)


class SubstructureIdentifier(StructureIdentifier):
    """An entry code plus an optional list of residue ranges."""

    def __init__(self, pdb_id: str, ranges: Iterable[ResidueRange] = ()):
        self.pdb_id = pdb_id
        self.ranges = list(ranges)

    @classmethod
    def parse(cls, text: str) -> "SubstructureIdentifier":
        pdb_id, _, rest = text.strip().partition(".")
        ranges = [ResidueRange.parse(r) for r in rest.split(",") if r.strip()]
        return cls(pdb_id, ranges)

    @classmethod
    def from_structure(cls, structure: "Structure") -> "SubstructureIdentifier":
        """Describe exactly the chains and residues held in model 0."""
        spans: dict[str, list[ResidueNumber]] = {}
        if structure.nr_models() > 0:
            for chain in structure.get_chains():
                numbers = spans.setdefault(chain.auth_id, [])
                numbers.extend(g.number for g in chain)
        ranges = [
            ResidueRange(name, min(nums), max(nums)) if nums else ResidueRange(name)
            for name, nums in spans.items()
        ]
        return cls(structure.pdb_code or "", ranges)

    @property
    def identifier(self) -> str:
        if not self.ranges:
            return self.pdb_id
        joined = ",".join(str(r) for r in self.ranges)
        return f"{self.pdb_id}.{joined}" if self.pdb_id else joined

    def to_canonical(self) -> "SubstructureIdentifier":
        return self

    def reduce(self, structure: "Structure") -> "Structure":
        """Return a copy of ``structure`` restricted to these ranges."""
        reduced = structure.clone()
        reduced.structure_identifier = self
        if not self.ranges:
            return reduced

        for entity in reduced.entity_infos:
            entity.chains = []
        for modelnr in range(reduced.nr_models()):
            kept = []
            for chain in reduced.get_chains(modelnr):
                groups = [
                    g for g in chain
                    if any(r.contains(chain.auth_id, g.number) for r in self.ranges)
                ]
                if not groups:
                    continue
                sub = Chain(chain.asym_id, chain.auth_id, polymer=chain.is_polymer, groups=groups)
                if chain.entity is not None:
                    chain.entity.add_chain(sub)
                kept.append(sub)
            reduced.set_model(modelnr, kept)
        return reduced

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SubstructureIdentifier):
            return NotImplemented
        return self.pdb_id == other.pdb_id and self.ranges == other.ranges

    def __hash__(self) -> int:
        return hash((self.pdb_id, tuple(self.ranges)))

    def __repr__(self) -> str:
        return f"<SubstructureIdentifier {self.identifier}>"
