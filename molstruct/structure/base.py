"""Building blocks of the structural hierarchy.

Hierarchy:
    Structure (top-level, see structure.py)
    ├── models: list[Model]
    │   └── chains: list[Chain]        asym id + auth id, polymer flag
    │       └── groups: list[Group]    residues, nucleotides, ligands
    │           └── atoms: list[Atom]
    ├── entity_infos: list[EntityInfo]  shared by the chains of a molecule
    └── header / dbrefs / cell / journal / bonds / sites

Atoms are frozen values. Bonds refer to atoms by serial number only and are
resolved through the owning Structure, never by holding Atom objects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Iterator, Optional

from molstruct.core.exceptions import GroupNotFoundError

THREE_TO_ONE = {
    "ALA": "A", "ARG": "R", "ASN": "N", "ASP": "D", "CYS": "C",
    "GLN": "Q", "GLU": "E", "GLY": "G", "HIS": "H", "ILE": "I",
    "LEU": "L", "LYS": "K", "MET": "M", "PHE": "F", "PRO": "P",
    "SER": "S", "THR": "T", "TRP": "W", "TYR": "Y", "VAL": "V",
    "SEC": "U", "PYL": "O",
    "ASX": "B", "GLX": "Z", "XLE": "J", "UNK": "X",
}

NUCLEOTIDES = {"A", "C", "G", "U", "I", "DA", "DC", "DG", "DT", "DI", "DU"}

WATER_NAMES = {"HOH", "WAT", "DOD", "H2O"}

_RESNUM_RE = re.compile(r"^\s*(-?\d+)([A-Za-z]?)\s*$")


# ======================================================================
# Classifications
# ======================================================================

class GroupType(str, Enum):
    AMINOACID = "amino"
    NUCLEOTIDE = "nucleotide"
    HETATM = "hetatm"

    @classmethod
    def for_residue(cls, name: str) -> "GroupType":
        """Guess the group type from a residue name."""
        n = name.strip().upper()
        if n in THREE_TO_ONE:
            return cls.AMINOACID
        if n in NUCLEOTIDES:
            return cls.NUCLEOTIDE
        return cls.HETATM


class EntityType(str, Enum):
    POLYMER = "polymer"
    NONPOLYMER = "non-polymer"
    WATER = "water"
    BRANCHED = "branched"


class BondType(str, Enum):
    """Bond kinds; values are the mmCIF struct_conn_type ids."""

    COVALENT = "covale"
    DISULFIDE = "disulf"
    HYDROGEN = "hydrog"
    SALT_BRIDGE = "saltbr"


# ======================================================================
# Value objects
# ======================================================================

@dataclass(frozen=True)
class Atom:
    """Single atom with coordinates and identity."""

    serial: int
    name: str
    element: str
    x: float
    y: float
    z: float
    occupancy: float = 1.0
    b_factor: float = 0.0
    alt_id: str = ""
    charge: int = 0

    @property
    def coords(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True, order=True)
class ResidueNumber:
    """Author residue number: sequence number plus insertion code."""

    seq_num: int
    ins_code: str = ""

    @classmethod
    def parse(cls, text: str) -> "ResidueNumber":
        """Parse '42', '42A' or '-5' into a ResidueNumber."""
        m = _RESNUM_RE.match(text)
        if not m:
            raise ValueError(f"Invalid residue number: '{text}'")
        return cls(int(m.group(1)), m.group(2))

    def __str__(self) -> str:
        return f"{self.seq_num}{self.ins_code}"


@dataclass(frozen=True)
class Bond:
    """Bond between two atoms, keyed by atom serial number."""

    serial1: int
    serial2: int
    kind: BondType = BondType.COVALENT
    order: int = 1

    def involves(self, serial: int) -> bool:
        return serial in (self.serial1, self.serial2)

    def partner(self, serial: int) -> int:
        if serial == self.serial1:
            return self.serial2
        if serial == self.serial2:
            return self.serial1
        raise ValueError(f"Atom {serial} is not part of {self}")

    @property
    def key(self) -> tuple[int, int, BondType]:
        """Order-independent identity, used to de-duplicate bond lists."""
        lo, hi = sorted((self.serial1, self.serial2))
        return (lo, hi, self.kind)


# ======================================================================
# Containers
# ======================================================================

@dataclass(eq=False)
class Group:
    """Residue, nucleotide or ligand: an ordered list of atoms."""

    name: str
    number: ResidueNumber
    group_type: Optional[GroupType] = None
    atoms: list[Atom] = field(default_factory=list)
    label_seq_id: Optional[int] = None

    def __post_init__(self):
        if self.group_type is None:
            self.group_type = GroupType.for_residue(self.name)

    @property
    def seq_num(self) -> int:
        return self.number.seq_num

    @property
    def ins_code(self) -> str:
        return self.number.ins_code

    @property
    def one_letter(self) -> str:
        return THREE_TO_ONE.get(self.name.upper(), "X")

    @property
    def is_water(self) -> bool:
        return self.name.upper() in WATER_NAMES

    @property
    def is_het(self) -> bool:
        return self.group_type is GroupType.HETATM

    def add_atom(self, atom: Atom) -> None:
        self.atoms.append(atom)

    def get_atom(self, name: str) -> Optional[Atom]:
        for a in self.atoms:
            if a.name == name:
                return a
        return None

    def has_atom(self, name: str) -> bool:
        return self.get_atom(name) is not None

    def __len__(self) -> int:
        return len(self.atoms)

    def __iter__(self) -> Iterator[Atom]:
        return iter(self.atoms)

    def __repr__(self) -> str:
        return f"<Group {self.name} {self.number} {self.group_type.value} atoms={len(self.atoms)}>"


class Chain:
    """Ordered groups under two independent identifiers.

    ``asym_id`` is the internal (mmCIF label) id, ``auth_id`` the public
    (PDB author) id. Both ids and the polymer flag are fixed at
    construction: chain indexes and serializers depend on them.
    """

    def __init__(
        self,
        asym_id: str,
        auth_id: Optional[str] = None,
        *,
        polymer: bool = True,
        groups: Iterable[Group] = (),
        entity: Optional["EntityInfo"] = None,
    ):
        self._asym_id = asym_id
        self._auth_id = auth_id if auth_id is not None else asym_id
        self._polymer = bool(polymer)
        self._groups: list[Group] = []
        self._numbers: set[ResidueNumber] = set()
        self.entity = entity
        for g in groups:
            self.add_group(g)

    @property
    def asym_id(self) -> str:
        return self._asym_id

    @property
    def auth_id(self) -> str:
        return self._auth_id

    @property
    def is_polymer(self) -> bool:
        return self._polymer

    @property
    def entity_id(self) -> Optional[int]:
        return self.entity.id if self.entity is not None else None

    @property
    def groups(self) -> tuple[Group, ...]:
        return tuple(self._groups)

    def add_group(self, group: Group) -> None:
        """Append a group; residue numbers must be unique in polymer chains."""
        if self._polymer:
            if group.number in self._numbers:
                raise ValueError(
                    f"Duplicate residue {group.number} in polymer chain '{self._asym_id}'"
                )
            self._numbers.add(group.number)
        self._groups.append(group)

    def find_group(self, number: ResidueNumber) -> Group:
        for g in self._groups:
            if g.number == number:
                return g
        raise GroupNotFoundError(self._auth_id, str(number))

    @property
    def atoms(self) -> list[Atom]:
        return [a for g in self._groups for a in g.atoms]

    @property
    def sequence(self) -> str:
        return "".join(g.one_letter for g in self._groups if g.group_type is GroupType.AMINOACID)

    @property
    def num_groups(self) -> int:
        return len(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self) -> Iterator[Group]:
        return iter(self._groups)

    def __repr__(self) -> str:
        kind = "polymer" if self._polymer else "non-polymer"
        return (
            f"<Chain asym={self._asym_id} auth={self._auth_id} {kind} "
            f"groups={len(self._groups)}>"
        )


@dataclass(eq=False)
class EntityInfo:
    """A distinct molecule, shared by every chain that implements it."""

    id: int
    type: EntityType = EntityType.POLYMER
    description: str = ""
    chains: list[Chain] = field(default_factory=list, repr=False)

    def add_chain(self, chain: Chain) -> None:
        if not any(c is chain for c in self.chains):
            self.chains.append(chain)
        chain.entity = self

    @property
    def is_polymer(self) -> bool:
        return self.type is EntityType.POLYMER

    @property
    def chain_ids(self) -> list[str]:
        """Asym ids of the member chains; ensembles repeat them per model."""
        return list(dict.fromkeys(c.asym_id for c in self.chains))


# ======================================================================
# Header / provenance metadata
# ======================================================================

@dataclass
class PDBHeader:
    id_code: str = ""
    classification: str = ""
    deposition_date: Optional[date] = None
    title: str = ""
    keywords: str = ""
    experimental_techniques: list[str] = field(default_factory=list)
    resolution: Optional[float] = None
    r_free: Optional[float] = None
    authors: list[str] = field(default_factory=list)


@dataclass
class DBRef:
    """Cross-reference from a chain segment to a sequence database."""

    id_code: str
    chain_name: str
    seq_begin: int
    seq_end: int
    database: str
    db_accession: str
    db_id_code: str = ""
    insert_begin: str = ""
    insert_end: str = ""
    db_seq_begin: int = 0
    db_ins_begin: str = ""
    db_seq_end: int = 0
    db_ins_end: str = ""


@dataclass(frozen=True)
class CrystalCell:
    a: float
    b: float
    c: float
    alpha: float
    beta: float
    gamma: float

    def is_cell_reasonable(self) -> bool:
        """False for the 1x1x1 placeholder cell written for NMR/EM entries."""
        if min(self.a, self.b, self.c) <= 1.0:
            return False
        return all(0.0 < ang < 180.0 for ang in (self.alpha, self.beta, self.gamma))


@dataclass
class PDBCrystallographicInfo:
    cell: Optional[CrystalCell] = None
    space_group: Optional[str] = None
    z: Optional[int] = None


@dataclass
class JournalArticle:
    title: str = ""
    authors: list[str] = field(default_factory=list)
    journal_name: str = ""
    volume: str = ""
    start_page: str = ""
    publication_year: Optional[int] = None
    doi: str = ""
    pmid: str = ""


@dataclass(eq=False)
class Site:
    """Binding site: a named set of groups."""

    site_id: str
    description: str = ""
    groups: list[Group] = field(default_factory=list)
