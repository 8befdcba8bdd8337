"""The Structure aggregate: models, chains and everything parsed with them.

Model 0 is the default model for every chain lookup. A crystallographic
entry has exactly one model; several models make an NMR ensemble.

Mutation (add_model, set_model, add_chain, set_chains, reset_models) is not
synchronized. Share a Structure between threads only for reading.
"""

from __future__ import annotations

import copy
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

import numpy as np
import pandas as pd

from molstruct.core.exceptions import EntityNotFoundError
from molstruct.core.logging_utils import get_logger
from molstruct.structure.base import (
    Atom,
    Bond,
    Chain,
    DBRef,
    EntityInfo,
    Group,
    GroupType,
    JournalArticle,
    PDBCrystallographicInfo,
    PDBHeader,
    Site,
)
from molstruct.structure.identifier import ResidueRange, StructureIdentifier, SubstructureIdentifier
from molstruct.structure.resolver import ChainIndex

if TYPE_CHECKING:
    from molstruct.writers.base import WriterOptions

logger = get_logger(__name__)

CRYSTALLOGRAPHIC_TECHNIQUES = {
    "X-RAY DIFFRACTION",
    "NEUTRON DIFFRACTION",
    "ELECTRON CRYSTALLOGRAPHY",
    "FIBER DIFFRACTION",
    "POWDER DIFFRACTION",
}


@dataclass(frozen=True)
class AtomSite:
    """An atom together with the group and chain that own it."""

    chain: Chain
    group: Group
    atom: Atom


class Model:
    """One conformer: ordered chains plus their identifier index."""

    def __init__(self, chains: Iterable[Chain] = (), modelnr: int = 0):
        chains = list(chains)
        self._index = ChainIndex(chains, modelnr)
        self._chains = chains

    @property
    def chains(self) -> list[Chain]:
        return list(self._chains)

    @property
    def index(self) -> ChainIndex:
        return self._index

    def set_chains(self, chains: Iterable[Chain]) -> None:
        chains = list(chains)
        self._index = ChainIndex(chains, self._index.modelnr)
        self._chains = chains

    def add_chain(self, chain: Chain) -> None:
        self.set_chains(self._chains + [chain])

    def __deepcopy__(self, memo: dict) -> "Model":
        return Model(copy.deepcopy(self._chains, memo), self._index.modelnr)

    def __len__(self) -> int:
        return len(self._chains)


class Structure:
    """Root of the hierarchy: models, entities, header and connectivity."""

    def __init__(self, pdb_code: str = "", name: str = ""):
        self.pdb_code = pdb_code
        self.name = name
        self.id: Optional[int] = None
        self.structure_identifier: Optional[StructureIdentifier] = None
        self.biological_assembly = False

        self.pdb_header = PDBHeader()
        self.crystallographic_info = PDBCrystallographicInfo()
        self.journal_article: Optional[JournalArticle] = None
        self.entity_infos: list[EntityInfo] = []
        self.dbrefs: list[DBRef] = []
        self.ss_bonds: list[Bond] = []
        self.bonds: list[Bond] = []
        self.sites: list[Site] = []

        self._models: list[Model] = []

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def _model(self, modelnr: int) -> Model:
        if not 0 <= modelnr < len(self._models):
            raise IndexError(f"Model {modelnr} out of range (nr_models={len(self._models)})")
        return self._models[modelnr]

    def _index(self, modelnr: int) -> ChainIndex:
        # a model-less structure answers keyed lookups on model 0 as an empty model
        if not self._models and modelnr == 0:
            return ChainIndex(())
        return self._model(modelnr).index

    def nr_models(self) -> int:
        return len(self._models)

    def is_nmr(self) -> bool:
        return len(self._models) > 1

    def is_crystallographic(self) -> bool:
        """True for an asymmetric unit from which the lattice can be rebuilt."""
        techniques = self.pdb_header.experimental_techniques
        if techniques:
            return any(t.upper() in CRYSTALLOGRAPHIC_TECHNIQUES for t in techniques)
        info = self.crystallographic_info
        return bool(info.space_group) and info.cell is not None and info.cell.is_cell_reasonable()

    def add_model(self, chains: Iterable[Chain]) -> None:
        self._models.append(Model(chains, len(self._models)))

    def set_model(self, position: int, chains: Iterable[Chain]) -> None:
        self._model(position)
        self._models[position] = Model(chains, position)

    def get_model(self, modelnr: int) -> list[Chain]:
        return self._model(modelnr).chains

    def reset_models(self) -> None:
        """Drop every model; entities, header and bonds are kept."""
        self._models = []

    def size(self, modelnr: int = 0) -> int:
        """Number of chains in a model (0 for a model-less structure)."""
        if not self._models and modelnr == 0:
            return 0
        return len(self._model(modelnr))

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def get_chains(self, modelnr: int = 0) -> list[Chain]:
        if not self._models and modelnr == 0:
            return []
        return self._model(modelnr).chains

    def set_chains(self, chains: Iterable[Chain], modelnr: int = 0) -> None:
        """Replace the chains of one model (model 0 unless given).

        On an NMR ensemble the other models are left untouched.
        """
        if not self._models and modelnr == 0:
            self.add_model(chains)
            return
        self._model(modelnr).set_chains(chains)

    def add_chain(self, chain: Chain, modelnr: int = 0) -> None:
        if not self._models and modelnr == 0:
            self.add_model([chain])
            return
        self._model(modelnr).add_chain(chain)

    def get_poly_chains(self, modelnr: int = 0) -> list[Chain]:
        return [c for c in self.get_chains(modelnr) if c.is_polymer]

    def get_non_poly_chains(self, modelnr: int = 0) -> list[Chain]:
        return [c for c in self.get_chains(modelnr) if not c.is_polymer]

    def get_chain_at(self, pos: int, modelnr: int = 0) -> Chain:
        chains = self._model(modelnr).chains
        if not 0 <= pos < len(chains):
            raise IndexError(f"Chain position {pos} out of range in model {modelnr} (size={len(chains)})")
        return chains[pos]

    def get_chain(self, asym_id: str, modelnr: int = 0) -> Chain:
        """Chain by internal (asym) id, poly or non-poly alike."""
        return self._index(modelnr).by_asym(asym_id)

    def find_chain(self, auth_id: str, modelnr: int = 0) -> Chain:
        """Chain by public (auth) id; the polymeric chain wins a collision."""
        return self._index(modelnr).by_auth(auth_id)

    def has_chain(self, auth_id: str, modelnr: int = 0) -> bool:
        if not 0 <= modelnr < len(self._models):
            return False
        return self._models[modelnr].index.lookup_auth(auth_id) is not None

    def get_chain_by_pdb(self, auth_id: str, modelnr: int = 0) -> Chain:
        warnings.warn("get_chain_by_pdb is deprecated, use find_chain", DeprecationWarning, stacklevel=2)
        return self.find_chain(auth_id, modelnr)

    def get_poly_chain(self, asym_id: str, modelnr: int = 0) -> Chain:
        return self._index(modelnr).by_asym(asym_id, polymer=True)

    def get_non_poly_chain(self, asym_id: str, modelnr: int = 0) -> Chain:
        return self._index(modelnr).by_asym(asym_id, polymer=False)

    def get_poly_chain_by_pdb(self, auth_id: str, modelnr: int = 0) -> Chain:
        return self._index(modelnr).by_auth(auth_id, polymer=True)

    def get_non_poly_chain_by_pdb(self, auth_id: str, modelnr: int = 0) -> Chain:
        return self._index(modelnr).by_auth(auth_id, polymer=False)

    def find_group(self, auth_id: str, pdb_resnum: str, modelnr: int = 0) -> Group:
        """Group by auth chain id and author residue number such as '42A'."""
        return self._index(modelnr).find_group(auth_id, pdb_resnum)

    def get_het_groups(self) -> list[Group]:
        return [g for c in self.get_chains() for g in c if g.group_type is GroupType.HETATM]

    # ------------------------------------------------------------------
    # Entities and metadata
    # ------------------------------------------------------------------

    def add_entity_info(self, entity_info: EntityInfo) -> None:
        self.entity_infos.append(entity_info)

    def get_entity_by_id(self, entity_id: int) -> EntityInfo:
        for e in self.entity_infos:
            if e.id == entity_id:
                return e
        raise EntityNotFoundError(entity_id)

    def get_compound_by_id(self, entity_id: int) -> EntityInfo:
        warnings.warn("get_compound_by_id is deprecated, use get_entity_by_id", DeprecationWarning, stacklevel=2)
        return self.get_entity_by_id(entity_id)

    def has_journal_article(self) -> bool:
        return self.journal_article is not None

    # ------------------------------------------------------------------
    # Atoms and bonds
    # ------------------------------------------------------------------

    def add_ss_bond(self, bond: Bond) -> None:
        self.ss_bonds.append(bond)

    def add_bond(self, bond: Bond) -> None:
        self.bonds.append(bond)

    def all_bonds(self) -> list[Bond]:
        """Disulfide and other bonds, de-duplicated, in insertion order."""
        seen = set()
        out = []
        for b in self.ss_bonds + self.bonds:
            if b.key not in seen:
                seen.add(b.key)
                out.append(b)
        return out

    def atom_table(self, modelnr: int = 0) -> dict[int, AtomSite]:
        """Atom serial -> AtomSite for one model."""
        return {
            a.serial: AtomSite(chain, g, a)
            for chain in self.get_chains(modelnr)
            for g in chain
            for a in g.atoms
        }

    def get_atom(self, serial: int, modelnr: int = 0) -> Atom:
        site = self.atom_table(modelnr).get(serial)
        if site is None:
            raise KeyError(f"No atom with serial {serial} in model {modelnr}")
        return site.atom

    def bonds_of(self, serial: int) -> list[Bond]:
        return [b for b in self.all_bonds() if b.involves(serial)]

    @property
    def connections(self) -> list[dict[str, int]]:
        """CONECT lines as dicts (atomserial, bond1..4, hydrogen1..4, salt1..2).

        Read-only view derived from the bond lists.
        """
        from molstruct.writers.pdb_format import conect_entries

        out = []
        for serial, bonded, hydrogen, salt in conect_entries(self.all_bonds()):
            line = {"atomserial": serial}
            for prefix, serials in (("bond", bonded), ("hydrogen", hydrogen), ("salt", salt)):
                for i, s in enumerate(serials, start=1):
                    line[f"{prefix}{i}"] = s
            out.append(line)
        return out

    def atoms(self, modelnr: int = 0) -> list[Atom]:
        return [a for c in self.get_chains(modelnr) for a in c.atoms]

    def coordinates(self, modelnr: int = 0) -> np.ndarray:
        """Atom coordinates of one model as an (n, 3) float array."""
        atoms = self.atoms(modelnr)
        if not atoms:
            return np.zeros((0, 3), dtype=float)
        return np.array([a.coords for a in atoms], dtype=float)

    def to_dataframe(self, modelnr: int = 0) -> pd.DataFrame:
        """Flat atom table with both chain identifiers, one row per atom."""
        rows = []
        for chain in self.get_chains(modelnr):
            for g in chain:
                for a in g.atoms:
                    rows.append({
                        "serial": a.serial,
                        "name": a.name,
                        "element": a.element,
                        "res_name": g.name,
                        "res_num": g.seq_num,
                        "ins_code": g.ins_code,
                        "asym_id": chain.asym_id,
                        "auth_id": chain.auth_id,
                        "entity_id": chain.entity_id,
                        "polymer": chain.is_polymer,
                        "x": a.x,
                        "y": a.y,
                        "z": a.z,
                        "occupancy": a.occupancy,
                        "b_factor": a.b_factor,
                    })
        return pd.DataFrame(rows)

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def get_identifier(self) -> str:
        """First non-empty of: original identifier, name, synthesized ranges."""
        if self.structure_identifier is not None and self.structure_identifier.identifier:
            return self.structure_identifier.identifier
        if self.name:
            return self.name
        return SubstructureIdentifier.from_structure(self).identifier

    def _canonical(self) -> SubstructureIdentifier:
        if self.structure_identifier is not None:
            return self.structure_identifier.to_canonical()
        return SubstructureIdentifier.from_structure(self)

    def get_pdb_id(self) -> str:
        warnings.warn("get_pdb_id is deprecated, use structure_identifier", DeprecationWarning, stacklevel=2)
        return self._canonical().pdb_id

    def get_residue_ranges(self) -> list[ResidueRange]:
        warnings.warn("get_residue_ranges is deprecated, use structure_identifier", DeprecationWarning, stacklevel=2)
        return list(self._canonical().ranges)

    def get_ranges(self) -> list[str]:
        warnings.warn("get_ranges is deprecated, use structure_identifier", DeprecationWarning, stacklevel=2)
        return [str(r) for r in self._canonical().ranges]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_pdb(self, options: Optional["WriterOptions"] = None) -> str:
        from molstruct.writers.pdb_format import PDBWriter

        return PDBWriter(options).write(self)

    def to_mmcif(self, options: Optional["WriterOptions"] = None) -> str:
        from molstruct.writers.mmcif import CIFWriter

        return CIFWriter(options).write(self)

    def clone(self) -> "Structure":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.pdb_code or '?'} "
            f"models={self.nr_models()} chains={self.size()} "
            f"entities={len(self.entity_infos)} atoms={len(self.atoms())}>"
        )

    def __str__(self) -> str:
        lines = [
            f"structure {self.pdb_code or '?'} {self.get_identifier()}",
            f" models: {self.nr_models()} nmr: {self.is_nmr()} "
            f"crystallographic: {self.is_crystallographic()}",
        ]
        for modelnr in range(self.nr_models()):
            for c in self.get_chains(modelnr):
                kind = "polymer" if c.is_polymer else "non-polymer"
                lines.append(
                    f" model {modelnr} chain asym={c.asym_id} auth={c.auth_id} "
                    f"entity={c.entity_id} {kind} groups={len(c)}"
                )
        for e in self.entity_infos:
            lines.append(f" entity {e.id} {e.type.value} {e.description} chains={e.chain_ids}")
        return "\n".join(lines)
