"""molstruct.structure: in-memory model of a macromolecular structure.

Architecture:
    - base.py: Atom, Group, Chain, EntityInfo, Bond and header value objects
    - resolver.py: ChainIndex (asym id and auth id lookups per model)
    - identifier.py: SubstructureIdentifier, ResidueRange
    - structure.py: Model + Structure aggregate

Usage::

    from molstruct.structure import Structure, Chain, Group, Atom, ResidueNumber

    s = Structure(pdb_code="1ABC")
    s.add_model([Chain("A", "A"), Chain("B", "A", polymer=False)])
    s.find_chain("A")       # polymeric chain wins the auth id
    s.get_chain("B")        # asym id lookup
"""

from molstruct.structure.base import (
    Atom,
    Bond,
    BondType,
    Chain,
    CrystalCell,
    DBRef,
    EntityInfo,
    EntityType,
    Group,
    GroupType,
    JournalArticle,
    PDBCrystallographicInfo,
    PDBHeader,
    ResidueNumber,
    Site,
)
from molstruct.structure.identifier import ResidueRange, StructureIdentifier, SubstructureIdentifier
from molstruct.structure.resolver import ChainIndex
from molstruct.structure.structure import AtomSite, Model, Structure

__all__ = [
    # Hierarchy
    "Structure",
    "Model",
    "Chain",
    "Group",
    "Atom",
    "AtomSite",
    "ResidueNumber",
    "GroupType",
    # Entities and bonds
    "EntityInfo",
    "EntityType",
    "Bond",
    "BondType",
    "Site",
    # Header
    "PDBHeader",
    "DBRef",
    "CrystalCell",
    "PDBCrystallographicInfo",
    "JournalArticle",
    # Lookups and identifiers
    "ChainIndex",
    "StructureIdentifier",
    "SubstructureIdentifier",
    "ResidueRange",
]
