"""molstruct.parsers: PDB and mmCIF readers.

Architecture:
    - base.py: StructureParser interface, gzip-aware line reading
    - pdb_format.py: PDBFormatParser (fixed-column PDB)
    - mmcif.py: CIFParser (first data block of an mmCIF file)
    - dataset.py: parser registry + StructureDataset

Usage::

    from molstruct.parsers import auto_parser

    parser = auto_parser("1abc.cif.gz")
    s = parser.parse("1abc.cif.gz")
    for chain in s.get_chains():
        print(chain.asym_id, chain.auth_id, chain.sequence)
"""

from molstruct.parsers.base import StructureParser
from molstruct.parsers.dataset import StructureDataset, auto_parser, register_parser
from molstruct.parsers.mmcif import CIFParser
from molstruct.parsers.pdb_format import PDBFormatParser

__all__ = [
    "StructureParser",
    "CIFParser",
    "PDBFormatParser",
    "StructureDataset",
    "auto_parser",
    "register_parser",
]
