"""Structure serializers (PDB fixed-column and mmCIF)."""

from molstruct.writers.base import StructureWriter, WriterOptions
from molstruct.writers.mmcif import CIFWriter
from molstruct.writers.pdb_format import PDBWriter

__all__ = ["StructureWriter", "WriterOptions", "CIFWriter", "PDBWriter"]
