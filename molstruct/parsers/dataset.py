"""Parser registry and StructureDataset.

Readers are looked up by file extension, so new formats can be added by
registering a parser without touching the callers. StructureDataset parses
a list of mixed-format files lazily.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from molstruct.core.exceptions import StructureError
from molstruct.core.logging_utils import get_logger
from molstruct.parsers.base import StructureParser
from molstruct.structure.structure import Structure

logger = get_logger(__name__)

# ======================================================================
# Parser registry
# ======================================================================

_REGISTRY: dict[str, type[StructureParser]] = {}


def register_parser(parser_cls: type[StructureParser]) -> None:
    """Register a parser class for its declared extensions."""
    for ext in parser_cls.extensions():
        _REGISTRY[ext.lower()] = parser_cls


def _ensure_registry() -> None:
    if _REGISTRY:
        return
    from molstruct.parsers.mmcif import CIFParser
    from molstruct.parsers.pdb_format import PDBFormatParser
    register_parser(CIFParser)
    register_parser(PDBFormatParser)


def auto_parser(path: str | Path) -> StructureParser:
    """Return the appropriate parser for a file path based on extension."""
    _ensure_registry()
    name = str(path).lower()
    for ext in sorted(_REGISTRY, key=len, reverse=True):
        if name.endswith(ext):
            return _REGISTRY[ext]()
    available = sorted(_REGISTRY)
    raise ValueError(f"No parser for '{path}'. Supported: {available}")


# ======================================================================
# StructureDataset
# ======================================================================

class StructureDataset:
    """Structure files of mixed formats, each parsed on first access.

    The reader is picked per path when the dataset is built, so an
    unsupported file is rejected before anything is parsed. Iterating with
    ``items(skip_errors=True)`` keeps going past unreadable files and
    records them in ``failures``.

    Usage::

        ds = StructureDataset(["1abc.cif.gz", "2xyz.pdb"])
        for path, structure in ds.items(skip_errors=True):
            print(path.name, structure.nr_models(), structure.size())
        print(ds.failures)
    """

    def __init__(self, paths: Iterable[str | Path]):
        self._entries: list[tuple[Path, StructureParser]] = [(Path(p), auto_parser(p)) for p in paths]
        self._cache: dict[Path, Structure] = {}
        self.failures: dict[Path, str] = {}

    @classmethod
    def from_directory(cls, directory: str | Path, pattern: str = "*.cif") -> "StructureDataset":
        """All files under ``directory`` (recursively) matching ``pattern``."""
        d = Path(directory)
        paths = sorted(d.rglob(pattern))
        logger.info("Found %d structure files matching '%s' in %s", len(paths), pattern, d)
        return cls(paths)

    @property
    def paths(self) -> list[Path]:
        return [path for path, _ in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, idx: int) -> Structure:
        return self._load(*self._entries[idx])

    def __iter__(self) -> Iterator[Structure]:
        for _, structure in self.items():
            yield structure

    def items(self, skip_errors: bool = False) -> Iterator[tuple[Path, Structure]]:
        """(path, structure) pairs in input order."""
        for path, parser in self._entries:
            try:
                structure = self._load(path, parser)
            except (OSError, ValueError, StructureError) as e:
                if not skip_errors:
                    raise
                logger.warning("Skipping %s: %s", path, e)
                self.failures[path] = str(e)
                continue
            yield path, structure

    def _load(self, path: Path, parser: StructureParser) -> Structure:
        structure = self._cache.get(path)
        if structure is None:
            structure = parser.parse(path)
            self._cache[path] = structure
            logger.debug("Parsed %s: %d models, %d chains", path, structure.nr_models(), structure.size())
        return structure
