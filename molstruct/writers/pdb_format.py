"""Legacy PDB format writer: fixed-column records, pure Python.

Record order: HEADER, TITLE, KEYWDS, EXPDTA, AUTHOR, JRNL, REMARK 2, DBREF,
SSBOND, SITE, CRYST1, coordinates (MODEL/ENDMDL for ensembles), CONECT,
END. Chains are labelled with their auth id. A value that does not fit
its column range raises FormatOverflowError; nothing is truncated.

Single Responsibility: only handles PDB format.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

from molstruct.core.exceptions import FormatOverflowError
from molstruct.core.logging_utils import get_logger
from molstruct.structure.base import Atom, Bond, BondType, Chain, Group, GroupType
from molstruct.structure.structure import Structure
from molstruct.writers.base import StructureWriter

logger = get_logger(__name__)

_MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

# CONECT capacity per line: bonded, hydrogen-bonded, salt-bridged partners
CONECT_BONDED = 4
CONECT_HYDROGEN = 4
CONECT_SALT = 2

_CONECT_CATEGORY = {
    BondType.COVALENT: 0,
    BondType.DISULFIDE: 0,
    BondType.HYDROGEN: 1,
    BondType.SALT_BRIDGE: 2,
}


# ======================================================================
# Field helpers
# ======================================================================

def _text(field: str, value: str, width: int) -> str:
    if len(value) > width:
        raise FormatOverflowError(field, value, width)
    return value


def _int(field: str, value: int, width: int) -> str:
    s = str(value).rjust(width)
    if len(s) > width:
        raise FormatOverflowError(field, value, width)
    return s


def _float(field: str, value: float, width: int, decimals: int) -> str:
    s = f"{value:{width}.{decimals}f}"
    if len(s) > width:
        raise FormatOverflowError(field, value, width)
    return s


def _wrap(text: str, first: int, rest: int) -> list[str]:
    """Greedy word wrap with a different width for the first line."""
    lines: list[str] = []
    current = ""
    for word in text.split():
        width = first if not lines else rest
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= width:
            current = candidate
            continue
        if current:
            lines.append(current)
        current = word
        width = first if not lines else rest
        while len(current) > width:
            lines.append(current[:width])
            current = current[width:]
            width = rest
    if current:
        lines.append(current)
    return lines


def _continued(record: str, text: str) -> list[str]:
    """Records such as TITLE whose continuation number sits in columns 9-10."""
    out = []
    for i, chunk in enumerate(_wrap(text, 70, 69), start=1):
        if i == 1:
            out.append(f"{record:<6}    {chunk}")
        else:
            out.append(f"{record:<6}  {i:>2} {chunk}")
    return out


def _format_date(d) -> str:
    return f"{d.day:02d}-{_MONTHS[d.month - 1]}-{d.year % 100:02d}"


def _atom_name(atom: Atom) -> str:
    name = _text("atom name", atom.name, 4)
    if len(name) < 4 and len(atom.element.strip()) < 2:
        return f" {name}".ljust(4)
    return name.ljust(4)


def _charge(atom: Atom) -> str:
    if atom.charge == 0:
        return "  "
    if abs(atom.charge) > 9:
        raise FormatOverflowError("charge", atom.charge, 2)
    return f"{abs(atom.charge)}{'+' if atom.charge > 0 else '-'}"


def _residue_fields(chain: Chain, group: Group) -> str:
    """resName, chainID, resSeq, iCode (columns 18-27)."""
    return (
        f"{_text('residue name', group.name, 3):>3} "
        f"{_text('auth chain id', chain.auth_id, 1):1}"
        f"{_int('residue number', group.seq_num, 4)}"
        f"{_text('insertion code', group.ins_code, 1):1}"
    )


# ======================================================================
# Record builders
# ======================================================================

def atom_record(chain: Chain, group: Group, atom: Atom) -> str:
    """ATOM or HETATM record for one atom."""
    polymeric = chain.is_polymer and group.group_type is not GroupType.HETATM
    record = "ATOM" if polymeric else "HETATM"
    line = (
        f"{record:<6}{_int('atom serial', atom.serial, 5)} "
        f"{_atom_name(atom)}{_text('alt loc', atom.alt_id, 1):1}"
        f"{_residue_fields(chain, group)}   "
        f"{_float('x', atom.x, 8, 3)}{_float('y', atom.y, 8, 3)}{_float('z', atom.z, 8, 3)}"
        f"{_float('occupancy', atom.occupancy, 6, 2)}{_float('b-factor', atom.b_factor, 6, 2)}"
        f"          {_text('element', atom.element.upper(), 2):>2}{_charge(atom)}"
    )
    return line.rstrip()


def ter_record(serial: int, chain: Chain, group: Group) -> str:
    # the serial follows the last atom; past 99999 the field is left blank
    field = _int("atom serial", serial, 5) if serial <= 99999 else " " * 5
    return f"TER   {field}      {_residue_fields(chain, group)}".rstrip()


def conect_entries(bonds: Iterable[Bond]) -> list[tuple[int, list[int], list[int], list[int]]]:
    """Split bonds into CONECT lines: (serial, bonded, hydrogen, salt).

    Every bond is listed from both ends. An atom with more partners than one
    line holds continues on further entries with the same primary serial.
    """
    partners: dict[int, tuple[list[int], list[int], list[int]]] = {}
    for bond in bonds:
        category = _CONECT_CATEGORY[bond.kind]
        for a, b in ((bond.serial1, bond.serial2), (bond.serial2, bond.serial1)):
            slot = partners.setdefault(a, ([], [], []))[category]
            if b not in slot:
                slot.append(b)

    entries = []
    for serial in sorted(partners):
        bonded, hydrogen, salt = partners[serial]
        n_lines = max(
            math.ceil(len(bonded) / CONECT_BONDED),
            math.ceil(len(hydrogen) / CONECT_HYDROGEN),
            math.ceil(len(salt) / CONECT_SALT),
        )
        for i in range(n_lines):
            entries.append((
                serial,
                bonded[i * CONECT_BONDED:(i + 1) * CONECT_BONDED],
                hydrogen[i * CONECT_HYDROGEN:(i + 1) * CONECT_HYDROGEN],
                salt[i * CONECT_SALT:(i + 1) * CONECT_SALT],
            ))
    return entries


def conect_record(serial: int, bonded: list[int], hydrogen: list[int], salt: list[int]) -> str:
    """Columns 7-61: primary serial, 4 bonded, 2 hbond, 1 salt, 2 hbond, 1 salt."""

    def slots(values: list[int], start: int, count: int) -> str:
        out = ""
        for i in range(start, start + count):
            out += _int("atom serial", values[i], 5) if i < len(values) else " " * 5
        return out

    line = (
        "CONECT"
        + _int("atom serial", serial, 5)
        + slots(bonded, 0, 4)
        + slots(hydrogen, 0, 2)
        + slots(salt, 0, 1)
        + slots(hydrogen, 2, 2)
        + slots(salt, 1, 1)
    )
    return line.rstrip()


# ======================================================================
# PDBWriter
# ======================================================================

class PDBWriter(StructureWriter):
    """Write a Structure as a legacy PDB file."""

    def write(self, structure: Structure) -> str:
        lines: list[str] = []
        if self.options.header:
            lines.extend(self._header_records(structure))
        lines.extend(self._coordinate_records(structure))
        if self.options.conect:
            lines.extend(self._conect_records(structure))
        lines.append("END")
        logger.debug("PDB output for %s: %d records", structure.pdb_code or "?", len(lines))
        return "\n".join(lines) + "\n"

    @staticmethod
    def extensions() -> list[str]:
        return [".pdb", ".ent", ".pdb.gz", ".ent.gz"]

    # -- header --------------------------------------------------------

    def _header_records(self, s: Structure) -> list[str]:
        h = s.pdb_header
        lines = []
        id_code = h.id_code or s.pdb_code
        if h.classification or h.deposition_date or id_code:
            date = _format_date(h.deposition_date) if h.deposition_date else ""
            lines.append(
                f"HEADER    {_text('classification', h.classification, 40):<40}"
                f"{date:<9}   {_text('id code', id_code, 4)}".rstrip()
            )
        if h.title:
            lines.extend(_continued("TITLE", h.title))
        if h.keywords:
            lines.extend(_continued("KEYWDS", h.keywords))
        if h.experimental_techniques:
            lines.extend(_continued("EXPDTA", "; ".join(h.experimental_techniques)))
        if h.authors:
            lines.extend(_continued("AUTHOR", ", ".join(h.authors)))
        if s.journal_article is not None:
            lines.extend(self._jrnl_records(s))
        if h.resolution is not None:
            lines.append("REMARK   2")
            lines.append(f"REMARK   2 RESOLUTION. {_float('resolution', h.resolution, 6, 2)} ANGSTROMS.")
        for ref in s.dbrefs:
            lines.append(self._dbref_record(ref))
        lines.extend(self._ssbond_records(s))
        lines.extend(self._site_records(s))
        info = s.crystallographic_info
        if info.cell is not None:
            c = info.cell
            z = _int("z", info.z, 4) if info.z is not None else ""
            lines.append(
                f"CRYST1{_float('a', c.a, 9, 3)}{_float('b', c.b, 9, 3)}{_float('c', c.c, 9, 3)}"
                f"{_float('alpha', c.alpha, 7, 2)}{_float('beta', c.beta, 7, 2)}{_float('gamma', c.gamma, 7, 2)}"
                f" {_text('space group', info.space_group or '', 11):<11}{z}".rstrip()
            )
        return lines

    def _jrnl_records(self, s: Structure) -> list[str]:
        j = s.journal_article

        def sub(tag: str, text: str, width: int = 60) -> list[str]:
            out = []
            for i, chunk in enumerate(_wrap(text, width, width), start=1):
                cont = f"{i:>2}" if i > 1 else "  "
                out.append(f"JRNL        {tag:<4}{cont} {chunk}")
            return out

        lines = []
        if j.authors:
            lines.extend(sub("AUTH", ", ".join(j.authors)))
        if j.title:
            lines.extend(sub("TITL", j.title))
        if j.journal_name:
            name_lines = _wrap(j.journal_name, 28, 28)
            year = str(j.publication_year) if j.publication_year else ""
            lines.append(
                f"JRNL        REF    {name_lines[0]:<28}  V."
                f"{_text('volume', j.volume, 4):>4} {_text('page', j.start_page, 5):>5} {year:>4}".rstrip()
            )
            for i, chunk in enumerate(name_lines[1:], start=2):
                lines.append(f"JRNL        REF  {i:>2} {chunk}")
        if j.pmid:
            lines.append(f"JRNL        PMID   {j.pmid}")
        if j.doi:
            lines.append(f"JRNL        DOI    {j.doi}")
        return lines

    @staticmethod
    def _dbref_record(ref) -> str:
        return (
            f"DBREF  {_text('id code', ref.id_code, 4):4} {_text('chain id', ref.chain_name, 1):1} "
            f"{_int('seq begin', ref.seq_begin, 4)}{ref.insert_begin:1} "
            f"{_int('seq end', ref.seq_end, 4)}{ref.insert_end:1} "
            f"{_text('database', ref.database, 6):<6} {_text('db accession', ref.db_accession, 8):<8} "
            f"{_text('db id code', ref.db_id_code, 12):<12} "
            f"{_int('db seq begin', ref.db_seq_begin, 5)}{ref.db_ins_begin:1} "
            f"{_int('db seq end', ref.db_seq_end, 5)}{ref.db_ins_end:1}"
        ).rstrip()

    def _ssbond_records(self, s: Structure) -> list[str]:
        if not s.ss_bonds or s.nr_models() == 0:
            return []
        table = s.atom_table(0)
        lines = []
        n = 0
        for bond in s.ss_bonds:
            site1, site2 = table.get(bond.serial1), table.get(bond.serial2)
            if site1 is None or site2 is None:
                logger.debug("Skipping SSBOND with unknown atom serial: %s", bond)
                continue
            n += 1
            # SSBOND puts an extra blank between chain id and residue number
            res1 = _residue_fields(site1.chain, site1.group)
            res2 = _residue_fields(site2.chain, site2.group)
            lines.append(
                f"SSBOND {_int('ssbond serial', n, 3)} {res1[:5]} {res1[5:]}   "
                f"{res2[:5]} {res2[5:]}{'':23}{'1555':>6} {'1555':>6}"
            )
        return lines

    def _site_records(self, s: Structure) -> list[str]:
        if not s.sites or s.nr_models() == 0:
            return []
        owners = {id(g): c for c in s.get_chains() for g in c}
        lines = []
        for site in s.sites:
            members = [(owners[id(g)], g) for g in site.groups if id(g) in owners]
            site_id = _text("site id", site.site_id, 3)
            n_res = _int("site residue count", len(members), 2)
            for seq, start in enumerate(range(0, len(members), 4), start=1):
                chunk = members[start:start + 4]
                residues = "".join(f"{_residue_fields(c, g)} " for c, g in chunk)
                lines.append(f"SITE   {_int('site serial', seq, 3)} {site_id:>3} {n_res} {residues}".rstrip())
        return lines

    # -- coordinates ---------------------------------------------------

    def _coordinate_records(self, s: Structure) -> list[str]:
        lines = []
        multi = s.nr_models() > 1
        for modelnr in range(s.nr_models()):
            if multi:
                lines.append(f"MODEL     {_int('model serial', modelnr + 1, 4)}")
            lines.extend(self._model_records(s, modelnr))
            if multi:
                lines.append("ENDMDL")
        return lines

    def _model_records(self, s: Structure, modelnr: int) -> list[str]:
        lines = []
        for chain in s.get_poly_chains(modelnr):
            last: Optional[tuple[Group, Atom]] = None
            for g in chain:
                for a in g.atoms:
                    lines.append(atom_record(chain, g, a))
                    last = (g, a)
            if last is not None:
                lines.append(ter_record(last[1].serial + 1, chain, last[0]))
        for chain in s.get_non_poly_chains(modelnr):
            for g in chain:
                for a in g.atoms:
                    lines.append(atom_record(chain, g, a))
        return lines

    # -- connectivity --------------------------------------------------

    def _conect_records(self, s: Structure) -> list[str]:
        known = set(s.atom_table(0)) if s.nr_models() else set()
        bonds = []
        for b in s.all_bonds():
            if b.serial1 in known and b.serial2 in known:
                bonds.append(b)
            else:
                logger.debug("Skipping bond with unknown atom serial: %s", b)
        return [conect_record(*entry) for entry in conect_entries(bonds)]
