"""Legacy PDB format parser: pure Python, no external dependencies.

Parses .pdb and .ent(.gz) files into a Structure. The format has no asym
ids, so they are assigned in order of appearance: one polymer chain per
auth id up to its TER record, one non-polymer chain per ligand residue and
one per block of waters, as mmCIF does.

Single Responsibility: only handles PDB format.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from molstruct.core.logging_utils import get_logger
from molstruct.parsers.base import StructureParser, asym_label
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
    ResidueNumber,
    Site,
)
from molstruct.structure.structure import Structure

logger = get_logger(__name__)

_MONTHS = {m: i for i, m in enumerate(
    ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"), start=1)}

# (start, end) slices of the CONECT partner fields
_CONECT_FIELDS = {
    BondType.COVALENT: ((11, 16), (16, 21), (21, 26), (26, 31)),
    BondType.HYDROGEN: ((31, 36), (36, 41), (46, 51), (51, 56)),
    BondType.SALT_BRIDGE: ((41, 46), (56, 61)),
}


def _parse_date(text: str) -> Optional[date]:
    m = re.match(r"(\d{2})-([A-Z]{3})-(\d{2})", text.strip().upper())
    if not m or m.group(2) not in _MONTHS:
        return None
    yy = int(m.group(3))
    year = 2000 + yy if yy < 50 else 1900 + yy
    return date(year, _MONTHS[m.group(2)], int(m.group(1)))


def _opt_int(s: str) -> Optional[int]:
    s = s.strip()
    try:
        return int(s) if s else None
    except ValueError:
        return None


def _residue_key(line: str, chain_col: int, seq_slice: tuple[int, int]) -> tuple[str, ResidueNumber]:
    return line[chain_col], ResidueNumber(int(line[seq_slice[0]:seq_slice[1]]), line[seq_slice[1]].strip())


class _ModelBuilder:
    """Collects the chains of one MODEL block.

    Coordinate records are buffered until the TER that closes their chain,
    so a HETATM residue ahead of TER (an N-terminal MSE, say) stays in the
    polymer.
    """

    def __init__(self):
        self.chains: list[Chain] = []
        self._open_polymers: dict[str, Chain] = {}
        self._terminated: set[str] = set()
        self._nonpoly: dict[tuple, Chain] = {}
        self._current: Optional[tuple[Chain, Group]] = None
        self._pending: list[tuple[str, str, str, ResidueNumber, Atom]] = []

    def add_atom(self, record: str, auth_id: str, res_name: str, number: ResidueNumber, atom: Atom) -> None:
        self._pending.append((record, auth_id, res_name, number, atom))

    def terminate(self, auth_id: str) -> None:
        self.flush(closing=auth_id)
        self._terminated.add(auth_id)
        self._open_polymers.pop(auth_id, None)
        self._current = None

    def flush(self, closing: Optional[str] = None) -> None:
        """Place buffered records; those of the ``closing`` chain are polymeric."""
        pending, self._pending = self._pending, []
        for record, auth_id, res_name, number, atom in pending:
            self._place(record, auth_id, res_name, number, atom, closing)

    def _new_chain(self, auth_id: str, polymer: bool) -> Chain:
        chain = Chain(asym_label(len(self.chains)), auth_id, polymer=polymer)
        self.chains.append(chain)
        return chain

    def _place(
        self,
        record: str,
        auth_id: str,
        res_name: str,
        number: ResidueNumber,
        atom: Atom,
        closing: Optional[str],
    ) -> None:
        if self._current is not None:
            chain, group = self._current
            if chain.auth_id == auth_id and group.name == res_name and group.number == number:
                group.add_atom(atom)
                return

        is_het = record == "HETATM"
        polymer = auth_id not in self._terminated and (
            not is_het or auth_id == closing or auth_id in self._open_polymers
        )
        if polymer:
            chain = self._open_polymers.get(auth_id)
            if chain is None:
                chain = self._new_chain(auth_id, polymer=True)
                self._open_polymers[auth_id] = chain
        else:
            water = res_name in ("HOH", "WAT", "DOD")
            key = (auth_id, "water") if water else (auth_id, res_name, number)
            chain = self._nonpoly.get(key)
            if chain is None:
                chain = self._new_chain(auth_id, polymer=False)
                self._nonpoly[key] = chain

        group_type = GroupType.HETATM if is_het else None
        group = Group(res_name, number, group_type=group_type, atoms=[atom])
        if group.group_type is GroupType.HETATM and not is_het:
            group.group_type = GroupType.AMINOACID
        try:
            chain.add_group(group)
        except ValueError as e:
            logger.warning("Skipping atom %d: %s", atom.serial, e)
            self._current = None
            return
        self._current = (chain, group)


class PDBFormatParser(StructureParser):
    """Parse PDB-format files (.pdb, .ent, .ent.gz) into a Structure."""

    def parse_lines(self, lines: list[str]) -> Structure:
        s = Structure()
        h = s.pdb_header
        title: list[str] = []
        keywords: list[str] = []
        expdta: list[str] = []
        authors: list[str] = []
        jrnl: dict[str, list[str]] = {}
        models: list[_ModelBuilder] = []
        current: Optional[_ModelBuilder] = None
        conect: list[tuple[int, int, BondType]] = []
        ssbonds: list[tuple] = []
        sites: dict[str, list[tuple]] = {}

        for line in lines:
            line = line.rstrip("\n").ljust(80)
            rec = line[:6].strip()

            if rec == "HEADER":
                h.classification = line[10:50].strip()
                h.deposition_date = _parse_date(line[50:59])
                h.id_code = line[62:66].strip()
                s.pdb_code = h.id_code

            elif rec == "TITLE":
                title.append(line[10:80].strip())

            elif rec == "KEYWDS":
                keywords.append(line[10:80].strip())

            elif rec == "EXPDTA":
                expdta.append(line[10:80].strip())

            elif rec == "AUTHOR":
                authors.append(line[10:79].strip())

            elif rec == "JRNL":
                jrnl.setdefault(line[12:16].strip(), []).append(line)

            elif rec == "REMARK":
                if line[7:10].strip() == "2" and "RESOLUTION" in line.upper():
                    m = re.search(r"(\d+\.\d+)\s*ANGSTROM", line, re.I)
                    if m:
                        h.resolution = float(m.group(1))

            elif rec == "DBREF":
                try:
                    s.dbrefs.append(DBRef(
                        id_code=line[7:11].strip(),
                        chain_name=line[12],
                        seq_begin=int(line[14:18]),
                        insert_begin=line[18].strip(),
                        seq_end=int(line[20:24]),
                        insert_end=line[24].strip(),
                        database=line[26:32].strip(),
                        db_accession=line[33:41].strip(),
                        db_id_code=line[42:54].strip(),
                        db_seq_begin=int(line[55:60]),
                        db_ins_begin=line[60].strip(),
                        db_seq_end=int(line[62:67]),
                        db_ins_end=line[67].strip(),
                    ))
                except ValueError:
                    logger.debug("Malformed DBREF: %s", line.rstrip())

            elif rec == "SSBOND":
                try:
                    ssbonds.append((_residue_key(line, 15, (17, 21)), _residue_key(line, 29, (31, 35))))
                except ValueError:
                    logger.debug("Malformed SSBOND: %s", line.rstrip())

            elif rec == "SITE":
                site_id = line[11:14].strip()
                members = sites.setdefault(site_id, [])
                for start in range(18, 62, 11):
                    name = line[start:start + 3].strip()
                    if not name:
                        continue
                    try:
                        members.append((name,) + _residue_key(line, start + 4, (start + 5, start + 9)))
                    except ValueError:
                        logger.debug("Malformed SITE residue: %s", line.rstrip())

            elif rec == "CRYST1":
                try:
                    s.crystallographic_info.cell = CrystalCell(
                        float(line[6:15]), float(line[15:24]), float(line[24:33]),
                        float(line[33:40]), float(line[40:47]), float(line[47:54]),
                    )
                    s.crystallographic_info.space_group = line[55:66].strip() or None
                    s.crystallographic_info.z = _opt_int(line[66:70])
                except ValueError:
                    pass

            elif rec == "MODEL":
                current = _ModelBuilder()
                models.append(current)

            elif rec == "ENDMDL":
                current = None

            elif rec == "TER":
                if current is not None and line[21] != " ":
                    current.terminate(line[21])

            elif rec in ("ATOM", "HETATM"):
                if current is None:
                    if models:
                        continue
                    current = _ModelBuilder()
                    models.append(current)
                try:
                    charge = line[78:80].strip()
                    atom = Atom(
                        serial=int(line[6:11]),
                        name=line[12:16].strip(),
                        element=line[76:78].strip(),
                        x=float(line[30:38]),
                        y=float(line[38:46]),
                        z=float(line[46:54]),
                        occupancy=float(line[54:60]) if line[54:60].strip() else 1.0,
                        b_factor=float(line[60:66]) if line[60:66].strip() else 0.0,
                        alt_id=line[16].strip(),
                        charge=int(charge[::-1]) if charge else 0,
                    )
                    number = ResidueNumber(int(line[22:26]), line[26].strip())
                except (ValueError, IndexError):
                    logger.debug("Malformed coordinate record: %s", line.rstrip())
                    continue
                current.add_atom(rec, line[21], line[17:20].strip(), number, atom)

            elif rec == "CONECT":
                try:
                    primary = int(line[6:11])
                except ValueError:
                    continue
                for kind, fields in _CONECT_FIELDS.items():
                    for start, end in fields:
                        partner = _opt_int(line[start:end])
                        if partner is not None:
                            conect.append((primary, partner, kind))

        h.title = " ".join(title)
        h.keywords = " ".join(keywords)
        h.experimental_techniques = [t.strip() for t in " ".join(expdta).split(";") if t.strip()]
        h.authors = _split_names(authors)
        if jrnl:
            s.journal_article = _journal(jrnl)

        for builder in models:
            builder.flush()
            s.add_model(builder.chains)
        _assign_entities(s)
        self._resolve_ssbonds(s, ssbonds)
        self._resolve_conect(s, conect)
        self._resolve_sites(s, sites)
        return s

    @staticmethod
    def _resolve_ssbonds(s: Structure, ssbonds: list[tuple]) -> None:
        if not ssbonds or s.nr_models() == 0:
            return
        for (chain1, num1), (chain2, num2) in ssbonds:
            try:
                sg1 = s.find_group(chain1, str(num1)).get_atom("SG")
                sg2 = s.find_group(chain2, str(num2)).get_atom("SG")
            except LookupError as e:
                logger.debug("Unresolved SSBOND: %s", e)
                continue
            if sg1 is not None and sg2 is not None:
                s.add_ss_bond(Bond(sg1.serial, sg2.serial, BondType.DISULFIDE))

    @staticmethod
    def _resolve_conect(s: Structure, conect: list[tuple[int, int, BondType]]) -> None:
        seen = {(b.serial1, b.serial2) for b in s.ss_bonds} | {(b.serial2, b.serial1) for b in s.ss_bonds}
        keys = set()
        for a, b, kind in conect:
            if (a, b) in seen and kind is BondType.COVALENT:
                continue
            bond = Bond(a, b, kind)
            if bond.key not in keys:
                keys.add(bond.key)
                s.add_bond(bond)

    @staticmethod
    def _resolve_sites(s: Structure, sites: dict[str, list[tuple]]) -> None:
        for site_id, members in sites.items():
            site = Site(site_id)
            for name, chain_id, number in members:
                try:
                    site.groups.append(s.find_group(chain_id, str(number)))
                except LookupError:
                    logger.debug("Unresolved SITE member %s %s%s", name, chain_id, number)
            s.sites.append(site)

    @staticmethod
    def extensions() -> list[str]:
        return [".pdb", ".ent", ".pdb.gz", ".ent.gz"]


def _split_names(chunks: list[str]) -> list[str]:
    return [n.strip() for n in " ".join(chunks).split(",") if n.strip()]


def _journal(jrnl: dict[str, list[str]]) -> JournalArticle:
    j = JournalArticle()
    j.authors = _split_names([ln[19:79].strip() for ln in jrnl.get("AUTH", [])])
    j.title = " ".join(ln[19:79].strip() for ln in jrnl.get("TITL", []))
    ref = jrnl.get("REF", [])
    if ref:
        first = ref[0]
        j.journal_name = " ".join([first[19:47].strip()] + [ln[19:79].strip() for ln in ref[1:]]).strip()
        j.volume = first[51:55].strip()
        j.start_page = first[56:61].strip()
        j.publication_year = _opt_int(first[62:66])
    if jrnl.get("PMID"):
        j.pmid = jrnl["PMID"][0][19:79].strip()
    if jrnl.get("DOI"):
        j.doi = jrnl["DOI"][0][19:79].strip()
    return j


def _assign_entities(s: Structure) -> None:
    """One entity per distinct polymer sequence, ligand name and water."""
    if s.nr_models() == 0:
        return
    polymers: dict[tuple, EntityInfo] = {}
    ligands: dict[str, EntityInfo] = {}
    water: Optional[EntityInfo] = None
    for chain in s.get_chains(0):
        if chain.is_polymer:
            key = tuple(g.name for g in chain)
            entity = polymers.get(key)
            if entity is None:
                entity = polymers[key] = EntityInfo(0, EntityType.POLYMER)
        elif all(g.is_water for g in chain):
            if water is None:
                water = EntityInfo(0, EntityType.WATER, "water")
            entity = water
        else:
            name = chain.groups[0].name if len(chain) else ""
            entity = ligands.get(name)
            if entity is None:
                entity = ligands[name] = EntityInfo(0, EntityType.NONPOLYMER, name)
        entity.add_chain(chain)

    ordered = list(polymers.values()) + list(ligands.values()) + ([water] if water else [])
    for i, entity in enumerate(ordered, start=1):
        entity.id = i
        s.add_entity_info(entity)

    # later models mirror model 0 chain by chain
    for modelnr in range(1, s.nr_models()):
        for chain in s.get_chains(modelnr):
            try:
                ref = s.get_chain(chain.asym_id, 0)
            except LookupError:
                continue
            if ref.entity is not None:
                ref.entity.add_chain(chain)
