"""mmCIF parser: pure Python, no external dependencies.

Parses the first data block of .cif / .cif.gz files into a Structure.
Chains are keyed by ``label_asym_id`` and carry ``auth_asym_id`` as their
public id; entity membership comes from ``_struct_asym`` and
``label_entity_id``.

Single Responsibility: only handles mmCIF format.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterator, Optional

from molstruct.core.logging_utils import get_logger
from molstruct.parsers.base import StructureParser
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

_TOKEN_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|[^\s]+")

_CONN_TYPES = {
    "covale": BondType.COVALENT,
    "covale_base": BondType.COVALENT,
    "covale_phosphate": BondType.COVALENT,
    "covale_sugar": BondType.COVALENT,
    "metalc": BondType.COVALENT,
    "disulf": BondType.DISULFIDE,
    "hydrog": BondType.HYDROGEN,
    "saltbr": BondType.SALT_BRIDGE,
}

_VALUE_ORDER = {"sing": 1, "doub": 2, "trip": 3, "quad": 4}

Table = dict[str, list[Optional[str]]]


# ======================================================================
# Low-level mmCIF tokenizer
# ======================================================================

def _tokenize(lines: list[str]) -> Iterator[tuple[str, bool]]:
    """Yield (token, quoted) pairs; ';' text fields count as quoted."""
    it = iter(lines)
    for line in it:
        if line.startswith(";"):
            text = [line[1:]]
            for inner in it:
                if inner.startswith(";"):
                    break
                text.append(inner)
            yield "\n".join(text).strip(), True
            continue
        for tok in _TOKEN_RE.findall(line):
            if tok.startswith("#"):
                break
            if len(tok) >= 2 and tok[0] == tok[-1] and tok[0] in "'\"":
                yield tok[1:-1], True
            else:
                yield tok, False


def _unwrap(token: str, quoted: bool) -> Optional[str]:
    """'?' -> None (unknown), '.' -> '' (inapplicable), else the text."""
    if not quoted and token == "?":
        return None
    if not quoted and token == ".":
        return ""
    return token


def parse_categories(lines: list[str]) -> dict[str, Table]:
    """Read the first data block as category -> column -> values.

    Category and column names are lower-cased.
    """
    categories: dict[str, Table] = {}
    tokens = list(_tokenize(lines))
    i = 0
    seen_block = False

    def is_keyword(tok: str, quoted: bool) -> bool:
        low = tok.lower()
        return not quoted and (tok.startswith("_") or low == "loop_" or low.startswith("data_"))

    while i < len(tokens):
        tok, quoted = tokens[i]
        low = tok.lower()
        if not quoted and low.startswith("data_"):
            if seen_block:
                break
            seen_block = True
            i += 1
        elif not quoted and low == "loop_":
            i += 1
            tags = []
            while i < len(tokens) and not tokens[i][1] and tokens[i][0].startswith("_"):
                tags.append(tokens[i][0])
                i += 1
            values = []
            while i < len(tokens) and not is_keyword(*tokens[i]):
                values.append(_unwrap(*tokens[i]))
                i += 1
            if not tags:
                continue
            if len(values) % len(tags):
                logger.warning("Loop %s has %d values for %d columns", tags[0], len(values), len(tags))
            for col, tag in enumerate(tags):
                cat, _, name = tag[1:].lower().partition(".")
                categories.setdefault(cat, {})[name] = values[col::len(tags)]
        elif not quoted and tok.startswith("_"):
            cat, _, name = tok[1:].lower().partition(".")
            value = _unwrap(*tokens[i + 1]) if i + 1 < len(tokens) else None
            categories.setdefault(cat, {})[name] = [value]
            i += 2
        else:
            i += 1
    return categories


def _rows(categories: dict[str, Table], name: str) -> list[dict[str, Optional[str]]]:
    table = categories.get(name, {})
    if not table:
        return []
    n = max(len(v) for v in table.values())
    return [{k: (v[r] if r < len(v) else None) for k, v in table.items()} for r in range(n)]


def _single(categories: dict[str, Table], cat_attr: str) -> Optional[str]:
    cat, _, name = cat_attr.lower().partition(".")
    values = categories.get(cat, {}).get(name)
    return values[0] if values else None


def _opt_float(s: Optional[str]) -> Optional[float]:
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _opt_int(s: Optional[str]) -> Optional[int]:
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


# ======================================================================
# CIFParser: StructureParser for mmCIF
# ======================================================================

class CIFParser(StructureParser):
    """Parse mmCIF files (.cif, .cif.gz) into a Structure."""

    def parse_lines(self, lines: list[str]) -> Structure:
        cats = parse_categories(lines)
        s = Structure(pdb_code=_single(cats, "entry.id") or "")
        self._read_header(s, cats)
        entities = self._read_entities(s, cats)
        self._read_atoms(s, cats, entities)
        self._read_struct_conn(s, cats)
        self._read_dbrefs(s, cats)
        self._read_sites(s, cats)
        return s

    @staticmethod
    def extensions() -> list[str]:
        return [".cif", ".cif.gz", ".mmcif"]

    # -- header --------------------------------------------------------

    @staticmethod
    def _read_header(s: Structure, cats: dict[str, Table]) -> None:
        def g(key: str) -> Optional[str]:
            return _single(cats, key)

        h = s.pdb_header
        h.id_code = s.pdb_code
        h.title = g("struct.title") or ""
        h.classification = g("struct_keywords.pdbx_keywords") or ""
        h.keywords = g("struct_keywords.text") or ""
        h.experimental_techniques = [r["method"] for r in _rows(cats, "exptl") if r.get("method")]
        h.resolution = _opt_float(g("refine.ls_d_res_high") or g("reflns.d_resolution_high"))
        h.r_free = _opt_float(g("refine.ls_r_factor_r_free"))
        h.authors = [r["name"] for r in _rows(cats, "audit_author") if r.get("name")]
        dep = g("pdbx_database_status.recvd_initial_deposition_date")
        if dep:
            try:
                h.deposition_date = date.fromisoformat(dep)
            except ValueError:
                logger.debug("Unparseable deposition date: %s", dep)

        if "cell" in cats:
            lengths = [_opt_float(g(f"cell.length_{k}")) for k in "abc"]
            angles = [_opt_float(g(f"cell.angle_{k}")) for k in ("alpha", "beta", "gamma")]
            if None not in lengths + angles:
                s.crystallographic_info.cell = CrystalCell(*lengths, *angles)
            s.crystallographic_info.z = _opt_int(g("cell.z_pdb"))
        s.crystallographic_info.space_group = g("symmetry.space_group_name_h-m") or None

        citations = _rows(cats, "citation")
        if citations:
            primary = next((c for c in citations if c.get("id") == "primary"), citations[0])
            cid = primary.get("id")
            s.journal_article = JournalArticle(
                title=primary.get("title") or "",
                authors=[
                    r["name"] for r in _rows(cats, "citation_author")
                    if r.get("citation_id") == cid and r.get("name")
                ],
                journal_name=primary.get("journal_abbrev") or "",
                volume=primary.get("journal_volume") or "",
                start_page=primary.get("page_first") or "",
                publication_year=_opt_int(primary.get("year")),
                doi=primary.get("pdbx_database_id_doi") or "",
                pmid=primary.get("pdbx_database_id_pubmed") or "",
            )

    # -- entities, chains, atoms ---------------------------------------

    @staticmethod
    def _read_entities(s: Structure, cats: dict[str, Table]) -> dict[str, EntityInfo]:
        entities: dict[str, EntityInfo] = {}
        for row in _rows(cats, "entity"):
            eid = _opt_int(row.get("id"))
            if eid is None:
                continue
            etype = (row.get("type") or "").lower()
            try:
                kind = EntityType(etype)
            except ValueError:
                logger.debug("Entity %s has unsupported type '%s'; treating as non-polymer", eid, etype)
                kind = EntityType.NONPOLYMER
            entity = EntityInfo(eid, kind, row.get("pdbx_description") or "")
            entities[str(eid)] = entity
            s.add_entity_info(entity)
        return entities

    @staticmethod
    def _read_atoms(s: Structure, cats: dict[str, Table], entities: dict[str, EntityInfo]) -> None:
        asym_entity = {r["id"]: r.get("entity_id") for r in _rows(cats, "struct_asym") if r.get("id")}
        models: dict[str, dict[str, Chain]] = {}
        current: dict[str, Group] = {}

        for row in _rows(cats, "atom_site"):
            try:
                asym = row.get("label_asym_id") or row.get("auth_asym_id") or "A"
                auth = row.get("auth_asym_id") or asym
                comp = row.get("label_comp_id") or row.get("auth_comp_id") or "UNK"
                label_seq = _opt_int(row.get("label_seq_id"))
                seq_num = _opt_int(row.get("auth_seq_id"))
                if seq_num is None:
                    seq_num = label_seq if label_seq is not None else 0
                number = ResidueNumber(seq_num, row.get("pdbx_pdb_ins_code") or "")
                atom = Atom(
                    serial=int(row["id"]),
                    name=row.get("label_atom_id") or row.get("auth_atom_id") or "",
                    element=row.get("type_symbol") or "",
                    x=float(row["cartn_x"]),
                    y=float(row["cartn_y"]),
                    z=float(row["cartn_z"]),
                    occupancy=float(row.get("occupancy") or 1.0),
                    b_factor=float(row.get("b_iso_or_equiv") or 0.0),
                    alt_id=row.get("label_alt_id") or "",
                    charge=_opt_int(row.get("pdbx_formal_charge")) or 0,
                )
            except (KeyError, TypeError, ValueError):
                logger.debug("Malformed atom_site row: %s", row)
                continue

            model_key = row.get("pdbx_pdb_model_num") or "1"
            chains = models.setdefault(model_key, {})
            chain = chains.get(asym)
            if chain is None:
                entity = entities.get(row.get("label_entity_id") or asym_entity.get(asym) or "")
                polymer = entity.is_polymer if entity is not None else label_seq is not None
                chain = Chain(asym, auth, polymer=polymer)
                if entity is not None:
                    entity.add_chain(chain)
                chains[asym] = chain

            key = f"{model_key}/{asym}"
            group = current.get(key)
            if group is None or group.number != number or group.name != comp:
                het = row.get("group_pdb") == "HETATM"
                group = Group(comp, number, group_type=GroupType.HETATM if het else None, label_seq_id=label_seq)
                if group.group_type is GroupType.HETATM and not het:
                    group.group_type = GroupType.AMINOACID
                try:
                    chain.add_group(group)
                except ValueError as e:
                    logger.warning("Skipping atom %d: %s", atom.serial, e)
                    current.pop(key, None)
                    continue
                current[key] = group
            group.add_atom(atom)

        for chains in models.values():
            s.add_model(chains.values())

    # -- connectivity and cross-references -----------------------------

    @staticmethod
    def _atom_key(row: dict, prefix: str) -> tuple:
        return (
            row.get(f"{prefix}_label_asym_id"),
            _opt_int(row.get(f"{prefix}_auth_seq_id")),
            row.get(f"pdbx_{prefix}_pdb_ins_code") or "",
            row.get(f"{prefix}_label_atom_id"),
            row.get(f"pdbx_{prefix}_label_alt_id") or "",
        )

    def _read_struct_conn(self, s: Structure, cats: dict[str, Table]) -> None:
        rows = _rows(cats, "struct_conn")
        if not rows or s.nr_models() == 0:
            return
        index = {
            (c.asym_id, g.seq_num, g.ins_code, a.name, a.alt_id): a.serial
            for c in s.get_chains(0) for g in c for a in g.atoms
        }
        for row in rows:
            kind = _CONN_TYPES.get((row.get("conn_type_id") or "").lower())
            if kind is None:
                continue
            serial1 = index.get(self._atom_key(row, "ptnr1"))
            serial2 = index.get(self._atom_key(row, "ptnr2"))
            if serial1 is None or serial2 is None:
                logger.debug("Unresolved struct_conn %s", row.get("id"))
                continue
            bond = Bond(serial1, serial2, kind, _VALUE_ORDER.get((row.get("pdbx_value_order") or "").lower(), 1))
            if kind is BondType.DISULFIDE:
                s.add_ss_bond(bond)
            else:
                s.add_bond(bond)

    @staticmethod
    def _read_dbrefs(s: Structure, cats: dict[str, Table]) -> None:
        refs = {r.get("id"): r for r in _rows(cats, "struct_ref")}
        for seq in _rows(cats, "struct_ref_seq"):
            ref = refs.get(seq.get("ref_id"), {})
            try:
                s.dbrefs.append(DBRef(
                    id_code=seq.get("pdbx_pdb_id_code") or s.pdb_code,
                    chain_name=seq.get("pdbx_strand_id") or "",
                    seq_begin=int(seq.get("pdbx_auth_seq_align_beg") or seq.get("seq_align_beg")),
                    seq_end=int(seq.get("pdbx_auth_seq_align_end") or seq.get("seq_align_end")),
                    database=ref.get("db_name") or "",
                    db_accession=seq.get("pdbx_db_accession") or ref.get("pdbx_db_accession") or "",
                    db_id_code=ref.get("db_code") or "",
                    insert_begin=seq.get("pdbx_seq_align_beg_ins_code") or "",
                    insert_end=seq.get("pdbx_seq_align_end_ins_code") or "",
                    db_seq_begin=_opt_int(seq.get("db_align_beg")) or 0,
                    db_ins_begin=seq.get("pdbx_db_align_beg_ins_code") or "",
                    db_seq_end=_opt_int(seq.get("db_align_end")) or 0,
                    db_ins_end=seq.get("pdbx_db_align_end_ins_code") or "",
                ))
            except (TypeError, ValueError):
                logger.debug("Malformed struct_ref_seq row: %s", seq)

    @staticmethod
    def _read_sites(s: Structure, cats: dict[str, Table]) -> None:
        sites = {}
        for row in _rows(cats, "struct_site"):
            site = Site(row.get("id") or "", row.get("details") or "")
            sites[site.site_id] = site
            s.sites.append(site)
        if not sites or s.nr_models() == 0:
            return
        for row in _rows(cats, "struct_site_gen"):
            site = sites.get(row.get("site_id"))
            seq_num = _opt_int(row.get("auth_seq_id"))
            if site is None or seq_num is None:
                continue
            number = ResidueNumber(seq_num, row.get("pdbx_auth_ins_code") or "")
            try:
                chain = s.get_chain(row.get("label_asym_id") or "")
                site.groups.append(chain.find_group(number))
            except LookupError:
                logger.debug("Unresolved struct_site_gen %s", row.get("id"))
