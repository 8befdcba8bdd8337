"""mmCIF writer: tag-value categories, pure Python.

Chains are keyed by their asym id (``label_asym_id``) with the auth id
carried alongside, entities are written as their own category and linked
through ``_struct_asym``, and bonds go to ``_struct_conn``. Ids are written
exactly as stored so that re-reading recovers the same chain index.

Single Responsibility: only handles mmCIF format.
"""

from __future__ import annotations

import re
from typing import Optional

from molstruct.core.logging_utils import get_logger
from molstruct.structure.base import BondType, Chain, Group, GroupType
from molstruct.structure.structure import AtomSite, Structure
from molstruct.writers.base import StructureWriter

logger = get_logger(__name__)

_RESERVED = re.compile(r"^(data_|loop_|save_|global_|stop_)", re.I)

_VALUE_ORDER = {1: "sing", 2: "doub", 3: "trip", 4: "quad"}


# ======================================================================
# Value formatting
# ======================================================================

def cif_value(value: object) -> str:
    """Format one value: None -> '?', '' -> '.', quoting where needed."""
    if value is None:
        return "?"
    s = str(value)
    if s == "":
        return "."
    if "\n" in s:
        return f";{s}\n;"
    needs_quotes = (
        any(ch.isspace() for ch in s)
        or s[0] in "_#$'\";[]"
        or s in (".", "?")
        or _RESERVED.match(s) is not None
    )
    if not needs_quotes:
        return s
    if "'" not in s:
        return f"'{s}'"
    if '"' not in s:
        return f'"{s}"'
    return f";{s}\n;"


def write_category(name: str, rows: list[dict[str, object]]) -> list[str]:
    """One category: tag/value pairs for a single row, a loop_ otherwise."""
    if not rows:
        return []
    keys = list(rows[0])
    tags = [f"_{name}.{k}" for k in keys]
    lines: list[str] = []

    if len(rows) == 1:
        width = max(len(t) for t in tags)
        for tag, key in zip(tags, keys):
            value = cif_value(rows[0][key])
            if value.startswith(";"):
                lines.append(tag)
                lines.extend(value.split("\n"))
            else:
                lines.append(f"{tag:<{width}} {value}")
        lines.append("#")
        return lines

    table = [[cif_value(row.get(k)) for k in keys] for row in rows]
    widths = [
        max((len(v) for v in col if not v.startswith(";")), default=1)
        for col in zip(*table)
    ]
    lines.append("loop_")
    lines.extend(tags)
    for values in table:
        current = []
        for v, w in zip(values, widths):
            if v.startswith(";"):
                if current:
                    lines.append(" ".join(current).rstrip())
                    current = []
                lines.extend(v.split("\n"))
            else:
                current.append(v.ljust(w))
        if current:
            lines.append(" ".join(current).rstrip())
    lines.append("#")
    return lines


# ======================================================================
# CIFWriter
# ======================================================================

class CIFWriter(StructureWriter):
    """Write a Structure as a single mmCIF data block."""

    def write(self, structure: Structure) -> str:
        s = structure
        entry_id = s.pdb_code or s.pdb_header.id_code or "unknown"
        lines = [f"data_{entry_id}", "#"]
        lines += write_category("entry", [{"id": entry_id}])
        if self.options.header:
            lines += self._header_categories(s, entry_id)
        lines += write_category("entity", [
            {"id": e.id, "type": e.type.value, "pdbx_description": e.description or None}
            for e in s.entity_infos
        ])
        lines += write_category("struct_asym", self._struct_asym_rows(s))
        if self.options.header:
            lines += self._dbref_categories(s)
            lines += self._site_categories(s)
        if self.options.conect:
            lines += write_category("struct_conn", self._struct_conn_rows(s))
        lines += write_category("atom_site", self._atom_site_rows(s))
        logger.debug("mmCIF output for %s: %d lines", entry_id, len(lines))
        return "\n".join(lines) + "\n"

    @staticmethod
    def extensions() -> list[str]:
        return [".cif", ".cif.gz", ".mmcif"]

    # -- header --------------------------------------------------------

    def _header_categories(self, s: Structure, entry_id: str) -> list[str]:
        h = s.pdb_header
        lines = []
        if h.title:
            lines += write_category("struct", [{"entry_id": entry_id, "title": h.title}])
        if h.classification or h.keywords:
            lines += write_category("struct_keywords", [{
                "entry_id": entry_id,
                "pdbx_keywords": h.classification or None,
                "text": h.keywords or None,
            }])
        lines += write_category("exptl", [
            {"entry_id": entry_id, "method": t} for t in h.experimental_techniques
        ])
        if h.resolution is not None:
            lines += write_category("refine", [{
                "entry_id": entry_id,
                "pdbx_refine_id": h.experimental_techniques[0] if h.experimental_techniques else None,
                "ls_d_res_high": f"{h.resolution:.2f}",
                "ls_R_factor_R_free": f"{h.r_free:.3f}" if h.r_free is not None else None,
            }])
        if h.deposition_date:
            lines += write_category("pdbx_database_status", [{
                "entry_id": entry_id,
                "recvd_initial_deposition_date": h.deposition_date.isoformat(),
            }])
        lines += write_category("audit_author", [
            {"name": name, "pdbx_ordinal": i} for i, name in enumerate(h.authors, start=1)
        ])
        lines += self._crystal_categories(s, entry_id)
        lines += self._citation_categories(s)
        return lines

    @staticmethod
    def _crystal_categories(s: Structure, entry_id: str) -> list[str]:
        info = s.crystallographic_info
        lines = []
        if info.cell is not None:
            c = info.cell
            lines += write_category("cell", [{
                "entry_id": entry_id,
                "length_a": f"{c.a:.3f}",
                "length_b": f"{c.b:.3f}",
                "length_c": f"{c.c:.3f}",
                "angle_alpha": f"{c.alpha:.2f}",
                "angle_beta": f"{c.beta:.2f}",
                "angle_gamma": f"{c.gamma:.2f}",
                "Z_PDB": info.z,
            }])
        if info.space_group:
            lines += write_category("symmetry", [{
                "entry_id": entry_id,
                "space_group_name_H-M": info.space_group,
            }])
        return lines

    @staticmethod
    def _citation_categories(s: Structure) -> list[str]:
        j = s.journal_article
        if j is None:
            return []
        lines = write_category("citation", [{
            "id": "primary",
            "title": j.title or None,
            "journal_abbrev": j.journal_name or None,
            "journal_volume": j.volume or None,
            "page_first": j.start_page or None,
            "year": j.publication_year,
            "pdbx_database_id_DOI": j.doi or None,
            "pdbx_database_id_PubMed": j.pmid or None,
        }])
        lines += write_category("citation_author", [
            {"citation_id": "primary", "name": name, "ordinal": i}
            for i, name in enumerate(j.authors, start=1)
        ])
        return lines

    @staticmethod
    def _dbref_categories(s: Structure) -> list[str]:
        refs = []
        seqs = []
        for i, ref in enumerate(s.dbrefs, start=1):
            refs.append({
                "id": i,
                "db_name": ref.database,
                "db_code": ref.db_id_code or None,
                "pdbx_db_accession": ref.db_accession,
            })
            seqs.append({
                "align_id": i,
                "ref_id": i,
                "pdbx_PDB_id_code": ref.id_code,
                "pdbx_strand_id": ref.chain_name,
                "pdbx_auth_seq_align_beg": ref.seq_begin,
                "pdbx_seq_align_beg_ins_code": ref.insert_begin or None,
                "pdbx_auth_seq_align_end": ref.seq_end,
                "pdbx_seq_align_end_ins_code": ref.insert_end or None,
                "pdbx_db_accession": ref.db_accession,
                "db_align_beg": ref.db_seq_begin,
                "pdbx_db_align_beg_ins_code": ref.db_ins_begin or None,
                "db_align_end": ref.db_seq_end,
                "pdbx_db_align_end_ins_code": ref.db_ins_end or None,
            })
        return write_category("struct_ref", refs) + write_category("struct_ref_seq", seqs)

    def _site_categories(self, s: Structure) -> list[str]:
        if not s.sites or s.nr_models() == 0:
            return []
        owners = {id(g): c for c in s.get_chains() for g in c}
        sites = []
        gens = []
        for site in s.sites:
            sites.append({"id": site.site_id, "details": site.description or None})
            for g in site.groups:
                chain = owners.get(id(g))
                if chain is None:
                    continue
                gens.append({
                    "id": len(gens) + 1,
                    "site_id": site.site_id,
                    "label_comp_id": g.name,
                    "label_asym_id": chain.asym_id,
                    "label_seq_id": _label_seq_id(chain, g),
                    "auth_asym_id": chain.auth_id,
                    "auth_seq_id": g.seq_num,
                    "pdbx_auth_ins_code": g.ins_code or None,
                })
        return write_category("struct_site", sites) + write_category("struct_site_gen", gens)

    # -- chains and atoms ----------------------------------------------

    @staticmethod
    def _struct_asym_rows(s: Structure) -> list[dict[str, object]]:
        rows: dict[str, dict[str, object]] = {}
        for modelnr in range(s.nr_models()):
            for chain in s.get_chains(modelnr):
                rows.setdefault(chain.asym_id, {"id": chain.asym_id, "entity_id": chain.entity_id})
        return list(rows.values())

    @staticmethod
    def _struct_conn_rows(s: Structure) -> list[dict[str, object]]:
        if s.nr_models() == 0:
            return []
        table = s.atom_table(0)
        rows = []
        counters: dict[BondType, int] = {}
        for bond in s.all_bonds():
            site1, site2 = table.get(bond.serial1), table.get(bond.serial2)
            if site1 is None or site2 is None:
                logger.debug("Skipping bond with unknown atom serial: %s", bond)
                continue
            counters[bond.kind] = counters.get(bond.kind, 0) + 1
            row: dict[str, object] = {
                "id": f"{bond.kind.value}{counters[bond.kind]}",
                "conn_type_id": bond.kind.value,
            }
            row.update(_partner_fields("ptnr1", site1))
            row.update(_partner_fields("ptnr2", site2))
            row["pdbx_value_order"] = _VALUE_ORDER.get(bond.order)
            rows.append(row)
        return rows

    @staticmethod
    def _atom_site_rows(s: Structure) -> list[dict[str, object]]:
        rows = []
        for modelnr in range(s.nr_models()):
            for chain in s.get_chains(modelnr):
                for pos, g in enumerate(chain, start=1):
                    polymeric = chain.is_polymer and g.group_type is not GroupType.HETATM
                    label_seq = _label_seq_id(chain, g, pos)
                    for a in g.atoms:
                        rows.append({
                            "group_PDB": "ATOM" if polymeric else "HETATM",
                            "id": a.serial,
                            "type_symbol": a.element or None,
                            "label_atom_id": a.name,
                            "label_alt_id": a.alt_id,
                            "label_comp_id": g.name,
                            "label_asym_id": chain.asym_id,
                            "label_entity_id": chain.entity_id,
                            "label_seq_id": label_seq,
                            "pdbx_PDB_ins_code": g.ins_code or None,
                            "Cartn_x": f"{a.x:.3f}",
                            "Cartn_y": f"{a.y:.3f}",
                            "Cartn_z": f"{a.z:.3f}",
                            "occupancy": f"{a.occupancy:.2f}",
                            "B_iso_or_equiv": f"{a.b_factor:.2f}",
                            "pdbx_formal_charge": a.charge,
                            "auth_seq_id": g.seq_num,
                            "auth_comp_id": g.name,
                            "auth_asym_id": chain.auth_id,
                            "auth_atom_id": a.name,
                            "pdbx_PDB_model_num": modelnr + 1,
                        })
        return rows


def _label_seq_id(chain: Chain, group: Group, position: Optional[int] = None) -> Optional[str]:
    """Position in the polymer sequence; '' (written '.') for non-polymers."""
    if not chain.is_polymer:
        return ""
    if group.label_seq_id is not None:
        return str(group.label_seq_id)
    if position is not None:
        return str(position)
    for i, g in enumerate(chain, start=1):
        if g is group:
            return str(i)
    return None


def _partner_fields(prefix: str, site: AtomSite) -> dict[str, object]:
    return {
        f"{prefix}_label_asym_id": site.chain.asym_id,
        f"{prefix}_label_comp_id": site.group.name,
        f"{prefix}_label_seq_id": _label_seq_id(site.chain, site.group),
        f"{prefix}_label_atom_id": site.atom.name,
        f"pdbx_{prefix}_label_alt_id": site.atom.alt_id or None,
        f"pdbx_{prefix}_PDB_ins_code": site.group.ins_code or None,
        f"{prefix}_auth_asym_id": site.chain.auth_id,
        f"{prefix}_auth_seq_id": site.group.seq_num,
    }
