"""Tests for the PDB / mmCIF readers, round trips, parser registry and StructureDataset."""

from datetime import date

import numpy as np
import pytest

from molstruct.parsers.dataset import StructureDataset, auto_parser
from molstruct.parsers.mmcif import CIFParser, parse_categories
from molstruct.parsers.pdb_format import PDBFormatParser
from molstruct.structure.base import BondType, Chain, DBRef, EntityType, GroupType, Site
from molstruct.structure.structure import Structure
from molstruct.writers.base import WriterOptions
from molstruct.writers.mmcif import CIFWriter
from molstruct.writers.pdb_format import PDBWriter

from conftest import TITLE, atom, group

PDB_TEXT = """\
HEADER    HYDROLASE                               02-JAN-98   7XYZ
EXPDTA    X-RAY DIFFRACTION
ATOM      1  N   GLY A   1      11.104   6.134  -6.504  1.00 12.00           N
ATOM      2  CA  GLY A   1      11.639   6.071  -5.147  1.00 12.00           C
ATOM      3  N   SER A   2      12.000   7.000  -4.000  1.00 12.00           N
TER       4      SER A   2
HETATM    5 ZN    ZN A 101       5.000   5.000   5.000  1.00 20.00          ZN2+
HETATM    6  O   HOH A 201       1.000   1.000   1.000  1.00 30.00           O
HETATM    7  O   HOH A 202       2.000   2.000   2.000  1.00 30.00           O
HETATM    8  C1  NAG B   1       9.000   9.000   9.000  1.00 40.00           C
ATOM      9  N   XXX C   1       0.000   0.000   0.000  1.00  0.00           N
ATOM     10  CA  ALA C   2       0.000   0.000   0.000  bad
CONECT    5    6
END
"""


def bond_keys(s):
    return {b.key for b in s.all_bonds()}


def chain_rows(s, modelnr=0):
    return [(c.asym_id, c.auth_id, c.is_polymer, c.entity_id) for c in s.get_chains(modelnr)]


# -- PDB reader --------------------------------------------------------------


class TestPDBFormatParser:
    def test_chain_assignment(self):
        s = PDBFormatParser().parse_string(PDB_TEXT)
        rows = [(c.asym_id, c.auth_id, c.is_polymer, [g.name for g in c]) for c in s.get_chains()]
        assert rows == [
            ("A", "A", True, ["GLY", "SER"]),
            ("B", "A", False, ["ZN"]),
            ("C", "A", False, ["HOH", "HOH"]),
            ("D", "B", False, ["NAG"]),
            ("E", "C", True, ["XXX"]),
        ]

    def test_metadata(self):
        s = PDBFormatParser().parse_string(PDB_TEXT)
        assert s.pdb_code == "7XYZ"
        assert s.pdb_header.classification == "HYDROLASE"
        assert s.pdb_header.deposition_date == date(1998, 1, 2)
        assert s.pdb_header.experimental_techniques == ["X-RAY DIFFRACTION"]

    def test_atoms(self):
        s = PDBFormatParser().parse_string(PDB_TEXT)
        zn = s.get_atom(5)
        assert zn.element == "ZN"
        assert zn.charge == 2
        assert zn.b_factor == 20.0
        # the malformed coordinate line is skipped
        assert len(s.atoms()) == 8

    def test_unknown_residue_in_atom_record_stays_polymeric(self):
        s = PDBFormatParser().parse_string(PDB_TEXT)
        assert s.find_chain("C").is_polymer
        assert not s.find_chain("C").groups[0].is_het

    def test_entities(self):
        s = PDBFormatParser().parse_string(PDB_TEXT)
        types = [(e.id, e.type) for e in s.entity_infos]
        assert types == [
            (1, EntityType.POLYMER),
            (2, EntityType.POLYMER),
            (3, EntityType.NONPOLYMER),
            (4, EntityType.NONPOLYMER),
            (5, EntityType.WATER),
        ]
        assert s.get_chain("C").entity.type is EntityType.WATER

    def test_conect(self):
        s = PDBFormatParser().parse_string(PDB_TEXT)
        assert bond_keys(s) == {(5, 6, BondType.COVALENT)}

    def test_pdb_code_from_filename(self, structure, tmp_path):
        path = PDBWriter(WriterOptions(header=False)).write_file(structure, tmp_path / "pdb1abc.ent.gz")
        s = PDBFormatParser().parse(path)
        assert s.pdb_code == "1ABC"


class TestPDBRoundTrip:
    def test_chains(self, structure):
        r = PDBFormatParser().parse_string(structure.to_pdb())
        assert {c.auth_id for c in r.get_chains()} == {"A", "B"}
        assert [c.auth_id for c in r.get_poly_chains()] == ["A", "B"]
        assert sorted(c.auth_id for c in r.get_non_poly_chains()) == ["A", "A"]
        assert r.find_chain("A").sequence == "ACS"
        assert r.find_group("A", "201").name == "HEM"

    def test_atoms(self, structure):
        r = PDBFormatParser().parse_string(structure.to_pdb())
        assert len(r.atoms()) == 15
        assert sorted(a.serial for a in r.atoms()) == sorted(a.serial for a in structure.atoms())
        ser = r.find_group("A", "42A")
        assert ser.atoms[1].occupancy == 0.5
        assert ser.atoms[1].b_factor == 35.5
        assert r.get_atom(15).charge == 2

    def test_bonds(self, structure):
        r = PDBFormatParser().parse_string(structure.to_pdb())
        assert bond_keys(r) == bond_keys(structure)
        assert [b.key for b in r.ss_bonds] == [(7, 13, BondType.DISULFIDE)]

    def test_header(self, structure):
        r = PDBFormatParser().parse_string(structure.to_pdb())
        h = r.pdb_header
        assert r.pdb_code == "1ABC"
        assert h.title == TITLE
        assert h.classification == "OXIDOREDUCTASE"
        assert h.deposition_date == date(2001, 3, 15)
        assert h.keywords == "HEME, OXIDOREDUCTASE"
        assert h.resolution == 1.8
        assert h.authors == ["J.SMITH", "A.B.DOE"]
        assert r.crystallographic_info == structure.crystallographic_info
        assert r.journal_article == structure.journal_article
        assert r.is_crystallographic()

    def test_dbref_and_site(self, structure):
        structure.dbrefs.append(DBRef(
            "1ABC", "A", 1, 42, "UNP", "P12345", "TEST_HUMAN",
            insert_end="A", db_seq_begin=10, db_seq_end=51,
        ))
        structure.sites.append(Site("AC1", "", [
            structure.find_group("A", "201"),
            structure.find_group("A", "2"),
        ]))
        r = PDBFormatParser().parse_string(structure.to_pdb())
        assert r.dbrefs == structure.dbrefs
        assert r.sites[0].site_id == "AC1"
        assert [g.name for g in r.sites[0].groups] == ["HEM", "CYS"]

    def test_polymer_starting_with_hetatm_residue(self):
        s = Structure(pdb_code="5MSE")
        s.add_model([
            Chain("A", "A", groups=[
                group("MSE", 1, [atom(1, "N"), atom(2, "SE", "SE")], group_type=GroupType.HETATM),
                group("GLY", 2, [atom(3, "N"), atom(4, "CA", "C")]),
            ]),
            Chain("B", "A", polymer=False, groups=[
                group("ZN", 101, [atom(5, "ZN", "ZN")], group_type=GroupType.HETATM),
            ]),
        ])
        text = s.to_pdb(WriterOptions(header=False))
        assert [line[:6].strip() for line in text.splitlines()][:5] == ["HETATM", "HETATM", "ATOM", "ATOM", "TER"]
        r = PDBFormatParser().parse_string(text)
        rows = [(c.asym_id, c.auth_id, c.is_polymer, [g.name for g in c]) for c in r.get_chains()]
        assert rows == [("A", "A", True, ["MSE", "GLY"]), ("B", "A", False, ["ZN"])]
        assert r.find_group("A", "1").group_type is GroupType.HETATM

    def test_ensemble(self, ensemble):
        r = PDBFormatParser().parse_string(ensemble.to_pdb())
        assert r.nr_models() == 2
        assert r.is_nmr()
        assert r.get_chains(1)[0].groups[0].atoms[0].x == 1.0
        assert r.get_chains(1)[0].entity is r.get_chains(0)[0].entity


# -- mmCIF reader ------------------------------------------------------------


class TestParseCategories:
    def test_values(self):
        text = "\n".join([
            "data_test",
            "_struct.title",
            ";multi",
            "line",
            ";",
            "_x.a '?'",
            "_x.b ?",
            "_x.c .",
            "_X.D \"two words\"",
            "loop_",
            "_y.id",
            "_y.name",
            "1 'a b'",
            "2",
            "c",
            "# comment",
            "data_second",
            "_z.id 1",
        ])
        cats = parse_categories(text.splitlines())
        assert cats["struct"]["title"] == ["multi\nline"]
        assert cats["x"] == {"a": ["?"], "b": [None], "c": [""], "d": ["two words"]}
        assert cats["y"] == {"id": ["1", "2"], "name": ["a b", "c"]}
        assert "z" not in cats


class TestCIFRoundTrip:
    def test_chains(self, structure):
        r = CIFParser().parse_string(structure.to_mmcif())
        assert chain_rows(r) == chain_rows(structure)
        assert r.find_chain("A").asym_id == "A"
        assert r.get_chain("B").auth_id == "A"

    def test_entities(self, structure):
        r = CIFParser().parse_string(structure.to_mmcif())
        assert [(e.id, e.type, e.description) for e in r.entity_infos] == [
            (e.id, e.type, e.description) for e in structure.entity_infos
        ]
        assert r.get_entity_by_id(2).chain_ids == ["B"]

    def test_atoms(self, structure):
        r = CIFParser().parse_string(structure.to_mmcif())
        assert np.allclose(r.coordinates(), structure.coordinates())
        assert r.get_atom(9).occupancy == 0.5
        assert r.get_atom(9).b_factor == 35.5
        assert r.get_atom(15).charge == 2
        assert r.get_atom(15).element == "FE"
        assert r.find_group("A", "42A").label_seq_id == 3
        assert r.get_chain("B").groups[0].is_het

    def test_bonds(self, structure):
        r = CIFParser().parse_string(structure.to_mmcif())
        assert bond_keys(r) == bond_keys(structure)
        assert [b.key for b in r.ss_bonds] == [(7, 13, BondType.DISULFIDE)]

    def test_header(self, structure):
        r = CIFParser().parse_string(structure.to_mmcif())
        assert r.pdb_code == "1ABC"
        assert r.pdb_header == structure.pdb_header
        assert r.crystallographic_info == structure.crystallographic_info
        assert r.journal_article == structure.journal_article

    def test_dbref_and_site(self, structure):
        structure.dbrefs.append(DBRef("1ABC", "A", 1, 42, "UNP", "P12345", "TEST_HUMAN", db_seq_begin=10, db_seq_end=51))
        structure.sites.append(Site("AC1", "BINDING SITE FOR RESIDUE HEM", [structure.find_group("A", "201")]))
        r = CIFParser().parse_string(structure.to_mmcif())
        assert r.dbrefs == structure.dbrefs
        assert r.sites[0].description == "BINDING SITE FOR RESIDUE HEM"
        assert r.sites[0].groups[0] is r.get_chain("B").groups[0]

    def test_ensemble(self, ensemble):
        r = CIFParser().parse_string(ensemble.to_mmcif())
        assert r.nr_models() == 2
        assert r.get_chains(1)[0].groups[1].atoms[0].x == 4.0
        assert r.get_chains(1)[0].is_polymer

    def test_gzip_file(self, structure, tmp_path):
        path = CIFWriter().write_file(structure, tmp_path / "1abc.cif.gz")
        r = CIFParser().parse(path)
        assert chain_rows(r) == chain_rows(structure)


# -- Registry and dataset ----------------------------------------------------


class TestAutoParser:
    @pytest.mark.parametrize("name, parser", [
        ("1abc.cif", CIFParser),
        ("1abc.cif.gz", CIFParser),
        ("1ABC.PDB", PDBFormatParser),
        ("pdb1abc.ent.gz", PDBFormatParser),
    ])
    def test_by_extension(self, name, parser):
        assert isinstance(auto_parser(name), parser)

    def test_unknown_extension(self):
        with pytest.raises(ValueError, match="No parser for"):
            auto_parser("notes.txt")


class TestStructureDataset:
    def test_mixed_formats(self, structure, ensemble, tmp_path):
        PDBWriter().write_file(structure, tmp_path / "1abc.pdb")
        CIFWriter().write_file(ensemble, tmp_path / "2nmr.cif")
        ds = StructureDataset([tmp_path / "1abc.pdb", tmp_path / "2nmr.cif"])
        assert len(ds) == 2
        assert [s.pdb_code for s in ds] == ["1ABC", "2NMR"]
        assert ds[-1].is_nmr()
        assert ds[0] is ds[0]

    def test_unsupported_path_rejected_up_front(self, tmp_path):
        with pytest.raises(ValueError, match="No parser for"):
            StructureDataset([tmp_path / "1abc.pdb", tmp_path / "notes.txt"])

    def test_items_skip_unreadable_files(self, structure, tmp_path):
        good = PDBWriter().write_file(structure, tmp_path / "1abc.pdb")
        bad = tmp_path / "2bad.cif.gz"
        bad.write_text("not gzip")
        ds = StructureDataset([bad, good])
        assert [(path, s.pdb_code) for path, s in ds.items(skip_errors=True)] == [(good, "1ABC")]
        assert list(ds.failures) == [bad]
        with pytest.raises(OSError):
            list(ds.items())

    def test_from_directory(self, structure, tmp_path):
        CIFWriter().write_file(structure, tmp_path / "a" / "1abc.cif")
        ds = StructureDataset.from_directory(tmp_path, pattern="*.cif")
        assert ds.paths == [tmp_path / "a" / "1abc.cif"]
