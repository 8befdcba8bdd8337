"""Tests for the PDB writer: column layout, TER/MODEL/CONECT, header records."""

import gzip

import pytest

from molstruct.core.exceptions import FormatOverflowError
from molstruct.parsers.pdb_format import PDBFormatParser
from molstruct.structure.base import Bond, Chain
from molstruct.structure.structure import Structure
from molstruct.writers.base import WriterOptions
from molstruct.writers.pdb_format import PDBWriter, atom_record, conect_record

from conftest import atom, group


def records(text: str, name: str) -> list[str]:
    return [line for line in text.splitlines() if line[:6].strip() == name]


class TestAtomRecords:
    def test_atom_columns(self, structure):
        chain = structure.get_chain("A")
        g = chain.groups[0]
        line = atom_record(chain, g, g.atoms[0])
        assert line[0:6] == "ATOM  "
        assert line[6:11] == "    1"
        assert line[12:16] == " N  "
        assert line[17:20] == "ALA"
        assert line[21] == "A"
        assert line[22:26] == "   1"
        assert line[30:38] == "   1.000"
        assert line[38:46] == "   2.000"
        assert line[46:54] == "   3.000"
        assert line[54:60] == "  1.00"
        assert line[60:66] == "  0.00"
        assert line[76:78] == " N"

    def test_insertion_code_and_values(self, structure):
        chain = structure.get_chain("A")
        g = chain.groups[2]
        line = atom_record(chain, g, g.atoms[1])
        assert line[22:27] == "  42A"
        assert line[30:38] == "  -2.000"
        assert line[54:60] == "  0.50"
        assert line[60:66] == " 35.50"

    def test_hetatm_for_ligand(self, structure):
        chain = structure.get_chain("B")
        g = chain.groups[0]
        line = atom_record(chain, g, g.atoms[0])
        assert line[0:6] == "HETATM"
        assert line[12:16] == "FE  "
        assert line[21] == "A"
        assert line[76:80] == "FE2+"

    def test_chains_use_auth_id(self, structure):
        text = structure.to_pdb()
        chain_ids = {line[21] for line in records(text, "ATOM") + records(text, "HETATM")}
        assert chain_ids == {"A", "B"}


class TestLayout:
    def test_ter_after_each_polymer_chain(self, structure):
        text = structure.to_pdb()
        ters = records(text, "TER")
        assert ters == ["TER      10      SER A  42A", "TER      14      CYS B  10"]

    def test_polymers_before_ligands(self, structure):
        lines = structure.to_pdb(WriterOptions(header=False, conect=False)).splitlines()
        kinds = [line[:6].strip() for line in lines]
        assert kinds == ["ATOM"] * 9 + ["TER"] + ["ATOM"] * 3 + ["TER"] + ["HETATM"] * 3 + ["END"]

    def test_single_model_has_no_model_records(self, structure):
        text = structure.to_pdb()
        assert not records(text, "MODEL")
        assert text.splitlines()[-1] == "END"

    def test_ensemble_models(self, ensemble):
        text = ensemble.to_pdb()
        assert records(text, "MODEL") == ["MODEL        1", "MODEL        2"]
        assert len(records(text, "ENDMDL")) == 2
        assert len(records(text, "ATOM")) == 8

    def test_empty_structure(self):
        assert Structure().to_pdb(WriterOptions(header=False)) == "END\n"


class TestConect:
    def test_both_ends_listed(self, structure):
        conect = records(structure.to_pdb(), "CONECT")
        assert "CONECT    7   13" in conect
        assert "CONECT   13    7" in conect
        assert "CONECT   15   16" in conect

    def test_hydrogen_bond_columns(self, structure):
        conect = records(structure.to_pdb(), "CONECT")
        line = next(c for c in conect if c.startswith("CONECT    4"))
        assert line[11:31].strip() == ""
        assert line[31:36] == "   17"

    def test_record_layout(self):
        line = conect_record(1, [2, 3, 4, 5], [6, 7, 8], [9, 10])
        assert line[6:11] == "    1"
        assert line[11:31] == "    2    3    4    5"
        assert line[31:41] == "    6    7"
        assert line[41:46] == "    9"
        assert line[46:51] == "    8"
        assert line[51:56] == "     "
        assert line[56:61] == "   10"

    def test_continuation_lines(self):
        s = Structure()
        s.add_model([Chain("A", groups=[
            group("ALA", i, [atom(i, "CA", "C")]) for i in range(1, 8)
        ])])
        for partner in range(2, 8):
            s.add_bond(Bond(1, partner))
        hub = [c for c in records(s.to_pdb(), "CONECT") if c[6:11] == "    1"]
        assert hub == ["CONECT    1    2    3    4    5", "CONECT    1    6    7"]

    def test_unknown_serials_skipped(self, structure):
        structure.add_bond(Bond(1, 999))
        conect = records(structure.to_pdb(), "CONECT")
        assert not any("999" in c for c in conect)

    def test_conect_disabled(self, structure):
        assert not records(structure.to_pdb(WriterOptions(conect=False)), "CONECT")


class TestHeader:
    def test_header_record(self, structure):
        line = records(structure.to_pdb(), "HEADER")[0]
        assert line[10:50].strip() == "OXIDOREDUCTASE"
        assert line[50:59] == "15-MAR-01"
        assert line[62:66] == "1ABC"

    def test_title_continuation(self, structure):
        titles = records(structure.to_pdb(), "TITLE")
        assert len(titles) == 2
        assert titles[0][8:10] == "  "
        assert titles[1][8:10] == " 2"
        assert all(len(t) <= 80 for t in titles)

    def test_expdta_and_resolution(self, structure):
        text = structure.to_pdb()
        assert "EXPDTA    X-RAY DIFFRACTION" in text
        assert "REMARK   2 RESOLUTION.   1.80 ANGSTROMS." in text

    def test_cryst1(self, structure):
        line = records(structure.to_pdb(), "CRYST1")[0]
        assert line.startswith("CRYST1   50.000   60.000   70.000  90.00  90.00  90.00 P 21 21 21")
        assert line[66:70] == "   4"

    def test_cryst1_without_space_group(self, structure):
        structure.crystallographic_info.space_group = None
        line = records(structure.to_pdb(), "CRYST1")[0]
        assert line[55:66] == " " * 11
        assert line[66:70] == "   4"
        r = PDBFormatParser().parse_string(structure.to_pdb())
        assert r.crystallographic_info.space_group is None

    def test_expdta_continuation(self, structure):
        techniques = ["X-RAY DIFFRACTION", "NEUTRON DIFFRACTION", "SOLUTION NMR", "ELECTRON MICROSCOPY"]
        structure.pdb_header.experimental_techniques = techniques
        expdta = records(structure.to_pdb(), "EXPDTA")
        assert len(expdta) == 2
        assert expdta[1][8:10] == " 2"
        assert all(len(line) <= 80 for line in expdta)
        r = PDBFormatParser().parse_string(structure.to_pdb())
        assert r.pdb_header.experimental_techniques == techniques

    def test_ssbond(self, structure):
        line = records(structure.to_pdb(), "SSBOND")[0]
        assert line[7:10] == "  1"
        assert line[11:14] == "CYS"
        assert line[15] == "A"
        assert int(line[17:21]) == 2
        assert line[29] == "B"
        assert int(line[31:35]) == 10
        assert line[59:65] == "  1555"

    def test_jrnl(self, structure):
        jrnl = records(structure.to_pdb(), "JRNL")
        assert "JRNL        AUTH   J.SMITH" in jrnl
        assert "JRNL        PMID   12345" in jrnl
        ref = next(j for j in jrnl if j[12:16] == "REF ")
        assert ref[19:47].strip() == "J.MOL.BIOL."
        assert ref[62:66] == "2001"

    def test_header_disabled(self, structure):
        text = structure.to_pdb(WriterOptions(header=False))
        assert not records(text, "HEADER")
        assert not records(text, "CRYST1")
        assert text.startswith("ATOM")


class TestOverflow:
    def test_long_auth_id(self):
        s = Structure()
        s.add_model([Chain("A", "AB", groups=[group("ALA", 1, [atom(1, "CA", "C")])])])
        with pytest.raises(FormatOverflowError, match="auth chain id"):
            s.to_pdb()
        assert s.find_chain("AB").asym_id == "A"

    def test_serial_too_large(self):
        s = Structure()
        s.add_model([Chain("A", groups=[group("ALA", 1, [atom(100000, "CA", "C")])])])
        with pytest.raises(FormatOverflowError, match="atom serial"):
            s.to_pdb()

    def test_last_serial_at_field_limit(self):
        s = Structure()
        s.add_model([Chain("A", groups=[group("ALA", 1, [atom(99999, "CA", "C")])])])
        text = s.to_pdb()
        assert records(text, "ATOM")[0][6:11] == "99999"
        ter = records(text, "TER")[0]
        assert ter[6:11] == " " * 5
        assert ter[17:26] == "ALA A   1"

    def test_coordinate_too_large(self):
        s = Structure()
        s.add_model([Chain("A", groups=[group("ALA", 1, [atom(1, "CA", "C", x=123456.0)])])])
        with pytest.raises(ValueError):
            s.to_pdb()
        assert s.get_atom(1).x == 123456.0


def test_write_file_gzip(structure, tmp_path):
    path = PDBWriter().write_file(structure, tmp_path / "out" / "1abc.pdb.gz")
    with gzip.open(path, "rt") as f:
        text = f.read()
    assert text == structure.to_pdb()
