"""Shared structures for the test suite.

``structure`` is a small crystallographic entry:

    asym A  auth A  polymer      ALA 1, CYS 2, SER 42A      serials 1-9
    asym B  auth A  non-polymer  HEM 201                    serials 15-16
    asym C  auth B  polymer      CYS 10                     serials 11-13
    asym D  auth A  water        HOH 301                    serial 17

with a disulfide 7-13, a covalent FE-NA bond 15-16 and a hydrogen bond 4-17.
"""

from datetime import date

import pytest

from molstruct.structure.base import (
    Atom,
    Bond,
    BondType,
    Chain,
    CrystalCell,
    EntityInfo,
    EntityType,
    Group,
    JournalArticle,
    ResidueNumber,
)
from molstruct.structure.structure import Structure

TITLE = (
    "CRYSTAL STRUCTURE OF A SMALL TEST PROTEIN BOUND TO HEME AT HIGH RESOLUTION "
    "FROM A SYNTHETIC CONSTRUCT"
)


def atom(serial, name, element=None, x=0.0, y=0.0, z=0.0, **kw) -> Atom:
    return Atom(serial, name, element or name[0], float(x), float(y), float(z), **kw)


def group(name, number, atoms, **kw) -> Group:
    num = ResidueNumber.parse(number) if isinstance(number, str) else ResidueNumber(number)
    return Group(name, num, atoms=list(atoms), **kw)


def build_chains():
    a = Chain("A", "A", groups=[
        group("ALA", 1, [
            atom(1, "N", x=1.0, y=2.0, z=3.0),
            atom(2, "CA", "C", x=2.5, y=2.0, z=3.0),
            atom(3, "C", x=3.0, y=3.5, z=3.0),
            atom(4, "O", x=3.0, y=4.0, z=4.2),
        ]),
        group("CYS", 2, [
            atom(5, "N", x=4.0, y=3.5, z=2.0),
            atom(6, "CA", "C", x=5.0, y=4.0, z=1.5),
            atom(7, "SG", "S", x=6.0, y=5.0, z=1.0),
        ]),
        group("SER", "42A", [
            atom(8, "N", x=-1.25, y=-10.5, z=20.125),
            atom(9, "CA", "C", x=-2.0, y=-11.0, z=21.0, b_factor=35.5, occupancy=0.5),
        ]),
    ])
    b = Chain("B", "A", polymer=False, groups=[
        group("HEM", 201, [
            atom(15, "FE", "FE", x=10.0, y=10.0, z=10.0, charge=2),
            atom(16, "NA", "N", x=11.0, y=10.0, z=10.0),
        ]),
    ])
    c = Chain("C", "B", groups=[
        group("CYS", 10, [
            atom(11, "N", x=7.0, y=5.0, z=0.0),
            atom(12, "CA", "C", x=7.5, y=5.5, z=0.5),
            atom(13, "SG", "S", x=7.0, y=6.5, z=1.0),
        ]),
    ])
    d = Chain("D", "A", polymer=False, groups=[
        group("HOH", 301, [atom(17, "O", x=3.0, y=5.5, z=5.0)]),
    ])
    return a, b, c, d


@pytest.fixture
def structure() -> Structure:
    s = Structure(pdb_code="1ABC")
    a, b, c, d = build_chains()
    s.add_model([a, b, c, d])

    protein_a = EntityInfo(1, EntityType.POLYMER, "TEST PROTEIN")
    heme = EntityInfo(2, EntityType.NONPOLYMER, "PROTOPORPHYRIN IX CONTAINING FE")
    protein_b = EntityInfo(3, EntityType.POLYMER, "PARTNER PEPTIDE")
    water = EntityInfo(4, EntityType.WATER, "water")
    for entity, chain in ((protein_a, a), (heme, b), (protein_b, c), (water, d)):
        entity.add_chain(chain)
        s.add_entity_info(entity)

    h = s.pdb_header
    h.id_code = "1ABC"
    h.classification = "OXIDOREDUCTASE"
    h.deposition_date = date(2001, 3, 15)
    h.title = TITLE
    h.keywords = "HEME, OXIDOREDUCTASE"
    h.experimental_techniques = ["X-RAY DIFFRACTION"]
    h.resolution = 1.8
    h.authors = ["J.SMITH", "A.B.DOE"]

    s.crystallographic_info.cell = CrystalCell(50.0, 60.0, 70.0, 90.0, 90.0, 90.0)
    s.crystallographic_info.space_group = "P 21 21 21"
    s.crystallographic_info.z = 4

    s.journal_article = JournalArticle(
        title="A TEST STRUCTURE",
        authors=["J.SMITH"],
        journal_name="J.MOL.BIOL.",
        volume="300",
        start_page="123",
        publication_year=2001,
        doi="10.1000/XYZ",
        pmid="12345",
    )

    s.add_ss_bond(Bond(7, 13, BondType.DISULFIDE))
    s.add_bond(Bond(15, 16))
    s.add_bond(Bond(4, 17, BondType.HYDROGEN))
    return s


@pytest.fixture
def ensemble() -> Structure:
    """Two-model NMR-style entry with a single polymer chain."""
    s = Structure(pdb_code="2NMR")
    s.pdb_header.experimental_techniques = ["SOLUTION NMR"]
    for shift in (0.0, 1.0):
        s.add_model([Chain("A", "A", groups=[
            group("GLY", 1, [atom(1, "N", x=shift), atom(2, "CA", "C", x=shift + 1.5)]),
            group("ALA", 2, [atom(3, "N", x=shift + 3.0), atom(4, "CA", "C", x=shift + 4.5)]),
        ])])
    return s
