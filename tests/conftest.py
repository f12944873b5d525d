import math

import pytest

from structure_core.io.parser import StructureParser

RESIDUE_CYCLE = ["ALA", "CYS", "ASP", "GLU", "GLY"]


def format_atom_line(
    serial,
    name,
    resname,
    chain,
    resseq,
    x,
    y,
    z,
    element="",
    record="ATOM",
    occupancy=1.0,
    b_factor=0.0,
):
    """Build a fixed-column PDB coordinate record."""
    if len(name) < 4 and len(element) <= 1:
        atom_name = f" {name:<3}"
    else:
        atom_name = f"{name:<4}"
    return (
        f"{record:<6}{serial:>5} {atom_name} {resname:>3} {chain:1}{resseq:>4}    "
        f"{x:>8.3f}{y:>8.3f}{z:>8.3f}{occupancy:>6.2f}{b_factor:>6.2f}"
        f"          {element:>2}"
    )


def helix_atoms(n_residues, chain="A", start_serial=1, start_resseq=1):
    """Backbone atoms (N, CA, C, O) on an idealised helix."""
    lines = []
    serial = start_serial
    for i in range(n_residues):
        resseq = start_resseq + i
        resname = RESIDUE_CYCLE[i % len(RESIDUE_CYCLE)]
        angle = math.radians(100.0 * i)
        cx, cy, cz = 2.3 * math.cos(angle), 2.3 * math.sin(angle), 1.5 * i
        for name, element, (dx, dy, dz) in (
            ("N", "N", (-0.5, 0.8, -0.6)),
            ("CA", "C", (0.0, 0.0, 0.0)),
            ("C", "C", (0.9, -0.4, 0.7)),
            ("O", "O", (1.6, -1.2, 0.9)),
        ):
            lines.append(format_atom_line(
                serial, name, resname, chain, resseq, cx + dx, cy + dy, cz + dz, element
            ))
            serial += 1
    return lines


@pytest.fixture
def single_residue_pdb():
    """Five atoms of one alanine with known coordinates."""
    return "\n".join([
        "HEADER    TEST STRUCTURE",
        format_atom_line(1, "N", "ALA", "A", 1, 11.104, 6.134, -6.504, "N"),
        format_atom_line(2, "CA", "ALA", "A", 1, 11.639, 6.071, -5.147, "C"),
        format_atom_line(3, "C", "ALA", "A", 1, 13.140, 6.234, -5.150, "C"),
        format_atom_line(4, "O", "ALA", "A", 1, 13.740, 5.915, -6.176, "O"),
        format_atom_line(5, "CB", "ALA", "A", 1, 11.222, 4.766, -4.494, "C"),
        "END",
    ])


@pytest.fixture
def helix_pdb():
    """Twenty-residue backbone helix on chain A."""
    return "\n".join(helix_atoms(20) + ["END"])


@pytest.fixture
def solvated_pdb():
    """Three residues plus one water and one sodium ion."""
    return "\n".join(helix_atoms(3) + [
        format_atom_line(13, "O", "HOH", "A", 101, 10.0, 10.0, 10.0, "O", record="HETATM"),
        format_atom_line(14, "NA", "NA", "A", 102, -10.0, -10.0, -10.0, "NA", record="HETATM"),
        "END",
    ])


@pytest.fixture
def parser():
    return StructureParser()


@pytest.fixture
def helix(parser, helix_pdb):
    return parser.parse(helix_pdb, structure_id="helix.pdb")


@pytest.fixture
def write_pdb(tmp_path):
    """Write PDB text to a temporary file and return its path."""
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write
