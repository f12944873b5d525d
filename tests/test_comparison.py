import warnings

import numpy as np
import pytest

from conftest import format_atom_line, helix_atoms
from structure_core.core.comparison import (
    AlignmentPolicy,
    ComparisonResult,
    StructureComparator,
    calculate_tm_score,
    positional_tm_score,
)
from structure_core.exceptions import (
    LengthMismatchWarning,
    MissingReferenceAtomsError,
    MissingReferenceAtomsWarning,
)
from structure_core.io.parser import parse_pdb
from structure_core.utils.helpers import tm_d0


def transformed_helix(n_residues, rotation, translation):
    """Helix whose coordinates are rigidly moved."""
    molecule = parse_pdb("\n".join(helix_atoms(n_residues)))
    lines = []
    for atom in molecule.atoms:
        x, y, z = np.array(atom.position) @ rotation.T + translation
        lines.append(format_atom_line(
            atom.id, atom.name, atom.residue, atom.chain, atom.residue_id, x, y, z, atom.element
        ))
    return parse_pdb("\n".join(lines), structure_id="moved")


def rotation_z(degrees):
    theta = np.radians(degrees)
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


class TestD0:
    def test_short_chain_floor(self):
        assert tm_d0(1) == 0.5
        assert tm_d0(10) == 0.5
        assert tm_d0(15) == 0.5

    def test_long_chain(self):
        assert tm_d0(100) == pytest.approx(1.24 * 85 ** (1 / 3) - 1.8)


class TestReferenceSelection:
    def test_one_ca_per_residue(self, helix):
        selection = StructureComparator.select_reference_atoms(helix)
        assert len(selection) == 20
        assert not selection.used_fallback
        assert all(a.name == "CA" for a in selection.atoms)
        assert [a.residue_id for a in selection.atoms] == list(range(1, 21))

    def test_sorted_by_residue_number(self):
        text = "\n".join([
            format_atom_line(1, "CA", "ALA", "A", 3, 0.0, 0.0, 0.0, "C"),
            format_atom_line(2, "CA", "ALA", "A", 1, 1.0, 0.0, 0.0, "C"),
            format_atom_line(3, "CA", "ALA", "A", 2, 2.0, 0.0, 0.0, "C"),
        ])
        selection = StructureComparator.select_reference_atoms(parse_pdb(text))
        assert [a.residue_id for a in selection.atoms] == [1, 2, 3]

    def test_alternate_locations_keep_first(self):
        text = "\n".join([
            format_atom_line(1, "CA", "ALA", "A", 1, 0.0, 0.0, 0.0, "C"),
            format_atom_line(2, "CA", "ALA", "A", 1, 0.5, 0.0, 0.0, "C"),
        ])
        selection = StructureComparator.select_reference_atoms(parse_pdb(text))
        assert len(selection) == 1
        assert selection.atoms[0].x == 0.0

    def test_calcium_ion_is_not_alpha_carbon(self):
        text = "\n".join(helix_atoms(2) + [
            format_atom_line(9, "CA", "CA", "A", 50, 5.0, 5.0, 5.0, "CA", record="HETATM"),
        ])
        selection = StructureComparator.select_reference_atoms(parse_pdb(text))
        assert len(selection) == 2

    def test_backbone_fallback(self):
        text = "\n".join([
            format_atom_line(1, "N", "ALA", "A", 2, 0.0, 0.0, 0.0, "N"),
            format_atom_line(2, "C", "ALA", "A", 2, 1.0, 0.0, 0.0, "C"),
            format_atom_line(3, "O", "ALA", "A", 1, 2.0, 0.0, 0.0, "O"),
            format_atom_line(4, "O", "HOH", "A", 9, 3.0, 0.0, 0.0, "O", record="HETATM"),
        ])
        with pytest.warns(MissingReferenceAtomsWarning):
            selection = StructureComparator.select_reference_atoms(parse_pdb(text))

        assert selection.used_fallback
        assert [a.residue_id for a in selection.atoms] == [1, 2, 2]

    def test_chains_interleave_by_residue_number(self):
        text = "\n".join(helix_atoms(2, chain="A") + helix_atoms(2, chain="B", start_serial=9))
        selection = StructureComparator.select_reference_atoms(parse_pdb(text))
        assert [(a.chain, a.residue_id) for a in selection.atoms] == [
            ("A", 1), ("B", 1), ("A", 2), ("B", 2),
        ]

    def test_no_reference_atoms(self):
        text = "\n".join([
            format_atom_line(1, "O", "HOH", "A", 1, 0.0, 0.0, 0.0, "O", record="HETATM"),
            format_atom_line(2, "NA", "NA", "A", 2, 1.0, 0.0, 0.0, "NA", record="HETATM"),
        ])
        with pytest.raises(MissingReferenceAtomsError):
            StructureComparator.select_reference_atoms(parse_pdb(text))


class TestPositionalScore:
    def test_self_comparison(self, helix):
        result = StructureComparator().compare(helix, helix)

        assert result.score == pytest.approx(1.0)
        assert result.compared_atom_count == 20
        assert result.valid_pair_count == 20
        assert result.truncated is False
        assert result.rmsd == pytest.approx(0.0)
        assert result.classification == "same fold"

    def test_truncation(self, helix):
        short = parse_pdb("\n".join(helix_atoms(12)), structure_id="short")

        with pytest.warns(LengthMismatchWarning):
            result = StructureComparator().compare(helix, short)

        assert result.compared_atom_count == 12
        assert result.truncated is True
        assert result.reference_counts == (20, 12)
        assert result.score == pytest.approx(1.0)

    def test_known_value(self):
        mol1 = parse_pdb(format_atom_line(1, "CA", "ALA", "A", 1, 0.0, 0.0, 0.0, "C"))
        mol2 = parse_pdb(format_atom_line(1, "CA", "ALA", "A", 1, 1.0, 0.0, 0.0, "C"))

        result = calculate_tm_score(mol1, mol2)

        # L = 1, d0 = 0.5, d = 1: 1 / (1 + 4)
        assert result.score == pytest.approx(0.2)
        assert result.compared_atom_count == 1

    def test_score_bounds(self, helix):
        rng = np.random.default_rng(7)
        for scale in (0.5, 2.0, 10.0, 50.0):
            noise = rng.normal(scale=scale, size=(helix.n_atoms, 3))
            lines = [
                format_atom_line(a.id, a.name, a.residue, a.chain, a.residue_id,
                                 *(np.array(a.position) + offset), a.element)
                for a, offset in zip(helix.atoms, noise)
            ]
            noisy = parse_pdb("\n".join(lines))
            result = calculate_tm_score(helix, noisy)
            assert 0.0 < result.score <= 1.0

    def test_positional_ignores_rigid_motion(self, helix):
        moved = transformed_helix(20, rotation_z(90.0), np.array([30.0, -5.0, 12.0]))
        result = StructureComparator().compare(helix, moved)
        assert result.score < 0.5

    def test_non_finite_pairs_are_excluded(self):
        coords1 = np.zeros((4, 3))
        coords2 = np.zeros((4, 3))
        coords2[1] = np.nan

        score, n_valid, deviation = positional_tm_score(coords1, coords2)

        assert n_valid == 3
        assert score == pytest.approx(3 / 4)
        assert deviation == pytest.approx(0.0)

    def test_all_pairs_non_finite(self):
        coords1 = np.zeros((3, 3))
        coords2 = np.full((3, 3), np.inf)

        score, n_valid, deviation = positional_tm_score(coords1, coords2)

        assert score is None
        assert n_valid == 0
        assert deviation is None

    def test_empty_coordinates(self):
        assert positional_tm_score(np.empty((0, 3)), np.empty((0, 3))) == (None, 0, None)


class TestAlternatePolicies:
    def test_policy_from_string(self):
        assert StructureComparator(policy="superposed").policy is AlignmentPolicy.SUPERPOSED
        with pytest.raises(ValueError):
            StructureComparator(policy="optimal")

    def test_superposed_recovers_rigid_motion(self, helix):
        moved = transformed_helix(20, rotation_z(90.0), np.array([30.0, -5.0, 12.0]))
        result = StructureComparator(policy=AlignmentPolicy.SUPERPOSED).compare(helix, moved)

        assert result.score == pytest.approx(1.0, abs=1e-4)
        assert result.rmsd == pytest.approx(0.0, abs=1e-3)
        assert result.policy == "superposed"

    def test_tmalign_self_comparison(self, helix):
        result = StructureComparator(policy="tmalign").compare(helix, helix)

        assert result.score == pytest.approx(1.0, abs=1e-3)
        assert result.compared_atom_count == 20
        assert result.policy == "tmalign"


class TestComparisonResult:
    def test_unavailable(self):
        result = ComparisonResult(score=None, compared_atom_count=5, truncated=False)
        assert not result.available
        assert result.classification == "unavailable"
        assert not result.is_same_fold()
        assert result.to_dict()["score"] is None

    @pytest.mark.parametrize("score, label", [
        (0.9, "same fold"),
        (0.5, "some similarity"),
        (0.31, "some similarity"),
        (0.3, "not similar"),
        (0.05, "not similar"),
    ])
    def test_classification(self, score, label):
        result = ComparisonResult(score=score, compared_atom_count=10, truncated=False)
        assert result.classification == label

    def test_to_dict(self, helix):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            data = StructureComparator().compare(helix, helix).to_dict()

        assert data["score"] == pytest.approx(1.0)
        assert data["compared_atom_count"] == 20
        assert data["truncated"] is False
        assert data["policy"] == "positional"


class TestTmAlignShortChains:
    @pytest.mark.parametrize("n_residues", [1, 2])
    def test_too_short_is_unavailable(self, helix, n_residues):
        short = parse_pdb("\n".join(helix_atoms(n_residues)), structure_id="short")
        comparator = StructureComparator(policy="tmalign")

        for mol1, mol2 in ((short, short), (helix, short), (short, helix)):
            result = comparator.compare(mol1, mol2)
            assert result.score is None
            assert result.classification == "unavailable"
            assert result.compared_atom_count == 0
            assert "at least 3" in result.notes[0]

    def test_short_chain_above_minimum_is_scored(self):
        molecule = parse_pdb("\n".join(helix_atoms(5)))
        result = StructureComparator(policy="tmalign").compare(molecule, molecule)
        assert result.score is not None
