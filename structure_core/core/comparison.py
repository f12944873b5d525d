"""TM-score similarity between two parsed structures.

The default policy matches reference atom i of one structure to reference
atom i of the other, without sequence alignment or superposition. The
superposed and TM-align policies are opt-in alternatives.
"""

import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
import tmtools
from Bio.SeqUtils import seq1

from structure_core.exceptions import (
    LengthMismatchWarning,
    MissingReferenceAtomsError,
    MissingReferenceAtomsWarning,
)
from structure_core.io.parser import Atom, Molecule
from structure_core.utils.helpers import rmsd, superimpose, tm_d0, tm_score_terms

logger = logging.getLogger(__name__)

BACKBONE_ELEMENTS = frozenset({"C", "N", "O"})

# tmtools rejects shorter chains.
TM_ALIGN_MIN_LENGTH = 3


class AlignmentPolicy(str, Enum):
    """How reference atoms of the two structures are put in correspondence."""

    POSITIONAL = "positional"  # index i <-> index i, coordinates as given
    SUPERPOSED = "superposed"  # index i <-> index i after a Kabsch fit
    TM_ALIGN = "tmalign"  # sequence-independent TM-align (tmtools)


@dataclass(frozen=True)
class ReferenceSelection:
    """Per-residue representative atoms of one structure."""

    atoms: tuple[Atom, ...]
    used_fallback: bool  # True when backbone atoms replaced missing CA atoms

    def __len__(self) -> int:
        return len(self.atoms)

    @property
    def coordinates(self) -> np.ndarray:
        """Coordinates, shape (n, 3)."""
        return np.array([atom.position for atom in self.atoms], dtype=float).reshape(-1, 3)

    @property
    def sequence(self) -> str:
        """One letter per selected atom."""
        return "".join(seq1(atom.residue) or "X" for atom in self.atoms)


@dataclass(frozen=True)
class ComparisonResult:
    """Result of comparing two structures."""

    score: Optional[float]  # None when no valid pair remained
    compared_atom_count: int  # L: pairs used for normalisation
    truncated: bool  # Reference lists differed in length
    valid_pair_count: int = 0  # Pairs with a finite distance
    reference_counts: tuple[int, int] = (0, 0)
    used_fallback: tuple[bool, bool] = (False, False)
    policy: str = AlignmentPolicy.POSITIONAL.value
    rmsd: Optional[float] = None
    notes: tuple[str, ...] = field(default=(), compare=False)

    @property
    def available(self) -> bool:
        """False when the comparison produced no score."""
        return self.score is not None

    @property
    def classification(self) -> str:
        """Coarse similarity class using TM-score thresholds."""
        if self.score is None:
            return "unavailable"
        if self.score > 0.5:
            return "same fold"
        if self.score > 0.3:
            return "some similarity"
        return "not similar"

    def is_same_fold(self, threshold: float = 0.5) -> bool:
        """Check if the score indicates a shared fold."""
        return self.score is not None and self.score > threshold

    def to_dict(self) -> dict:
        """JSON-serializable view of the result."""
        return {
            "score": self.score,
            "compared_atom_count": self.compared_atom_count,
            "truncated": self.truncated,
            "valid_pair_count": self.valid_pair_count,
            "reference_count_1": self.reference_counts[0],
            "reference_count_2": self.reference_counts[1],
            "used_fallback_1": self.used_fallback[0],
            "used_fallback_2": self.used_fallback[1],
            "policy": self.policy,
            "rmsd": self.rmsd,
            "classification": self.classification,
        }


class StructureComparator:
    """Score structural similarity between two molecules."""

    def __init__(self, policy: AlignmentPolicy | str = AlignmentPolicy.POSITIONAL):
        """Initialize the comparator.

        Args:
            policy: Correspondence policy, an AlignmentPolicy or its value.
        """
        self.policy = AlignmentPolicy(policy)

    @staticmethod
    def select_reference_atoms(molecule: Molecule) -> ReferenceSelection:
        """Pick one representative atom per residue.

        CA atoms are preferred (the first per chain and residue number,
        skipping calcium ions named CA). With no CA atoms at all, every C, N
        and O atom outside water and ion residues is used instead. Either
        way the atoms are stably sorted by residue number only, so in a
        multi-chain file the chains interleave (A1, B1, A2, B2, ...) and
        positional matching pairs atoms in that order.

        Args:
            molecule: Parsed Molecule.

        Returns:
            ReferenceSelection.

        Raises:
            MissingReferenceAtomsError: If both CA and fallback selection
                come up empty.
        """
        selected: dict[tuple[str, int], Atom] = {}
        for atom in molecule.atoms:
            if atom.name == "CA" and not atom.is_solvent:
                selected.setdefault((atom.chain, atom.residue_id), atom)

        if selected:
            atoms = sorted(selected.values(), key=lambda a: a.residue_id)
            return ReferenceSelection(atoms=tuple(atoms), used_fallback=False)

        backbone = [
            atom for atom in molecule.atoms
            if atom.element in BACKBONE_ELEMENTS and not atom.is_solvent
        ]
        if not backbone:
            raise MissingReferenceAtomsError(
                f"No CA or backbone (C, N, O) atoms found in {molecule.id}"
            )

        warnings.warn(
            f"{molecule.id}: no CA atoms, using {len(backbone)} backbone atoms",
            MissingReferenceAtomsWarning,
            stacklevel=3,
        )
        atoms = sorted(backbone, key=lambda a: a.residue_id)
        return ReferenceSelection(atoms=tuple(atoms), used_fallback=True)

    def compare(self, mol1: Molecule, mol2: Molecule) -> ComparisonResult:
        """Compare two molecules.

        Args:
            mol1: First (reference) molecule.
            mol2: Second molecule.

        Returns:
            ComparisonResult. ``score`` is None when every pair had a
            non-finite distance.

        Raises:
            MissingReferenceAtomsError: If either molecule has no usable
                reference atoms.
        """
        sel1 = self.select_reference_atoms(mol1)
        sel2 = self.select_reference_atoms(mol2)

        if self.policy is AlignmentPolicy.TM_ALIGN:
            return self._compare_tmalign(sel1, sel2)

        n1, n2 = len(sel1), len(sel2)
        length = min(n1, n2)
        truncated = n1 != n2
        notes = []

        if truncated:
            message = (
                f"{mol1.id} has {n1} reference atoms, {mol2.id} has {n2}; "
                f"comparing the first {length}"
            )
            notes.append(message)
            warnings.warn(message, LengthMismatchWarning, stacklevel=2)

        coords1 = sel1.coordinates[:length]
        coords2 = sel2.coordinates[:length]

        if self.policy is AlignmentPolicy.SUPERPOSED:
            coords2 = self._superpose(coords1, coords2)

        score, n_valid, deviation = positional_tm_score(coords1, coords2)
        if score is None:
            notes.append("no pair produced a finite distance")
            logger.warning(
                "TM-score unavailable for %s vs %s: no valid atom pairs", mol1.id, mol2.id
            )

        return ComparisonResult(
            score=score,
            compared_atom_count=length,
            truncated=truncated,
            valid_pair_count=n_valid,
            reference_counts=(n1, n2),
            used_fallback=(sel1.used_fallback, sel2.used_fallback),
            policy=self.policy.value,
            rmsd=deviation,
            notes=tuple(notes),
        )

    @staticmethod
    def _superpose(coords1: np.ndarray, coords2: np.ndarray) -> np.ndarray:
        """Fit coords2 onto coords1 over rows that are finite in both."""
        finite = np.all(np.isfinite(coords1), axis=1) & np.all(np.isfinite(coords2), axis=1)
        if not np.any(finite):
            return coords2

        _, rotation, translation = superimpose(coords2[finite], coords1[finite])
        with np.errstate(invalid="ignore"):
            return coords2 @ rotation.T + translation

    def _compare_tmalign(
        self,
        sel1: ReferenceSelection,
        sel2: ReferenceSelection,
    ) -> ComparisonResult:
        """Sequence-independent TM-align, normalised by structure 1."""
        n1, n2 = len(sel1), len(sel2)
        if min(n1, n2) < TM_ALIGN_MIN_LENGTH:
            message = (
                f"TM-align needs at least {TM_ALIGN_MIN_LENGTH} reference atoms "
                f"per structure, got {n1} and {n2}"
            )
            logger.warning("TM-score unavailable: %s", message)
            return ComparisonResult(
                score=None,
                compared_atom_count=0,
                truncated=False,
                reference_counts=(n1, n2),
                used_fallback=(sel1.used_fallback, sel2.used_fallback),
                policy=self.policy.value,
                notes=(message,),
            )

        coords1 = np.ascontiguousarray(sel1.coordinates, dtype=np.float64)
        coords2 = np.ascontiguousarray(sel2.coordinates, dtype=np.float64)

        result = tmtools.tm_align(coords1, coords2, sel1.sequence, sel2.sequence)
        mapping = _parse_alignment(result.seqxA, result.seqyA)

        return ComparisonResult(
            score=float(result.tm_norm_chain1),
            compared_atom_count=len(mapping),
            truncated=False,
            valid_pair_count=len(mapping),
            reference_counts=(len(sel1), len(sel2)),
            used_fallback=(sel1.used_fallback, sel2.used_fallback),
            policy=self.policy.value,
            rmsd=float(result.rmsd),
        )


def positional_tm_score(
    coords1: np.ndarray,
    coords2: np.ndarray,
) -> tuple[Optional[float], int, Optional[float]]:
    """TM-score of index-matched coordinates without any fitting.

    TM-score = (1/L) × Σ 1/(1 + (d_i/d_0)²)

    where L is the number of pairs, d_0 = max(1.24 × ³√(L-15) - 1.8, 0.5)
    and the sum runs over pairs with a finite distance.

    Args:
        coords1: First coordinate array, shape (L, 3).
        coords2: Second coordinate array, shape (L, 3).

    Returns:
        Tuple of (score, valid_pair_count, rmsd). Score and RMSD are None
        when no pair is valid.
    """
    length = len(coords1)
    if length == 0:
        return None, 0, None

    terms, valid = tm_score_terms(coords1, coords2, tm_d0(length))
    n_valid = int(np.sum(valid))
    if n_valid == 0:
        return None, 0, None

    score = float(np.sum(terms) / length)
    return score, n_valid, rmsd(coords1[valid], coords2[valid])


def calculate_tm_score(
    mol1: Molecule,
    mol2: Molecule,
    policy: AlignmentPolicy | str = AlignmentPolicy.POSITIONAL,
) -> ComparisonResult:
    """Compare two molecules with a one-off StructureComparator."""
    return StructureComparator(policy=policy).compare(mol1, mol2)


def _parse_alignment(seq1_aligned: str, seq2_aligned: str) -> list[tuple[int, int]]:
    """Residue index pairs from two gapped alignment strings."""
    mapping = []
    idx1 = 0
    idx2 = 0

    for c1, c2 in zip(seq1_aligned, seq2_aligned):
        if c1 != "-" and c2 != "-":
            mapping.append((idx1, idx2))
        if c1 != "-":
            idx1 += 1
        if c2 != "-":
            idx2 += 1

    return mapping
