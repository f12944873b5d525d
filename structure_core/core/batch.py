"""Batch comparison of multiple parsed structures.

Comparisons are independent, so they are fanned out with joblib and
collected into a pandas DataFrame.
"""

from dataclasses import dataclass
import logging
from itertools import combinations
from pathlib import Path
from typing import Callable, Optional
import warnings

import pandas as pd
from joblib import Parallel, delayed

from structure_core.core.comparison import (
    AlignmentPolicy,
    ComparisonResult,
    StructureComparator,
)
from structure_core.exceptions import StructureError
from structure_core.io.parser import Molecule, StructureParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairwiseResult:
    """Comparison of two named structures."""

    struct1_name: str
    struct2_name: str
    result: ComparisonResult
    error: Optional[str] = None  # Why the pair could not be scored

    def to_dict(self) -> dict:
        """Convert to dictionary for DataFrame construction."""
        return {
            "structure_1": self.struct1_name,
            "structure_2": self.struct2_name,
            **self.result.to_dict(),
            "error": self.error,
        }


def _compare_pair(
    comparator: StructureComparator,
    mol1: Molecule,
    mol2: Molecule,
) -> PairwiseResult:
    with warnings.catch_warnings():
        # Length mismatches are expected across a batch; they show up in
        # the "truncated" column instead.
        warnings.simplefilter("ignore")
        try:
            result = comparator.compare(mol1, mol2)
        except StructureError as e:
            # One unusable structure only loses its own pairs.
            logger.warning("Skipping %s vs %s: %s", mol1.name, mol2.name, e)
            result = ComparisonResult(
                score=None,
                compared_atom_count=0,
                truncated=False,
                policy=comparator.policy.value,
                notes=(str(e),),
            )
            return PairwiseResult(mol1.name, mol2.name, result, error=str(e))
    return PairwiseResult(mol1.name, mol2.name, result)


class BatchComparator:
    """Compare many structures against each other or a reference."""

    def __init__(
        self,
        structures: Optional[list[Molecule]] = None,
        reference: Optional[Molecule] = None,
        policy: AlignmentPolicy | str = AlignmentPolicy.POSITIONAL,
    ):
        """Initialize the batch comparator.

        Args:
            structures: Molecules to compare.
            reference: Optional reference for all-vs-reference mode.
            policy: Alignment policy used for every comparison.
        """
        self.structures = list(structures or [])
        self.reference = reference
        self.comparator = StructureComparator(policy=policy)

    def add_structure(self, structure: Molecule) -> None:
        """Add a molecule to the comparison set."""
        self.structures.append(structure)

    def add_structures_from_paths(
        self,
        paths: list[str | Path],
        parser: Optional[StructureParser] = None,
    ) -> None:
        """Parse files and add them; unreadable files are skipped with a warning.

        Args:
            paths: PDB file paths.
            parser: Parser to use; defaults to StructureParser().
        """
        parser = parser or StructureParser()
        for path in paths:
            try:
                self.structures.append(parser.parse_file(path))
            except (OSError, StructureError) as e:
                warnings.warn(f"Failed to load {path}: {e}")

    def set_reference(self, reference: Molecule) -> None:
        self.reference = reference

    def compare_pair(self, mol1: Molecule, mol2: Molecule) -> PairwiseResult:
        """Compare two molecules."""
        return _compare_pair(self.comparator, mol1, mol2)

    def compare_all_pairs(
        self,
        n_jobs: int = -1,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> pd.DataFrame:
        """Compare all pairs of structures.

        Args:
            n_jobs: Number of parallel jobs (-1 for all CPUs).
            progress_callback: Optional callback(current, total), sequential
                mode only.

        Returns:
            DataFrame with one row per pair.

        Raises:
            ValueError: If fewer than two structures are loaded.
        """
        if len(self.structures) < 2:
            raise ValueError("Need at least 2 structures to compare")

        pairs = [
            (self.structures[i], self.structures[j])
            for i, j in combinations(range(len(self.structures)), 2)
        ]
        return self._run(pairs, n_jobs, progress_callback)

    def compare_to_reference(
        self,
        n_jobs: int = -1,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> pd.DataFrame:
        """Compare every structure to the reference.

        Args:
            n_jobs: Number of parallel jobs (-1 for all CPUs).
            progress_callback: Optional callback(current, total), sequential
                mode only.

        Returns:
            DataFrame with one row per structure.

        Raises:
            ValueError: If no reference or no structures are set.
        """
        if self.reference is None:
            raise ValueError("No reference structure set")
        if not self.structures:
            raise ValueError("No structures to compare")

        pairs = [(self.reference, s) for s in self.structures]
        return self._run(pairs, n_jobs, progress_callback)

    def _run(
        self,
        pairs: list[tuple[Molecule, Molecule]],
        n_jobs: int,
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> pd.DataFrame:
        if n_jobs == 1:
            results = []
            for idx, (mol1, mol2) in enumerate(pairs):
                results.append(self.compare_pair(mol1, mol2))
                if progress_callback:
                    progress_callback(idx + 1, len(pairs))
        else:
            results = Parallel(n_jobs=n_jobs)(
                delayed(_compare_pair)(self.comparator, mol1, mol2)
                for mol1, mol2 in pairs
            )

        return pd.DataFrame([r.to_dict() for r in results])

    @staticmethod
    def get_summary_statistics(results: pd.DataFrame) -> dict:
        """Summarise a results DataFrame.

        Unavailable scores (NaN/None) are left out of the score statistics
        and counted separately.
        """
        scores = pd.to_numeric(results["score"], errors="coerce")
        valid = scores.dropna()
        return {
            "n_comparisons": len(results),
            "n_unavailable": int(scores.isna().sum()),
            "n_truncated": int(results["truncated"].sum()),
            "score": {
                "mean": float(valid.mean()) if len(valid) else None,
                "std": float(valid.std()) if len(valid) > 1 else None,
                "min": float(valid.min()) if len(valid) else None,
                "max": float(valid.max()) if len(valid) else None,
            },
            "n_same_fold": int((valid > 0.5).sum()),
        }
