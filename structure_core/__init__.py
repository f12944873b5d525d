"""Structure parsing, distograms and TM-score comparison.

A small structural-bioinformatics core: parse fixed-column PDB
coordinate text into a Molecule, compute residue-level minimum-distance
matrices (distograms), and score the similarity of two structures.
"""

__version__ = "0.1.0"
__author__ = "structure_core"

from structure_core.io.parser import Atom, Molecule, StructureParser, parse_pdb
from structure_core.core.distogram import DistogramEngine, DistogramMatrix, calculate_distogram
from structure_core.core.comparison import (
    AlignmentPolicy,
    ComparisonResult,
    StructureComparator,
    calculate_tm_score,
)
from structure_core.core.statistics import MoleculeStats, calculate_molecule_stats
from structure_core.core.batch import BatchComparator
from structure_core.exceptions import (
    EmptyStructureError,
    MissingReferenceAtomsError,
    StructureError,
    StructureTooLargeError,
)

__all__ = [
    "Atom",
    "Molecule",
    "StructureParser",
    "parse_pdb",
    "DistogramEngine",
    "DistogramMatrix",
    "calculate_distogram",
    "AlignmentPolicy",
    "ComparisonResult",
    "StructureComparator",
    "calculate_tm_score",
    "MoleculeStats",
    "calculate_molecule_stats",
    "BatchComparator",
    "StructureError",
    "EmptyStructureError",
    "MissingReferenceAtomsError",
    "StructureTooLargeError",
]
