"""Fixed-column PDB coordinate parsing.

Turns raw ATOM/HETATM record text into an immutable Molecule. Columns are
extracted by character offset, never by whitespace splitting, because
adjacent fields in this format are not guaranteed to be separated.
"""

import logging
import math
import warnings
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
from Bio.SeqUtils import seq1

from structure_core.exceptions import (
    EmptyStructureError,
    MalformedLineWarning,
    StructureTooLargeError,
)

logger = logging.getLogger(__name__)

WATER_RESIDUES = frozenset({"HOH", "WAT"})

# Last column needed to read x, y and z.
MIN_RECORD_WIDTH = 54


def is_water(residue: str) -> bool:
    """Return True for water residue names (HOH, WAT)."""
    return residue in WATER_RESIDUES


def is_ion(residue: str) -> bool:
    """Heuristic ion test: a short (<= 2 char) residue name without lowercase.

    This is an approximation, not a chemical classifier; it flags names
    like ``NA``, ``CL`` or ``MG`` and misses polyatomic ions.
    """
    if not residue or is_water(residue):
        return False
    return len(residue) <= 2 and not any(c.islower() for c in residue)


def classify_residue(residue: str) -> str:
    """Classify a residue name as "water", "ion" or "polymer"."""
    if is_water(residue):
        return "water"
    if is_ion(residue):
        return "ion"
    return "polymer"


@dataclass(frozen=True)
class Atom:
    """A single atom record."""

    id: int  # Sequential, 1-based, unique within a Molecule
    name: str  # Atom name, e.g. "CA"
    element: str
    position: tuple[float, float, float]
    residue: str  # Residue name, e.g. "ALA"
    residue_id: int
    chain: str
    serial: Optional[int] = None  # Serial number as written in the file
    record: str = "ATOM"
    alt_loc: str = ""
    occupancy: Optional[float] = None
    b_factor: Optional[float] = None

    def __post_init__(self):
        if len(self.position) != 3:
            raise ValueError(f"Atom {self.id}: position must have 3 components")
        if not all(math.isfinite(c) for c in self.position):
            raise ValueError(f"Atom {self.id}: non-finite coordinate {self.position}")

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    @property
    def z(self) -> float:
        return self.position[2]

    @property
    def is_water(self) -> bool:
        return is_water(self.residue)

    @property
    def is_ion(self) -> bool:
        return is_ion(self.residue)

    @property
    def is_solvent(self) -> bool:
        """Water or ion."""
        return self.is_water or self.is_ion

    def distance_to(self, other: "Atom") -> float:
        """Euclidean distance to another atom in Ångströms."""
        return math.dist(self.position, other.position)


@dataclass(frozen=True)
class Molecule:
    """Ordered, immutable collection of atoms in file order."""

    id: str
    name: str
    atoms: tuple[Atom, ...]
    warnings: tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self):
        # Accept any iterable of atoms but store a tuple.
        object.__setattr__(self, "atoms", tuple(self.atoms))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        ids = [atom.id for atom in self.atoms]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Molecule {self.id}: duplicate atom ids")

    @property
    def n_atoms(self) -> int:
        """Number of atoms."""
        return len(self.atoms)

    @property
    def chains(self) -> list[str]:
        """Chain identifiers in order of first appearance."""
        return list(dict.fromkeys(atom.chain for atom in self.atoms))

    @property
    def residue_ids(self) -> list[int]:
        """Distinct residue numbers, ascending."""
        return sorted({atom.residue_id for atom in self.atoms})

    @property
    def coordinates(self) -> np.ndarray:
        """Atom coordinates, shape (n_atoms, 3)."""
        if not self.atoms:
            return np.empty((0, 3))
        return np.array([atom.position for atom in self.atoms], dtype=float)

    @property
    def sequence(self) -> str:
        """One-letter sequence of polymer residues in file order.

        Residues are keyed by (chain, residue_id); water and ions are skipped
        and unknown residue names map to "X".
        """
        seen: dict[tuple[str, int], str] = {}
        for atom in self.atoms:
            if atom.is_solvent:
                continue
            seen.setdefault((atom.chain, atom.residue_id), atom.residue)
        return "".join(seq1(name) or "X" for name in seen.values())

    def group_by_residue(self, by_chain: bool = False) -> dict:
        """Group atoms by residue.

        Args:
            by_chain: Key by (chain, residue_id) instead of residue_id alone.

        Returns:
            Dict of residue key -> list of atoms, in order of first appearance.
        """
        groups = defaultdict(list)
        for atom in self.atoms:
            key = (atom.chain, atom.residue_id) if by_chain else atom.residue_id
            groups[key].append(atom)
        return dict(groups)

    def without_solvent(self) -> "Molecule":
        """Copy of this molecule with water and ion atoms removed."""
        return Molecule(
            id=self.id,
            name=self.name,
            atoms=tuple(atom for atom in self.atoms if not atom.is_solvent),
            warnings=self.warnings,
        )

    def to_dataframe(self) -> pd.DataFrame:
        """One row per atom, columns named after Atom fields."""
        rows = [
            {
                "id": atom.id,
                "serial": atom.serial,
                "record": atom.record,
                "name": atom.name,
                "element": atom.element,
                "residue": atom.residue,
                "chain": atom.chain,
                "residue_id": atom.residue_id,
                "x": atom.x,
                "y": atom.y,
                "z": atom.z,
                "occupancy": atom.occupancy,
                "b_factor": atom.b_factor,
            }
            for atom in self.atoms
        ]
        return pd.DataFrame(rows, columns=[
            "id", "serial", "record", "name", "element", "residue", "chain",
            "residue_id", "x", "y", "z", "occupancy", "b_factor",
        ])


def _optional_float(text: str) -> Optional[float]:
    text = text.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _optional_int(text: str) -> Optional[int]:
    text = text.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


class StructureParser:
    """Parse fixed-column ATOM/HETATM records into a Molecule."""

    def __init__(
        self,
        include_hetatm: bool = True,
        first_model_only: bool = False,
        max_lines: Optional[int] = None,
    ):
        """Initialize the parser.

        Args:
            include_hetatm: Also read HETATM records (ligands, water, ions).
            first_model_only: Stop at the first ENDMDL record.
            max_lines: Reject input with more lines than this.
        """
        self.include_hetatm = include_hetatm
        self.first_model_only = first_model_only
        self.max_lines = max_lines

    @property
    def record_types(self) -> tuple[str, ...]:
        if self.include_hetatm:
            return ("ATOM", "HETATM")
        return ("ATOM",)

    def parse(
        self,
        text: str,
        structure_id: str = "structure",
        name: Optional[str] = None,
    ) -> Molecule:
        """Parse coordinate text.

        Args:
            text: Raw file contents.
            structure_id: Identifier of the structure (e.g. the file name).
            name: Display name; defaults to structure_id without ".pdb".

        Returns:
            Molecule with every valid atom, in file order.

        Raises:
            StructureTooLargeError: If the input exceeds max_lines.
            EmptyStructureError: If no valid atom records were found.
        """
        lines = text.splitlines()
        if self.max_lines is not None and len(lines) > self.max_lines:
            raise StructureTooLargeError(
                f"{structure_id}: {len(lines)} lines exceeds limit of {self.max_lines}"
            )

        atoms = []
        problems = []
        n_records = 0

        for line_no, line in enumerate(lines, start=1):
            if self.first_model_only and line.startswith("ENDMDL") and atoms:
                break
            if line[:6].rstrip() not in self.record_types:
                continue

            n_records += 1
            try:
                atoms.append(self._parse_record(line, atom_id=len(atoms) + 1))
            except ValueError as e:
                message = f"line {line_no}: {e}"
                problems.append(message)
                warnings.warn(
                    f"{structure_id}: skipping {message}",
                    MalformedLineWarning,
                    stacklevel=2,
                )

        logger.debug(
            "Parsed %d atoms from %d records in %s", len(atoms), n_records, structure_id
        )

        if not atoms:
            raise EmptyStructureError(
                f"No valid atoms found in {structure_id} "
                f"({n_records} coordinate records, {len(lines)} lines)"
            )

        if name is None:
            name = structure_id.replace(".pdb", "")

        return Molecule(
            id=structure_id,
            name=name,
            atoms=tuple(atoms),
            warnings=tuple(problems),
        )

    def parse_file(self, path: str | Path) -> Molecule:
        """Read and parse a coordinate file.

        Args:
            path: Path to a PDB file.

        Returns:
            Parsed Molecule, identified by the file name.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Structure file not found: {path}")

        text = path.read_text(encoding="utf-8", errors="replace")
        return self.parse(text, structure_id=path.name, name=path.stem)

    @staticmethod
    def _parse_record(line: str, atom_id: int) -> Atom:
        """Extract one atom from an ATOM/HETATM line.

        Raises:
            ValueError: If the line is too short, a required numeric field
                is unreadable, or a coordinate is not finite.
        """
        if len(line) < MIN_RECORD_WIDTH:
            raise ValueError(
                f"record is {len(line)} characters, need at least {MIN_RECORD_WIDTH}"
            )

        residue_field = line[22:26].strip()
        try:
            residue_id = int(residue_field)
        except ValueError:
            raise ValueError(f"invalid residue number {residue_field!r}") from None

        coords = []
        for axis, (start, end) in zip("xyz", ((30, 38), (38, 46), (46, 54))):
            value_field = line[start:end].strip()
            try:
                value = float(value_field)
            except ValueError:
                raise ValueError(f"invalid {axis} coordinate {value_field!r}") from None
            if not math.isfinite(value):
                raise ValueError(f"non-finite {axis} coordinate {value_field!r}")
            coords.append(value)

        # Element lives in columns 77-78; older files only have it in the name.
        element = line[76:78].strip()
        if not element:
            element = line[12:14].strip().lstrip("0123456789")

        return Atom(
            id=atom_id,
            name=line[12:16].strip(),
            element=element,
            position=(coords[0], coords[1], coords[2]),
            residue=line[17:20].strip(),
            residue_id=residue_id,
            chain=line[21:22].strip(),
            serial=_optional_int(line[6:11]),
            record=line[:6].rstrip(),
            alt_loc=line[16:17].strip(),
            occupancy=_optional_float(line[54:60]),
            b_factor=_optional_float(line[60:66]),
        )


def parse_pdb(
    text: str,
    structure_id: str = "structure",
    include_hetatm: bool = True,
) -> Molecule:
    """Parse PDB text with default parser settings.

    Args:
        text: Raw file contents.
        structure_id: Identifier of the structure.
        include_hetatm: Also read HETATM records.

    Returns:
        Parsed Molecule.
    """
    return StructureParser(include_hetatm=include_hetatm).parse(text, structure_id)
