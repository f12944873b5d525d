"""Summary statistics for a parsed molecule."""

from collections import Counter
from dataclasses import dataclass

from structure_core.io.parser import Molecule


@dataclass(frozen=True)
class ChainInfo:
    """Residue and atom counts for one chain."""

    chain_id: str
    residue_count: int
    atom_count: int


@dataclass(frozen=True)
class MoleculeStats:
    """Composition of a molecule."""

    total_atoms: int
    unique_elements: list[str]
    residue_counts: dict[str, int]  # Atoms per residue name
    chains: list[ChainInfo]
    water_count: int  # Atoms in water residues
    ion_count: int  # Atoms in ion residues

    def chain_fraction(self, chain_id: str) -> float:
        """Fraction of all atoms that belong to a chain."""
        for chain in self.chains:
            if chain.chain_id == chain_id:
                return chain.atom_count / self.total_atoms if self.total_atoms else 0.0
        raise KeyError(chain_id)

    def to_dict(self) -> dict:
        return {
            "total_atoms": self.total_atoms,
            "unique_elements": self.unique_elements,
            "residue_counts": self.residue_counts,
            "chains": [
                {
                    "chain_id": c.chain_id,
                    "residue_count": c.residue_count,
                    "atom_count": c.atom_count,
                }
                for c in self.chains
            ],
            "water_count": self.water_count,
            "ion_count": self.ion_count,
        }


def calculate_molecule_stats(molecule: Molecule) -> MoleculeStats:
    """Count atoms, elements, residues, chains, water and ions.

    Args:
        molecule: Parsed Molecule.

    Returns:
        MoleculeStats, with chains sorted by chain id.
    """
    residue_counts = Counter(atom.residue for atom in molecule.atoms)

    chain_residues: dict[str, set[int]] = {}
    chain_atoms: Counter = Counter()
    for atom in molecule.atoms:
        chain_residues.setdefault(atom.chain, set()).add(atom.residue_id)
        chain_atoms[atom.chain] += 1

    chains = [
        ChainInfo(
            chain_id=chain_id,
            residue_count=len(chain_residues[chain_id]),
            atom_count=chain_atoms[chain_id],
        )
        for chain_id in sorted(chain_residues)
    ]

    return MoleculeStats(
        total_atoms=molecule.n_atoms,
        unique_elements=sorted({atom.element for atom in molecule.atoms}),
        residue_counts=dict(residue_counts),
        chains=chains,
        water_count=sum(1 for atom in molecule.atoms if atom.is_water),
        ion_count=sum(1 for atom in molecule.atoms if atom.is_ion),
    )
