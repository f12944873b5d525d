"""Command-line interface for structure parsing and comparison.

Provides CLI commands for structure summaries, distograms, pairwise
comparison and batch comparison.
"""

import json
import logging
import sys
from typing import Optional

import click

from structure_core import __version__
from structure_core.core.batch import BatchComparator
from structure_core.core.comparison import AlignmentPolicy, StructureComparator
from structure_core.core.distogram import DistogramEngine
from structure_core.core.statistics import calculate_molecule_stats
from structure_core.exceptions import StructureError
from structure_core.io.parser import StructureParser
from structure_core.io.reporter import ComparisonReporter, write_distogram_json

POLICY_CHOICES = [p.value for p in AlignmentPolicy]


def _load(path: str, max_lines: Optional[int], include_hetatm: bool = True):
    """Parse a file or exit with an error message."""
    parser = StructureParser(include_hetatm=include_hetatm, max_lines=max_lines)
    try:
        return parser.parse_file(path)
    except (OSError, StructureError) as e:
        click.echo(f"Error loading {path}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="structure_core")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """Structure parsing, distograms and TM-score comparison.

    Reads PDB ATOM/HETATM records, computes residue distance matrices
    and scores structural similarity.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


@cli.command()
@click.argument("structure", type=click.Path(exists=True))
@click.option("--no-hetatm", is_flag=True, help="Ignore HETATM records")
@click.option("--max-lines", type=int, help="Reject files with more lines than this")
@click.option("--json", "json_output", is_flag=True, help="Print statistics as JSON")
def info(structure, no_hetatm, max_lines, json_output):
    """Display composition of a structure."""
    molecule = _load(structure, max_lines, include_hetatm=not no_hetatm)
    stats = calculate_molecule_stats(molecule)

    if json_output:
        click.echo(json.dumps(stats.to_dict(), indent=2))
        return

    click.echo(f"\nStructure: {molecule.name}")
    click.echo(f"File: {structure}")
    click.echo(f"\nAtoms: {stats.total_atoms}")
    click.echo(f"Elements: {', '.join(stats.unique_elements)}")
    click.echo(f"Residues: {len(molecule.residue_ids)}")
    if molecule.sequence:
        seq = molecule.sequence
        click.echo(f"Sequence: {seq[:50]}..." if len(seq) > 50 else f"Sequence: {seq}")

    click.echo("\nChains:")
    for chain in stats.chains:
        fraction = 100 * chain.atom_count / stats.total_atoms
        label = chain.chain_id or "-"
        click.echo(
            f"  {label}: {chain.residue_count} residues, "
            f"{chain.atom_count} atoms ({fraction:.1f}%)"
        )

    click.echo(f"\nWater atoms: {stats.water_count}")
    click.echo(f"Ion atoms:   {stats.ion_count}")

    if molecule.warnings:
        click.echo(f"\nSkipped {len(molecule.warnings)} malformed record(s)")


@cli.command()
@click.argument("structure", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), help="Output file for the distogram (JSON)")
@click.option("--plot", type=click.Path(), help="Save distogram heatmap to file")
@click.option("--exclude-solvent", is_flag=True, help="Leave out water and ion residues")
@click.option("--by-chain", is_flag=True, help="Keep equal residue numbers in different chains apart")
@click.option("--method", type=click.Choice(["pairwise", "vectorized"]),
              default="pairwise", help="Distance search strategy")
@click.option("--max-lines", type=int, help="Reject files with more lines than this")
def distogram(structure, output, plot, exclude_solvent, by_chain, method, max_lines):
    """Compute the residue minimum-distance matrix of a structure."""
    molecule = _load(structure, max_lines)

    engine = DistogramEngine(
        include_solvent=not exclude_solvent,
        group_by_chain=by_chain,
        method=method,
    )
    try:
        result = engine.compute(molecule)
    except StructureError as e:
        click.echo(f"Error computing distogram: {e}", err=True)
        sys.exit(1)

    click.echo(f"{molecule.name}: {result.n_residues} residues")

    if output:
        write_distogram_json(result, output)
        click.echo(f"Distogram saved to: {output}")
    else:
        click.echo(json.dumps(result.to_list()))

    if plot:
        import matplotlib
        matplotlib.use("Agg")

        from structure_core.visualization.distogram_plot import DistogramVisualizer

        DistogramVisualizer().save(result, plot, title=f"Residue Distance Matrix: {molecule.name}")
        click.echo(f"Distogram plot saved to: {plot}")


@cli.command()
@click.argument("structure1", type=click.Path(exists=True))
@click.argument("structure2", type=click.Path(exists=True))
@click.option("--policy", type=click.Choice(POLICY_CHOICES), default="positional",
              help="How reference atoms are matched")
@click.option("--output", "-o", type=click.Path(), help="Output file for results (JSON)")
@click.option("--max-lines", type=int, help="Reject files with more lines than this")
def compare(structure1, structure2, policy, output, max_lines):
    """Compare two structures with a TM-score.

    The default positional policy matches reference atom i of one structure
    to atom i of the other without superposition.
    """
    mol1 = _load(structure1, max_lines)
    mol2 = _load(structure2, max_lines)

    comparator = StructureComparator(policy=policy)
    try:
        result = comparator.compare(mol1, mol2)
    except StructureError as e:
        click.echo(f"Error during comparison: {e}", err=True)
        sys.exit(1)

    click.echo("\n" + "=" * 50)
    click.echo("COMPARISON RESULTS")
    click.echo("=" * 50)
    click.echo(f"  Policy:          {result.policy}")
    if result.available:
        click.echo(f"  TM-score:        {result.score:.4f}")
    else:
        click.echo("  TM-score:        Not available")
    if result.rmsd is not None:
        click.echo(f"  RMSD:            {result.rmsd:.2f} Å")
    click.echo(f"  Compared atoms:  {result.compared_atom_count}")
    if result.truncated:
        n1, n2 = result.reference_counts
        click.echo(f"  Truncated:       yes ({n1} vs {n2} reference atoms)")
    for i, fallback in enumerate(result.used_fallback, start=1):
        if fallback:
            click.echo(f"  Structure {i} has no CA atoms; backbone atoms used")
    click.echo(f"\n  Classification: {result.classification.upper()}")
    click.echo("=" * 50)

    if output:
        with open(output, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        click.echo(f"\nResults saved to: {output}")


@cli.command()
@click.argument("structures", nargs=-1, type=click.Path(exists=True))
@click.option("--reference", "-r", type=click.Path(exists=True),
              help="Reference structure for all-vs-reference comparison")
@click.option("--output", "-o", default="results.csv", help="Output CSV file for results")
@click.option("--json", "json_output", type=click.Path(), help="Also save results as JSON")
@click.option("--policy", type=click.Choice(POLICY_CHOICES), default="positional",
              help="How reference atoms are matched")
@click.option("--jobs", "-j", default=-1, help="Number of parallel jobs (-1 for all CPUs)")
@click.option("--max-lines", type=int, help="Reject files with more lines than this")
def batch(structures, reference, output, json_output, policy, jobs, max_lines):
    """Compare multiple structures in batch mode.

    Without --reference: performs all pairwise comparisons.
    With --reference: compares all structures to the reference.

    Examples:

        structure_core batch *.pdb -o results.csv

        structure_core batch *.pdb --reference ref.pdb -o results.csv
    """
    if len(structures) < 2 and reference is None:
        click.echo("Error: Need at least 2 structures for comparison", err=True)
        sys.exit(1)

    parser = StructureParser(max_lines=max_lines)
    loaded = []
    for path in structures:
        try:
            loaded.append(parser.parse_file(path))
        except (OSError, StructureError) as e:
            click.echo(f"Warning: Failed to load {path}: {e}", err=True)

    if not loaded:
        click.echo("Error: No structures loaded successfully", err=True)
        sys.exit(1)

    click.echo(f"Loaded {len(loaded)} structures")

    ref = _load(reference, max_lines) if reference else None
    comparator = BatchComparator(structures=loaded, reference=ref, policy=policy)

    try:
        if ref is not None:
            click.echo(f"Comparing {len(loaded)} structures to {ref.name}...")
            results = comparator.compare_to_reference(n_jobs=jobs)
        else:
            n_pairs = len(loaded) * (len(loaded) - 1) // 2
            click.echo(f"Performing {n_pairs} pairwise comparisons...")
            results = comparator.compare_all_pairs(n_jobs=jobs)
    except (ValueError, StructureError) as e:
        click.echo(f"Error during comparison: {e}", err=True)
        sys.exit(1)

    reporter = ComparisonReporter(results)
    reporter.to_csv(output)
    click.echo(f"\nResults saved to: {output}")

    if json_output:
        reporter.to_json(json_output)
        click.echo(f"JSON saved to: {json_output}")

    click.echo("\n" + reporter.summary_report())


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
