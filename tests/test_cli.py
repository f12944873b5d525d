import json

import pytest
from click.testing import CliRunner

from conftest import format_atom_line, helix_atoms
from structure_core.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def files(write_pdb, helix_pdb, solvated_pdb):
    return {
        "helix": str(write_pdb("helix.pdb", helix_pdb)),
        "short": str(write_pdb("short.pdb", "\n".join(helix_atoms(12)))),
        "solvated": str(write_pdb("solvated.pdb", solvated_pdb)),
        "empty": str(write_pdb("empty.pdb", "HEADER ONLY\n")),
    }


class TestCli:
    def test_info(self, runner, files):
        result = runner.invoke(cli, ["info", files["solvated"]])
        assert result.exit_code == 0
        assert "Atoms: 14" in result.output
        assert "Water atoms: 1" in result.output

    def test_info_json(self, runner, files):
        result = runner.invoke(cli, ["info", files["helix"], "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["total_atoms"] == 80

    def test_info_empty_structure(self, runner, files):
        result = runner.invoke(cli, ["info", files["empty"]])
        assert result.exit_code == 1

    def test_distogram_to_file(self, runner, files, tmp_path):
        out = tmp_path / "d.json"
        result = runner.invoke(cli, ["distogram", files["solvated"], "-o", str(out), "--exclude-solvent"])

        assert result.exit_code == 0
        assert len(json.loads(out.read_text())["distogram"]) == 3

    def test_distogram_plot(self, runner, files, tmp_path):
        out = tmp_path / "d.png"
        result = runner.invoke(cli, ["distogram", files["helix"], "-o", str(tmp_path / "d.json"),
                                     "--plot", str(out)])
        assert result.exit_code == 0
        assert out.exists()

    def test_compare(self, runner, files, tmp_path):
        out = tmp_path / "cmp.json"
        result = runner.invoke(cli, ["compare", files["helix"], files["short"], "-o", str(out)])

        assert result.exit_code == 0
        assert "Truncated" in result.output
        data = json.loads(out.read_text())
        assert data["compared_atom_count"] == 12
        assert data["truncated"] is True

    def test_compare_superposed(self, runner, files):
        result = runner.invoke(cli, ["compare", files["helix"], files["helix"], "--policy", "superposed"])
        assert result.exit_code == 0
        assert "1.0000" in result.output

    def test_batch(self, runner, files, tmp_path):
        out = tmp_path / "results.csv"
        result = runner.invoke(cli, ["batch", files["helix"], files["short"], files["solvated"],
                                     "-o", str(out), "-j", "1"])
        assert result.exit_code == 0
        assert out.exists()
        assert "STRUCTURE COMPARISON REPORT" in result.output

    def test_batch_needs_two(self, runner, files):
        result = runner.invoke(cli, ["batch", files["helix"]])
        assert result.exit_code == 1

    def test_compare_tmalign_too_short(self, runner, write_pdb, files):
        tiny = str(write_pdb("tiny.pdb", "\n".join(helix_atoms(2))))
        result = runner.invoke(cli, ["compare", files["helix"], tiny, "--policy", "tmalign"])

        assert result.exit_code == 0
        assert "Not available" in result.output
        assert "UNAVAILABLE" in result.output

    def test_batch_with_water_only_file(self, runner, write_pdb, files, tmp_path):
        water = str(write_pdb("water.pdb", format_atom_line(
            1, "O", "HOH", "A", 1, 0.0, 0.0, 0.0, "O", record="HETATM"
        )))
        out = tmp_path / "results.csv"
        result = runner.invoke(cli, ["batch", files["helix"], files["short"], water,
                                     "-o", str(out), "-j", "1"])

        assert result.exit_code == 0
        assert "Unavailable scores:    2" in result.output
