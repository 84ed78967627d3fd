"""Tests for the command line apps."""

import tempfile
import unittest
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

from click.testing import CliRunner  # noqa: E402

from tbsim.cli import main  # noqa: E402
from tbsim.cli import summarize  # noqa: E402
from tbsim.cli import synth  # noqa: E402
from tbsim.synthetic import write_test_config  # noqa: E402


class TestCLI(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmpdir.name)
        self.runner = CliRunner()

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_help(self):
        result = self.runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--mode" in result.output
        assert "--tag" in result.output

    def test_missing_config(self):
        result = self.runner.invoke(main, ["--config", str(self.directory / "missing.json")])
        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_bad_mode(self):
        result = self.runner.invoke(main, ["--mode", "forecast"])
        assert result.exit_code == 2

    def test_synth_then_simulate_then_summarize(self):
        result = self.runner.invoke(synth, [str(self.directory), "--agents", "200"])
        assert result.exit_code == 0, result.output

        paths = {
            "synthetic_path": self.directory / "test_synthetic.csv",
            "asfr_path": self.directory / "test_asfr.csv",
            "asmr_path": self.directory / "test_asmr.csv",
            "sex_ratio_path": self.directory / "test_sex_ratio_at_birth.csv",
            "incidence_path": self.directory / "test_weekly_incidence.csv",
        }
        config_path = write_test_config(self.directory, paths, simulation_end_date="2021-01-31")

        result = self.runner.invoke(main, ["--config", str(config_path), "--tag", "cli", "--quiet"])
        assert result.exit_code == 0, result.output
        states = self.directory / "results" / "disease_states_sim_beta0.200_cli.csv"
        assert states.is_file()

        plot = self.directory / "states.png"
        result = self.runner.invoke(summarize, [str(states), "--plot", str(plot)])
        assert result.exit_code == 0, result.output
        assert "Disease State Summary" in result.output
        assert plot.is_file()

    def test_missing_data_file(self):
        paths = {key: self.directory / "absent.csv" for key in ("synthetic_path", "asfr_path", "asmr_path", "sex_ratio_path", "incidence_path")}
        config_path = write_test_config(self.directory, paths)
        result = self.runner.invoke(main, ["--config", str(config_path)])
        assert result.exit_code == 1
        assert "not found" in result.output


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
