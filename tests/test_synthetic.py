"""Tests for the synthetic input generators."""

import tempfile
import unittest
from pathlib import Path

import pandas as pd

from tbsim.config import load_config
from tbsim.io import read_demographic_tables
from tbsim.io import read_reference_incidence
from tbsim.io import read_synthetic_population
from tbsim.synthetic import setup_test_environment


class TestSyntheticEnvironment(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmpdir.name)
        self.paths = setup_test_environment(self.directory / "env", num_agents=400)

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_files_created(self):
        assert set(self.paths) == {"synthetic_path", "asfr_path", "asmr_path", "sex_ratio_path", "incidence_path", "config_path"}
        assert all(Path(path).is_file() for path in self.paths.values())

    def test_population(self):
        table = read_synthetic_population(self.paths["synthetic_path"])
        assert len(table) == 400
        assert table["AgentID"].is_unique
        children = table[(table["Age"] >= 4) & (table["Age"] < 18)]
        assert (children["SchoolID"] > 0).all()
        outside = table[(table["Age"] < 4) | (table["Age"] >= 18)]
        assert (outside["SchoolID"] == 0).all()
        assert (table.loc[(table["Age"] < 18) | (table["Age"] >= 65), "WorkPlaceID"] == 0).all()

    def test_same_seed_same_population(self):
        first = pd.read_csv(self.paths["synthetic_path"])
        again = setup_test_environment(self.directory / "again", num_agents=400)
        pd.testing.assert_frame_equal(first, pd.read_csv(again["synthetic_path"]))

    def test_tables_readable(self):
        demographics = read_demographic_tables(self.paths["asfr_path"], self.paths["asmr_path"], self.paths["sex_ratio_path"])
        labels = set(demographics.mortality["Age group"])
        assert {"All ages", "Below 1", "1-4", "85 +"} <= labels
        assert set(demographics.fertility["Year"]) == set(range(2011, 2030))
        reference = read_reference_incidence(self.paths["incidence_path"])
        assert len(reference) == 4 * 53
        assert (reference["Reference"] >= 0).all()

    def test_config_valid(self):
        config = load_config(self.paths["config_path"])
        assert config.mode == "simulation"
        assert Path(config.synthetic_population_path) == Path(self.paths["synthetic_path"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
