"""Tests for configuration loading and validation."""

import json
import tempfile
import unittest
from datetime import date
from pathlib import Path

import pytest

from tbsim.config import Config
from tbsim.config import load_config
from tbsim.config import validate
from tbsim.errors import ConfigurationError


def raw_config(**overrides):
    values = {
        "mode": "simulation",
        "beta": 0.2,
        "num_simulations": 1,
        "timestep": 1,
        "calibration_start_date": "2021-01-01",
        "calibration_end_date": "2021-12-31",
        "simulation_start_date": "2022-01-01",
        "simulation_end_date": "2022-06-30",
        "infection_factor": 1.5,
        "initial_tbi_percentage": 30,
        "initial_active_tbi_percentage": 0.5,
        "men_working_percentage": 80,
        "women_working_percentage": 40,
        "screening_test_sensitivity": 0.9,
        "tpt_efficacy": 0.9,
        "treatment_success_rate": 0.85,
        "mortality_rate": 0.05,
        "treatment_failure_rate": 0.1,
        "tpt_completion_rate": 0.8,
        "synthetic_population_path": "data/synthetic.csv",
        "asfr_path": "data/asfr.csv",
        "asmr_path": "data/asmr.csv",
        "calibration_incidence_data_path": "data/incidence.csv",
    }
    values.update(overrides)
    return values


class TestValidate(unittest.TestCase):
    def test_valid(self):
        config = validate(raw_config())
        assert config.mode == "simulation"
        assert config.timestep == 1.0
        assert isinstance(config.timestep, float)
        assert config.simulation_start_date == date(2022, 1, 1)
        assert config.start_date == date(2022, 1, 1)
        assert config.end_date == date(2022, 6, 30)

    def test_defaults(self):
        config = validate(raw_config())
        assert config.beta_calibration_range == [0.01, 0.5, 0.01]
        assert config.sex_ratio_path == "data/sex_ratio_at_birth.csv"
        assert config.seed == 1234
        assert config.output_dir == "results"
        assert config.verbose is False

    def test_calibration_dates(self):
        config = validate(raw_config(mode="calibration"))
        assert config.start_date == date(2021, 1, 1)
        assert config.end_date == date(2021, 12, 31)

    def test_missing_key(self):
        values = raw_config()
        del values["beta"]
        with pytest.raises(ConfigurationError, match="beta"):
            validate(values)

    def test_bad_mode(self):
        with pytest.raises(ConfigurationError):
            validate(raw_config(mode="forecast"))

    def test_bad_date(self):
        with pytest.raises(ConfigurationError):
            validate(raw_config(simulation_start_date="01/01/2022"))

    def test_non_numeric(self):
        with pytest.raises(ConfigurationError):
            validate(raw_config(beta="high"))

    def test_timestep_positive(self):
        with pytest.raises(ConfigurationError):
            validate(raw_config(timestep=0))

    def test_start_after_end(self):
        with pytest.raises(ConfigurationError):
            validate(raw_config(calibration_start_date="2022-01-01", calibration_end_date="2021-01-01"))

    def test_beta_range_shape(self):
        with pytest.raises(ConfigurationError):
            validate(raw_config(beta_calibration_range=[0.1, 0.2]))
        with pytest.raises(ConfigurationError):
            validate(raw_config(beta_calibration_range=[0.1, 0.2, 0.0]))

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate(raw_config(mode="forecast"))


class TestConfig(unittest.TestCase):
    def test_item_access(self):
        config = Config({"a": 1})
        assert config["a"] == config.a == 1
        config["a"] = 2
        assert config.a == 2
        assert "a" in config
        assert len(config) == 1

    def test_override_copy(self):
        config = validate(raw_config())
        calibration = config << {"mode": "calibration"}
        assert calibration.mode == "calibration"
        assert config.mode == "simulation"

    def test_override_in_place(self):
        config = validate(raw_config())
        config <<= {"beta": 0.3}
        assert config.beta == 0.3

    def test_override_missing_key(self):
        config = validate(raw_config())
        with pytest.raises(ConfigurationError):
            config <<= {"betta": 0.3}

    def test_save_and_load(self):
        config = validate(raw_config())
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "saved.json"
            config.save(path)
            loaded = Config.load(path)
        assert loaded.simulation_start_date == "2022-01-01"
        assert validate(loaded.to_dict()) == config


class TestLoadConfig(unittest.TestCase):
    def test_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps(raw_config()))
            config = load_config(path)
        assert config.beta == 0.2

    def test_missing_file(self):
        with pytest.raises(ConfigurationError):
            load_config("does/not/exist.json")

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text("{ not json")
            with pytest.raises(ConfigurationError):
                load_config(path)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
