"""Tests for the simulation driver."""

import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest import mock

import pandas as pd

from tbsim.agent import DiseaseState
from tbsim.config import load_config
from tbsim.demographics import is_weekly_checkpoint
from tbsim.simulation import DAILY_COLUMNS
from tbsim.simulation import TBModel
from tbsim.simulation import date_range
from tbsim.simulation import load_inputs
from tbsim.simulation import run_simulation
from tbsim.simulation import screening_update
from tbsim.simulation import week_key
from tbsim.synthetic import setup_test_environment
from tbsim.synthetic import write_test_config


class ScriptedRNG:
    """Returns the given values from random(), then ``rest`` forever."""

    def __init__(self, *values, rest=0.99):
        self.values = list(values)
        self.rest = rest

    def random(self):
        return self.values.pop(0) if self.values else self.rest


class TestCalendar(unittest.TestCase):
    def test_date_range_inclusive(self):
        dates = date_range(date(2021, 1, 1), date(2021, 1, 5), 1.0)
        assert dates == [date(2021, 1, d) for d in range(1, 6)]

    def test_date_range_stride(self):
        assert date_range(date(2021, 1, 1), date(2021, 1, 10), 3.0) == [date(2021, 1, 1), date(2021, 1, 4), date(2021, 1, 7), date(2021, 1, 10)]
        assert date_range(date(2021, 1, 1), date(2021, 1, 2), 0.25) == [date(2021, 1, 1), date(2021, 1, 2)]

    def test_week_key(self):
        assert week_key(date(2021, 1, 4)) == (2021, 1)
        # ISO week 53 of 2020 is bucketed under the calendar year
        assert week_key(date(2021, 1, 1)) == (2021, 53)


class TestSimulation(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmpdir.name)
        self.paths = setup_test_environment(self.directory, num_agents=300)

    def tearDown(self):
        self._tmpdir.cleanup()

    def config(self, **overrides):
        values = {"simulation_start_date": "2021-01-01", "simulation_end_date": "2021-03-31"}
        values.update(overrides)
        return load_config(write_test_config(self.directory, self.paths, **values))

    def test_daily_table(self):
        result = run_simulation(self.config(), tag="x")
        table = result.disease_states
        assert list(table.columns) == list(DAILY_COLUMNS)
        assert len(table) == len(result.dates) == 90
        assert (table[["Susceptible", "TBI", "ActiveTB", "Treatment"]] >= 0).all().all()
        assert result.new_tbi_cases == table["NewTBI"].sum() == result.total_infections
        assert result.new_active_cases == table["NewActiveTB"].sum() == result.weekly_incidence["Incidence"].sum()

    def test_initial_row(self):
        config = self.config()
        result = run_simulation(config, write=False)
        first = result.disease_states.iloc[0]
        total = 300
        active = round(total * config.initial_active_tbi_percentage / 100.0)
        tbi = round(total * config.initial_tbi_percentage / 100.0) - active
        assert first["ActiveTB"] == active
        assert first["TBI"] == tbi
        assert first["Susceptible"] == total - tbi - active
        assert first["Treatment"] == 0
        assert first["NewTBI"] == first["NewActiveTB"] == 0

    def test_files_written(self):
        result = run_simulation(self.config(beta=0.25), tag="x")
        results = self.directory / "results"
        assert result.files["disease_states"] == results / "disease_states_sim_beta0.250_x.csv"
        assert result.files["weekly_incidence"] == results / "weekly_incidence_sim_beta0.250_x.csv"
        written = pd.read_csv(result.files["weekly_incidence"])
        assert list(written.columns) == ["Year", "Week", "Incidence"]

    def test_reproducible(self):
        config = self.config()
        first = run_simulation(config, write=False)
        second = run_simulation(config, write=False)
        pd.testing.assert_frame_equal(first.disease_states, second.disease_states)
        pd.testing.assert_frame_equal(first.weekly_incidence, second.weekly_incidence)

    def test_beta_override(self):
        result = run_simulation(self.config(), beta=0.0, write=False)
        assert result.beta == 0.0
        assert result.total_infections == 0

    def test_counters_match_population(self):
        config = self.config()
        model = TBModel(config)
        model.initialize(load_inputs(config))
        model.run()
        last = model.disease_states.iloc[-1]
        assert last[["Susceptible", "TBI", "ActiveTB", "Treatment"]].sum() == len(model.population)
        model.population.check_invariants()

    def test_tb_death_removed(self):
        config = self.config(initial_tbi_percentage=0.0, initial_active_tbi_percentage=0.0, treatment_success_rate=0.0, mortality_rate=1.0)
        model = TBModel(config)
        model.initialize(load_inputs(config))

        agent = next(iter(model.population.agents.values()))
        agent.disease_state = DiseaseState.TREATMENT
        agent.treatment_time = 179.0

        model.step(1, None)
        assert agent.id not in model.population
        assert model.tb_deaths == 1
        assert model.disease_states.iloc[1]["Treatment"] == 0
        model.population.check_invariants()

    def test_new_active_case_reported(self):
        config = self.config(initial_tbi_percentage=0.0, initial_active_tbi_percentage=0.0)
        model = TBModel(config)
        model.initialize(load_inputs(config))
        assert not is_weekly_checkpoint(model.dates[1])

        agent = next(iter(model.population.agents.values()))
        agent.disease_state = DiseaseState.TBI
        agent.tbi_time = 10.0
        # lifetime draw then first-year band draw; every later draw declines
        model.prng = ScriptedRNG(0.01, 0.01)

        model.step(1, None)
        assert agent.disease_state == DiseaseState.ACTIVE_TB
        row = model.disease_states.iloc[1]
        assert row["NewActiveTB"] == 1
        assert row["ActiveTB"] == 1
        assert model.new_active_cases == 1

        year, week = week_key(model.dates[1])
        weekly = model.weekly_incidence.set_index(["Year", "Week"])["Incidence"]
        assert weekly[(year, week)] == 1
        assert weekly.sum() == 1

    def test_screening_interval(self):
        assert TBModel(self.config()).screening_interval == 7
        assert TBModel(self.config(timestep=3.0)).screening_interval == 2
        assert TBModel(self.config(timestep=14.0)).screening_interval == 1

    def test_screening_runs_every_seventh_day(self):
        model = TBModel(self.config())
        with mock.patch("tbsim.simulation.screen_household_contacts") as screen:
            for tick in range(14):
                screen.reset_mock()
                screening_update(model, tick)
                assert screen.called == (tick in (6, 13)), tick

    def test_screening_every_step_for_long_timesteps(self):
        model = TBModel(self.config(timestep=14.0))
        with mock.patch("tbsim.simulation.screen_household_contacts") as screen:
            for tick in range(3):
                screening_update(model, tick)
        assert screen.call_count == 3


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
