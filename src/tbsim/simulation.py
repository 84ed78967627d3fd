"""Agent-based TB transmission model driven over a range of calendar dates.

Each step (every date after the first) applies, in order:

    1. transmission at every workplace, then every school, then every household
    2. household contact screening, once a week
    3. the natural-history update of every agent
    4. demographics: removal of TB deaths, aging, and weekly deaths and births
    5. reporting: counters, the daily record, and the weekly incidence bucket

The random stream is consumed in exactly this order, so runs with the same seed
and inputs are reproducible.
"""

from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import timedelta
from pathlib import Path
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

import click
import numpy as np
import pandas as pd
from tqdm import tqdm

from tbsim import demographics
from tbsim.agent import Location
from tbsim.agent import advance_disease_state
from tbsim.io import read_demographic_tables
from tbsim.io import read_synthetic_population
from tbsim.io import result_suffix
from tbsim.io import write_table
from tbsim.model import DiseaseModel
from tbsim.population import Population
from tbsim.random import seed
from tbsim.screening import screen_household_contacts
from tbsim.transmission import contacts

DAILY_COLUMNS = ("Date", "Susceptible", "TBI", "ActiveTB", "Treatment", "NewTBI", "NewActiveTB")
WEEKLY_COLUMNS = ("Year", "Week", "Incidence")


@dataclass
class SimulationInputs:
    """Input tables for a run, read once and shared read-only between runs."""

    synthetic: pd.DataFrame
    demographics: demographics.DemographicTables


@dataclass
class SimulationResult:
    dates: List[date]
    disease_states: pd.DataFrame
    weekly_incidence: pd.DataFrame
    total_infections: int
    new_tbi_cases: int
    new_active_cases: int
    beta: float
    tb_deaths: int = 0
    files: Dict[str, Path] = field(default_factory=dict)


def load_inputs(config) -> SimulationInputs:
    """Read the synthetic population and demographic tables named in the configuration."""
    return SimulationInputs(
        synthetic=read_synthetic_population(config.synthetic_population_path),
        demographics=read_demographic_tables(config.asfr_path, config.asmr_path, config.sex_ratio_path),
    )


def date_range(start: date, end: date, timestep: float) -> List[date]:
    """Dates from ``start`` to ``end`` inclusive, ``max(1, round(timestep))`` days apart."""
    stride = timedelta(days=max(1, round(timestep)))
    dates = []
    current = start
    while current <= end:
        dates.append(current)
        current += stride

    return dates


def week_key(day: date) -> Tuple[int, int]:
    """(calendar year, ISO week number) bucket for a date."""
    return (day.year, day.isocalendar()[1])


class TBModel(DiseaseModel):
    """Agent-based TB model over households, workplaces and schools."""

    def __init__(self, config, beta: Optional[float] = None):
        super().__init__(verbose=bool(getattr(config, "verbose", False)))
        self.config = config
        self.beta = float(config.beta if beta is None else beta)
        self.dates = date_range(config.start_date, config.end_date, config.timestep)
        self.screening_interval = max(1, round(7 / config.timestep))

        self.population = None
        self.prng = None
        self._phases = [transmission_update, screening_update, disease_update, demographics_update, report_update]

        self.total_infections = 0
        self.new_tbi_cases = 0
        self.new_active_cases = 0
        self.tb_deaths = 0

        return

    @property
    def nticks(self) -> int:
        return len(self.dates)

    def initialize(self, inputs: SimulationInputs, prng: Optional[np.random.Generator] = None) -> None:
        """
        Build the population from the inputs and record the starting counts.

        Parameters:

            inputs (SimulationInputs): Synthetic population and demographic tables.
            prng (numpy.random.Generator, optional): Random stream, seeded from ``config.seed`` if not given.
        """

        self.prng = prng if prng is not None else seed(self.config.seed)

        population = Population(demographics=inputs.demographics, verbose=self.verbose)
        population.load(inputs.synthetic, self.config, self.prng)
        population.check_invariants()
        self.population = population

        self._daily = pd.DataFrame(0, index=range(len(self.dates)), columns=DAILY_COLUMNS[1:], dtype=np.int64)
        self._weekly: Dict[Tuple[int, int], int] = {}
        for day in self.dates:
            self._weekly.setdefault(week_key(day), 0)

        self._step = {"new_tbi": 0, "new_active": 0, "tb_deaths": []}
        self._record(0)
        self._tick = 1

        return

    def step(self, tick: int, pbar: tqdm) -> None:
        """Apply every phase, in order, for the date at index ``tick``."""
        self._step = {"new_tbi": 0, "new_active": 0, "tb_deaths": []}
        for phase in self._phases:
            phase(self, tick)

        return

    def _record(self, tick: int) -> None:
        counts = self.population.counts()
        self._daily.loc[tick] = [*counts.values(), self._step["new_tbi"], self._step["new_active"]]

        return

    @property
    def disease_states(self) -> pd.DataFrame:
        """Daily counts table, one row per date."""
        table = self._daily.copy()
        table.insert(0, "Date", self.dates)
        return table

    @property
    def weekly_incidence(self) -> pd.DataFrame:
        """New active cases per (Year, ISO Week), in date order."""
        return pd.DataFrame(
            [(year, week, incidence) for (year, week), incidence in self._weekly.items()],
            columns=WEEKLY_COLUMNS,
        )

    def result(self) -> SimulationResult:
        return SimulationResult(
            dates=list(self.dates),
            disease_states=self.disease_states,
            weekly_incidence=self.weekly_incidence,
            total_infections=self.total_infections,
            new_tbi_cases=self.new_tbi_cases,
            new_active_cases=self.new_active_cases,
            beta=self.beta,
            tb_deaths=self.tb_deaths,
        )

    def finalize(self, directory: Optional[Path] = None, tag: str = "") -> SimulationResult:
        """
        Check the population, write the daily and weekly tables, and return the run result.

        Raises:

            InvariantViolation: If the location indices no longer match the agents. Nothing is written.
        """

        self.population.check_invariants()

        directory = Path(directory if directory is not None else self.config.output_dir)
        mode = "calib" if self.config.mode == "calibration" else "sim"
        stem = f"{mode}_beta{self.beta:.3f}{result_suffix(tag)}"

        result = self.result()
        result.files["disease_states"] = write_table(result.disease_states, directory / f"disease_states_{stem}.csv")
        result.files["weekly_incidence"] = write_table(result.weekly_incidence, directory / f"weekly_incidence_{stem}.csv")

        if self.verbose:
            click.echo(f"Disease states saved to: {result.files['disease_states']}")
            click.echo(f"Weekly incidence saved to: {result.files['weekly_incidence']}")
            click.echo(f"Total new infections: {self.total_infections:,}")
            click.echo(f"New active TB cases: {self.new_active_cases:,}")

        return result


def transmission_update(model: TBModel, tick: int) -> None:
    """Workplace and school contacts, then household contacts, each for half a timestep."""
    population = model.population
    half = model.config.timestep / 2
    factor = model.config.infection_factor

    new_tbi = 0
    for location, index in ((Location.WORK, population.workplaces), (Location.SCHOOL, population.schools), (Location.HOME, population.households)):
        for location_id in index:
            new_tbi += contacts(population, location, location_id, half, model.beta, factor, model.prng)

    model._step["new_tbi"] = new_tbi

    return


def screening_update(model: TBModel, tick: int) -> None:
    # tick + 1 is the date's 1-based position in the run
    if (tick + 1) % model.screening_interval == 0:
        screen_household_contacts(model.population, model.config, model.prng)

    return


def disease_update(model: TBModel, tick: int) -> None:
    population = model.population

    population.recompute_counters()
    active_before = population.active_count

    for agent in population.agents.values():
        if advance_disease_state(agent, model.config.timestep, model.config, model.prng):
            model._step["tb_deaths"].append(agent.id)

    population.recompute_counters()
    model._step["new_active"] = max(0, population.active_count - active_before)

    return


def demographics_update(model: TBModel, tick: int) -> None:
    changes = demographics.update(
        model.population, model.dates[tick], model.config.timestep, model.config, model.prng, tb_deaths=model._step["tb_deaths"]
    )
    model.tb_deaths += changes["tb_deaths"]

    return


def report_update(model: TBModel, tick: int) -> None:
    model.population.recompute_counters()
    model._record(tick)

    model._weekly[week_key(model.dates[tick])] += model._step["new_active"]

    model.total_infections += model._step["new_tbi"]
    model.new_tbi_cases += model._step["new_tbi"]
    model.new_active_cases += model._step["new_active"]

    return


def run_simulation(config, beta: Optional[float] = None, tag: str = "", inputs: Optional[SimulationInputs] = None, write: bool = True) -> SimulationResult:
    """
    Run one complete simulation.

    Parameters:

        config (Config): Validated configuration; ``mode`` selects the date range.
        beta (float, optional): Transmission rate, ``config.beta`` if not given.
        tag (str): Appended to output file names.
        inputs (SimulationInputs, optional): Pre-loaded input tables, read from the configured paths if not given.
        write (bool): Write the daily and weekly tables to ``config.output_dir``.

    Returns:

        SimulationResult: Daily and weekly tables and run totals.
    """

    inputs = inputs if inputs is not None else load_inputs(config)

    model = TBModel(config, beta)
    if model.verbose:
        click.echo(f"Starting simulation from {model.dates[0]} to {model.dates[-1]} with beta={model.beta}")
    model.initialize(inputs)
    model.run()

    if write:
        return model.finalize(tag=tag)

    model.population.check_invariants()
    return model.result()


__all__ = [
    "DAILY_COLUMNS",
    "WEEKLY_COLUMNS",
    "SimulationInputs",
    "SimulationResult",
    "TBModel",
    "date_range",
    "load_inputs",
    "run_simulation",
    "week_key",
]
