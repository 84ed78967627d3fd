"""
Demographic dynamics: aging every step, and deaths and births on a weekly cadence.

Rates come from three read-only tables held in a DemographicTables instance:

    - fertility: Year, "Age group" ("15-19" .. "45-49"), "Fertility Rate" (births per 1000 women per year)
    - mortality: Year, "Age group" ("0-4" .. "80-84", "85 +"), Total, Male, Female (deaths per 1000 per year)
    - sex ratio: Year, Ratio (females per 1000 males at birth)

For any date the row set for the table year nearest the date's year is used; on a tie
the lower year wins. Annual rates per 1000 are converted to weekly probabilities with
``1 - (1 - rate / 1000) ** (1 / 52)``.

Agents whose age falls in no bucket of the selected rows are skipped for that process
and reported as a warning; this never aborts the run.
"""

from datetime import date

import click
import numpy as np
import pandas as pd

from tbsim.agent import Agent
from tbsim.agent import DiseaseState
from tbsim.agent import Gender
from tbsim.agent import age as age_agent
from tbsim.errors import AgeBucketNotFound
from tbsim.errors import DataFormatError

AGE_GROUP = "Age group"
FERTILITY_RATE = "Fertility Rate"

MORTALITY_BUCKETS = (
    "0-4", "5-9", "10-14", "15-19", "20-24", "25-29", "30-34", "35-39", "40-44",
    "45-49", "50-54", "55-59", "60-64", "65-69", "70-74", "75-79", "80-84", "85 +",
)  # fmt: skip

FERTILITY_BUCKETS = ("15-19", "20-24", "25-29", "30-34", "35-39", "40-44", "45-49")

REPRODUCTIVE_AGES = (18.0, 50.0)
WEEKS_PER_YEAR = 52
DAYS_PER_WEEK = 7

FERTILITY_COLUMNS = ("Year", AGE_GROUP, FERTILITY_RATE)
MORTALITY_COLUMNS = ("Year", AGE_GROUP, "Total", "Male", "Female")
SEX_RATIO_COLUMNS = ("Year", "Ratio")


def _require(table: pd.DataFrame, columns, name: str, rate_columns=(), max_rate: float = 1000.0) -> None:
    missing = [column for column in columns if column not in table.columns]
    if missing:
        raise DataFormatError(f"{name} table is missing column(s): {', '.join(missing)}")

    if table.empty:
        raise DataFormatError(f"{name} table has no rows")

    if not pd.api.types.is_integer_dtype(table["Year"]):
        raise DataFormatError(f"{name} table 'Year' column must hold integer years, got {table['Year'].dtype}")

    for column in rate_columns:
        values = table[column]
        if not pd.api.types.is_numeric_dtype(values):
            raise DataFormatError(f"{name} table '{column}' column must be numeric, got {values.dtype}")
        out_of_range = (values < 0.0) | (values > max_rate)
        if out_of_range.any():
            raise DataFormatError(
                f"{name} table '{column}' has {int(out_of_range.sum())} value(s) outside [0, {max_rate:g}], e.g., {values[out_of_range].iloc[0]}"
            )

    return


class DemographicTables:
    """Fertility, mortality and sex-ratio-at-birth tables for one run.

    Every table must have rows and integer years. Fertility and mortality rates must lie
    in [0, 1000] per 1000 and sex ratios must not be negative. Anything else raises
    DataFormatError here, before a run starts.
    """

    def __init__(self, fertility: pd.DataFrame, mortality: pd.DataFrame, sex_ratio: pd.DataFrame):
        _require(fertility, FERTILITY_COLUMNS, "Fertility", rate_columns=(FERTILITY_RATE,))
        _require(mortality, MORTALITY_COLUMNS, "Mortality", rate_columns=("Total", "Male", "Female"))
        _require(sex_ratio, SEX_RATIO_COLUMNS, "Sex ratio", rate_columns=("Ratio",), max_rate=np.inf)

        self.fertility = fertility
        self.mortality = mortality
        self.sex_ratio = sex_ratio

        return

    def mortality_rates(self, year: int) -> pd.DataFrame:
        """Mortality rows for the table year nearest ``year``."""
        return rows_for_year(self.mortality, year)

    def fertility_rates(self, year: int) -> pd.DataFrame:
        """Fertility rows for the table year nearest ``year``."""
        return rows_for_year(self.fertility, year)

    def female_birth_probability(self, year: int) -> float:
        """Probability a newborn is female, from the nearest year's females-per-1000-males ratio."""
        ratio = float(rows_for_year(self.sex_ratio, year)["Ratio"].iloc[0])
        return ratio / (1000.0 + ratio)


def nearest_year(years, year: int) -> int:
    """
    Return the value in ``years`` closest to ``year``; ties resolve to the lower year.

    Raises:

        LookupError: If ``years`` is empty.
    """

    candidates = np.unique(np.asarray(years, dtype=np.int64))  # sorted ascending
    if candidates.size == 0:
        raise LookupError("No years available for lookup")

    return int(candidates[np.argmin(np.abs(candidates - year))])


def rows_for_year(table: pd.DataFrame, year: int) -> pd.DataFrame:
    """Rows of ``table`` for the year nearest ``year``."""
    return table[table["Year"] == nearest_year(table["Year"], year)]


def mortality_bucket(age: float) -> str:
    """The 5-year mortality age group label for ``age``, "85 +" being open-ended."""
    index = min(int(age // 5), len(MORTALITY_BUCKETS) - 1)
    return MORTALITY_BUCKETS[index]


def fertility_bucket(age: float) -> str:
    """
    The 5-year reproductive age group label for ``age``.

    Raises:

        AgeBucketNotFound: If ``age`` is outside 15 to 49.
    """

    index = int(age // 5) - 3
    if not 0 <= index < len(FERTILITY_BUCKETS):
        raise AgeBucketNotFound(f"No fertility age group for age {age:.2f}")

    return FERTILITY_BUCKETS[index]


def rate_lookup(rows: pd.DataFrame, column: str) -> dict:
    """Map age group label to rate for the first row of each label."""
    rates = {}
    for label, rate in zip(rows[AGE_GROUP], rows[column]):
        rates.setdefault(str(label).strip(), float(rate))

    return rates


def weekly_probability(annual_rate_per_1000: float) -> float:
    """Convert an annual rate per 1000 to the probability of the event within one week."""
    return 1.0 - (1.0 - annual_rate_per_1000 / 1000.0) ** (1.0 / WEEKS_PER_YEAR)


def is_weekly_checkpoint(current_date: date) -> bool:
    """True on days whose day number (0001-01-01 is day 1) is a multiple of seven."""
    return current_date.toordinal() % DAYS_PER_WEEK == 0


def _warn_missing(process: str, skipped: int, year: int) -> None:
    if skipped:
        click.echo(f"WARNING: {skipped:,} agent(s) skipped in {process} for {year}: no matching age group", err=True)

    return


def process_deaths(population, current_date: date, rng: np.random.Generator) -> list:
    """
    Remove agents who die this week according to age- and gender-specific mortality.

    Returns:

        list: Ids of the agents removed.
    """

    year = current_date.year
    rows = population.demographics.mortality_rates(year)
    rates = {
        Gender.MALE: rate_lookup(rows, "Male"),
        Gender.FEMALE: rate_lookup(rows, "Female"),
    }

    deaths = []
    skipped = 0
    for agent_id, agent in population.agents.items():
        rate = rates[agent.gender].get(mortality_bucket(agent.age))
        if rate is None:
            skipped += 1
            continue

        if rng.random() < weekly_probability(rate):
            deaths.append(agent_id)

    for agent_id in deaths:
        population.remove_agent(agent_id)

    _warn_missing("mortality", skipped, year)
    if deaths and population.verbose:
        click.echo(f"{len(deaths):,} deaths processed on {current_date}")

    return deaths


def process_births(population, current_date: date, rng: np.random.Generator) -> list:
    """
    Add newborns to the households of women of reproductive age according to fertility rates.

    Returns:

        list: The newborn agents.
    """

    year = current_date.year
    rates = rate_lookup(population.demographics.fertility_rates(year), FERTILITY_RATE)
    female_probability = population.demographics.female_birth_probability(year)

    mothers = [
        agent
        for agent in population.agents.values()
        if agent.gender == Gender.FEMALE and REPRODUCTIVE_AGES[0] <= agent.age < REPRODUCTIVE_AGES[1]
    ]

    newborns = []
    skipped = 0
    for mother in mothers:
        try:
            rate = rates.get(fertility_bucket(mother.age))
        except AgeBucketNotFound:
            rate = None
        if rate is None:
            skipped += 1
            continue

        if rng.random() < weekly_probability(rate):
            gender = Gender.FEMALE if rng.random() < female_probability else Gender.MALE
            newborn = Agent(
                id=population.next_agent_id(),
                gender=gender,
                age=0.0,
                household_id=mother.household_id,
                disease_state=DiseaseState.SUSCEPTIBLE,
            )
            population.add_agent(newborn)
            population.susceptible_count += 1
            newborns.append(newborn)

    _warn_missing("fertility", skipped, year)
    if newborns and population.verbose:
        click.echo(f"{len(newborns):,} births processed on {current_date}")

    return newborns


def update(population, current_date: date, timestep: float, params, rng: np.random.Generator, tb_deaths=()) -> dict:
    """
    Apply one step of demographic change to the population.

    Agents listed in ``tb_deaths`` (deaths at the end of TB treatment signalled by the
    disease pass) are removed first. Everyone then ages by ``timestep`` days and, on weekly
    checkpoints, background deaths then births are processed. Counters are recomputed.

    Parameters:

        population (Population): The population to update.
        current_date (date): Date of the step.
        timestep (float): Step length in days.
        params: Run configuration (currently unused by the demographic processes).
        rng (numpy.random.Generator): The run's random stream.
        tb_deaths (iterable): Ids of agents to remove before aging.

    Returns:

        dict: ``{"tb_deaths": int, "deaths": int, "births": int}`` for the step.
    """

    removed = 0
    for agent_id in tb_deaths:
        if agent_id in population:
            population.remove_agent(agent_id)
            removed += 1

    for agent in population.agents.values():
        age_agent(agent, timestep)

    deaths, births = [], []
    if is_weekly_checkpoint(current_date):
        deaths = process_deaths(population, current_date, rng)
        births = process_births(population, current_date, rng)

    population.recompute_counters()

    return {"tb_deaths": removed, "deaths": len(deaths), "births": len(births)}
