"""Generators for small, self-consistent input tables for tests and demonstrations.

All generators are deterministic: the population and incidence tables draw from
their own seeded ``numpy.random.Generator`` and the rate tables are formulas.
"""

import json
from pathlib import Path

import numpy as np
import pandas as pd

from tbsim.demographics import FERTILITY_BUCKETS
from tbsim.demographics import MORTALITY_BUCKETS
from tbsim.io import write_table

YEARS = range(2011, 2030)

AGE_RANGES = ((0, 4), (5, 17), (18, 24), (25, 34), (35, 44), (45, 54), (55, 64), (65, 74), (75, 90))
JOB_LABELS = ("Teacher", "Accountants", "Doctor", "Engineer", "Farmer", "Unemployed")

HOUSEHOLD_BASE = 600_000
WORKPLACE_BASE = 2_001_000_000_000
SCHOOL_BASE = 1_001_000_000_000
AGENT_BASE = 521_000_000_000

# births per 1000 women per year, 15-19 .. 45-49
BASE_FERTILITY = (10.5, 95.3, 125.7, 80.2, 32.1, 8.4, 1.2)

# deaths per 1000 per year, 0-4 .. 85 +
BASE_MORTALITY_TOTAL = (1.8, 0.5, 0.5, 0.7, 1.1, 1.3, 1.5, 2.0, 3.0, 4.5, 7.2, 11.0, 16.5, 26.3, 41.1, 64.2, 97.6, 202.7)
BASE_MORTALITY_MALE = (2.6, 0.6, 0.5, 0.9, 1.5, 1.7, 1.9, 2.5, 3.8, 5.9, 9.4, 14.3, 21.5, 34.2, 53.4, 83.4, 116.9, 226.2)
BASE_MORTALITY_FEMALE = (0.9, 0.4, 0.4, 0.5, 0.7, 0.9, 1.1, 1.5, 2.2, 3.1, 5.0, 7.7, 11.5, 18.4, 28.8, 45.0, 85.0, 189.3)

# aggregate rows present in published tables but matching no age bucket
EXTRA_MORTALITY_ROWS = (("All ages", 7.0, 8.3, 5.8), ("Below 1", 7.8, 12.8, 3.0), ("1-4", 0.5, 0.6, 0.4))


def create_test_population(num_agents: int = 1000, output_path="test_synthetic.csv", seed: int = 1234) -> Path:
    """
    Write a synthetic population of ``num_agents`` agents.

    Households average 4 members, workplaces 20 and schools 50. Working-age agents
    (18 to 64) get a workplace unless their job is "Unemployed"; agents aged 4 to 17
    attend a school.

    Returns:

        Path: ``output_path``.
    """

    rng = np.random.default_rng(seed)

    num_households = max(1, round(num_agents / 4))
    num_workplaces = max(1, round(num_agents / 20))
    num_schools = max(1, round(num_agents / 50))

    sexes = rng.choice(["Male", "Female"], size=num_agents)
    ranges = np.array(AGE_RANGES, dtype=np.float64)[rng.integers(len(AGE_RANGES), size=num_agents)]
    ages = ranges[:, 0] + rng.random(num_agents) * (ranges[:, 1] - ranges[:, 0])
    households = HOUSEHOLD_BASE + rng.integers(1, num_households + 1, size=num_agents)

    jobs = np.array(JOB_LABELS)[rng.integers(len(JOB_LABELS), size=num_agents)]
    working_age = (ages >= 18) & (ages < 65)
    employed = working_age & (jobs != "Unemployed")
    workplaces = np.where(employed, WORKPLACE_BASE + rng.integers(1, num_workplaces + 1, size=num_agents), 0)

    students = (ages >= 4) & (ages < 18)
    schools = np.where(students, SCHOOL_BASE + rng.integers(1, num_schools + 1, size=num_agents), 0)
    jobs = np.where(students, "Student", np.where(working_age, jobs, "Unemployed"))

    table = pd.DataFrame(
        {
            "SexLabel": sexes,
            "Age": ages,
            "HHID": households,
            "JobLabel": jobs,
            "WorkPlaceID": workplaces,
            "SchoolID": schools,
            "AgentID": AGENT_BASE + np.arange(1, num_agents + 1),
        }
    )

    return write_table(table, output_path)


def create_test_asfr_data(output_path="test_asfr.csv") -> Path:
    """Write age-specific fertility rates for 2011 to 2029, rising 1% a year from 2020's base."""
    rows = [
        (year, group, base * (1.0 + (year - 2020) * 0.01))
        for year in YEARS
        for group, base in zip(FERTILITY_BUCKETS, BASE_FERTILITY)
    ]

    return write_table(pd.DataFrame(rows, columns=["Year", "Age group", "Fertility Rate"]), output_path)


def create_test_asmr_data(output_path="test_asmr.csv") -> Path:
    """Write age- and sex-specific mortality rates for 2011 to 2029, plus aggregate rows."""
    rows = []
    for year in YEARS:
        scale = 1.0 - (year - 2020) * 0.002
        for group, total, male, female in zip(MORTALITY_BUCKETS, BASE_MORTALITY_TOTAL, BASE_MORTALITY_MALE, BASE_MORTALITY_FEMALE):
            rows.append((year, group, total * scale, male * scale, female * scale))
        rows.extend((year, *extra) for extra in EXTRA_MORTALITY_ROWS)

    return write_table(pd.DataFrame(rows, columns=["Year", "Age group", "Total", "Male", "Female"]), output_path)


def create_test_sex_ratio_data(output_path="test_sex_ratio_at_birth.csv") -> Path:
    """Write females per 1000 males at birth, 950 in 2011 rising by one a year."""
    table = pd.DataFrame({"Year": list(YEARS), "Ratio": [950.0 + (year - 2011) for year in YEARS]})

    return write_table(table, output_path)


def create_test_incidence_data(output_path="test_weekly_incidence.csv", seed: int = 1234) -> Path:
    """Write reference weekly incidence for 2021 to 2024: about 20 a week with seasonal and random variation."""
    rng = np.random.default_rng(seed)

    years = np.repeat(np.arange(2021, 2025), 53)
    weeks = np.tile(np.arange(1, 54), 4)
    seasonal = 5.0 * np.sin(2.0 * np.pi * weeks / 52.0)
    noise = rng.random(len(weeks)) * 10.0 - 5.0
    incidence = np.maximum(0, np.round(20.0 + seasonal + noise)).astype(np.int64)

    return write_table(pd.DataFrame({"year": years, "week": weeks, "incidence": incidence}), output_path)


def write_test_config(directory, paths: dict, **overrides) -> Path:
    """
    Write a complete ``config.json`` in ``directory`` pointing at the generated tables.

    Keyword arguments override individual configuration values.
    """

    directory = Path(directory)
    values = {
        "mode": "simulation",
        "beta_calibration_range": [0.01, 0.05, 0.01],
        "beta": 0.2,
        "num_simulations": 1,
        "timestep": 1.0,
        "calibration_start_date": "2021-01-01",
        "calibration_end_date": "2021-03-31",
        "simulation_start_date": "2021-01-01",
        "simulation_end_date": "2021-03-31",
        "infection_factor": 1.5,
        "initial_tbi_percentage": 30.0,
        "initial_active_tbi_percentage": 0.5,
        "men_working_percentage": 80.0,
        "women_working_percentage": 40.0,
        "screening_test_sensitivity": 0.9,
        "tpt_efficacy": 0.9,
        "treatment_success_rate": 0.85,
        "mortality_rate": 0.05,
        "treatment_failure_rate": 0.10,
        "tpt_completion_rate": 0.8,
        "synthetic_population_path": str(paths["synthetic_path"]),
        "asfr_path": str(paths["asfr_path"]),
        "asmr_path": str(paths["asmr_path"]),
        "sex_ratio_path": str(paths["sex_ratio_path"]),
        "calibration_incidence_data_path": str(paths["incidence_path"]),
        "output_dir": str(directory / "results"),
        "seed": 1234,
        "verbose": False,
    }
    values.update(overrides)

    path = directory / "config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(values, indent=4))

    return path


def setup_test_environment(directory="test_data", num_agents: int = 1000) -> dict:
    """
    Generate every input table, and a matching configuration, in ``directory``.

    Returns:

        dict: Paths keyed ``synthetic_path``, ``asfr_path``, ``asmr_path``, ``sex_ratio_path``,
        ``incidence_path`` and ``config_path``.
    """

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    paths = {
        "synthetic_path": create_test_population(num_agents, directory / "test_synthetic.csv"),
        "asfr_path": create_test_asfr_data(directory / "test_asfr.csv"),
        "asmr_path": create_test_asmr_data(directory / "test_asmr.csv"),
        "sex_ratio_path": create_test_sex_ratio_data(directory / "test_sex_ratio_at_birth.csv"),
        "incidence_path": create_test_incidence_data(directory / "test_weekly_incidence.csv"),
    }
    paths["config_path"] = write_test_config(directory, paths)

    return paths
