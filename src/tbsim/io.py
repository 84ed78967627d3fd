"""Reading input tables and writing result tables.

All readers check for the columns the simulator needs and raise DataFormatError
before any simulation work starts.
"""

from pathlib import Path

import pandas as pd

from tbsim.demographics import FERTILITY_COLUMNS
from tbsim.demographics import MORTALITY_COLUMNS
from tbsim.demographics import SEX_RATIO_COLUMNS
from tbsim.demographics import DemographicTables
from tbsim.errors import DataFormatError
from tbsim.population import SYNTHETIC_COLUMNS

REFERENCE_COLUMNS = ("year", "week", "incidence")


def _read_csv(path, columns, name: str, dtype=None) -> pd.DataFrame:
    path = Path(path)
    if not path.is_file():
        raise DataFormatError(f"{name} file not found: '{path}'")

    table = pd.read_csv(path, dtype=dtype)
    missing = [column for column in columns if column not in table.columns]
    if missing:
        raise DataFormatError(f"{name} file '{path}' is missing column(s): {', '.join(missing)}")

    return table


def read_synthetic_population(path) -> pd.DataFrame:
    """Read the synthetic population; missing workplace/school ids become 0."""
    table = _read_csv(path, SYNTHETIC_COLUMNS, "Synthetic population", dtype={"SexLabel": str})
    table["WorkPlaceID"] = table["WorkPlaceID"].fillna(0).astype("int64")
    table["SchoolID"] = table["SchoolID"].fillna(0).astype("int64")

    return table


def read_demographic_tables(fertility_path, mortality_path, sex_ratio_path) -> DemographicTables:
    """Read the fertility, mortality and sex-ratio-at-birth tables."""
    fertility = _read_csv(fertility_path, FERTILITY_COLUMNS, "Fertility", dtype={"Age group": str})
    mortality = _read_csv(mortality_path, MORTALITY_COLUMNS, "Mortality", dtype={"Age group": str})
    sex_ratio = _read_csv(sex_ratio_path, SEX_RATIO_COLUMNS, "Sex ratio")

    return DemographicTables(fertility, mortality, sex_ratio)


def read_reference_incidence(path) -> pd.DataFrame:
    """
    Read the calibration reference incidence.

    The file must have ``year``, ``week`` and ``incidence`` columns; they are returned
    renamed to ``Year``, ``Week`` and ``Reference``.
    """

    table = _read_csv(path, REFERENCE_COLUMNS, "Calibration reference")

    return table.rename(columns={"year": "Year", "week": "Week", "incidence": "Reference"})


def write_table(table: pd.DataFrame, path) -> Path:
    """Write a result table as CSV, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, index=False)

    return path


def result_suffix(tag: str) -> str:
    return f"_{tag}" if tag else ""
