"""Grid search over the transmission rate against reference weekly incidence.

Every candidate beta runs the full simulation with the same seed, so candidates
differ only in beta. The objective is the RMSE between simulated and reference
weekly incidence over the (Year, Week) rows present in both tables.
"""

import concurrent.futures
import math
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Dict
from typing import List
from typing import Optional

import click
import numpy as np
import pandas as pd
from tqdm import tqdm

from tbsim.errors import DataFormatError
from tbsim.io import read_reference_incidence
from tbsim.io import result_suffix
from tbsim.io import write_table
from tbsim.simulation import SimulationInputs
from tbsim.simulation import SimulationResult
from tbsim.simulation import date_range
from tbsim.simulation import load_inputs
from tbsim.simulation import run_simulation
from tbsim.simulation import week_key

SUMMARY_COLUMNS = ("Beta", "RMSE")


@dataclass
class CalibrationResult:
    best_beta: float
    best_rmse: float
    summary: pd.DataFrame
    results: Dict[float, SimulationResult] = field(default_factory=dict)
    files: Dict[str, Path] = field(default_factory=dict)


def beta_grid(minimum: float, maximum: float, step: float) -> List[float]:
    """
    Candidate betas from ``minimum`` to ``maximum`` inclusive, ``step`` apart.

    Values are rounded to 10 decimal places so that 0.1 + 0.1 lands on 0.2.

    Raises:

        ValueError: If ``step`` is not positive.
    """

    if step <= 0:
        raise ValueError(f"Beta grid step must be > 0, got {step}")
    if maximum < minimum:
        return []

    count = math.floor((maximum - minimum) / step + 1e-9) + 1

    return [round(minimum + i * step, 10) for i in range(count)]


def calculate_rmse(simulated: pd.DataFrame, reference: pd.DataFrame) -> float:
    """
    Root-mean-squared error between ``Incidence`` and ``Reference`` over shared (Year, Week) rows.

    Parameters:

        simulated (pd.DataFrame): Year, Week and Incidence columns.
        reference (pd.DataFrame): Year, Week and Reference columns.

    Returns:

        float: The RMSE, or NaN if the tables share no (Year, Week) rows.
    """

    merged = simulated.merge(reference, on=["Year", "Week"], how="inner")
    if merged.empty:
        return math.nan

    errors = merged["Incidence"].to_numpy(dtype=np.float64) - merged["Reference"].to_numpy(dtype=np.float64)

    return float(np.sqrt(np.mean(errors**2)))


def select_best(betas: List[float], rmses: List[float]):
    """
    Pick the beta with the lowest RMSE, the first in grid order on a tie.

    Candidates whose RMSE is NaN are never selected.

    Raises:

        DataFormatError: If no candidate has a finite RMSE.
    """

    best = None
    for beta, rmse in zip(betas, rmses):
        if math.isnan(rmse):
            continue
        if best is None or rmse < best[1]:
            best = (beta, rmse)

    if best is None:
        raise DataFormatError("Calibration reference shares no (Year, Week) rows with the simulated incidence")

    return best


def check_overlap(config, reference: pd.DataFrame) -> None:
    """
    Check that the reference covers at least one (Year, Week) bucket of the run's dates.

    Every candidate runs over the same dates, so this is checked once before any run.

    Raises:

        DataFormatError: If the reference shares no (Year, Week) bucket with the run.
    """

    simulated = {week_key(day) for day in date_range(config.start_date, config.end_date, config.timestep)}
    referenced = {(int(year), int(week)) for year, week in zip(reference["Year"], reference["Week"])}
    if not simulated & referenced:
        raise DataFormatError(
            f"Calibration reference '{config.calibration_incidence_data_path}' shares no (Year, Week) rows "
            f"with {config.start_date} to {config.end_date}"
        )

    return


def _evaluate(config, beta: float, tag: str, inputs: SimulationInputs, reference: pd.DataFrame):
    result = run_simulation(config, beta=beta, tag=tag, inputs=inputs)
    return result, calculate_rmse(result.weekly_incidence, reference)


def run_calibration(config, tag: str = "", workers: int = 1, inputs: Optional[SimulationInputs] = None) -> CalibrationResult:
    """
    Run the simulation for every beta in ``config.beta_calibration_range`` and keep the best.

    Parameters:

        config (Config): Validated configuration, normally with ``mode == "calibration"``.
        tag (str): Appended to every output file name.
        workers (int): Number of worker processes; 1 runs the candidates in this process.
        inputs (SimulationInputs, optional): Pre-loaded input tables.

    Returns:

        CalibrationResult: Best beta and RMSE, the (Beta, RMSE) table, and each candidate's run.
    """

    reference = read_reference_incidence(config.calibration_incidence_data_path)
    check_overlap(config, reference)
    inputs = inputs if inputs is not None else load_inputs(config)
    betas = beta_grid(*config.beta_calibration_range)
    if not betas:
        raise DataFormatError(f"Beta calibration range {config.beta_calibration_range} has no candidates")

    if config.verbose:
        click.echo(f"Starting calibration over {len(betas)} beta values ({betas[0]} to {betas[-1]})")

    evaluated = {}
    if workers > 1:
        with concurrent.futures.ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(_evaluate, config, beta, tag, inputs, reference): beta for beta in betas}
            for future in tqdm(concurrent.futures.as_completed(futures), total=len(futures), desc="Calibrating", disable=not config.verbose):
                evaluated[futures[future]] = future.result()
    else:
        for beta in tqdm(betas, desc="Calibrating", disable=not config.verbose):
            evaluated[beta] = _evaluate(config, beta, tag, inputs, reference)

    # reduce in grid order regardless of completion order
    results = {beta: evaluated[beta][0] for beta in betas}
    rmses = [evaluated[beta][1] for beta in betas]
    for beta, rmse in zip(betas, rmses):
        if math.isnan(rmse):
            click.echo(f"WARNING: beta {beta} shares no weeks with the reference incidence", err=True)
        elif config.verbose:
            click.echo(f"Beta: {beta}, RMSE: {rmse}")

    best_beta, best_rmse = select_best(betas, rmses)

    summary = pd.DataFrame({"Beta": betas, "RMSE": rmses}, columns=SUMMARY_COLUMNS)
    directory = Path(config.output_dir)
    suffix = result_suffix(tag)
    files = {"summary": write_table(summary, directory / f"calibration_summary{suffix}.csv")}
    files["best_beta"] = directory / f"best_beta{suffix}.txt"
    files["best_beta"].write_text(f"Best beta: {best_beta}\nRMSE: {best_rmse}\n")

    if config.verbose:
        click.echo(f"Best beta value: {best_beta} (RMSE: {best_rmse})")
        click.echo(f"Calibration summary saved to: {files['summary']}")

    return CalibrationResult(best_beta=best_beta, best_rmse=best_rmse, summary=summary, results=results, files=files)


__all__ = [
    "CalibrationResult",
    "beta_grid",
    "calculate_rmse",
    "check_overlap",
    "run_calibration",
    "select_best",
]
