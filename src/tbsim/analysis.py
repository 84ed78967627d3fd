"""Summaries and plots of simulation result tables."""

from datetime import date
from datetime import timedelta
from pathlib import Path

import click
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from tbsim.agent import DiseaseState
from tbsim.errors import DataFormatError

STATE_COLUMNS = tuple(state.label for state in DiseaseState)
PREVALENCE_SCALE = 100_000


def _load(path) -> pd.DataFrame:
    path = Path(path)
    if not path.is_file():
        raise DataFormatError(f"Result file not found: '{path}'")

    return pd.read_csv(path)


def summarize_results(path, echo: bool = True) -> dict:
    """
    Summarize a disease-states or weekly-incidence result file.

    The kind of file is recognized from its columns: ``Susceptible`` for daily
    disease states, ``Incidence`` for weekly incidence.

    Raises:

        DataFormatError: If the file is missing or has neither column.
    """

    results = _load(path)
    if echo:
        click.echo(f"Summarizing results from: {path}")

    if "Susceptible" in results.columns:
        return summarize_disease_states(results, echo=echo)
    if "Incidence" in results.columns:
        return summarize_incidence(results, echo=echo)

    raise DataFormatError(f"Unknown result format in '{path}': expected a Susceptible or Incidence column")


def summarize_disease_states(disease_states: pd.DataFrame, echo: bool = True) -> dict:
    """
    Mean, minimum and maximum of each state count, total population, and active TB prevalence per 100,000.

    Returns:

        dict: ``{"kind": "disease_states", "states": {...}, "population": {...}, "prevalence": {...}}``,
        plus ``new_tbi`` and ``new_active`` totals when those columns are present.
    """

    states = {}
    for column in STATE_COLUMNS:
        values = disease_states[column]
        states[column] = {"mean": float(values.mean()), "min": int(values.min()), "max": int(values.max())}

    total = disease_states[list(STATE_COLUMNS)].sum(axis=1)
    population = {"mean": float(total.mean()), "min": int(total.min()), "max": int(total.max())}

    prevalence = disease_states["ActiveTB"] / total.replace(0, np.nan) * PREVALENCE_SCALE
    summary = {
        "kind": "disease_states",
        "states": states,
        "population": population,
        "prevalence": {"mean": float(prevalence.mean()), "min": float(prevalence.min()), "max": float(prevalence.max())},
    }

    if "NewTBI" in disease_states.columns and "NewActiveTB" in disease_states.columns:
        summary["new_tbi"] = int(disease_states["NewTBI"].sum())
        summary["new_active"] = int(disease_states["NewActiveTB"].sum())

    if echo:
        click.echo("\nDisease State Summary:")
        click.echo("-----------------------")
        for column, stats in states.items():
            click.echo(f"{column}: Mean={round(stats['mean'])}, Min={stats['min']}, Max={stats['max']}")
        click.echo(f"\nTotal Population: Mean={round(population['mean'])}, Min={population['min']}, Max={population['max']}")
        p = summary["prevalence"]
        click.echo(f"\nTB Prevalence (per 100,000): Mean={p['mean']:.1f}, Min={p['min']:.1f}, Max={p['max']:.1f}")
        if "new_tbi" in summary:
            click.echo(f"\nTotal New TBI Cases: {summary['new_tbi']}")
            click.echo(f"Total New Active TB Cases: {summary['new_active']}")

    return summary


def summarize_incidence(incidence: pd.DataFrame, echo: bool = True) -> dict:
    """
    Total, mean, maximum and minimum weekly incidence, with yearly totals when a Year column
    is present and the RMSE against a Reference column when one is present.
    """

    values = incidence["Incidence"]
    summary = {
        "kind": "incidence",
        "total": int(values.sum()),
        "mean": float(values.mean()),
        "max": int(values.max()),
        "min": int(values.min()),
    }

    if "Year" in incidence.columns:
        summary["yearly"] = {int(year): int(total) for year, total in incidence.groupby("Year")["Incidence"].sum().items()}

    if "Reference" in incidence.columns:
        errors = values.to_numpy(dtype=np.float64) - incidence["Reference"].to_numpy(dtype=np.float64)
        summary["rmse"] = float(np.sqrt(np.mean(errors**2)))

    if echo:
        click.echo("\nIncidence Summary:")
        click.echo("------------------")
        click.echo(f"Total Incidence: {summary['total']}")
        click.echo(f"Mean Weekly Incidence: {summary['mean']:.1f}")
        click.echo(f"Maximum Weekly Incidence: {summary['max']}")
        click.echo(f"Minimum Weekly Incidence: {summary['min']}")
        if "yearly" in summary:
            click.echo("\nYearly Incidence:")
            for year, total in summary["yearly"].items():
                click.echo(f"{year}: {total}")
        if "rmse" in summary:
            click.echo(f"\nRMSE: {summary['rmse']:.2f}")

    return summary


def _save(fig, output_path) -> None:
    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path)
        click.echo(f"Plot saved to: {output_path}")

    return


def plot_results(path, output_path=None):
    """Plot a disease-states or weekly-incidence result file, saving to ``output_path`` if given."""
    results = _load(path)
    if "Susceptible" in results.columns:
        return plot_disease_states(results, output_path)
    if "Incidence" in results.columns:
        return plot_incidence(results, output_path)

    raise DataFormatError(f"Unknown result format in '{path}': expected a Susceptible or Incidence column")


def plot_disease_states(disease_states: pd.DataFrame, output_path=None):
    """Line plot of the four state counts over time. Returns the matplotlib Figure."""
    dates = pd.to_datetime(disease_states["Date"])

    fig, ax = plt.subplots(figsize=(12, 6))
    for column, label in zip(STATE_COLUMNS, ("Susceptible", "TBI", "Active TB", "Treatment")):
        ax.plot(dates, disease_states[column], label=label, linewidth=2)
    ax.set_xlabel("Date")
    ax.set_ylabel("Number of Agents")
    ax.set_title("TB Disease States")
    ax.legend()
    fig.tight_layout()

    _save(fig, output_path)

    return fig


def plot_incidence(incidence: pd.DataFrame, output_path=None):
    """Weekly incidence over time, with the reference as a dashed line when present. Returns the Figure."""
    dates = [date(int(year), 1, 1) + timedelta(weeks=int(week)) for year, week in zip(incidence["Year"], incidence["Week"])]

    fig, ax = plt.subplots(figsize=(12, 6))
    ax.plot(dates, incidence["Incidence"], label="Simulated", linewidth=2)
    if "Reference" in incidence.columns:
        ax.plot(dates, incidence["Reference"], label="Reference", linestyle="--", linewidth=2)
        ax.legend()
    ax.set_xlabel("Date")
    ax.set_ylabel("Weekly Incidence")
    ax.set_title("TB Weekly Incidence")
    fig.tight_layout()

    _save(fig, output_path)

    return fig
