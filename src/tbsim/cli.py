"""
Module that contains the command line apps.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -mtbsim` python will execute
    ``__main__.py`` as a script. That means there will not be any
    ``tbsim.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there"s no ``tbsim.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/
"""

import click

from tbsim.analysis import plot_results
from tbsim.analysis import summarize_results
from tbsim.calibration import run_calibration
from tbsim.config import MODES
from tbsim.config import load_config
from tbsim.errors import TBSimError
from tbsim.simulation import run_simulation
from tbsim.synthetic import setup_test_environment


@click.command()
@click.option("--mode", type=click.Choice(MODES), default="simulation", show_default=True, help="Run a single simulation or a beta calibration.")
@click.option("--config", "config_path", type=click.Path(), default="config/config.json", show_default=True, help="Path to the JSON configuration file.")
@click.option("--tag", default="", help="Tag appended to output file names.")
@click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True, help="Worker processes for calibration.")
@click.option("--verbose/--quiet", default=None, help="Override the configuration's verbose setting.")
def main(mode, config_path, tag, workers, verbose):
    """Agent-based tuberculosis transmission simulator."""
    try:
        config = load_config(config_path)
        config <<= {"mode": mode}
        if verbose is not None:
            config <<= {"verbose": verbose}

        if config.verbose:
            click.echo(f"Loaded configuration from: {config_path}")

        if mode == "calibration":
            calibration = run_calibration(config, tag=tag, workers=workers)
            click.echo(f"Best beta value: {calibration.best_beta} (RMSE: {calibration.best_rmse})")
        else:
            result = run_simulation(config, tag=tag)
            click.echo(f"Simulation completed with beta={result.beta}")
            for name, path in result.files.items():
                click.echo(f"{name}: {path}")
    except TBSimError as e:
        raise click.ClickException(str(e)) from e

    return


@click.command()
@click.argument("result_csv", type=click.Path(exists=True, dir_okay=False))
@click.option("--plot", "plot_path", type=click.Path(dir_okay=False), default=None, help="Also save a plot of the results to this file.")
def summarize(result_csv, plot_path):
    """Summarize a disease-states or weekly-incidence RESULT_CSV."""
    try:
        summarize_results(result_csv)
        if plot_path:
            plot_results(result_csv, plot_path)
    except TBSimError as e:
        raise click.ClickException(str(e)) from e

    return


@click.command()
@click.argument("output_dir", type=click.Path(file_okay=False))
@click.option("--agents", type=click.IntRange(min=1), default=1000, show_default=True, help="Number of synthetic agents.")
def synth(output_dir, agents):
    """Generate synthetic input tables and a matching config.json in OUTPUT_DIR."""
    paths = setup_test_environment(output_dir, num_agents=agents)
    for name, path in paths.items():
        click.echo(f"{name}: {path}")

    return
