"""Simulation configuration: a property bag with validation on load.

Examples
--------
    >>> from tbsim.config import load_config
    >>> config = load_config("config/config.json")
    >>> config.beta
    0.2
    >>> config["timestep"]
    1.0
    >>> calibration = config << {"mode": "calibration"}
    >>> calibration.mode
    'calibration'
"""

import json
from datetime import date
from pathlib import Path

from tbsim.errors import ConfigurationError
from tbsim.random import DEFAULT_SEED

MODES = ("simulation", "calibration")

DATE_KEYS = (
    "calibration_start_date",
    "calibration_end_date",
    "simulation_start_date",
    "simulation_end_date",
)

FLOAT_KEYS = (
    "beta",
    "timestep",
    "infection_factor",
    "initial_tbi_percentage",
    "initial_active_tbi_percentage",
    "men_working_percentage",
    "women_working_percentage",
    "screening_test_sensitivity",
    "tpt_efficacy",
    "treatment_success_rate",
    "mortality_rate",
    "treatment_failure_rate",
    "tpt_completion_rate",
)

PATH_KEYS = (
    "synthetic_population_path",
    "asfr_path",
    "asmr_path",
    "calibration_incidence_data_path",
)

REQUIRED_KEYS = ("mode", "num_simulations", *DATE_KEYS, *FLOAT_KEYS, *PATH_KEYS)

DEFAULTS = {
    "beta_calibration_range": [0.01, 0.5, 0.01],
    "sex_ratio_path": "data/sex_ratio_at_birth.csv",
    "seed": DEFAULT_SEED,
    "output_dir": "results",
    "verbose": False,
}


class Config:
    """Configuration values with both ``.key`` and ``["key"]`` access.

    ``config << other`` returns a copy with existing keys overridden and
    ``config <<= other`` overrides in place. Overriding a key that does not
    exist raises ``ConfigurationError`` so a typo cannot silently add a new key.
    """

    def __init__(self, *bags):
        for bag in bags:
            assert isinstance(bag, (type(self), dict))
            for key, value in (bag.__dict__ if isinstance(bag, type(self)) else bag).items():
                setattr(self, key, value)

    def to_dict(self):
        """Return a plain dictionary, dates rendered as ISO 8601 strings."""
        return {key: value.isoformat() if isinstance(value, date) else value for key, value in self.__dict__.items()}

    def save(self, filename):
        Path(filename).write_text(str(self))

        return

    @staticmethod
    def load(filename):
        """Read a previously saved configuration without validation."""
        with Path(filename).open("r") as file:
            data = json.load(file)

        return Config(data)

    @property
    def start_date(self) -> date:
        """First date of the run for the configured mode."""
        return self.calibration_start_date if self.mode == "calibration" else self.simulation_start_date

    @property
    def end_date(self) -> date:
        """Last date of the run for the configured mode."""
        return self.calibration_end_date if self.mode == "calibration" else self.simulation_end_date

    def __getitem__(self, key):
        return getattr(self, key)

    def __setitem__(self, key, value):
        setattr(self, key, value)

    def __lshift__(self, other):
        result = Config(self)
        result <<= other

        return result

    def __ilshift__(self, other):
        assert isinstance(other, (type(self), dict))
        for key, value in (other.__dict__ if isinstance(other, type(self)) else other).items():
            if not hasattr(self, key):
                raise ConfigurationError(f"Cannot override missing configuration key '{key}'.")
            setattr(self, key, value)
        return self

    def __contains__(self, key):
        return key in self.__dict__

    def __len__(self):
        return len(self.__dict__)

    def __eq__(self, other):
        return isinstance(other, Config) and self.to_dict() == other.to_dict()

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), indent=4)

    def __repr__(self) -> str:
        return f"Config({self.to_dict()!s})"


def _parse_date(key, value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ConfigurationError(f"Configuration key '{key}' is not an ISO 8601 date: {value!r}") from e


def validate(values: dict) -> Config:
    """
    Check a raw configuration dictionary and convert it to a Config.

    Parameters:

        values (dict): Raw key/value pairs, e.g., as read from JSON.

    Returns:

        Config: Validated configuration with dates as ``datetime.date`` and defaults applied.

    Raises:

        ConfigurationError: If a required key is missing or a value cannot be used.
    """

    missing = [key for key in REQUIRED_KEYS if key not in values]
    if missing:
        raise ConfigurationError(f"Missing required configuration key(s): {', '.join(missing)}")

    config = Config(DEFAULTS, values)

    if config.mode not in MODES:
        raise ConfigurationError(f"Configuration 'mode' must be one of {MODES}, got {config.mode!r}")

    for key in DATE_KEYS:
        config[key] = _parse_date(key, config[key])

    for key in FLOAT_KEYS:
        try:
            config[key] = float(config[key])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Configuration key '{key}' must be numeric, got {config[key]!r}") from e

    if config.timestep <= 0:
        raise ConfigurationError(f"Configuration 'timestep' must be > 0, got {config.timestep}")

    beta_range = config.beta_calibration_range
    if not isinstance(beta_range, (list, tuple)) or len(beta_range) != 3:
        raise ConfigurationError(f"'beta_calibration_range' must be [min, max, step], got {beta_range!r}")
    config.beta_calibration_range = [float(value) for value in beta_range]
    if config.beta_calibration_range[2] <= 0:
        raise ConfigurationError("'beta_calibration_range' step must be > 0")

    for prefix in ("calibration", "simulation"):
        start, end = config[f"{prefix}_start_date"], config[f"{prefix}_end_date"]
        if start > end:
            raise ConfigurationError(f"'{prefix}_start_date' ({start}) is after '{prefix}_end_date' ({end})")

    config.num_simulations = int(config.num_simulations)
    config.seed = int(config.seed)

    return config


def load_config(path) -> Config:
    """Load and validate a JSON configuration file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: '{path}'")
    try:
        values = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file '{path}' is not valid JSON: {e}") from e

    return validate(values)
