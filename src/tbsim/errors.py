"""Exception types raised by the TB simulator."""


class TBSimError(Exception):
    """Base class for all simulator errors."""


class ConfigurationError(TBSimError, ValueError):
    """A required configuration key is missing or a value is malformed."""


class DataFormatError(TBSimError, ValueError):
    """An input table is missing a required column or has unusable values."""


class AgeBucketNotFound(TBSimError, LookupError):
    """No demographic age bucket matches an agent's age.

    Recovered locally: the agent is skipped for that demographic process.
    """


class InvariantViolation(TBSimError, RuntimeError):
    """The agent map and the location indices have fallen out of sync."""
