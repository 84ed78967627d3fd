__version__ = "0.1.0"

from .calibration import run_calibration
from .config import Config
from .config import load_config
from .population import Population
from .simulation import TBModel
from .simulation import run_simulation

__all__ = [
    "Config",
    "Population",
    "TBModel",
    "__version__",
    "load_config",
    "run_calibration",
    "run_simulation",
]
