"""Base class for time-stepped disease models."""

from tqdm import tqdm


class DiseaseModel:
    """Base class for all disease models.

    Subclasses provide ``initialize``, ``step`` and ``finalize``; ``run`` drives
    ``step`` once per tick with a progress bar.
    """

    def __init__(self, verbose: bool = False):
        self._tick = 0
        self.verbose = verbose
        return

    @property
    def nticks(self) -> int:
        raise NotImplementedError

    def initialize(self, *args, **kwargs) -> None:
        raise NotImplementedError

    def step(self, tick: int, pbar: tqdm) -> None:
        raise NotImplementedError

    def finalize(self, *args, **kwargs):
        raise NotImplementedError

    def run(self) -> None:
        """Step the model from its current tick to the last tick."""
        for _tick in (pbar := tqdm(range(self._tick, self.nticks), disable=not self.verbose)):
            self.step(self._tick, pbar)
            self._tick += 1
        return
