import unittest

import numpy as np

from tbsim.random import DEFAULT_SEED
from tbsim.random import get_seed
from tbsim.random import seed


class TestRandomSeed(unittest.TestCase):
    def test_prng_seed(self):
        """Test that the same seed reproduces the same stream."""
        prng = seed(20241009)
        integers1 = prng.integers(0, 100, 10)
        floats1 = prng.random(10)
        prng = seed(20241009)
        integers2 = prng.integers(0, 100, 10)
        floats2 = prng.random(10)

        assert np.array_equal(integers1, integers2)
        assert np.array_equal(floats1, floats2)

        return

    def test_different_seeds(self):
        assert not np.array_equal(seed(1).random(10), seed(2).random(10))

        return

    def test_get_seed(self):
        seed(20241009)
        assert get_seed() == 20241009
        seed()
        assert get_seed() == DEFAULT_SEED

        return


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
