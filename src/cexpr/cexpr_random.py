"""
Pseudo-random state shared by the ``urand``, ``nrand`` and ``rands`` built-ins.

One `RandomState` belongs to an evaluation session (an `Equation`, a
`ScriptParser` or a REPL) and every random node evaluated in that session
draws from it, so reseeding with ``rands(seed)`` affects all later draws.
"""

import math

import numpy as np


class RandomState:
    """Uniform and normal generator with a Box-Muller pair cache.

    Normal deviates are produced two at a time from one pair of uniform
    draws; the second one is cached and returned by the following call.

    Attributes:
        seed (int | None): The last seed applied, or None for entropy seeding.
    """

    def __init__(self, seed: int | None = None) -> None:
        self.seed: int | None = None
        self._rng = np.random.default_rng()
        self._cached: float | None = None
        self.reseed(seed)

    def reseed(self, seed: int | None) -> None:
        """Restarts the generator and drops any cached normal deviate."""
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self._cached = None

    def uniform(self) -> float:
        """A uniform draw in ``[0, 1)``."""
        return float(self._rng.random())

    def normal(self) -> float:
        """A standard normal deviate (mean 0, sigma 1)."""
        if self._cached is not None:
            value, self._cached = self._cached, None
            return value
        u = 1.0 - self.uniform()  # (0, 1], keeps log() finite
        v = self.uniform()
        radius = math.sqrt(-2.0 * math.log(u))
        self._cached = radius * math.cos(2.0 * math.pi * v)
        return radius * math.sin(2.0 * math.pi * v)


def seed_from_value(value: float) -> int:
    """Converts an evaluated ``rands()`` argument into an unsigned 32-bit seed."""
    if not math.isfinite(value):
        return 0
    return int(value) % 2**32
