"""Injected random sources for the simulators.

A random source is any zero-argument callable returning floats in [0, 1).
A factory maps a run index to a fresh, independent source so Monte Carlo
runs never share generator state.
"""

import hashlib
import logging
from collections.abc import Callable, Iterable

import numpy as np

logger = logging.getLogger(__name__)

RandomSource = Callable[[], float]
RandomSourceFactory = Callable[[int], RandomSource]

BLOCK_SIZE = 256


def stable_seed(key: str) -> int:
    """Stable integer seed from a string (hashlib-based, not session-dependent hash())."""
    return int(hashlib.sha256(key.encode()).hexdigest(), 16) % (2**63)


class SequenceRandomSource:
    """Replays a fixed list of unit values; raises IndexError when exhausted."""

    def __init__(self, values: Iterable[float]):
        self._values = [float(v) for v in values]
        self._pos = 0

    def __call__(self) -> float:
        if self._pos >= len(self._values):
            raise IndexError(
                f"SequenceRandomSource exhausted after {len(self._values)} values"
            )
        value = self._values[self._pos]
        self._pos += 1
        return value

    @property
    def remaining(self) -> int:
        return len(self._values) - self._pos


class GeneratorRandomSource:
    """Buffered wrapper around a numpy Generator."""

    def __init__(self, rng: np.random.Generator, block_size: int = BLOCK_SIZE):
        self._rng = rng
        self._block_size = block_size
        self._buffer = np.empty(0)
        self._pos = 0

    def __call__(self) -> float:
        if self._pos >= self._buffer.size:
            self._buffer = self._rng.random(self._block_size)
            self._pos = 0
        value = float(self._buffer[self._pos])
        self._pos += 1
        return value


class SeededRandomSourceFactory:
    """One independent numpy stream per run index, derived from a root seed.

    Child streams are keyed by run index through ``SeedSequence.spawn_key``,
    so run ``i`` draws the same values no matter which other runs exist or in
    which order (or process) they execute. Instances are picklable.
    """

    def __init__(self, seed: int | str | None = None):
        if isinstance(seed, str):
            seed = stable_seed(seed)
        self.entropy = np.random.SeedSequence(seed).entropy

    def __call__(self, run_index: int) -> RandomSource:
        child = np.random.SeedSequence(self.entropy, spawn_key=(run_index,))
        return GeneratorRandomSource(np.random.default_rng(child))

    def __repr__(self) -> str:
        return f"SeededRandomSourceFactory(entropy={self.entropy})"
