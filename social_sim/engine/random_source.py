from __future__ import annotations

import random
from collections.abc import Iterable
from typing import Protocol


class RandomSource(Protocol):
    def next(self) -> float:
        """Return a float in [0, 1)."""
        ...


class SeededRandomSource:
    def __init__(self, seed: int = 1337) -> None:
        self.seed = seed
        self.rng = random.Random(seed)

    def next(self) -> float:
        return self.rng.random()


class SequenceRandomSource:
    """Replays a fixed list of draws, cycling when it runs out."""

    def __init__(self, values: Iterable[float]) -> None:
        self.values = [float(value) for value in values]
        if not self.values:
            raise ValueError("sequence_random_source_needs_values")
        for value in self.values:
            if not 0.0 <= value < 1.0:
                raise ValueError(f"draw_out_of_range: {value}")
        self.index = 0

    def next(self) -> float:
        value = self.values[self.index % len(self.values)]
        self.index += 1
        return value
