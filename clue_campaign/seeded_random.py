"""
Deterministic pseudo-random source used for every campaign decision.

A linear congruential generator: cheap, portable and fully reproducible from
an integer seed. It is NOT suitable where fairness against an adversarial
player matters (e.g. physical card shuffles in tournament play).
"""
import math
import time
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")

_MULTIPLIER = 1103515245
_INCREMENT = 12345
_MASK = 0x7FFFFFFF
_MODULUS = 0x80000000


def default_seed() -> int:
    """Wall-clock seed for calls that do not ask for reproducibility."""
    return int(time.time() * 1000)


class SeededRandom:
    def __init__(self, seed: Optional[int] = None):
        if seed is None:
            seed = default_seed()
        self.seed = int(seed)
        self._state = self.seed

    def next(self) -> float:
        """Returns the next value in [0, 1)."""
        self._state = (self._state * _MULTIPLIER + _INCREMENT) & _MASK
        return self._state / _MODULUS

    def next_int(self, minimum: int, maximum: int) -> int:
        """Integer in the inclusive range [minimum, maximum]."""
        if maximum < minimum:
            raise ValueError(f"next_int called with an empty range [{minimum}, {maximum}]")
        return math.floor(self.next() * (maximum - minimum + 1)) + minimum

    def next_bool(self, probability: float = 0.5) -> bool:
        return self.next() < probability

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return items[math.floor(self.next() * len(items))]

    def pick_multiple(self, items: Sequence[T], count: int) -> List[T]:
        if count > len(items):
            raise ValueError(f"Cannot pick {count} items from a sequence of {len(items)}")
        return self.shuffle(items)[:count]

    def pick_weighted(self, items: Sequence[T], weights: Sequence[float]) -> T:
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        if len(items) != len(weights):
            raise ValueError(f"Items ({len(items)}) and weights ({len(weights)}) must have the same length")
        remaining = self.next() * sum(weights)
        for item, weight in zip(items, weights):
            remaining -= weight
            if remaining <= 0:
                return item
        return items[-1]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Fisher-Yates shuffle of a copy; the input is left untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = math.floor(self.next() * (i + 1))
            result[i], result[j] = result[j], result[i]
        return result

    def clone(self) -> "SeededRandom":
        copy = SeededRandom(self.seed)
        copy._state = self._state
        return copy
