from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class DeterministicRNG:
    seed: Optional[int] = None
    _random: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._random = random.Random(self.seed)

    def choice(self, seq: Sequence[T]) -> T:
        if not seq:
            raise ValueError("choice on empty sequence")
        return self._random.choice(seq)

    def maybe(self, probability: float) -> bool:
        return self._random.random() < probability


__all__ = ["DeterministicRNG"]
