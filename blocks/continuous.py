"""
Continuous Block

A fixed-length vector of numbers, e.g. regression targets or a row of
continuous features.
"""

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .block import Block, is_vector, all_numbers, element_type, _title
from .invariants import BooleanInvariant, SequenceInvariant


@dataclass(frozen=True)
class Continuous(Block):
    """
    Block for collections of numbers. `obs` is valid if it is a
    one-dimensional sequence of `size` numbers.

    Examples:
        >>> block = Continuous(5)
        >>> block.checkblock([0, 0, 0, 0, 0])
        True
        >>> block.checkblock([5])
        False
    """

    size: int

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"Continuous size must be >= 0, got {self.size}")

    def checkblock(self, obs) -> bool:
        return is_vector(obs) and len(obs) == self.size and all_numbers(obs)

    def mockblock(self) -> np.ndarray:
        return np.random.rand(self.size)

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return SequenceInvariant(
            [
                BooleanInvariant(
                    is_vector,
                    name=f"`{obsname}` should be a vector",
                    messagefn=lambda obs: (
                        f"`{obsname}` should be a one-dimensional sequence, instead "
                        f"got type `{type(obs).__name__}`."
                    ),
                ),
                BooleanInvariant(
                    lambda obs: len(obs) == self.size,
                    name=f"len(`{obsname}`) should be {self.size}",
                    messagefn=lambda obs: (
                        f"`{obsname}` should have {self.size} features, instead "
                        f"found a vector with {len(obs)} features."
                    ),
                ),
                BooleanInvariant(
                    all_numbers,
                    name=f"elements of `{obsname}` should be numbers",
                    messagefn=lambda obs: (
                        f"Found a non-numerical element type `{element_type(obs)}`."
                    ),
                ),
            ],
            _title(self, blockname, obsname),
        )

    @classmethod
    def setup(cls, data: Iterable, **kwargs) -> "Continuous":
        """Infer `size` from the observations; all must have the same length."""
        sizes = {len(obs) for obs in data}
        if len(sizes) != 1:
            raise ValueError(
                f"Cannot set up `Continuous`: observations have lengths {sorted(sizes)}"
            )
        return cls(sizes.pop())

    def summary(self) -> str:
        return f"Continuous({self.size})"
