"""
Categorical Label Blocks

- Label: a single class out of `classes`
- LabelMulti: any subset of `classes` (multi-label setting)

Both keep `classes` as an ordered tuple. `setup` builds it from a data
scan in first-occurrence order, so equal input order gives equal blocks.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Tuple

import numpy as np
import torch

from .block import Block, is_vector, _title
from .invariants import MessageInvariant, SequenceInvariant


def _limited(classes: Tuple, limit: int = 10) -> str:
    shown = ", ".join(repr(c) for c in classes[:limit])
    if len(classes) > limit:
        shown += f", ... ({len(classes) - limit} more)"
    return f"[{shown}]"


def _is_scalar_like(obs) -> bool:
    """Arrays with dimensions cannot be labels (and would compare elementwise)."""
    return not (isinstance(obs, (np.ndarray, torch.Tensor)) and obs.ndim > 0)


def _unique(values: Iterable) -> Tuple:
    return tuple(dict.fromkeys(values))


def _eltype(classes: Tuple) -> str:
    kinds = sorted({type(c).__name__ for c in classes})
    if not kinds:
        return "Any"
    return kinds[0] if len(kinds) == 1 else "Union[" + ", ".join(kinds) + "]"


@dataclass(frozen=True)
class Label(Block):
    """
    Block for a categorical label in a single-class context.
    `obs` is valid for `Label(classes)` if `obs in classes`.

    See `LabelMulti` for the multi-class setting where an observation can
    belong to multiple classes.

    Examples:
        >>> block = Label(["cat", "dog"])
        >>> block.checkblock("cat"), block.checkblock("horsey")
        (True, False)
        >>> setup(Label, ["cat", "dog", "dog", "cat"]).classes
        ('cat', 'dog')
    """

    classes: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, 'classes', tuple(self.classes))

    def checkblock(self, obs) -> bool:
        return _is_scalar_like(obs) and obs in self.classes

    def mockblock(self):
        return self.classes[np.random.randint(len(self.classes))]

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        def fn(obs):
            if not self.checkblock(obs):
                return f"Instead, got invalid value `{obs!r}`."
            return None

        return MessageInvariant(
            _title(self, blockname, obsname),
            fn,
            description=(
                f"`{obsname}` should be a valid label, i.e. one of "
                f"`{_limited(self.classes)}`."
            ),
        )

    @classmethod
    def setup(cls, data: Iterable, **kwargs) -> "Label":
        return cls(_unique(data))

    def summary(self) -> str:
        return f"Label[{_eltype(self.classes)}]"


@dataclass(frozen=True)
class LabelMulti(Block):
    """
    Block for a categorical label in a multi-class context where several
    labels can be associated with one input. Each label must be in
    `classes`. For `LabelMulti([1, 2, 3])`, `[1, 2]` is valid, unlike
    `[0, 2]` (unknown label) or `1` (not a sequence of labels).

    Examples:
        >>> block = LabelMulti(["cat", "dog", "person"])
        >>> block.checkblock(["cat", "person"]), block.checkblock([])
        (True, True)
        >>> block.checkblock("cat")
        False
    """

    classes: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, 'classes', tuple(self.classes))

    def checkblock(self, obs) -> bool:
        return is_vector(obs) and all(
            _is_scalar_like(x) and x in self.classes for x in _elements(obs))

    def mockblock(self) -> list:
        n = len(self.classes)
        if n == 0:
            return []
        k = np.random.randint(1, n + 1)
        idxs = sorted(np.random.choice(n, size=k, replace=False))
        return [self.classes[i] for i in idxs]

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        def check_type(obs):
            if not is_vector(obs):
                return f"Instead, got invalid type `{type(obs).__name__}`."
            return None

        def check_members(obs):
            unknown = _unique(
                x for x in _elements(obs)
                if not (_is_scalar_like(x) and x in self.classes))
            if unknown:
                return (
                    f"`{obsname}` should contain only valid labels, i.e. "
                    f"every y in `{obsname}` is in `{blockname}.classes`, but "
                    f"`{obsname}` includes unknown labels: `{list(unknown)!r}`.\n"
                    f"Valid classes are: `{_limited(self.classes)}`"
                )
            return None

        return SequenceInvariant(
            [
                MessageInvariant(
                    f"`{obsname}` is a sequence",
                    check_type,
                    description=f"`{obsname}` should be a list, tuple or 1-d array.",
                ),
                MessageInvariant("All elements are valid labels", check_members),
            ],
            _title(self, blockname, obsname),
        )

    @classmethod
    def setup(cls, data: Iterable, **kwargs) -> "LabelMulti":
        """
        Collect classes from either flat labels or sequences of labels.
        """
        def flatten():
            for obs in data:
                if is_vector(obs):
                    yield from _elements(obs)
                else:
                    yield obs
        return cls(_unique(flatten()))

    def summary(self) -> str:
        return f"LabelMulti[{_eltype(self.classes)}]"


def _elements(obs):
    if isinstance(obs, (np.ndarray, torch.Tensor)):
        return obs.tolist()
    return obs
