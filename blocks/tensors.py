"""
Tensor Blocks

Array-valued blocks in PyTorch layout (channels first, no batch axis):

- ImageTensor(ndim, nchannels):    (nchannels, *spatial), len(spatial) == ndim
- KeypointTensor(ndim, sz):        (*sz, ndim) keypoint coordinates
- OneHotTensor(ndim, classes):     (len(classes), *spatial) one-hot encoding
- OneHotTensorMulti(ndim, classes): same layout, multi-hot encoding

`ndim == 0` one-hot tensors are plain class-probability vectors
(classification targets); `ndim == N` ones are dense N-d maps
(segmentation targets).
"""

from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from .block import Block, as_array, _title
from .invariants import BooleanInvariant, SequenceInvariant

# Spatial size per axis of mocked observations
MOCK_SIZE = 16


def _shape_invariant(block, expected, obsname, blockname, extra=()):
    """Shared array/ndim/shape/dtype steps for all tensor blocks."""
    steps = [
        BooleanInvariant(
            lambda obs: as_array(obs) is not None,
            name=f"`{obsname}` should be an array",
            messagefn=lambda obs: (
                f"`{obsname}` should be a numpy array or torch tensor, instead "
                f"got type `{type(obs).__name__}`."
            ),
        ),
        BooleanInvariant(
            lambda obs: as_array(obs).ndim == len(expected),
            name=f"`{obsname}` should have {len(expected)} dimensions",
            messagefn=lambda obs: (
                f"Expected {len(expected)} dimensions, found {as_array(obs).ndim} "
                f"(shape {tuple(as_array(obs).shape)})."
            ),
        ),
        BooleanInvariant(
            lambda obs: all(e is None or e == s for e, s in zip(expected, as_array(obs).shape)),
            name=f"`{obsname}` should have shape {_fmt_shape(expected)}",
            messagefn=lambda obs: f"Instead, got shape {tuple(as_array(obs).shape)}.",
        ),
        BooleanInvariant(
            lambda obs: as_array(obs).dtype.kind in "biuf",
            name=f"elements of `{obsname}` should be real numbers",
            messagefn=lambda obs: f"Found element type `{as_array(obs).dtype}`.",
        ),
    ]
    return SequenceInvariant(steps + list(extra), _title(block, blockname, obsname))


def _fmt_shape(expected) -> str:
    return "(" + ", ".join("*" if e is None else str(e) for e in expected) + ")"


@dataclass(frozen=True)
class ImageTensor(Block):
    """
    Block for an `ndim`-dimensional image with `nchannels` channels,
    stored channels first. Spatial sizes are free.
    """

    ndim: int
    nchannels: int = 3

    def _expected(self):
        return (self.nchannels,) + (None,) * self.ndim

    def checkblock(self, obs) -> bool:
        return self.invariant().check(obs).passed

    def mockblock(self) -> np.ndarray:
        shape = (self.nchannels,) + (MOCK_SIZE,) * self.ndim
        return np.random.rand(*shape).astype(np.float32)

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return _shape_invariant(self, self._expected(), obsname, blockname)

    def summary(self) -> str:
        return f"ImageTensor[{self.ndim}]"


@dataclass(frozen=True)
class KeypointTensor(Block):
    """
    Block for `prod(sz)` keypoints in `ndim` dimensions; observations have
    shape `(*sz, ndim)`.
    """

    ndim: int
    sz: Tuple[int, ...]

    def __post_init__(self):
        sz = (self.sz,) if isinstance(self.sz, int) else tuple(self.sz)
        object.__setattr__(self, 'sz', sz)

    def _expected(self):
        return self.sz + (self.ndim,)

    def checkblock(self, obs) -> bool:
        return self.invariant().check(obs).passed

    def mockblock(self) -> np.ndarray:
        return np.random.rand(*self._expected()).astype(np.float32)

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return _shape_invariant(self, self._expected(), obsname, blockname)

    def summary(self) -> str:
        return f"KeypointTensor[{self.ndim}]"


@dataclass(frozen=True)
class OneHotTensor(Block):
    """
    One-hot encoded categorical data: a probability vector over `classes`
    per spatial location. Values must lie in [0, 1].
    """

    ndim: int
    classes: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, 'classes', tuple(self.classes))

    def _expected(self):
        return (len(self.classes),) + (None,) * self.ndim

    def _value_check(self, obsname):
        return BooleanInvariant(
            lambda obs: bool(np.all((as_array(obs) >= 0) & (as_array(obs) <= 1))),
            name=f"values of `{obsname}` should be in [0, 1]",
            messagefn=lambda obs: (
                f"Found values in [{as_array(obs).min()}, {as_array(obs).max()}]."
            ),
        )

    def checkblock(self, obs) -> bool:
        return self.invariant().check(obs).passed

    def mockblock(self) -> np.ndarray:
        nclasses = len(self.classes)
        spatial = (MOCK_SIZE,) * self.ndim
        idxs = np.random.randint(nclasses, size=spatial)
        # (*spatial, C) -> (C, *spatial)
        onehot = np.eye(nclasses, dtype=np.float32)[idxs]
        return np.moveaxis(onehot, -1, 0) if self.ndim > 0 else onehot

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return _shape_invariant(
            self, self._expected(), obsname, blockname, extra=[self._value_check(obsname)])

    def summary(self) -> str:
        return f"OneHotTensor[{self.ndim}]"


@dataclass(frozen=True)
class OneHotTensorMulti(Block):
    """
    Multi-hot encoded categorical data: every entry is 0 or 1 and any
    number of classes may be active at a location.
    """

    ndim: int
    classes: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, 'classes', tuple(self.classes))

    def _expected(self):
        return (len(self.classes),) + (None,) * self.ndim

    def checkblock(self, obs) -> bool:
        return self.invariant().check(obs).passed

    def mockblock(self) -> np.ndarray:
        shape = (len(self.classes),) + (MOCK_SIZE,) * self.ndim
        return np.random.randint(0, 2, size=shape).astype(np.float32)

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        binary = BooleanInvariant(
            lambda obs: bool(np.all((as_array(obs) == 0) | (as_array(obs) == 1))),
            name=f"values of `{obsname}` should be 0 or 1",
            messagefn=lambda obs: "Found values other than 0 and 1.",
        )
        return _shape_invariant(self, self._expected(), obsname, blockname, extra=[binary])

    def summary(self) -> str:
        return f"OneHotTensorMulti[{self.ndim}]"
