"""
Block Base Types

A block is an immutable descriptor of what an observation looks like.
Every block implements:

- checkblock(obs) -> bool    membership test, never raises
- mockblock() -> obs         random valid observation
- invariant(...)             diagnostic predicate explaining failures
- setup(data) (classmethod)  infer block parameters from a data scan

The module-level functions below are the public entry points and also
handle tuples of blocks (a tuple of blocks describes a tuple of
observations).
"""

import numbers
from typing import Any, Iterable, Optional

import numpy as np
import torch

from .invariants import Invariant, BooleanInvariant, InvariantResult
from ..core.errors import BlockValidationError


class Block:
    """Abstract block. Concrete blocks are frozen dataclasses."""

    def checkblock(self, obs: Any) -> bool:
        raise NotImplementedError(f"checkblock is not implemented for {summary(self)}")

    def mockblock(self) -> Any:
        raise NotImplementedError(f"mockblock is not implemented for {summary(self)}")

    def invariant(self, blockname: str = "block", obsname: str = "obs") -> Invariant:
        """Fallback invariant built from `checkblock` alone."""
        return BooleanInvariant(
            self.checkblock,
            name=_title(self, blockname, obsname),
            messagefn=lambda obs: f"`{obsname}` is not a valid observation for `{summary(self)}`.",
        )

    @classmethod
    def setup(cls, data: Iterable, **kwargs) -> "Block":
        raise TypeError(f"`setup` is not defined for block type {cls.__name__}")

    def summary(self) -> str:
        return type(self).__name__


class WrapperBlock(Block):
    """
    Decorates an inner block.

    Capabilities a subclass does not override are forwarded to the inner
    block, as are attribute lookups (`wrapper.classes` reads the inner
    block's classes).
    """

    def __init__(self, block: Block):
        self.block = block

    def checkblock(self, obs: Any) -> bool:
        return self.block.checkblock(obs)

    def mockblock(self) -> Any:
        return self.block.mockblock()

    def invariant(self, blockname: str = "block", obsname: str = "obs") -> Invariant:
        return self.block.invariant(blockname=blockname, obsname=obsname)

    def summary(self) -> str:
        return f"{type(self).__name__}({summary(self.block)})"

    def __getattr__(self, name):
        if name == 'block':
            raise AttributeError(name)
        return getattr(self.block, name)

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self):
        return hash((type(self), tuple(sorted(vars(self).items()))))

    def __repr__(self):
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


class Named(WrapperBlock):
    """Attaches a name to a block, e.g. to tell two `Continuous` inputs apart."""

    def __init__(self, name: str, block: Block):
        super().__init__(block)
        self.name = name

    def summary(self) -> str:
        return f"Named({self.name!r}, {summary(self.block)})"


def wrapped(block: Block) -> Block:
    """Remove all wrapper layers from `block`."""
    while isinstance(block, WrapperBlock):
        block = block.block
    return block


# ---------------------------------------------------------------------------
# Public functions
# ---------------------------------------------------------------------------

def checkblock(block, obs) -> bool:
    """Check whether `obs` is a valid observation for `block`."""
    if isinstance(block, tuple):
        if not isinstance(obs, (tuple, list)) or len(obs) != len(block):
            return False
        return all(checkblock(b, o) for b, o in zip(block, obs))
    return bool(block.checkblock(obs))


def mockblock(block):
    """Generate a random observation that passes `checkblock(block, .)`."""
    if isinstance(block, tuple):
        return tuple(mockblock(b) for b in block)
    return block.mockblock()


def setup(blocktype, data: Iterable, **kwargs) -> Block:
    """Create a block of type `blocktype` by scanning the observations in `data`."""
    return blocktype.setup(data, **kwargs)


def invariant_checkblock(block, blockname: str = "block", obsname: str = "obs") -> Invariant:
    """Diagnostic predicate for `block`."""
    if isinstance(block, tuple):
        return _TupleInvariant(block, blockname, obsname)
    return block.invariant(blockname=blockname, obsname=obsname)


def validateobs(block, obs, blockname: str = "block", obsname: str = "obs"):
    """
    Raise `BlockValidationError` if `obs` is not valid for `block`.

    Returns `obs` unchanged otherwise.
    """
    result = invariant_checkblock(block, blockname, obsname).check(obs)
    if not result.passed:
        raise BlockValidationError(block, obs, str(result))
    return obs


def summary(block) -> str:
    """Short type description used in messages, e.g. `Label[str]`."""
    if isinstance(block, tuple):
        return "(" + ", ".join(summary(b) for b in block) + ")"
    if isinstance(block, Block):
        return block.summary()
    return type(block).__name__


class _TupleInvariant(Invariant):

    def __init__(self, blocks, blockname, obsname):
        super().__init__(f"`{obsname}` should be a valid `{summary(blocks)}`")
        self.blocks = blocks
        self.blockname = blockname
        self.obsname = obsname

    def check(self, obs) -> InvariantResult:
        if not isinstance(obs, (tuple, list)) or len(obs) != len(self.blocks):
            return InvariantResult(
                False, self.title,
                message=f"`{self.obsname}` should be a tuple of length {len(self.blocks)}, "
                        f"instead got `{type(obs).__name__}`.",
                failed=self.title,
            )
        for i, (b, o) in enumerate(zip(self.blocks, obs)):
            result = invariant_checkblock(
                b, f"{self.blockname}[{i}]", f"{self.obsname}[{i}]").check(o)
            if not result.passed:
                return InvariantResult(False, self.title, result.message, result.failed)
        return InvariantResult(True, self.title)


# ---------------------------------------------------------------------------
# Helpers shared by the concrete blocks
# ---------------------------------------------------------------------------

def _title(block, blockname: str, obsname: str) -> str:
    return f"`{obsname}` should be a valid `{summary(block)}`"


def is_vector(obs) -> bool:
    """True for one-dimensional ordered sequences (never for strings)."""
    if isinstance(obs, (str, bytes)):
        return False
    if isinstance(obs, (np.ndarray, torch.Tensor)):
        return obs.ndim == 1
    return isinstance(obs, (list, tuple))


def is_number(x) -> bool:
    if isinstance(x, numbers.Number):
        return True
    return isinstance(x, (np.ndarray, torch.Tensor)) and x.ndim == 0 and _numeric_dtype(x)


def all_numbers(obs) -> bool:
    """True if every element of an array or sequence is numeric."""
    if isinstance(obs, (np.ndarray, torch.Tensor)):
        return _numeric_dtype(obs)
    return all(is_number(x) for x in obs)


def as_array(obs) -> Optional[np.ndarray]:
    """View `obs` as a numpy array, or None if it is not array-like."""
    if isinstance(obs, torch.Tensor):
        obs = obs.detach().cpu()
        # numpy has no bfloat16
        if obs.dtype == torch.bfloat16:
            obs = obs.float()
        return obs.numpy()
    if isinstance(obs, np.ndarray):
        return obs
    return None


def _numeric_dtype(arr) -> bool:
    if isinstance(arr, torch.Tensor):
        return True
    return arr.dtype.kind in "biufc"


def element_type(obs) -> str:
    if isinstance(obs, (np.ndarray, torch.Tensor)):
        return str(obs.dtype)
    kinds = sorted({type(x).__name__ for x in obs})
    return "Union[" + ", ".join(kinds) + "]" if len(kinds) > 1 else (kinds[0] if kinds else "Any")


__all__ = [
    'Block', 'WrapperBlock', 'Named', 'wrapped',
    'checkblock', 'mockblock', 'setup', 'invariant_checkblock', 'validateobs', 'summary',
]
