"""
Block Pair Dispatch

An open registry mapping (input block type, output block type) pairs to
builder functions. It stands in for multiple dispatch: new pairs are
added with `register` without touching existing entries.

Resolution:
1. Candidates: entries whose types match both blocks via isinstance and
   whose optional `when` guard accepts the pair (used for type
   parameters such as `ndim`).
2. Most specific wins: smallest summed MRO distance; among equals the
   entry registered last wins.
3. No candidate: retry with wrapper blocks unwrapped, then raise
   UnsupportedBlockCombination naming both blocks.

Usage:
    blockmodel = BlockDispatcher("blockmodel")

    @blockmodel.register(ImageTensor, OneHotTensor, when=lambda i, o: o.ndim == 0)
    def _classifier(inblock, outblock, backbone, **kwargs):
        ...

    model = blockmodel(inblock, outblock, backbone)
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from .errors import UnsupportedBlockCombination

TypeSpec = Union[type, Tuple[type, ...]]


@dataclass
class _Entry:
    intype: Tuple[type, ...]
    outtype: Tuple[type, ...]
    fn: Callable
    when: Optional[Callable]
    order: int


def _distance(obj, types: Tuple[type, ...]) -> Optional[int]:
    """MRO distance from type(obj) to the closest of `types`, None if unrelated."""
    mro = type(obj).__mro__
    hits = [mro.index(t) for t in types if t in mro]
    return min(hits) if hits else None


class BlockDispatcher:
    """Registry of functions keyed on the runtime types of a block pair."""

    def __init__(self, name: str):
        self.name = name
        self._entries: List[_Entry] = []

    def register(self, intype: TypeSpec, outtype: TypeSpec, when: Optional[Callable] = None):
        """Decorator registering `fn(inblock, outblock, *args, **kwargs)`."""
        intype = intype if isinstance(intype, tuple) else (intype,)
        outtype = outtype if isinstance(outtype, tuple) else (outtype,)

        def decorator(fn):
            self._entries.append(_Entry(intype, outtype, fn, when, len(self._entries)))
            return fn

        return decorator

    def resolve(self, inblock, outblock) -> Optional[Callable]:
        """Most specific function for the pair, or None."""
        best, best_key = None, None
        for entry in self._entries:
            din = _distance(inblock, entry.intype)
            dout = _distance(outblock, entry.outtype)
            if din is None or dout is None:
                continue
            if entry.when is not None and not entry.when(inblock, outblock):
                continue
            key = (din + dout, -entry.order)
            if best_key is None or key < best_key:
                best, best_key = entry, key
        return best.fn if best is not None else None

    def __call__(self, inblock, outblock, *args, **kwargs):
        fn = self.resolve(inblock, outblock)
        if fn is not None:
            return fn(inblock, outblock, *args, **kwargs)

        from ..blocks.block import wrapped
        inner_in, inner_out = wrapped(inblock), wrapped(outblock)
        if inner_in is not inblock or inner_out is not outblock:
            fn = self.resolve(inner_in, inner_out)
            if fn is not None:
                return fn(inner_in, inner_out, *args, **kwargs)
        raise UnsupportedBlockCombination(inblock, outblock, what=self.name)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"BlockDispatcher({self.name!r}, {len(self)} entries)"
