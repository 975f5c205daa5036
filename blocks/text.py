"""
Text Block
"""

from dataclasses import dataclass

import numpy as np

from .block import Block, _title
from .invariants import BooleanInvariant

_ALPHABET = np.array(list("abcdefghijklmnopqrstuvwxyz"))


@dataclass(frozen=True)
class Paragraph(Block):
    """Block for a piece of text. Any `str` is a valid observation."""

    def checkblock(self, obs) -> bool:
        return isinstance(obs, str)

    def mockblock(self) -> str:
        nwords = np.random.randint(1, 20)
        words = [
            "".join(np.random.choice(_ALPHABET, size=np.random.randint(1, 10)))
            for _ in range(nwords)
        ]
        return " ".join(words)

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return BooleanInvariant(
            self.checkblock,
            name=_title(self, blockname, obsname),
            messagefn=lambda obs: f"`{obsname}` should be a `str`, instead got `{type(obs).__name__}`.",
        )
