"""
Encodings

An encoding turns observations of one block into observations of another
(usually array-valued) block that a model can consume, and back.

- encodedblock(block): block after encoding, None if not applicable
- encode(block, obs):  encode one observation
- decodedblock(block): inverse of encodedblock, None if not applicable
- decode(block, obs):  decode one encoded observation
"""

from typing import Any, Optional

import numpy as np

from .block import Block
from .label import Label, LabelMulti
from .tensors import OneHotTensor, OneHotTensorMulti
from .tabular import TableRow, EncodedTableRow


class Encoding:
    """Base encoding; subclasses override the four methods."""

    def encodedblock(self, block: Block) -> Optional[Block]:
        return None

    def encode(self, block: Block, obs: Any) -> Any:
        raise NotImplementedError

    def decodedblock(self, block: Block) -> Optional[Block]:
        return None

    def decode(self, block: Block, obs: Any) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class OneHot(Encoding):
    """
    One-hot encodes labels.

    - Label(classes)      <-> OneHotTensor(0, classes)
    - LabelMulti(classes) <-> OneHotTensorMulti(0, classes)

    Multi-label decoding keeps the classes whose score exceeds `threshold`.
    """

    def __init__(self, threshold: float = 0.5):
        self.threshold = threshold

    def encodedblock(self, block):
        if isinstance(block, Label):
            return OneHotTensor(0, block.classes)
        if isinstance(block, LabelMulti):
            return OneHotTensorMulti(0, block.classes)
        return None

    def encode(self, block, obs) -> np.ndarray:
        if isinstance(block, Label):
            out = np.zeros(len(block.classes), dtype=np.float32)
            out[block.classes.index(obs)] = 1.0
            return out
        if isinstance(block, LabelMulti):
            out = np.zeros(len(block.classes), dtype=np.float32)
            for label in obs:
                out[block.classes.index(label)] = 1.0
            return out
        raise TypeError(f"OneHot cannot encode {block!r}")

    def decodedblock(self, block):
        if isinstance(block, OneHotTensor) and block.ndim == 0:
            return Label(block.classes)
        if isinstance(block, OneHotTensorMulti) and block.ndim == 0:
            return LabelMulti(block.classes)
        return None

    def decode(self, block, obs):
        if isinstance(block, (OneHotTensor, OneHotTensorMulti)) and block.ndim != 0:
            raise TypeError(f"OneHot cannot decode {block!r}")
        scores = np.asarray(obs)
        if isinstance(block, OneHotTensor):
            return block.classes[int(np.argmax(scores))]
        if isinstance(block, OneHotTensorMulti):
            return [c for c, s in zip(block.classes, scores) if s > self.threshold]
        raise TypeError(f"OneHot cannot decode {block!r}")


class TabularPreprocessing(Encoding):
    """
    Turns `TableRow` observations into `(cat_indices, cont_values)` pairs.

    Missing or unknown categories map to index 0; missing continuous
    values are filled with the column's `fill` value (default 0.0).
    """

    def __init__(self, fill: float = 0.0):
        self.fill = fill

    def encodedblock(self, block):
        if isinstance(block, TableRow) and not isinstance(block, EncodedTableRow):
            return EncodedTableRow(block.catcols, block.contcols, block.categorydict)
        return None

    def encode(self, block, obs):
        if not isinstance(block, TableRow):
            raise TypeError(f"TabularPreprocessing cannot encode {block!r}")
        cats = np.array([
            _category_index(block.categorydict[col], obs[col]) for col in block.catcols
        ], dtype=np.int64)
        conts = np.array([
            self.fill if obs[col] is None or np.isnan(obs[col]) else obs[col]
            for col in block.contcols
        ], dtype=np.float32)
        return cats, conts

    def decodedblock(self, block):
        if isinstance(block, EncodedTableRow):
            return TableRow(block.catcols, block.contcols, block.categorydict)
        return None

    def decode(self, block, obs):
        cats, conts = obs
        row = {}
        for col, idx in zip(block.catcols, cats):
            row[col] = block.categorydict[col][idx - 1] if idx > 0 else None
        for col, value in zip(block.contcols, conts):
            row[col] = float(value)
        return row


def _category_index(categories, value) -> int:
    if value is None or value not in categories:
        return 0
    return categories.index(value) + 1
