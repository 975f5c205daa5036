"""
Blocks

Typed descriptors of data semantics used for validation, mocking, loss
selection and model construction.

Components:
- Block, WrapperBlock, Named: base types
- Continuous: fixed-length numeric vector
- Label, LabelMulti: categorical labels
- ImageTensor, KeypointTensor, OneHotTensor, OneHotTensorMulti: arrays
- TableRow, EncodedTableRow: tabular rows
- Paragraph: text
- OneHot, TabularPreprocessing: encodings
- blocklossfn: loss selection per block pair
"""

from .block import (
    Block,
    WrapperBlock,
    Named,
    wrapped,
    checkblock,
    mockblock,
    setup,
    invariant_checkblock,
    validateobs,
    summary,
)
from .invariants import (
    Invariant,
    InvariantResult,
    BooleanInvariant,
    MessageInvariant,
    SequenceInvariant,
)
from .continuous import Continuous
from .label import Label, LabelMulti
from .tensors import ImageTensor, KeypointTensor, OneHotTensor, OneHotTensorMulti
from .tabular import TableRow, EncodedTableRow
from .text import Paragraph
from .encodings import Encoding, OneHot, TabularPreprocessing
from .losses import blocklossfn

__all__ = [
    # Base
    'Block',
    'WrapperBlock',
    'Named',
    'wrapped',
    'checkblock',
    'mockblock',
    'setup',
    'invariant_checkblock',
    'validateobs',
    'summary',
    # Invariants
    'Invariant',
    'InvariantResult',
    'BooleanInvariant',
    'MessageInvariant',
    'SequenceInvariant',
    # Variants
    'Continuous',
    'Label',
    'LabelMulti',
    'ImageTensor',
    'KeypointTensor',
    'OneHotTensor',
    'OneHotTensorMulti',
    'TableRow',
    'EncodedTableRow',
    'Paragraph',
    # Encodings / losses
    'Encoding',
    'OneHot',
    'TabularPreprocessing',
    'blocklossfn',
]
