"""
fastblocks

Block-based data semantics and progressive fine-tuning for PyTorch.

Blocks are immutable descriptors of what an observation means (a
continuous vector, a class label, an N-d image, a table row, ...). They
validate and mock observations, select loss functions and build models
for a pair of input/output blocks. `fine_tune` trains those models with
a frozen backbone first, then with discriminative learning rates.

Main components:
- Blocks: Continuous, Label, LabelMulti, ImageTensor, OneHotTensor, TableRow, ...
- blockmodel / blockbackbone / blocklossfn: dispatch on block pairs
- Learner, fit_one_cycle, fine_tune: training
- FineTuneConfig, ModelConfig: configuration dataclasses

Quick Start:
    >>> from fastblocks import ImageTensor, OneHotTensor, blocklearner, fine_tune
    >>> inblock = ImageTensor(2, 3)
    >>> outblock = OneHotTensor(0, ("cat", "dog"))
    >>> learner = blocklearner(inblock, outblock, train_loader)
    >>> fine_tune(learner, nepochs=3, base_lr=0.002)
"""

from .core import (
    ModelConfig,
    FineTuneConfig,
    get_default_config,
    DEFAULT_MODEL_CONFIG,
    DEFAULT_FINETUNE_CONFIG,
    FAST_TEST_CONFIG,
    BlockDispatcher,
    FastBlocksError,
    BlockValidationError,
    UnsupportedBlockCombination,
    GrouperResolutionError,
    UngroupedParameterError,
    BlockSizeMismatch,
)

from .blocks import (
    Block,
    WrapperBlock,
    Named,
    checkblock,
    mockblock,
    setup,
    invariant_checkblock,
    validateobs,
    Continuous,
    Label,
    LabelMulti,
    ImageTensor,
    KeypointTensor,
    OneHotTensor,
    OneHotTensorMulti,
    TableRow,
    EncodedTableRow,
    Paragraph,
    OneHot,
    TabularPreprocessing,
    blocklossfn,
)

from .models import (
    blockmodel,
    blockbackbone,
    forward_shape,
)

from .training import (
    IndexGrouper,
    ModuleGrouper,
    ParamGroups,
    DiscriminativeLRs,
    MetricsLogger,
    Learner,
    blocklearner,
    BlockDataset,
    fit_one_cycle,
    fine_tune,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    'ModelConfig',
    'FineTuneConfig',
    'get_default_config',
    'DEFAULT_MODEL_CONFIG',
    'DEFAULT_FINETUNE_CONFIG',
    'FAST_TEST_CONFIG',
    'BlockDispatcher',
    'FastBlocksError',
    'BlockValidationError',
    'UnsupportedBlockCombination',
    'GrouperResolutionError',
    'UngroupedParameterError',
    'BlockSizeMismatch',

    # Blocks
    'Block',
    'WrapperBlock',
    'Named',
    'checkblock',
    'mockblock',
    'setup',
    'invariant_checkblock',
    'validateobs',
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
    'OneHot',
    'TabularPreprocessing',
    'blocklossfn',

    # Models
    'blockmodel',
    'blockbackbone',
    'forward_shape',

    # Training
    'IndexGrouper',
    'ModuleGrouper',
    'ParamGroups',
    'DiscriminativeLRs',
    'MetricsLogger',
    'Learner',
    'blocklearner',
    'BlockDataset',
    'fit_one_cycle',
    'fine_tune',
]
