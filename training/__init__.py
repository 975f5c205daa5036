"""
Training Infrastructure

Parameter grouping, discriminative learning rates, the learner, one-cycle
training and two-phase fine-tuning.

Fine-tuning phases:
1. Frozen: backbone multiplier 0, head multiplier 1
2. Discriminative: backbone trains `lr_mult` times slower than the head
"""

from .paramgroups import (
    Grouper,
    IndexGrouper,
    ModuleGrouper,
    ParamGroups,
    default_grouper,
)
from .discriminative import (
    DiscriminativeLRs,
    freeze_factors,
    discriminative_factors,
    freeze_optimizer,
    discrlr_optimizer,
)
from .metrics import FitMetrics, EpochMetrics, MetricsLogger
from .learner import Learner, TrainingPhase, ValidationPhase, withfields, blocklearner
from .datasets import BlockDataset, mockdataset, to_tensor
from .onecycle import fit_one_cycle
from .finetune import fine_tune

__all__ = [
    # Parameter groups
    'Grouper',
    'IndexGrouper',
    'ModuleGrouper',
    'ParamGroups',
    'default_grouper',
    # Learning rates
    'DiscriminativeLRs',
    'freeze_factors',
    'discriminative_factors',
    'freeze_optimizer',
    'discrlr_optimizer',
    # Logging
    'FitMetrics',
    'EpochMetrics',
    'MetricsLogger',
    # Training
    'Learner',
    'TrainingPhase',
    'ValidationPhase',
    'withfields',
    'blocklearner',
    'BlockDataset',
    'mockdataset',
    'to_tensor',
    'fit_one_cycle',
    'fine_tune',
]
