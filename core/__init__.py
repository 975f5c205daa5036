"""
Core

Main components:
- FineTuneConfig, ModelConfig: configuration dataclasses
- BlockDispatcher: registry keyed on block pairs
- Error taxonomy shared by blocks, models and training
"""

from .config import (
    FineTuneConfig,
    ModelConfig,
    get_default_config,
    DEFAULT_FINETUNE_CONFIG,
    DEFAULT_MODEL_CONFIG,
    FAST_TEST_CONFIG,
)
from .dispatch import BlockDispatcher
from .errors import (
    FastBlocksError,
    BlockValidationError,
    UnsupportedBlockCombination,
    GrouperResolutionError,
    UngroupedParameterError,
    BlockSizeMismatch,
)

__all__ = [
    'FineTuneConfig',
    'ModelConfig',
    'get_default_config',
    'DEFAULT_FINETUNE_CONFIG',
    'DEFAULT_MODEL_CONFIG',
    'FAST_TEST_CONFIG',
    'BlockDispatcher',
    'FastBlocksError',
    'BlockValidationError',
    'UnsupportedBlockCombination',
    'GrouperResolutionError',
    'UngroupedParameterError',
    'BlockSizeMismatch',
]
