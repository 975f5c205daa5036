"""
Loss Selection

`blocklossfn(outblock, yblock)` returns a loss function for a model whose
outputs are described by `outblock`, trained against targets described
by `yblock`. Sizes are checked when the loss is requested, not when it
is first evaluated.

Registered pairs:
1. Continuous / Continuous: mean squared error
2. OneHotTensor / OneHotTensor: cross entropy with probability targets
3. OneHotTensorMulti / OneHotTensorMulti: binary cross entropy on logits
4. KeypointTensor / KeypointTensor: mean squared error on flat coordinates
"""

import torch
import torch.nn.functional as F

from .continuous import Continuous
from .tensors import KeypointTensor, OneHotTensor, OneHotTensorMulti
from .block import summary
from ..core.dispatch import BlockDispatcher
from ..core.errors import BlockSizeMismatch

blocklossfn = BlockDispatcher("blocklossfn")


def _mismatch(outblock, yblock):
    return BlockSizeMismatch(
        f"Sizes of {summary(outblock)} and {summary(yblock)} differ!"
    )


def mse_loss(pred: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
    return F.mse_loss(pred, target.to(pred.dtype))


def onehot_cross_entropy(logits: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
    """Cross entropy over axis 1 with one-hot (probability) targets."""
    return F.cross_entropy(logits, target.to(logits.dtype))


def multihot_bce(logits: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
    return F.binary_cross_entropy_with_logits(logits, target.to(logits.dtype))


def flat_mse_loss(pred: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
    """MSE between (B, K) predictions and (B, *sz, ndim) keypoint targets."""
    return F.mse_loss(pred.flatten(1), target.flatten(1).to(pred.dtype))


@blocklossfn.register(Continuous, Continuous)
def _continuous_loss(outblock, yblock):
    if outblock.size != yblock.size:
        raise _mismatch(outblock, yblock)
    return mse_loss


@blocklossfn.register(OneHotTensor, OneHotTensor)
def _onehot_loss(outblock, yblock):
    if outblock.ndim != yblock.ndim or len(outblock.classes) != len(yblock.classes):
        raise _mismatch(outblock, yblock)
    return onehot_cross_entropy


@blocklossfn.register(OneHotTensorMulti, OneHotTensorMulti)
def _multihot_loss(outblock, yblock):
    if outblock.ndim != yblock.ndim or len(outblock.classes) != len(yblock.classes):
        raise _mismatch(outblock, yblock)
    return multihot_bce


@blocklossfn.register(KeypointTensor, KeypointTensor)
def _keypoint_loss(outblock, yblock):
    if outblock.ndim != yblock.ndim or outblock.sz != yblock.sz:
        raise _mismatch(outblock, yblock)
    return flat_mse_loss
