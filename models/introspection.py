"""
Model Introspection

Shape inference by running a synthetic batch through a model.
"""

from typing import List, Sequence, Tuple

import torch
import torch.nn as nn


def _device_of(model: nn.Module) -> torch.device:
    for p in model.parameters():
        return p.device
    for b in model.buffers():
        return b.device
    return torch.device('cpu')


@torch.no_grad()
def stage_shapes(stages: Sequence[nn.Module], input_shape: Sequence[int]) -> List[Tuple[int, ...]]:
    """
    Output shape after each of `stages`, applied one after the other.

    Same eval-mode probing as `forward_shape`.
    """
    container = nn.ModuleList(stages)
    modes = {m: m.training for m in container.modules()}
    container.eval()
    shapes = []
    try:
        x = torch.zeros(*input_shape, device=_device_of(container))
        for stage in stages:
            x = stage(x)
            shapes.append(tuple(x.shape))
    finally:
        for m, mode in modes.items():
            m.training = mode
    return shapes


@torch.no_grad()
def forward_shape(model: nn.Module, input_shape: Sequence[int]) -> Tuple[int, ...]:
    """
    Output shape of `model` for an input of shape `input_shape`.

    The probe runs in eval mode (so batch-norm accepts a batch of one) and
    restores the previous training flags afterwards.

    Args:
        model: Module to probe
        input_shape: Full input shape including the batch axis, e.g.
            (1, 3, 256, 256)

    Returns:
        Output shape as a tuple
    """
    modes = {m: m.training for m in model.modules()}
    model.eval()
    try:
        x = torch.zeros(*input_shape, device=_device_of(model))
        out = model(x)
    finally:
        for m, mode in modes.items():
            m.training = mode
    return tuple(out.shape)
