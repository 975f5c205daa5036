"""
Discriminative Learning Rates

Builds torch optimizers whose parameter groups follow a `ParamGroups`
partition, scaling the learning rate of each group by a multiplier:

    lr(param) = base_lr * factors[group_of(param)]

A multiplier of 0 freezes a group for the phase (gradients are still
computed, the step is zero). Every trainable parameter must belong to a
group; anything else is a grouper/model mismatch.

Each torch parameter group carries two extra keys:
- 'group':   group id from ParamGroups
- 'lr_mult': multiplier applied to the base/peak learning rate
"""

from typing import Callable, Dict, List

import torch
import torch.nn as nn

from ..core.errors import UngroupedParameterError
from .paramgroups import ParamGroups

OptFunc = Callable[..., torch.optim.Optimizer]


class DiscriminativeLRs:
    """
    Args:
        paramgroups: Partition of the model's trainable parameters
        factors: Group id -> learning rate multiplier
    """

    def __init__(self, paramgroups: ParamGroups, factors: Dict[int, float]):
        self.paramgroups = paramgroups
        self.factors = dict(factors)

    def param_groups(self, model: nn.Module) -> List[dict]:
        """torch parameter-group dicts, one per non-empty group."""
        ungrouped = self.paramgroups.ungrouped(model)
        if ungrouped:
            raise UngroupedParameterError(
                f"{len(ungrouped)} trainable parameter(s) are not covered by any group: "
                f"{ungrouped[:5]}{' ...' if len(ungrouped) > 5 else ''}. "
                f"The grouper {self.paramgroups.grouper!r} does not match the model."
            )
        missing = [gid for gid in self.paramgroups if gid not in self.factors]
        if missing:
            raise UngroupedParameterError(
                f"No learning rate multiplier for group(s) {missing}; "
                f"factors cover {sorted(self.factors)}"
            )
        return [
            {'params': params, 'group': gid, 'lr_mult': float(self.factors[gid])}
            for gid, params in self.paramgroups.items()
            if params
        ]

    def build(self, opt_func: OptFunc, model: nn.Module, lr: float) -> torch.optim.Optimizer:
        """Optimizer with `lr * lr_mult` per group."""
        groups = self.param_groups(model)
        for g in groups:
            g['lr'] = lr * g['lr_mult']
        return opt_func(groups, lr=lr)

    def __repr__(self) -> str:
        return f"DiscriminativeLRs({self.factors})"


def freeze_factors(paramgroups: ParamGroups) -> Dict[int, float]:
    """Multiplier 1 for the last group (head), 0 for every other group."""
    gids = sorted(paramgroups)
    return {gid: (1.0 if gid == gids[-1] else 0.0) for gid in gids}


def discriminative_factors(paramgroups: ParamGroups, lr_mult: float) -> Dict[int, float]:
    """
    Multipliers spread geometrically from 1 / lr_mult (group 1) to 1 (last
    group), so the backbone trains `lr_mult` times slower than the head.
    """
    gids = sorted(paramgroups)
    n = len(gids)
    if n == 1:
        return {gids[0]: 1.0}
    return {gid: lr_mult ** (-(n - 1 - i) / (n - 1)) for i, gid in enumerate(gids)}


def freeze_optimizer(opt_func: OptFunc, paramgroups: ParamGroups, model: nn.Module,
                     lr: float) -> torch.optim.Optimizer:
    """Optimizer training only the head: {1: 0, 2: 1}."""
    return DiscriminativeLRs(paramgroups, freeze_factors(paramgroups)).build(opt_func, model, lr)


def discrlr_optimizer(opt_func: OptFunc, paramgroups: ParamGroups, model: nn.Module,
                      lr_mult: float, lr: float) -> torch.optim.Optimizer:
    """Optimizer with the backbone `lr_mult` times slower than the head."""
    factors = discriminative_factors(paramgroups, lr_mult)
    return DiscriminativeLRs(paramgroups, factors).build(opt_func, model, lr)
