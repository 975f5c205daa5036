"""
Parameter Groups

Splits a model's trainable parameters into numbered groups so that each
group can get its own learning rate (1 = backbone, 2 = head by convention).

- Grouper: strategy object, `group(model) -> {group_id: [modules]}`
- IndexGrouper: groups layers of an nn.Sequential by index
- ModuleGrouper: groups named submodules of any model
- ParamGroups: the resulting parameter partition
- default_grouper: all-but-last layer vs last layer of an nn.Sequential
"""

import numbers
from typing import Dict, Iterator, List, Sequence, Union

import torch.nn as nn

from ..core.errors import GrouperResolutionError

IndexSpec = Union[int, range, slice, Sequence[int]]


class Grouper:
    """Assigns modules of a model to group ids (1, 2, ...)."""

    def group(self, model: nn.Module) -> Dict[int, List[nn.Module]]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IndexGrouper(Grouper):
    """
    Groups the layers of an nn.Sequential by (0-based) index.

    Args:
        indices: One entry per group, in group order (ids 1, 2, ...).
            Each entry is an int, a range, a slice or a list of ints.

    Example:
        # layers 0..n-2 -> group 1, layer n-1 -> group 2
        IndexGrouper([range(n - 1), n - 1])
    """

    def __init__(self, indices: Sequence[IndexSpec]):
        self.indices = list(indices)

    def _resolve(self, spec: IndexSpec, n: int) -> List[int]:
        if isinstance(spec, numbers.Integral):
            return [spec]
        if isinstance(spec, slice):
            return list(range(n))[spec]
        return list(spec)

    def group(self, model: nn.Module) -> Dict[int, List[nn.Module]]:
        if not isinstance(model, nn.Sequential):
            raise TypeError(
                f"IndexGrouper needs an nn.Sequential, got {type(model).__name__}"
            )
        layers = list(model)
        groups = {}
        for gid, spec in enumerate(self.indices, start=1):
            idxs = self._resolve(spec, len(layers))
            for i in idxs:
                if not -len(layers) <= i < len(layers):
                    raise IndexError(
                        f"Layer index {i} out of range for a model with {len(layers)} layers"
                    )
            groups[gid] = [layers[i] for i in idxs]
        return groups

    def __repr__(self) -> str:
        return f"IndexGrouper({self.indices!r})"


class ModuleGrouper(Grouper):
    """
    Groups named submodules (attribute paths such as 'encoder' or
    'decoder.0') of any model, one list of names per group.
    """

    def __init__(self, names: Sequence[Sequence[str]]):
        self.names = [list(group) for group in names]

    def group(self, model: nn.Module) -> Dict[int, List[nn.Module]]:
        return {
            gid: [model.get_submodule(name) for name in group]
            for gid, group in enumerate(self.names, start=1)
        }

    def __repr__(self) -> str:
        return f"ModuleGrouper({self.names!r})"


class ParamGroups:
    """
    Partition of a model's trainable parameters into groups.

    Built by applying a grouper to a model. A parameter that ends up in
    two groups raises ValueError. Parameters that no group covers are
    detected by `ungrouped(model)`.
    """

    def __init__(self, grouper: Grouper, model: nn.Module):
        self.grouper = grouper
        self.groups: Dict[int, List[nn.Parameter]] = {}
        self._lookup: Dict[int, int] = {}

        for gid, modules in grouper.group(model).items():
            params = []
            for module in modules:
                for p in module.parameters():
                    if not p.requires_grad:
                        continue
                    owner = self._lookup.get(id(p))
                    if owner == gid:
                        continue  # shared within a group
                    if owner is not None:
                        raise ValueError(
                            f"Parameter of shape {tuple(p.shape)} is assigned to "
                            f"groups {owner} and {gid}"
                        )
                    self._lookup[id(p)] = gid
                    params.append(p)
            self.groups[gid] = params

    def group_of(self, param: nn.Parameter):
        """Group id of `param`, or None if it is not grouped."""
        return self._lookup.get(id(param))

    def ungrouped(self, model: nn.Module) -> List[str]:
        """Names of trainable parameters of `model` outside every group."""
        return [
            name for name, p in model.named_parameters()
            if p.requires_grad and id(p) not in self._lookup
        ]

    def __getitem__(self, gid: int) -> List[nn.Parameter]:
        return self.groups[gid]

    def __iter__(self) -> Iterator[int]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def items(self):
        return self.groups.items()

    def __repr__(self) -> str:
        sizes = {gid: sum(p.numel() for p in ps) for gid, ps in self.groups.items()}
        return f"ParamGroups({sizes})"


def default_grouper(model: nn.Module) -> IndexGrouper:
    """
    Grouper for a plain sequential stack: every layer but the last is the
    backbone (group 1), the last layer is the head (group 2).
    """
    if not isinstance(model, nn.Sequential):
        raise GrouperResolutionError(
            f"Cannot freeze `learner.model` automatically since it is not an "
            f"nn.Sequential (got {type(model).__name__}). Please provide a "
            f"`Grouper` with the `grouper` keyword argument. The grouper should "
            f"assign groups 1 (backbone) and 2 (head)."
        )
    if len(model) < 2:
        raise GrouperResolutionError(
            f"Cannot split an nn.Sequential with {len(model)} layer(s) into backbone "
            f"and head. Please provide a `Grouper` with the `grouper` keyword argument."
        )
    return IndexGrouper([range(len(model) - 1), len(model) - 1])
