"""
Block Datasets

Map-style datasets over in-memory observations described by blocks.

- BlockDataset: validates observations against their blocks, encodes
  them and serves tensors
- mockdataset: BlockDataset of random observations from `mockblock`
"""

from typing import Any, Callable, List, Optional, Sequence

import numpy as np
import torch
from torch.utils.data import Dataset

from ..blocks import mockblock, validateobs


def to_tensor(obs: Any):
    """
    Convert an (encoded) observation to tensors.

    Tuples and lists are converted element-wise; integer arrays become
    int64 tensors (category indices), everything else float32.
    """
    if isinstance(obs, (tuple, list)) and not _is_flat_numeric(obs):
        return tuple(to_tensor(o) for o in obs)
    if isinstance(obs, torch.Tensor):
        return obs.float() if obs.is_floating_point() else obs.long()
    arr = np.asarray(obs)
    if arr.dtype.kind in "iu":
        return torch.as_tensor(arr, dtype=torch.int64)
    return torch.as_tensor(arr.astype(np.float32))


def _is_flat_numeric(obs) -> bool:
    return len(obs) > 0 and all(
        isinstance(o, (int, float, np.number)) and not isinstance(o, bool) for o in obs
    )


class BlockDataset(Dataset):
    """
    Dataset of observations for `blocks`.

    Args:
        blocks: Block or tuple of blocks, e.g. `(inblock, outblock)`
        observations: Sequence of observations valid for `blocks`
        encode: Optional `encode(obs) -> encoded obs`, applied after validation
        validate: Check every observation with `validateobs` up front

    Raises:
        BlockValidationError: If `validate` and an observation is invalid
    """

    def __init__(
        self,
        blocks,
        observations: Sequence,
        encode: Optional[Callable] = None,
        validate: bool = True
    ):
        self.blocks = blocks
        self.encode = encode
        self.observations: List = list(observations)

        if validate:
            for i, obs in enumerate(self.observations):
                validateobs(blocks, obs, blockname="blocks", obsname=f"observations[{i}]")

    def __len__(self) -> int:
        return len(self.observations)

    def __getitem__(self, idx: int):
        obs = self.observations[idx]
        if self.encode is not None:
            obs = self.encode(obs)
        return to_tensor(obs)


def mockdataset(blocks, n: int, encode: Optional[Callable] = None) -> BlockDataset:
    """`n` random observations of `blocks`."""
    return BlockDataset(blocks, [mockblock(blocks) for _ in range(n)], encode=encode)
