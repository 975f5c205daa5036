"""
Dynamic U-Net

Builds a U-Net decoder around an arbitrary convolutional backbone. The
backbone is probed once with a synthetic input; every stage whose output
is followed by a spatial downsampling becomes a skip connection.

Pipeline:
1. Encoder: the backbone's stages (children of an nn.Sequential, or the
   whole backbone as a single stage)
2. Middle: two stride-1 conv blocks at the bottleneck
3. Decoder: one UNetBlock per skip, deepest first (upsample, concat, conv)
4. Final: upsample to the input size, concat the input, 1x1 conv to nout
"""

from typing import List, Sequence

import torch
import torch.nn as nn
import torch.nn.functional as F

from .introspection import stage_shapes
from .layers import conv_block, conv_layer


class UNetBlock(nn.Module):
    """Upsample `x` to the skip's spatial size, concatenate, convolve."""

    def __init__(self, nin: int, nskip: int, nout: int, ndim: int = 2):
        super().__init__()
        self.conv = nn.Sequential(
            conv_block(nin + nskip, nout, ndim=ndim, stride=1),
            conv_block(nout, nout, ndim=ndim, stride=1),
        )

    def forward(self, x: torch.Tensor, skip: torch.Tensor) -> torch.Tensor:
        x = F.interpolate(x, size=skip.shape[2:], mode='nearest')
        return self.conv(torch.cat([x, skip], dim=1))


class UNetDynamic(nn.Module):
    """
    U-Net around `backbone` producing `nout` channels at input resolution.

    Args:
        backbone: Convolutional feature extractor (nn.Sequential gives skips)
        input_shape: Probe shape (1, channels, *spatial)
        nout: Output channels (number of classes)
        final_width: Channels of the last decoder block (default: the
            shallowest skip's channels)

    Submodules `encoder`, `middle`, `decoder`, `final`, `head` can be
    grouped with `ModuleGrouper([['encoder'], ['middle', 'decoder', 'final', 'head']])`.
    """

    def __init__(
        self,
        backbone: nn.Module,
        input_shape: Sequence[int],
        nout: int,
        final_width: int = None
    ):
        super().__init__()
        input_shape = tuple(input_shape)
        ndim = len(input_shape) - 2
        self.ndim = ndim

        stages: List[nn.Module] = list(backbone) if isinstance(backbone, nn.Sequential) else [backbone]
        shapes = stage_shapes(stages, input_shape)

        # Stage i is a skip if the next stage changes the spatial size
        self.skip_idxs = [
            i for i in range(len(shapes) - 1)
            if shapes[i][2:] != shapes[i + 1][2:]
        ]

        self.encoder = backbone
        self._stages = stages

        enc_ch = shapes[-1][1]
        self.middle = nn.Sequential(
            conv_block(enc_ch, enc_ch * 2, ndim=ndim, stride=1),
            conv_block(enc_ch * 2, enc_ch, ndim=ndim, stride=1),
        )

        nin = enc_ch
        blocks = []
        for i in reversed(self.skip_idxs):
            nskip = shapes[i][1]
            blocks.append(UNetBlock(nin, nskip, nskip, ndim=ndim))
            nin = nskip
        self.decoder = nn.ModuleList(blocks)

        final_width = final_width or nin
        self.final = UNetBlock(nin, input_shape[1], final_width, ndim=ndim)
        self.head = conv_layer(ndim)(final_width, nout, kernel_size=1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        inp = x
        skips = []
        for i, stage in enumerate(self._stages):
            x = stage(x)
            if i in self.skip_idxs:
                skips.append(x)

        x = self.middle(x)
        for block, skip in zip(self.decoder, reversed(skips)):
            x = block(x, skip)
        x = self.final(x, inp)
        return self.head(x)
