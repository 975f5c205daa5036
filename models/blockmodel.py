"""
Model Construction from Blocks

`blockmodel(inblock, outblock, backbone)` builds a model mapping
observations of `inblock` to outputs described by `outblock`.
`blockbackbone(inblock)` returns a default backbone for an input block.

Registered pairs:
1. ImageTensor[N] -> OneHotTensor[0] / OneHotTensorMulti[0]: classification
2. ImageTensor[N] -> OneHotTensor[N]: segmentation (dynamic U-Net)
3. ImageTensor[N] -> KeypointTensor[N]: keypoint regression
4. TableRow -> Continuous / OneHotTensor[0]: tabular model

Further pairs are added with `@blockmodel.register(InBlock, OutBlock)`.
"""

from math import prod
from typing import Mapping, Optional

import torch.nn as nn

from ..blocks import Continuous, ImageTensor, KeypointTensor, OneHotTensor, OneHotTensorMulti, TableRow
from ..blocks.block import Block
from ..core.config import ModelConfig, DEFAULT_MODEL_CONFIG
from ..core.dispatch import BlockDispatcher
from ..core.errors import UnsupportedBlockCombination
from .introspection import forward_shape
from .layers import convbackbone, visionhead
from .tabular import (
    TabularModel,
    get_emb_sz,
    tabular_continuous_backbone,
    tabular_embedding_backbone,
)
from .unet import UNetDynamic

blockmodel = BlockDispatcher("blockmodel")


def _probe_shape(inblock: ImageTensor, config: ModelConfig):
    return (1, inblock.nchannels) + (config.probe_size,) * inblock.ndim


def _backbone_channels(backbone: nn.Module, inblock: ImageTensor, config: ModelConfig) -> int:
    outsz = forward_shape(backbone, _probe_shape(inblock, config))
    return outsz[1]


@blockmodel.register(
    ImageTensor, (OneHotTensor, OneHotTensorMulti),
    when=lambda inblock, outblock: outblock.ndim == 0,
)
def _image_classifier(inblock, outblock, backbone=None, config: ModelConfig = DEFAULT_MODEL_CONFIG, **kwargs):
    """
    N-dimensional image classification. `backbone` is a convolutional
    feature extractor taking batches with `inblock.nchannels` channels.
    """
    backbone = blockbackbone(inblock) if backbone is None else backbone
    outch = _backbone_channels(backbone, inblock, config)
    head = visionhead(
        outch, len(outblock.classes),
        hidden=config.head_hidden, p=config.head_dropout, ndim=inblock.ndim)
    return nn.Sequential(backbone, head)


@blockmodel.register(
    ImageTensor, OneHotTensor,
    when=lambda inblock, outblock: outblock.ndim == inblock.ndim,
)
def _image_segmentation(inblock, outblock, backbone=None, config: ModelConfig = DEFAULT_MODEL_CONFIG, **kwargs):
    """N-dimensional image segmentation; kwargs go to `UNetDynamic`."""
    backbone = blockbackbone(inblock) if backbone is None else backbone
    return UNetDynamic(
        backbone,
        _probe_shape(inblock, config),
        len(outblock.classes),
        **kwargs)


@blockmodel.register(
    ImageTensor, KeypointTensor,
    when=lambda inblock, outblock: outblock.ndim == inblock.ndim,
)
def _image_keypoints(inblock, outblock, backbone=None, config: ModelConfig = DEFAULT_MODEL_CONFIG, **kwargs):
    """Image to keypoint regression: one output per keypoint coordinate."""
    backbone = blockbackbone(inblock) if backbone is None else backbone
    outch = _backbone_channels(backbone, inblock, config)
    head = visionhead(
        outch, prod(outblock.sz) * inblock.ndim,
        hidden=config.head_hidden, p=config.head_dropout, ndim=inblock.ndim)
    return nn.Sequential(backbone, head)


def default_tabular_backbone(inblock: TableRow, outblock: Block, config: ModelConfig = DEFAULT_MODEL_CONFIG):
    """Default categorical, continuous and final classifier backbones."""
    cardinalities = {col: len(inblock.categorydict[col]) for col in inblock.catcols}
    embedszs = get_emb_sz(cardinalities, inblock.catcols, max_size=config.max_emb_size)
    outsize = outblock.size if isinstance(outblock, Continuous) else len(outblock.classes)
    return {
        'categorical': tabular_embedding_backbone(embedszs, dropout=config.emb_dropout),
        'continuous': tabular_continuous_backbone(inblock.N),
        'finalclassifier': nn.Linear(config.tabular_layers[-1], outsize),
    }


@blockmodel.register(TableRow, Continuous)
@blockmodel.register(TableRow, OneHotTensor, when=lambda inblock, outblock: outblock.ndim == 0)
def _tabular(inblock, outblock, backbone: Optional[Mapping] = None,
             config: ModelConfig = DEFAULT_MODEL_CONFIG, **kwargs):
    """
    Tabular classification or regression. `backbone` maps any of
    'categorical', 'continuous', 'finalclassifier' to a replacement
    module; missing keys use the defaults.
    """
    backbone = dict(backbone or {})
    unknown = set(backbone) - {'categorical', 'continuous', 'finalclassifier'}
    if unknown:
        raise KeyError(f"Unknown tabular backbone keys: {sorted(unknown)}")
    defaults = default_tabular_backbone(inblock, outblock, config)
    parts = {k: backbone.get(k, defaults[k]) for k in defaults}
    return TabularModel(
        parts['categorical'],
        parts['continuous'],
        parts['finalclassifier'],
        n_cat=inblock.M,
        n_cont=inblock.N,
        layers=config.tabular_layers,
        **kwargs)


def blockbackbone(inblock: Block, **kwargs):
    """
    Default backbone for an input block.

    - ImageTensor: `convbackbone(nchannels, ndim)`
    - TableRow: empty mapping (every tabular sub-backbone uses its default)
    """
    if isinstance(inblock, ImageTensor):
        return convbackbone(inblock.nchannels, inblock.ndim, **kwargs)
    if isinstance(inblock, TableRow):
        return {}
    raise UnsupportedBlockCombination(inblock, None, what="blockbackbone")
