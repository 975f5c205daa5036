"""
Model Components

Model construction from blocks plus the building blocks it relies on.

Components:
- blockmodel / blockbackbone: block-pair dispatch to architectures
- visionhead, AdaptiveConcatPool: heads for convolutional features
- convbackbone, timm_backbone: feature extractors
- UNetDynamic: U-Net decoder around any convolutional backbone
- TabularModel: embedding + continuous + classifier tabular model
- forward_shape: shape inference by synthetic forward pass
"""

from .introspection import forward_shape, stage_shapes
from .layers import AdaptiveConcatPool, visionhead, conv_block, convbackbone, timm_backbone
from .unet import UNetDynamic, UNetBlock
from .tabular import (
    TabularModel,
    TabularEmbeddingBackbone,
    emb_sz_rule,
    get_emb_sz,
    tabular_embedding_backbone,
    tabular_continuous_backbone,
)
from .blockmodel import blockmodel, blockbackbone, default_tabular_backbone

__all__ = [
    'forward_shape',
    'stage_shapes',
    'AdaptiveConcatPool',
    'visionhead',
    'conv_block',
    'convbackbone',
    'timm_backbone',
    'UNetDynamic',
    'UNetBlock',
    'TabularModel',
    'TabularEmbeddingBackbone',
    'emb_sz_rule',
    'get_emb_sz',
    'tabular_embedding_backbone',
    'tabular_continuous_backbone',
    'blockmodel',
    'blockbackbone',
    'default_tabular_backbone',
]
