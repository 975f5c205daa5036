"""
Layers and Backbone Constructors

- AdaptiveConcatPool: concatenated adaptive average and max pooling
- visionhead: classification/regression head for convolutional features
- convbackbone: small N-d convolutional feature extractor (nn.Sequential)
- timm_backbone: feature extractor from the timm model zoo
"""

from typing import Sequence

import torch
import torch.nn as nn


def conv_layer(ndim: int) -> type:
    if ndim not in (1, 2, 3):
        raise ValueError(f"Convolutions are available for 1 to 3 dimensions, got {ndim}")
    return getattr(nn, f"Conv{ndim}d")


def batchnorm_layer(ndim: int) -> type:
    return getattr(nn, f"BatchNorm{ndim}d")


class AdaptiveConcatPool(nn.Module):
    """
    Pools every spatial axis to size 1 with both average and max pooling
    and concatenates the results along the channel axis.

    (B, C, *spatial) -> (B, 2C, 1, ...)
    """

    def __init__(self, ndim: int = 2):
        super().__init__()
        if ndim not in (1, 2, 3):
            raise ValueError(f"Pooling is available for 1 to 3 dimensions, got {ndim}")
        self.ndim = ndim
        self.avg = getattr(nn, f"AdaptiveAvgPool{ndim}d")(1)
        self.max = getattr(nn, f"AdaptiveMaxPool{ndim}d")(1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.cat([self.max(x), self.avg(x)], dim=1)

    def extra_repr(self) -> str:
        return f'ndim={self.ndim}'


def visionhead(
    nin: int,
    nout: int,
    hidden: int = 512,
    p: float = 0.0,
    ndim: int = 2
) -> nn.Sequential:
    """
    Head mapping (B, nin, *spatial) features to (B, nout) outputs.

    Args:
        nin: Channels produced by the backbone
        nout: Number of outputs (classes or regression targets)
        hidden: Width of the hidden layer
        p: Dropout probability of the last layer (first layer uses p / 2)
        ndim: Number of spatial axes of the features
    """
    return nn.Sequential(
        AdaptiveConcatPool(ndim),
        nn.Flatten(),
        nn.BatchNorm1d(2 * nin),
        nn.Dropout(p / 2),
        nn.Linear(2 * nin, hidden, bias=False),
        nn.ReLU(inplace=True),
        nn.BatchNorm1d(hidden),
        nn.Dropout(p),
        nn.Linear(hidden, nout),
    )


def conv_block(nin: int, nout: int, ndim: int = 2, stride: int = 2) -> nn.Sequential:
    """Conv -> BatchNorm -> ReLU, halving each spatial axis by default."""
    return nn.Sequential(
        conv_layer(ndim)(nin, nout, kernel_size=3, stride=stride, padding=1, bias=False),
        batchnorm_layer(ndim)(nout),
        nn.ReLU(inplace=True),
    )


def convbackbone(
    nchannels: int = 3,
    ndim: int = 2,
    widths: Sequence[int] = (32, 64, 128, 256)
) -> nn.Sequential:
    """
    Small convolutional feature extractor, one stride-2 block per width.

    Returns an nn.Sequential so that shape probing and the dynamic U-Net
    can inspect its stages.
    """
    layers = []
    nin = nchannels
    for width in widths:
        layers.append(conv_block(nin, width, ndim=ndim))
        nin = width
    return nn.Sequential(*layers)


def timm_backbone(name: str, nchannels: int = 3, pretrained: bool = False) -> nn.Module:
    """
    Convolutional trunk from timm without pooling or classifier, producing
    (B, C, H, W) feature maps.

    Args:
        name: timm model name (e.g. 'resnet18', 'mobilenetv3_small_100')
        nchannels: Input channels
        pretrained: Load pretrained weights (downloads on first use)
    """
    import timm  # type: ignore

    return timm.create_model(
        name,
        pretrained=pretrained,
        in_chans=nchannels,
        num_classes=0,
        global_pool='',
    )
