"""
Tabular Model

Three sub-backbones, each replaceable:
- categorical: embeddings for the M categorical columns (B, M) -> (B, E)
- continuous: normalization of the N continuous columns (B, N) -> (B, N')
- finalclassifier: last layer mapping the hidden width to the outputs

Between them sits a stack of Linear -> ReLU -> BatchNorm -> Dropout layers.
"""

from typing import Dict, List, Sequence, Tuple

import torch
import torch.nn as nn


def emb_sz_rule(n_cat: int, max_size: int = 600) -> int:
    """Embedding width for a column with `n_cat` categories."""
    return min(max_size, round(1.6 * n_cat ** 0.56))


def get_emb_sz(cardinalities: Dict[str, int], catcols: Sequence[str] = None,
               max_size: int = 600) -> List[Tuple[int, int]]:
    """
    (number of embeddings, embedding width) per categorical column.

    One extra slot per column holds missing or unknown values (index 0).
    """
    cols = list(catcols) if catcols is not None else list(cardinalities)
    return [
        (cardinalities[col] + 1, emb_sz_rule(cardinalities[col] + 1, max_size))
        for col in cols
    ]


class TabularEmbeddingBackbone(nn.Module):
    """One embedding per categorical column, concatenated."""

    def __init__(self, embedszs: Sequence[Tuple[int, int]], dropout: float = 0.0):
        super().__init__()
        self.embeds = nn.ModuleList([nn.Embedding(n, sz) for n, sz in embedszs])
        self.dropout = nn.Dropout(dropout)
        self.outwidth = sum(sz for _, sz in embedszs)

    def forward(self, x_cat: torch.Tensor) -> torch.Tensor:
        if len(self.embeds) == 0:
            return x_cat.new_zeros((x_cat.shape[0], 0), dtype=torch.float32)
        x = torch.cat([emb(x_cat[:, i]) for i, emb in enumerate(self.embeds)], dim=1)
        return self.dropout(x)


def tabular_embedding_backbone(embedszs: Sequence[Tuple[int, int]], dropout: float = 0.0) -> nn.Module:
    return TabularEmbeddingBackbone(embedszs, dropout=dropout)


def tabular_continuous_backbone(n_cont: int) -> nn.Module:
    return nn.BatchNorm1d(n_cont) if n_cont > 0 else nn.Identity()


class TabularModel(nn.Module):
    """
    Args:
        catbackbone: Module for (B, M) long tensors of category indices
        contbackbone: Module for (B, N) float tensors
        finalclassifier: Module for (B, layers[-1]) hidden features
        n_cat: M, used to probe the categorical output width
        n_cont: N, used to probe the continuous output width
        layers: Hidden layer widths
        ps: Dropout probability of the hidden layers
    """

    def __init__(
        self,
        catbackbone: nn.Module,
        contbackbone: nn.Module,
        finalclassifier: nn.Module,
        n_cat: int,
        n_cont: int,
        layers: Sequence[int] = (200, 100),
        ps: float = 0.0
    ):
        super().__init__()
        self.catbackbone = catbackbone
        self.contbackbone = contbackbone
        self.n_cat = n_cat
        self.n_cont = n_cont

        nin = self._probe_width()
        hidden = []
        for width in layers:
            hidden += [
                nn.Linear(nin, width),
                nn.ReLU(inplace=True),
                nn.BatchNorm1d(width),
                nn.Dropout(ps),
            ]
            nin = width
        self.layers = nn.Sequential(*hidden)
        self.finalclassifier = finalclassifier

    @torch.no_grad()
    def _probe_width(self) -> int:
        modes = [(m, m.training) for m in (self.catbackbone, self.contbackbone)]
        for m, _ in modes:
            m.eval()
        try:
            cat = self.catbackbone(torch.zeros(1, self.n_cat, dtype=torch.long))
            cont = self.contbackbone(torch.zeros(1, self.n_cont))
        finally:
            for m, mode in modes:
                m.train(mode)
        return cat.shape[1] + cont.shape[1]

    def forward(self, x_cat: torch.Tensor, x_cont: torch.Tensor) -> torch.Tensor:
        x = torch.cat([self.catbackbone(x_cat), self.contbackbone(x_cont.float())], dim=1)
        return self.finalclassifier(self.layers(x))
