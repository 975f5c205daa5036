"""
Learner

Bundles a model with its data loaders, loss function and optimizer
factory. The optimizer itself is a mutable field: fine-tuning phases
swap it in with `withfields` and restore it afterwards.

Batches are `(xb, yb)` pairs; when `xb` is a tuple or list it is
unpacked into the model call (tabular models take `(x_cat, x_cont)`).
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import torch
import torch.nn as nn
from torch.utils.data import DataLoader

from ..blocks import blocklossfn
from ..core.config import ModelConfig, DEFAULT_MODEL_CONFIG
from ..models import blockbackbone, blockmodel
from .metrics import EpochMetrics, MetricsLogger


@dataclass(frozen=True)
class TrainingPhase:
    name: str = "train"


@dataclass(frozen=True)
class ValidationPhase:
    name: str = "valid"


@contextmanager
def withfields(obj, **fields):
    """
    Temporarily set attributes of `obj`; the previous values are restored
    on exit, also when the body raises.
    """
    previous = {name: getattr(obj, name) for name in fields}
    for name, value in fields.items():
        setattr(obj, name, value)
    try:
        yield obj
    finally:
        for name, value in previous.items():
            setattr(obj, name, value)


class Learner:
    """
    Args:
        model: Model to train
        train_loader: Training batches
        loss_fn: `loss_fn(output, target) -> scalar tensor`
        val_loader: Validation batches (optional)
        opt_func: Optimizer factory, called as `opt_func(param_groups, lr=lr)`
        device: Training device
        logger: MetricsLogger (a quiet default is created when None)
    """

    def __init__(
        self,
        model: nn.Module,
        train_loader: DataLoader,
        loss_fn: Callable,
        val_loader: Optional[DataLoader] = None,
        opt_func: Callable = torch.optim.Adam,
        device: str = 'cpu',
        logger: Optional[MetricsLogger] = None
    ):
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.train_loader = train_loader
        self.val_loader = val_loader
        self.loss_fn = loss_fn
        self.opt_func = opt_func
        self.logger = logger if logger is not None else MetricsLogger()

        self.optimizer: Optional[torch.optim.Optimizer] = None
        self.phases: List = []
        self.phase = None

        self.epoch = 0
        self.step = 0

    def init_learner(self, phases: Sequence):
        """Record the phases of the upcoming run and reset the counters."""
        self.phases = list(phases)
        self.phase = self.phases[0] if self.phases else None
        self.epoch = 0
        self.step = 0

    def _to_device(self, x):
        if isinstance(x, (tuple, list)):
            return type(x)(self._to_device(v) for v in x)
        if isinstance(x, torch.Tensor):
            return x.to(self.device)
        return x

    def forward(self, xb):
        if isinstance(xb, (tuple, list)):
            return self.model(*xb)
        return self.model(xb)

    def train_epoch(self, scheduler=None, phase: str = "fit") -> float:
        """
        One pass over `train_loader`. Steps `scheduler` after every batch.

        Returns:
            Mean training loss of the epoch
        """
        if self.optimizer is None:
            raise RuntimeError("Learner has no optimizer; build one before training.")

        self.model.train()
        losses = []
        for xb, yb in self.train_loader:
            xb, yb = self._to_device(xb), self._to_device(yb)
            self.logger.start_step()

            self.optimizer.zero_grad()
            loss = self.loss_fn(self.forward(xb), yb)
            loss.backward()
            self.optimizer.step()

            loss_value = float(loss.detach().item())
            metrics = self.logger.compute_metrics(
                self.model, self.optimizer, loss_value, phase, self.epoch, self.step)
            self.logger.log_step(metrics)
            losses.append(loss_value)

            if scheduler is not None:
                scheduler.step()
            self.step += 1

        return sum(losses) / len(losses) if losses else 0.0

    @torch.no_grad()
    def evaluate(self) -> Optional[float]:
        """Mean validation loss, or None without a validation loader."""
        if self.val_loader is None:
            return None

        self.model.eval()
        losses = []
        for xb, yb in self.val_loader:
            xb, yb = self._to_device(xb), self._to_device(yb)
            losses.append(float(self.loss_fn(self.forward(xb), yb).item()))
        return sum(losses) / len(losses) if losses else None

    def fit_epoch(self, scheduler=None, phase: str = "fit") -> EpochMetrics:
        """Train one epoch, validate, log and advance the epoch counter."""
        start = time.time()
        train_loss = self.train_epoch(scheduler, phase=phase)
        val_loss = self.evaluate()
        metrics = EpochMetrics(
            phase=phase,
            epoch=self.epoch,
            train_loss=train_loss,
            val_loss=val_loss,
            epoch_time=time.time() - start,
        )
        self.logger.log_epoch(metrics)
        self.epoch += 1
        return metrics

    def __repr__(self) -> str:
        return (
            f"Learner(model={type(self.model).__name__}, "
            f"opt_func={getattr(self.opt_func, '__name__', self.opt_func)}, "
            f"device={self.device})"
        )


def blocklearner(
    inblock,
    outblock,
    train_loader: DataLoader,
    val_loader: Optional[DataLoader] = None,
    backbone=None,
    opt_func: Callable = torch.optim.Adam,
    device: str = 'cpu',
    logger: Optional[MetricsLogger] = None,
    config: ModelConfig = DEFAULT_MODEL_CONFIG,
    **kwargs
) -> Learner:
    """
    Learner for the task `inblock -> outblock`.

    The model comes from `blockmodel` (with `blockbackbone(inblock)` when
    no backbone is given), the loss from `blocklossfn(outblock, outblock)`.
    Extra kwargs go to the model builder.
    """
    if backbone is None:
        backbone = blockbackbone(inblock)
    model = blockmodel(inblock, outblock, backbone, config=config, **kwargs)
    loss_fn = blocklossfn(outblock, outblock)
    return Learner(
        model, train_loader, loss_fn,
        val_loader=val_loader, opt_func=opt_func, device=device, logger=logger)
