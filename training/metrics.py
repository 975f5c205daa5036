"""
Training Metrics and Logging

Tracks:
- Training progress (phase, epoch, step)
- Loss per step (with exponential moving average) and per epoch
- Learning rate and multiplier of every parameter group
- Gradient norm
- Timing
"""

import json
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Optional

import torch


@dataclass
class FitMetrics:
    """Metrics for one optimizer step."""

    phase: str = "fit"
    epoch: int = 0
    step: int = 0
    loss: float = 0.0
    avg_loss: float = 0.0
    grad_norm: float = 0.0
    step_time: float = 0.0

    # group id -> learning rate / multiplier
    lrs: Dict[int, float] = field(default_factory=dict)
    lr_mults: Dict[int, float] = field(default_factory=dict)


@dataclass
class EpochMetrics:
    """Metrics at the end of an epoch."""

    phase: str = "fit"
    epoch: int = 0
    train_loss: float = 0.0
    val_loss: Optional[float] = None
    epoch_time: float = 0.0


class MetricsLogger:
    """
    Logger for training metrics.

    Handles:
    - Console logging every `log_interval` steps and at epoch ends
    - In-memory history (steps and epochs)
    - JSON logging when `log_dir` is given
    - Summaries per phase
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        log_interval: int = 10,
        smoothing: float = 0.9,
        verbose: bool = True
    ):
        """
        Args:
            log_dir: Directory for JSON logs (None: keep history in memory only)
            log_interval: Print every N steps
            smoothing: Exponential smoothing factor for the moving average loss
            verbose: Print to console at all
        """
        self.log_dir = Path(log_dir) if log_dir is not None else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_interval = log_interval
        self.smoothing = smoothing
        self.verbose = verbose

        self.history: List[FitMetrics] = []
        self.epochs: List[EpochMetrics] = []

        self.ema_loss: Optional[float] = None
        self.step_start_time = None

    def start_step(self):
        """Mark start of an optimizer step."""
        self.step_start_time = time.time()

    def compute_metrics(
        self,
        model: torch.nn.Module,
        optimizer: torch.optim.Optimizer,
        loss: float,
        phase: str,
        epoch: int,
        step: int
    ) -> FitMetrics:
        """
        Collect metrics after `optimizer.step()` (gradients still present).
        """
        metrics = FitMetrics(phase=phase, epoch=epoch, step=step, loss=loss)

        if self.step_start_time is not None:
            metrics.step_time = time.time() - self.step_start_time

        total_norm = 0.0
        for p in model.parameters():
            if p.grad is not None:
                total_norm += p.grad.detach().norm(2).item() ** 2
        metrics.grad_norm = total_norm ** 0.5

        for i, g in enumerate(optimizer.param_groups):
            gid = g.get('group', i + 1)
            metrics.lrs[gid] = g['lr']
            metrics.lr_mults[gid] = g.get('lr_mult', 1.0)

        if self.ema_loss is None:
            self.ema_loss = loss
        else:
            self.ema_loss = self.smoothing * self.ema_loss + (1 - self.smoothing) * loss
        metrics.avg_loss = self.ema_loss

        return metrics

    def log_step(self, metrics: FitMetrics):
        """Record a step and print it every `log_interval` steps."""
        self.history.append(metrics)
        if self.verbose and self.log_interval > 0 and metrics.step % self.log_interval == 0:
            lrs = "  ".join(f"g{gid}={lr:.2e}" for gid, lr in metrics.lrs.items())
            print(
                f"[{metrics.phase}] epoch {metrics.epoch} step {metrics.step:5d} | "
                f"loss {metrics.loss:.6f} (avg {metrics.avg_loss:.6f}) | "
                f"grad {metrics.grad_norm:.4f} | lr {lrs}"
            )

    def log_epoch(self, metrics: EpochMetrics):
        """Record an epoch and print its losses."""
        self.epochs.append(metrics)
        if self.verbose:
            val = f"{metrics.val_loss:.6f}" if metrics.val_loss is not None else "-"
            print(
                f"[{metrics.phase}] EPOCH {metrics.epoch} | train {metrics.train_loss:.6f} | "
                f"valid {val} | {metrics.epoch_time:.1f}s"
            )

    def phase_history(self, phase: str) -> List[FitMetrics]:
        return [m for m in self.history if m.phase == phase]

    def reset(self):
        self.history.clear()
        self.epochs.clear()
        self.ema_loss = None

    def save_logs(self, filename: str = "training_log.json",
                  log_dir: Optional[str] = None) -> Optional[Path]:
        """
        Save metrics history to a JSON file in `log_dir` (argument, else
        the logger's own).

        Returns the path, or None when no directory is configured.
        """
        log_dir = Path(log_dir) if log_dir is not None else self.log_dir
        if log_dir is None:
            return None
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / filename
        with open(log_path, 'w') as f:
            json.dump({
                'steps': [asdict(m) for m in self.history],
                'epochs': [asdict(m) for m in self.epochs],
            }, f, indent=2)
        if self.verbose:
            print(f"Logs saved to: {log_path}")
        return log_path

    def print_summary(self):
        """Print summary statistics per phase."""
        if len(self.history) == 0:
            print("No metrics to summarize.")
            return

        print("\n" + "=" * 80)
        print("TRAINING SUMMARY")
        print("=" * 80)
        for phase in dict.fromkeys(m.phase for m in self.history):
            steps = self.phase_history(phase)
            losses = [m.loss for m in steps]
            times = [m.step_time for m in steps]
            print(f"\nPhase:             {phase}")
            print(f"  Steps:           {len(steps)}")
            print(f"  Average loss:    {sum(losses) / len(losses):.6f}")
            print(f"  Final loss:      {losses[-1]:.6f}")
            print(f"  Best loss:       {min(losses):.6f}")
            print(f"  Total time:      {sum(times):.1f}s")
        print("=" * 80 + "\n")
