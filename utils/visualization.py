"""
Visualization Utilities for Fine-Tuning Runs

Plotting learning-rate schedules per parameter group and loss curves
from a MetricsLogger history.
"""

import matplotlib.pyplot as plt
import numpy as np
from typing import Optional

from ..training.metrics import MetricsLogger


def _phase_boundaries(history):
    """Step indices where the phase label changes."""
    return [
        i for i in range(1, len(history))
        if history[i].phase != history[i - 1].phase
    ]


def plot_lr_schedule(
    logger: MetricsLogger,
    save_path: Optional[str] = None,
    log_scale: bool = False
):
    """
    Plot the learning rate of every parameter group over all logged steps.

    Args:
        logger: MetricsLogger with a step history
        save_path: Optional path to save figure
        log_scale: Use log scale for y-axis

    Phase changes (frozen -> discriminative) are marked by vertical lines.
    """
    history = logger.history
    if len(history) == 0:
        raise ValueError("MetricsLogger has no steps to plot.")

    gids = sorted({gid for m in history for gid in m.lrs})
    x = np.arange(len(history))

    fig, ax = plt.subplots(figsize=(10, 5))
    for gid in gids:
        lrs = np.array([m.lrs.get(gid, np.nan) for m in history])
        ax.plot(x, lrs, linewidth=2, label=f'group {gid}')
    for boundary in _phase_boundaries(history):
        ax.axvline(x=boundary, color='gray', linestyle='--', alpha=0.7)
    if log_scale:
        ax.set_yscale('log')
    ax.set_xlabel('Step')
    ax.set_ylabel('Learning Rate')
    ax.set_title('Learning Rate Schedule per Parameter Group')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Learning rate plot saved to {save_path}")

    plt.close(fig)


def plot_losses(
    logger: MetricsLogger,
    save_path: Optional[str] = None
):
    """
    Plot step losses (raw and smoothed) and per-epoch train/valid losses.

    Args:
        logger: MetricsLogger with a step and epoch history
        save_path: Optional path to save figure
    """
    history = logger.history
    if len(history) == 0:
        raise ValueError("MetricsLogger has no steps to plot.")

    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    # Plot 1: Per step
    ax = axes[0]
    x = np.arange(len(history))
    ax.plot(x, [m.loss for m in history], 'b-', alpha=0.3, label='loss')
    ax.plot(x, [m.avg_loss for m in history], 'b-', linewidth=2, label='smoothed')
    for boundary in _phase_boundaries(history):
        ax.axvline(x=boundary, color='gray', linestyle='--', alpha=0.7)
    ax.set_xlabel('Step')
    ax.set_ylabel('Loss')
    ax.set_title('Training Loss per Step')
    ax.legend()
    ax.grid(True, alpha=0.3)

    # Plot 2: Per epoch
    ax = axes[1]
    epochs = logger.epochs
    e = np.arange(len(epochs))
    ax.plot(e, [m.train_loss for m in epochs], 'o-', label='train')
    val = [m.val_loss for m in epochs]
    if any(v is not None for v in val):
        ax.plot(e, [np.nan if v is None else v for v in val], 's-', label='valid')
    ax.set_xlabel('Epoch')
    ax.set_ylabel('Loss')
    ax.set_title('Loss per Epoch')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Loss plot saved to {save_path}")

    plt.close(fig)
