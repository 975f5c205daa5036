"""
Utilities for fastblocks

Visualization of fine-tuning runs.
"""

from .visualization import (
    plot_lr_schedule,
    plot_losses,
)

__all__ = [
    'plot_lr_schedule',
    'plot_losses',
]
