"""
Configuration for Model Construction and Fine-Tuning

Two dataclasses hold every tunable constant:
- ModelConfig: shape probing, head and tabular model sizes
- FineTuneConfig: the two-phase fine-tuning schedule

Explicit keyword arguments to `fine_tune`/`blockmodel` always win over
values taken from a config.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Tuple


@dataclass
class ModelConfig:
    """
    Constants used when building models from blocks.

    Attributes:
        probe_size: Spatial size per axis of the synthetic input used to
            infer a backbone's output channels (batch size 1)
        head_hidden: Hidden width of the vision head
        head_dropout: Dropout probability in the vision head
        tabular_layers: Hidden layer widths of the tabular model; the last
            one is the input width of the final classifier
        emb_dropout: Dropout after the categorical embeddings
        max_emb_size: Upper bound for a single embedding width
    """

    probe_size: int = 256
    head_hidden: int = 512
    head_dropout: float = 0.0
    tabular_layers: Tuple[int, ...] = (200, 100)
    emb_dropout: float = 0.0
    max_emb_size: int = 600

    def __post_init__(self):
        if self.probe_size < 1:
            raise ValueError(f"probe_size must be positive, got {self.probe_size}")
        if not 0.0 <= self.head_dropout < 1.0:
            raise ValueError(f"head_dropout must be in [0, 1), got {self.head_dropout}")
        if not 0.0 <= self.emb_dropout < 1.0:
            raise ValueError(f"emb_dropout must be in [0, 1), got {self.emb_dropout}")

        # Ensure tabular_layers is tuple
        if isinstance(self.tabular_layers, list):
            self.tabular_layers = tuple(self.tabular_layers)
        if len(self.tabular_layers) == 0:
            raise ValueError("tabular_layers needs at least one hidden layer")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FineTuneConfig:
    """
    Two-phase fine-tuning schedule.

    Phase 1 (frozen): backbone multiplier 0, head multiplier 1, one-cycle
    fit for `freeze_epochs` at `base_lr` with warmup `freeze_pct_start`.

    Phase 2 (discriminative): `base_lr / 2`, backbone trains `lr_mult`
    times slower than the head, one-cycle fit with warmup `pct_start`
    and range divisor `div`.

    Attributes:
        base_lr: Peak learning rate of the head
        freeze_epochs: Epochs in the frozen phase
        lr_mult: Ratio between head and backbone learning rates
        div: Initial learning rate is peak / div
        div_final: Final learning rate is initial / div_final
        pct_start: Warmup fraction of the discriminative phase
        freeze_pct_start: Warmup fraction of the frozen phase
        log_interval: Steps between console log lines
        output_dir: Directory for JSON logs (None disables writing)
    """

    base_lr: float = 0.002
    freeze_epochs: int = 1
    lr_mult: float = 10.0
    div: float = 5.0
    div_final: float = 1e5
    pct_start: float = 0.3
    freeze_pct_start: float = 0.99
    log_interval: int = 10
    output_dir: Optional[str] = None

    def __post_init__(self):
        if self.base_lr <= 0:
            raise ValueError(f"base_lr must be positive, got {self.base_lr}")
        if self.freeze_epochs < 0:
            raise ValueError(f"freeze_epochs must be >= 0, got {self.freeze_epochs}")
        if self.lr_mult <= 0:
            raise ValueError(f"lr_mult must be positive, got {self.lr_mult}")
        if self.div <= 0 or self.div_final <= 0:
            raise ValueError("div and div_final must be positive")
        for name in ('pct_start', 'freeze_pct_start'):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                raise ValueError(f"{name} must be in (0, 1), got {value}")

    def to_dict(self) -> dict:
        return asdict(self)


def get_default_config() -> FineTuneConfig:
    """Returns validated default fine-tuning configuration."""
    return FineTuneConfig()


# Pre-defined configurations

DEFAULT_MODEL_CONFIG = ModelConfig()

DEFAULT_FINETUNE_CONFIG = FineTuneConfig()

FAST_TEST_CONFIG = FineTuneConfig(
    base_lr=0.01,
    freeze_epochs=1,
    lr_mult=10.0,
    div=5.0,
    pct_start=0.3,
    log_interval=1000,  # Quiet in tests
)
