"""
Fine-Tuning with Progressive Unfreezing

Two phases on a model split into backbone (group 1) and head (group 2):

1. Frozen: only the head trains, one-cycle at `base_lr` with a long
   warmup (`pct_start=0.99`).
2. Discriminative: `base_lr` is halved and every group trains, the
   backbone `lr_mult` times slower than the head.

Usage:
    learner = blocklearner(inblock, outblock, train_loader)
    fine_tune(learner, nepochs=5)
"""

from typing import Optional

from ..core.config import FineTuneConfig, DEFAULT_FINETUNE_CONFIG
from .discriminative import discrlr_optimizer, freeze_optimizer
from .learner import Learner, TrainingPhase, withfields
from .onecycle import fit_one_cycle
from .paramgroups import Grouper, ParamGroups, default_grouper


def _pick(value, default):
    return default if value is None else value


def fine_tune(
    learner: Learner,
    nepochs: int,
    base_lr: Optional[float] = None,
    freeze_epochs: Optional[int] = None,
    grouper: Optional[Grouper] = None,
    lr_mult: Optional[float] = None,
    div: Optional[float] = None,
    pct_start: Optional[float] = None,
    config: Optional[FineTuneConfig] = None,
    **kwargs
) -> Learner:
    """
    Fine-tune `learner.model`: train the head with the backbone frozen,
    then everything with discriminative learning rates.

    Args:
        learner: Learner to train (its `optimizer` is restored afterwards)
        nepochs: Epochs of the discriminative phase
        base_lr: Peak learning rate of the head (default 0.002)
        freeze_epochs: Epochs of the frozen phase (default 1)
        grouper: Backbone/head split; `default_grouper(learner.model)` when None
        lr_mult: Head-to-backbone learning rate ratio (default 10)
        div: Warmup divisor of the discriminative phase (default 5)
        pct_start: Warmup fraction of the discriminative phase (default 0.3)
        config: Defaults for every argument left as None; its `log_interval`
            replaces the logger's for the run
        **kwargs: Passed to `fit_one_cycle` in both phases

    Returns:
        learner

    Raises:
        GrouperResolutionError: If no grouper is given and the model
            cannot be split automatically (before any training happens)
    """
    logger_fields = {} if config is None else {'log_interval': config.log_interval}
    config = config if config is not None else DEFAULT_FINETUNE_CONFIG
    base_lr = _pick(base_lr, config.base_lr)
    freeze_epochs = _pick(freeze_epochs, config.freeze_epochs)
    lr_mult = _pick(lr_mult, config.lr_mult)
    div = _pick(div, config.div)
    pct_start = _pick(pct_start, config.pct_start)
    kwargs.setdefault('div_final', config.div_final)

    grouper = grouper if grouper is not None else default_grouper(learner.model)
    paramgroups = ParamGroups(grouper, learner.model)

    learner.init_learner([TrainingPhase()])

    with withfields(learner.logger, **logger_fields):
        foptim = freeze_optimizer(learner.opt_func, paramgroups, learner.model, base_lr)
        with withfields(learner, optimizer=foptim):
            fit_one_cycle(
                learner, freeze_epochs, base_lr,
                pct_start=config.freeze_pct_start, phase="frozen", **kwargs)

        base_lr /= 2
        doptim = discrlr_optimizer(learner.opt_func, paramgroups, learner.model, lr_mult, base_lr)
        with withfields(learner, optimizer=doptim):
            fit_one_cycle(
                learner, nepochs, base_lr,
                div=div, pct_start=pct_start, phase="discriminative", **kwargs)

    if config.output_dir is not None:
        learner.logger.save_logs("fine_tune_log.json", log_dir=config.output_dir)

    return learner
