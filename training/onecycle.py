"""
One-Cycle Training

`fit_one_cycle(learner, nepochs, peak_lr)` trains with a one-cycle
learning rate schedule (`torch.optim.lr_scheduler.OneCycleLR`): warmup
from `peak / div` to the peak over `pct_start` of the steps, then
annealing down to `peak / div / div_final`.

Each optimizer parameter group follows its own schedule scaled by the
group's 'lr_mult' (groups with multiplier 0 stay at 0 throughout).
"""

from torch.optim.lr_scheduler import OneCycleLR

from .learner import Learner


def _has_momentum(optimizer) -> bool:
    defaults = optimizer.defaults
    return 'betas' in defaults or defaults.get('momentum', 0) > 0


def _warmup_fraction(pct_start: float, total_steps: int) -> float:
    # OneCycleLR divides by zero when the warmup ends on step 0
    if float(pct_start * total_steps) - 1 != 0:
        return pct_start
    return 2 / total_steps if total_steps > 2 else 0.0


def fit_one_cycle(
    learner: Learner,
    nepochs: int,
    peak_lr: float,
    pct_start: float = 0.25,
    div: float = 25.0,
    div_final: float = 1e5,
    phase: str = "fit"
) -> Learner:
    """
    Train `learner` for `nepochs` epochs with a one-cycle schedule.

    Args:
        learner: Learner whose `optimizer` field is set
        nepochs: Number of epochs (0 returns immediately)
        peak_lr: Maximum learning rate of a group with multiplier 1
        pct_start: Fraction of steps spent warming up (a warmup that would
            end on the first step is moved to the second)
        div: Initial learning rate is `peak_lr / div`
        div_final: Final learning rate is initial / `div_final`
        phase: Label recorded with every logged step

    Returns:
        learner
    """
    optimizer = learner.optimizer
    if optimizer is None:
        raise RuntimeError("fit_one_cycle needs `learner.optimizer` to be set.")
    if nepochs == 0:
        return learner

    total_steps = nepochs * len(learner.train_loader)
    max_lrs = [peak_lr * g.get('lr_mult', 1.0) for g in optimizer.param_groups]
    scheduler = OneCycleLR(
        optimizer,
        max_lr=max_lrs,
        total_steps=total_steps,
        pct_start=_warmup_fraction(pct_start, total_steps),
        div_factor=div,
        final_div_factor=div_final,
        cycle_momentum=_has_momentum(optimizer),
    )

    if learner.logger.verbose:
        print("=" * 70)
        print(f"fit_one_cycle [{phase}]: {nepochs} epoch(s), peak lr {peak_lr:.2e}")
        for g, max_lr in zip(optimizer.param_groups, max_lrs):
            print(
                f"  group {g.get('group', '?')}: lr_mult {g.get('lr_mult', 1.0):.4g}  "
                f"max lr {max_lr:.2e}  params {sum(p.numel() for p in g['params'])}"
            )
        print("=" * 70)

    for _ in range(nepochs):
        learner.fit_epoch(scheduler, phase=phase)

    return learner
