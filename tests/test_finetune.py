"""
Test Fine-Tuning

Verifies the two-phase schedule: frozen head training followed by
discriminative learning rates, the grouper resolution, config defaults
and an end-to-end run on block-built models.
"""

import numpy as np
import pytest
import torch
import torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset

from ..blocks import Continuous, ImageTensor, Label, OneHot, TableRow, TabularPreprocessing, mockblock
from ..core.config import FineTuneConfig, FAST_TEST_CONFIG, ModelConfig
from ..core.errors import GrouperResolutionError
from ..models import convbackbone
from ..training import finetune
from ..training.datasets import BlockDataset
from ..training.learner import Learner, TrainingPhase, blocklearner
from ..training.metrics import MetricsLogger
from ..training.paramgroups import IndexGrouper, ModuleGrouper


def regression_loader(n=16, batch_size=4):
    x = torch.randn(n, 4)
    y = x.sum(dim=1, keepdim=True)
    return DataLoader(TensorDataset(x, y), batch_size=batch_size)


def three_layer_learner():
    model = nn.Sequential(nn.Linear(4, 8), nn.Linear(8, 8), nn.Linear(8, 1))
    return Learner(
        model, regression_loader(), nn.functional.mse_loss,
        logger=MetricsLogger(verbose=False))


@pytest.fixture
def recorded(monkeypatch):
    """Replace fit_one_cycle and record the optimizer of every phase."""
    calls = []

    def fake_fit_one_cycle(learner, nepochs, peak_lr, **kwargs):
        layer_mults = {}
        for g in learner.optimizer.param_groups:
            for p in g['params']:
                for i, layer in enumerate(learner.model):
                    if any(p is q for q in layer.parameters()):
                        layer_mults[i] = g['lr_mult']
        calls.append({
            'nepochs': nepochs,
            'peak_lr': peak_lr,
            'kwargs': kwargs,
            'layer_mults': layer_mults,
            'phases': list(learner.phases),
            'log_interval': learner.logger.log_interval,
        })
        return learner

    monkeypatch.setattr(finetune, 'fit_one_cycle', fake_fit_one_cycle)
    return calls


class TestPhases:

    def test_layer_multipliers(self, recorded):
        learner = three_layer_learner()
        lr_mult = 10.0
        finetune.fine_tune(learner, 3, grouper=IndexGrouper([range(0, 2), 2]), lr_mult=lr_mult)

        assert len(recorded) == 2
        frozen, discriminative = recorded

        # Phase 1: only the head trains
        assert frozen['layer_mults'] == {0: 0.0, 1: 0.0, 2: 1.0}
        # Phase 2: backbone lr_mult times slower than the head
        assert discriminative['layer_mults'][0] == pytest.approx(1 / lr_mult)
        assert discriminative['layer_mults'][1] == pytest.approx(1 / lr_mult)
        assert discriminative['layer_mults'][2] == pytest.approx(1.0)

    def test_schedule_arguments(self, recorded):
        learner = three_layer_learner()
        finetune.fine_tune(learner, 3, base_lr=0.004, freeze_epochs=2, div=7.0, pct_start=0.4)
        frozen, discriminative = recorded

        assert frozen['nepochs'] == 2
        assert frozen['peak_lr'] == pytest.approx(0.004)
        assert frozen['kwargs']['pct_start'] == 0.99
        assert 'div' not in frozen['kwargs']

        assert discriminative['nepochs'] == 3
        assert discriminative['peak_lr'] == pytest.approx(0.002)
        assert discriminative['kwargs']['pct_start'] == 0.4
        assert discriminative['kwargs']['div'] == 7.0

    def test_defaults(self, recorded):
        finetune.fine_tune(three_layer_learner(), 1)
        frozen, discriminative = recorded
        assert frozen['peak_lr'] == pytest.approx(0.002)
        assert frozen['nepochs'] == 1
        assert discriminative['peak_lr'] == pytest.approx(0.001)
        assert discriminative['kwargs']['div'] == 5.0
        assert discriminative['kwargs']['pct_start'] == 0.3
        assert discriminative['layer_mults'][0] == pytest.approx(0.1)

    def test_kwargs_forwarded_to_both_phases(self, recorded):
        finetune.fine_tune(three_layer_learner(), 1, div_final=10.0)
        assert all(call['kwargs']['div_final'] == 10.0 for call in recorded)

    def test_config_defaults_and_overrides(self, recorded):
        config = FineTuneConfig(base_lr=0.01, freeze_epochs=0, lr_mult=4.0)
        finetune.fine_tune(three_layer_learner(), 2, config=config)
        finetune.fine_tune(three_layer_learner(), 2, base_lr=0.02, config=config)

        assert recorded[0]['peak_lr'] == pytest.approx(0.01)
        assert recorded[0]['nepochs'] == 0
        assert recorded[1]['layer_mults'][0] == pytest.approx(0.25)
        assert recorded[2]['peak_lr'] == pytest.approx(0.02)

    def test_learner_reset_and_optimizer_restored(self, recorded):
        learner = three_layer_learner()
        learner.epoch, learner.step = 5, 50
        result = finetune.fine_tune(learner, 1)

        assert result is learner
        assert (learner.epoch, learner.step) == (0, 0)
        assert recorded[0]['phases'] == [TrainingPhase()]
        assert learner.optimizer is None

    def test_logger_interval_kept_without_config(self, recorded):
        learner = three_layer_learner()
        learner.logger.log_interval = 1
        finetune.fine_tune(learner, 1)
        assert [call['log_interval'] for call in recorded] == [1, 1]

    def test_config_log_interval_for_the_run(self, recorded):
        learner = three_layer_learner()
        learner.logger.log_interval = 1
        finetune.fine_tune(learner, 1, config=FineTuneConfig(log_interval=3))
        assert [call['log_interval'] for call in recorded] == [3, 3]
        assert learner.logger.log_interval == 1

    def test_grouper_error_before_training(self, recorded):

        class NotSequential(nn.Module):
            def __init__(self):
                super().__init__()
                self.layer = nn.Linear(4, 1)

            def forward(self, x):
                return self.layer(x)

        learner = Learner(NotSequential(), regression_loader(), nn.functional.mse_loss)
        with pytest.raises(GrouperResolutionError):
            finetune.fine_tune(learner, 1)
        assert recorded == []
        assert learner.optimizer is None


class TestEndToEnd:

    def test_frozen_phase_keeps_backbone(self):
        learner = three_layer_learner()
        before = [p.detach().clone() for p in learner.model.parameters()]

        finetune.fine_tune(learner, 0, config=FAST_TEST_CONFIG)

        after = list(learner.model.parameters())
        for b, a in zip(before[:4], after[:4]):
            assert torch.equal(b, a)
        assert not torch.equal(before[4], after[4])

        frozen = learner.logger.phase_history("frozen")
        assert len(frozen) == 4
        assert all(m.lrs[1] == 0.0 for m in frozen)
        assert all(m.lrs[2] > 0.0 for m in frozen)

    def test_two_phases_logged(self):
        learner = three_layer_learner()
        finetune.fine_tune(learner, 2, config=FAST_TEST_CONFIG)

        logger = learner.logger
        assert len(logger.phase_history("frozen")) == 4
        discriminative = logger.phase_history("discriminative")
        assert len(discriminative) == 8
        for m in discriminative:
            assert m.lr_mults[1] == pytest.approx(0.1)
            assert m.lrs[1] == pytest.approx(m.lrs[2] * 0.1)
        assert [e.phase for e in logger.epochs] == ["frozen", "discriminative", "discriminative"]
        assert learner.optimizer is None

    def test_warmup_ending_on_first_step(self):
        learner = three_layer_learner()
        finetune.fine_tune(learner, 1, pct_start=0.25, config=FAST_TEST_CONFIG)

        discriminative = learner.logger.phase_history("discriminative")
        assert len(discriminative) == 4
        assert all(np.isfinite(m.lrs[2]) and np.isfinite(m.loss) for m in discriminative)

    def test_image_classification(self):
        inblock = ImageTensor(2, 1)
        label = Label(("a", "b"))
        onehot = OneHot()
        outblock = onehot.encodedblock(label)
        observations = [(mockblock(inblock), mockblock(label)) for _ in range(8)]
        dataset = BlockDataset(
            (inblock, label), observations,
            encode=lambda obs: (obs[0], onehot.encode(label, obs[1])))

        learner = blocklearner(
            inblock, outblock, DataLoader(dataset, batch_size=4),
            backbone=convbackbone(1, 2, widths=(4, 8)),
            logger=MetricsLogger(verbose=False),
            config=ModelConfig(probe_size=16, head_hidden=8))
        finetune.fine_tune(learner, 1, config=FAST_TEST_CONFIG)

        assert len(learner.logger.history) == 4
        assert all(np.isfinite(m.loss) for m in learner.logger.history)

    def test_tabular_regression_with_module_grouper(self):
        rows = [
            {'color': ['red', 'blue'][i % 2], 'weight': float(i), 'height': float(-i)}
            for i in range(16)
        ]
        row = TableRow.setup(rows)
        prep = TabularPreprocessing()
        dataset = BlockDataset(
            row, rows,
            encode=lambda r: (prep.encode(row, r), np.array([r['weight']], dtype=np.float32)))

        learner = blocklearner(
            prep.encodedblock(row), Continuous(1),
            DataLoader(dataset, batch_size=8),
            logger=MetricsLogger(verbose=False),
            config=ModelConfig(tabular_layers=(8, 4)))
        grouper = ModuleGrouper([['catbackbone', 'contbackbone', 'layers'], ['finalclassifier']])
        finetune.fine_tune(learner, 1, grouper=grouper, config=FAST_TEST_CONFIG)

        assert len(learner.logger.phase_history("discriminative")) == 2
