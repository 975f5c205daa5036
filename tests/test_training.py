"""
Test Training Infrastructure

Verifies the learner, one-cycle training, block datasets, metrics logging
and plotting of a run.
"""

import json

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import torch
import torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset

from ..blocks import Continuous, Label, OneHot, TableRow, TabularPreprocessing
from ..core.errors import BlockValidationError
from ..training.datasets import BlockDataset, mockdataset, to_tensor
from ..training.discriminative import DiscriminativeLRs
from ..training.learner import Learner, ValidationPhase, withfields
from ..training.metrics import EpochMetrics, FitMetrics, MetricsLogger
from ..training.onecycle import fit_one_cycle
from ..training.paramgroups import IndexGrouper, ParamGroups
from ..utils.visualization import plot_losses, plot_lr_schedule


def make_learner(n=16, batch_size=4, val=False, logger=None):
    x = torch.randn(n, 3)
    y = x @ torch.tensor([[1.0], [-2.0], [0.5]])
    loader = DataLoader(TensorDataset(x, y), batch_size=batch_size)
    model = nn.Sequential(nn.Linear(3, 8), nn.ReLU(), nn.Linear(8, 1))
    return Learner(
        model, loader, nn.functional.mse_loss,
        val_loader=loader if val else None,
        logger=logger or MetricsLogger(verbose=False))


def two_group_optimizer(learner, opt_func=torch.optim.SGD, lr=0.1, factors=None):
    groups = ParamGroups(IndexGrouper([range(0, 2), 2]), learner.model)
    return DiscriminativeLRs(groups, factors or {1: 0.5, 2: 1.0}).build(opt_func, learner.model, lr)


class TestWithFields:

    def test_restores(self):
        learner = make_learner()
        sentinel = object()
        with withfields(learner, optimizer=sentinel, epoch=3):
            assert learner.optimizer is sentinel
            assert learner.epoch == 3
        assert learner.optimizer is None
        assert learner.epoch == 0

    def test_restores_on_error(self):
        learner = make_learner()
        with pytest.raises(RuntimeError):
            with withfields(learner, optimizer="temp"):
                raise RuntimeError("boom")
        assert learner.optimizer is None


class TestLearner:

    def test_init_learner(self):
        learner = make_learner()
        learner.epoch, learner.step = 4, 40
        learner.init_learner([ValidationPhase()])
        assert learner.phases == [ValidationPhase()]
        assert learner.phase == ValidationPhase()
        assert (learner.epoch, learner.step) == (0, 0)

    def test_train_epoch_needs_optimizer(self):
        with pytest.raises(RuntimeError):
            make_learner().train_epoch()

    def test_fit_epoch(self):
        learner = make_learner(val=True)
        learner.optimizer = torch.optim.SGD(learner.model.parameters(), lr=0.01)
        metrics = learner.fit_epoch(phase="fit")
        assert metrics.epoch == 0
        assert metrics.val_loss is not None
        assert learner.epoch == 1
        assert learner.step == 4
        assert len(learner.logger.history) == 4
        assert len(learner.logger.epochs) == 1

    def test_evaluate_without_loader(self):
        assert make_learner().evaluate() is None

    def test_tuple_inputs_are_unpacked(self):

        class TwoInputs(nn.Module):
            def __init__(self):
                super().__init__()
                self.a = nn.Linear(2, 1)
                self.b = nn.Linear(3, 1)

            def forward(self, xa, xb):
                return self.a(xa) + self.b(xb)

        learner = Learner(TwoInputs(), None, nn.functional.mse_loss)
        out = learner.forward((torch.randn(4, 2), torch.randn(4, 3)))
        assert out.shape == (4, 1)


class TestFitOneCycle:

    def test_requires_optimizer(self):
        with pytest.raises(RuntimeError):
            fit_one_cycle(make_learner(), 1, 0.1)

    def test_zero_epochs(self):
        learner = make_learner()
        learner.optimizer = two_group_optimizer(learner)
        assert fit_one_cycle(learner, 0, 0.1) is learner
        assert learner.logger.history == []

    def test_per_group_schedule(self):
        learner = make_learner()
        learner.optimizer = two_group_optimizer(learner)
        fit_one_cycle(learner, 2, 0.1, pct_start=0.5, div=10.0, phase="cycle")

        history = learner.logger.history
        assert len(history) == 8
        assert all(m.phase == "cycle" for m in history)

        head = np.array([m.lrs[2] for m in history])
        body = np.array([m.lrs[1] for m in history])
        np.testing.assert_allclose(body, 0.5 * head, rtol=1e-6)
        # Starts at peak / div, peaks in the middle, ends lower than it started
        assert head[0] == pytest.approx(0.01)
        assert head.max() <= 0.1 + 1e-9
        assert head.argmax() in (3, 4)
        assert head[-1] < head[0]

    def test_warmup_ending_on_first_step(self):
        learner = make_learner()
        learner.optimizer = two_group_optimizer(learner)
        fit_one_cycle(learner, 1, 0.1, pct_start=0.25, div=10.0)

        head = np.array([m.lrs[2] for m in learner.logger.history])
        assert len(head) == 4
        assert np.all(np.isfinite(head))
        assert head[0] == pytest.approx(0.01)
        assert head.argmax() == 1
        assert head.max() == pytest.approx(0.1)

    def test_momentum_cycled_for_adam(self):
        learner = make_learner()
        learner.optimizer = two_group_optimizer(learner, opt_func=torch.optim.Adam, lr=0.01)
        fit_one_cycle(learner, 1, 0.01)
        assert 'max_momentum' in learner.optimizer.param_groups[0]

    def test_no_momentum_for_plain_sgd(self):
        learner = make_learner()
        learner.optimizer = two_group_optimizer(learner)
        fit_one_cycle(learner, 1, 0.1)
        assert 'max_momentum' not in learner.optimizer.param_groups[0]

    def test_loss_decreases(self):
        torch.manual_seed(0)
        learner = make_learner(n=64, batch_size=8)
        learner.optimizer = two_group_optimizer(learner, opt_func=torch.optim.Adam, factors={1: 1.0, 2: 1.0})
        fit_one_cycle(learner, 10, 0.05)
        epochs = learner.logger.epochs
        assert epochs[-1].train_loss < epochs[0].train_loss


class TestBlockDataset:

    def test_encodes_and_converts(self):
        label = Label(("a", "b"))
        onehot = OneHot()
        observations = [([0.1, 0.2], "a"), ([0.3, 0.4], "b")]
        dataset = BlockDataset(
            (Continuous(2), label), observations,
            encode=lambda obs: (obs[0], onehot.encode(label, obs[1])))
        x, y = dataset[1]
        assert len(dataset) == 2
        assert x.dtype == torch.float32
        assert torch.equal(y, torch.tensor([0.0, 1.0]))

    def test_validation(self):
        with pytest.raises(BlockValidationError) as excinfo:
            BlockDataset((Continuous(2), Label(("a",))), [([0.1, 0.2], "a"), ([0.1], "a")])
        assert "observations[1]" in str(excinfo.value)

    def test_validation_disabled(self):
        dataset = BlockDataset(Continuous(2), [[1.0]], validate=False)
        assert dataset[0].shape == (1,)

    def test_tabular_tensors(self):
        row = TableRow(['c'], ['x'], {'c': ('u', 'v')})
        prep = TabularPreprocessing()
        dataset = BlockDataset(row, [{'c': 'v', 'x': 1.5}], encode=lambda r: prep.encode(row, r))
        cats, conts = dataset[0]
        assert cats.dtype == torch.int64 and cats.tolist() == [2]
        assert conts.dtype == torch.float32

    def test_missing_continuous_value(self):
        rows = [{'color': 'red', 'weight': 1.0}, {'color': 'blue', 'weight': None}]
        row = TableRow.setup(rows)
        prep = TabularPreprocessing()
        dataset = BlockDataset(row, rows, encode=lambda r: prep.encode(row, r))
        cats, conts = dataset[1]
        assert cats.tolist() == [2]
        assert conts.tolist() == [0.0]

    def test_mockdataset(self):
        dataset = mockdataset((Continuous(3), Continuous(1)), 5)
        assert len(dataset) == 5
        x, y = dataset[0]
        assert x.shape == (3,) and y.shape == (1,)

    def test_to_tensor(self):
        assert to_tensor([1, 2]).dtype == torch.int64
        assert to_tensor(np.zeros(2)).dtype == torch.float32
        assert to_tensor(torch.zeros(2, dtype=torch.float64)).dtype == torch.float32
        a, b = to_tensor((np.zeros(2), [1.0]))
        assert a.shape == (2,) and b.shape == (1,)


class TestMetricsLogger:

    def test_log_interval(self, capsys):
        logger = MetricsLogger(log_interval=2)
        for step in range(4):
            logger.log_step(FitMetrics(phase="fit", step=step, loss=1.0, lrs={1: 0.1}))
        out = capsys.readouterr().out
        assert "step     0" in out
        assert "step     2" in out
        assert "step     1" not in out
        assert len(logger.history) == 4

    def test_compute_metrics(self):
        learner = make_learner()
        optimizer = two_group_optimizer(learner)
        logger = MetricsLogger(verbose=False, smoothing=0.5)
        loss = learner.model(torch.randn(4, 3)).pow(2).mean()
        loss.backward()

        first = logger.compute_metrics(learner.model, optimizer, 2.0, "fit", 0, 0)
        second = logger.compute_metrics(learner.model, optimizer, 4.0, "fit", 0, 1)
        assert first.avg_loss == 2.0
        assert second.avg_loss == pytest.approx(3.0)
        assert first.grad_norm > 0
        assert first.lrs == {1: pytest.approx(0.05), 2: pytest.approx(0.1)}
        assert first.lr_mults == {1: 0.5, 2: 1.0}

    def test_save_logs(self, tmp_path):
        logger = MetricsLogger(log_dir=str(tmp_path / "logs"), verbose=False)
        logger.log_step(FitMetrics(phase="frozen", step=0, loss=1.0, lrs={1: 0.0, 2: 0.1}))
        logger.log_epoch(EpochMetrics(phase="frozen", train_loss=1.0))
        path = logger.save_logs("run.json")

        data = json.loads(path.read_text())
        assert data['steps'][0]['phase'] == "frozen"
        assert data['steps'][0]['lrs'] == {'1': 0.0, '2': 0.1}
        assert data['epochs'][0]['val_loss'] is None

    def test_save_logs_without_dir(self, tmp_path):
        logger = MetricsLogger(verbose=False)
        assert logger.save_logs() is None
        assert logger.save_logs("x.json", log_dir=str(tmp_path)) == tmp_path / "x.json"

    def test_print_summary(self, capsys):
        logger = MetricsLogger(verbose=False)
        logger.print_summary()
        assert "No metrics" in capsys.readouterr().out

        logger.log_step(FitMetrics(phase="frozen", loss=2.0))
        logger.log_step(FitMetrics(phase="discriminative", loss=1.0))
        logger.print_summary()
        out = capsys.readouterr().out
        assert "TRAINING SUMMARY" in out
        assert "frozen" in out and "discriminative" in out


class TestVisualization:

    @pytest.fixture
    def trained_logger(self):
        learner = make_learner(val=True)
        learner.optimizer = two_group_optimizer(learner)
        fit_one_cycle(learner, 2, 0.1, phase="cycle")
        return learner.logger

    def test_plot_lr_schedule(self, trained_logger, tmp_path):
        path = tmp_path / "lr.png"
        plot_lr_schedule(trained_logger, save_path=str(path), log_scale=True)
        assert path.exists()

    def test_plot_losses(self, trained_logger, tmp_path):
        path = tmp_path / "losses.png"
        plot_losses(trained_logger, save_path=str(path))
        assert path.exists()

    def test_empty_history(self):
        with pytest.raises(ValueError):
            plot_lr_schedule(MetricsLogger(verbose=False))
