"""
Test Configuration

Verifies validation, presets and serialization of the config dataclasses.
"""

import pytest

from ..core.config import (
    DEFAULT_FINETUNE_CONFIG,
    DEFAULT_MODEL_CONFIG,
    FAST_TEST_CONFIG,
    FineTuneConfig,
    ModelConfig,
    get_default_config,
)


class TestFineTuneConfig:

    def test_defaults(self):
        config = get_default_config()
        assert config.base_lr == 0.002
        assert config.freeze_epochs == 1
        assert config.lr_mult == 10.0
        assert config.div == 5.0
        assert config.pct_start == 0.3
        assert config.freeze_pct_start == 0.99
        assert config == DEFAULT_FINETUNE_CONFIG

    @pytest.mark.parametrize("kwargs", [
        {'base_lr': 0.0},
        {'freeze_epochs': -1},
        {'lr_mult': -2.0},
        {'div': 0.0},
        {'pct_start': 1.0},
        {'freeze_pct_start': 0.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            FineTuneConfig(**kwargs)

    def test_to_dict(self):
        data = FAST_TEST_CONFIG.to_dict()
        assert data['base_lr'] == 0.01
        assert FineTuneConfig(**data) == FAST_TEST_CONFIG


class TestModelConfig:

    def test_defaults(self):
        assert DEFAULT_MODEL_CONFIG.probe_size == 256
        assert DEFAULT_MODEL_CONFIG.tabular_layers == (200, 100)

    def test_list_layers_become_tuple(self):
        assert ModelConfig(tabular_layers=[8, 4]).tabular_layers == (8, 4)

    @pytest.mark.parametrize("kwargs", [
        {'probe_size': 0},
        {'head_dropout': 1.0},
        {'emb_dropout': -0.1},
        {'tabular_layers': ()},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ModelConfig(**kwargs)
