"""
Test Encodings and Loss Selection

Verifies one-hot and tabular encodings and `blocklossfn` for every
registered block pair, including size mismatches.
"""

import numpy as np
import pytest
import torch

from ..blocks import (
    Continuous,
    EncodedTableRow,
    KeypointTensor,
    Label,
    LabelMulti,
    OneHot,
    OneHotTensor,
    OneHotTensorMulti,
    Paragraph,
    TableRow,
    TabularPreprocessing,
    blocklossfn,
    checkblock,
    mockblock,
)
from ..blocks.losses import flat_mse_loss, mse_loss, multihot_bce, onehot_cross_entropy
from ..core.errors import BlockSizeMismatch, UnsupportedBlockCombination


class TestOneHot:

    def test_label_roundtrip(self):
        label = Label(["cat", "dog", "bird"])
        enc = OneHot()
        block = enc.encodedblock(label)
        assert block == OneHotTensor(0, ("cat", "dog", "bird"))

        x = enc.encode(label, "dog")
        np.testing.assert_array_equal(x, [0.0, 1.0, 0.0])
        assert checkblock(block, x)
        assert enc.decode(block, np.array([0.1, 0.2, 0.7])) == "bird"
        assert enc.decodedblock(block) == label

    def test_label_multi(self):
        label = LabelMulti(["a", "b", "c"])
        enc = OneHot(threshold=0.5)
        block = enc.encodedblock(label)
        assert block == OneHotTensorMulti(0, ("a", "b", "c"))

        x = enc.encode(label, ["a", "c"])
        np.testing.assert_array_equal(x, [1.0, 0.0, 1.0])
        assert checkblock(block, x)
        assert enc.decode(block, np.array([0.9, 0.2, 0.6])) == ["a", "c"]

    def test_unsupported_blocks(self):
        enc = OneHot()
        assert enc.encodedblock(Continuous(3)) is None
        with pytest.raises(TypeError):
            enc.encode(Continuous(3), [1, 2, 3])
        with pytest.raises(TypeError):
            enc.decode(OneHotTensor(2, ("a", "b")), np.zeros((2, 4, 4)))


class TestTabularPreprocessing:

    @pytest.fixture
    def row(self):
        return TableRow(
            ['color'], ['weight'], {'color': ('red', 'blue')})

    def test_encode(self, row):
        enc = TabularPreprocessing(fill=-1.0)
        block = enc.encodedblock(row)
        assert isinstance(block, EncodedTableRow)

        cats, conts = enc.encode(row, {'color': 'blue', 'weight': 2.0})
        np.testing.assert_array_equal(cats, [2])
        np.testing.assert_array_equal(conts, [2.0])
        assert checkblock(block, (cats, conts))

    def test_missing_and_unknown(self, row):
        enc = TabularPreprocessing(fill=-1.0)
        cats, conts = enc.encode(row, {'color': None, 'weight': float('nan')})
        assert cats[0] == 0
        assert conts[0] == -1.0
        cats, _ = enc.encode(row, {'color': 'green', 'weight': 0.0})
        assert cats[0] == 0

    def test_decode(self, row):
        enc = TabularPreprocessing()
        block = enc.encodedblock(row)
        decoded = enc.decode(block, (np.array([1]), np.array([0.5])))
        assert decoded == {'color': 'red', 'weight': 0.5}
        assert enc.decodedblock(block) == row

    def test_mock_encoded_row_is_valid(self, row):
        block = TabularPreprocessing().encodedblock(row)
        for _ in range(5):
            assert checkblock(block, mockblock(block))


class TestBlockLossFn:

    def test_continuous(self):
        lossfn = blocklossfn(Continuous(3), Continuous(3))
        assert lossfn is mse_loss
        pred = torch.zeros(4, 3)
        assert lossfn(pred, torch.ones(4, 3)).item() == pytest.approx(1.0)

    def test_continuous_size_mismatch(self):
        with pytest.raises(BlockSizeMismatch) as excinfo:
            blocklossfn(Continuous(5), Continuous(3))
        assert "Sizes of Continuous(5) and Continuous(3) differ!" in str(excinfo.value)

    def test_onehot(self):
        classes = ("a", "b", "c")
        lossfn = blocklossfn(OneHotTensor(0, classes), OneHotTensor(0, classes))
        assert lossfn is onehot_cross_entropy
        logits = torch.tensor([[10.0, -10.0, -10.0]])
        target = torch.tensor([[1.0, 0.0, 0.0]])
        assert lossfn(logits, target).item() < 1e-3

    def test_onehot_mismatch(self):
        with pytest.raises(BlockSizeMismatch):
            blocklossfn(OneHotTensor(0, ("a", "b")), OneHotTensor(0, ("a", "b", "c")))
        with pytest.raises(BlockSizeMismatch):
            blocklossfn(OneHotTensor(0, ("a", "b")), OneHotTensor(2, ("a", "b")))

    def test_segmentation_loss(self):
        classes = ("a", "b")
        lossfn = blocklossfn(OneHotTensor(2, classes), OneHotTensor(2, classes))
        logits = torch.randn(2, 2, 8, 8)
        target = torch.from_numpy(np.stack([mockblock(OneHotTensor(2, classes))[:, :8, :8]] * 2))
        assert lossfn(logits, target).dim() == 0

    def test_multihot(self):
        classes = ("a", "b")
        lossfn = blocklossfn(OneHotTensorMulti(0, classes), OneHotTensorMulti(0, classes))
        assert lossfn is multihot_bce
        assert lossfn(torch.zeros(3, 2), torch.ones(3, 2)).item() == pytest.approx(np.log(2), rel=1e-5)

    def test_keypoints(self):
        lossfn = blocklossfn(KeypointTensor(2, (4,)), KeypointTensor(2, (4,)))
        assert lossfn is flat_mse_loss
        assert lossfn(torch.zeros(2, 8), torch.zeros(2, 4, 2)).item() == 0.0
        with pytest.raises(BlockSizeMismatch):
            blocklossfn(KeypointTensor(2, (4,)), KeypointTensor(2, (5,)))

    def test_unsupported_pair(self):
        with pytest.raises(UnsupportedBlockCombination):
            blocklossfn(Paragraph(), Continuous(1))
