import numpy as np
import pytest

from scaenet import Convolution
from scaenet import ConvolutionLayer
from scaenet import DataBlock
from scaenet import StructureError


@pytest.fixture
def layer():
    return ConvolutionLayer(Convolution(4, 4, 2, 3, kernel_size=2, stride=1))


def test_buffers_follow_geometry(layer):
    assert layer.output.shape == (3, 3, 3)
    assert layer.error.shape == (3, 3, 3)
    assert layer.input.shape == (4, 4, 2)
    assert layer.prev_error is layer.prev_accumulator
    assert layer.learning_speed == pytest.approx(1e-3)


def test_set_input_binds_a_window(layer):
    db = DataBlock.from_array(np.random.uniform(size=(8, 8, 2)))

    layer.set_input(db, 3, 2)
    db.set_value(3, 2, 0, 7.0)

    assert layer.input.shape == (4, 4, 2)
    assert layer.input.get_value(0, 0, 0) == 7.0


def test_set_input_wrong_depth(layer):
    with pytest.raises(StructureError):
        layer.set_input(DataBlock(8, 8, 3), 0, 0)


def test_set_input_outside_block(layer):
    with pytest.raises(IndexError):
        layer.set_input(DataBlock(5, 5, 2), 2, 0)


def test_set_prev_error_wrong_shape(layer):
    with pytest.raises(StructureError):
        layer.set_prev_error(DataBlock(3, 3, 2))


def test_set_expected_and_add_error(layer):
    layer.set_input(DataBlock.from_array(np.random.uniform(size=(4, 4, 2))))
    layer.compute()
    out = layer.output.get_value(1, 2, 0)

    layer.set_expected(1, 2, 0, 0.5)
    assert layer.error.get_value(1, 2, 0) == pytest.approx(0.5 - out)

    layer.set_expected(1, 2, 0, 0.5)
    assert layer.error.get_value(1, 2, 0) == pytest.approx(0.5 - out)

    layer.add_error(1, 2, 0, 0.25)
    assert layer.error.get_value(1, 2, 0) == pytest.approx(0.75 - out)


def test_back_propagate_accumulates_previous_error(layer):
    layer.set_input(DataBlock.from_array(np.random.uniform(size=(4, 4, 2))))
    layer.compute()
    layer.error.values[...] = np.random.normal(size=layer.error.shape)

    err = layer.back_propagate()
    first = layer.prev_error.values.copy()
    layer.back_propagate()

    assert err == pytest.approx(np.mean(np.abs(layer.error.values)))
    assert np.any(first)
    np.testing.assert_allclose(layer.prev_error.values, 2.0 * first)


def test_clear_error(layer):
    layer.error.values[...] = 1.0

    layer.clear_error()

    assert not np.any(layer.error.values)


def test_learn_scales_by_learning_speed(layer):
    layer.set_input(DataBlock.from_array(np.random.uniform(size=(4, 4, 2))))
    layer.compute()
    layer.error.values[...] = 0.1
    layer.back_propagate()

    weights = layer.convolution.weights.values.copy()
    grads = layer.convolution.weights.grads.copy()

    layer.set_learning_speed(0.5)
    layer.learn()

    np.testing.assert_allclose(layer.convolution.weights.values, weights - 0.5 * grads)
    assert not np.any(layer.convolution.weights.grads)


def test_classifier_reads_the_whole_output_below(layer):
    top = ConvolutionLayer.classifier(layer, nb_neurons=5)

    assert top.convolution.input_shape == layer.output.shape
    assert top.output.shape == (1, 1, 5)


def test_copy_shares_nothing(layer):
    layer.set_input(DataBlock.from_array(np.random.uniform(size=(6, 6, 2))), 1, 1)
    other = layer.copy()

    for name in ("input", "output", "error", "prev_accumulator"):
        assert not getattr(other, name).shares_memory(getattr(layer, name))

    np.testing.assert_array_equal(other.input.values, layer.input.values)
