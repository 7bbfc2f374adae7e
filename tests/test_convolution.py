import numpy as np
import pytest

from scaenet import Convolution


def test_output_geometry():
    conv = Convolution(7, 6, 3, 4, kernel_size=3, stride=(2, 1))

    assert conv.output_shape == (3, 4, 4)
    assert conv.weights.shape == (3, 3, 3, 4)
    assert conv.bias.shape == (4,)
    assert conv.forward(np.zeros((7, 6, 3))).shape == (3, 4, 4)


def test_stride_defaults_to_kernel():
    conv = Convolution(6, 6, 1, 2, kernel_size=2)

    assert conv.stride == (2, 2)
    assert conv.output_shape == (3, 3, 2)


def test_kernel_larger_than_input():
    with pytest.raises(AssertionError):
        Convolution(2, 2, 1, 1, kernel_size=3)


def test_unknown_activation():
    with pytest.raises(AssertionError):
        Convolution(2, 2, 1, 1, kernel_size=1, activation="softplus")


def test_forward_matches_weighted_sum():
    conv = Convolution(5, 4, 2, 3, kernel_size=(2, 3), stride=1, activation="tanh")
    conv.bias.values[...] = np.random.normal(size=3)
    X = np.random.normal(size=(5, 4, 2))

    out = conv.forward(X)

    patch = X[2:4, 1:4, :]
    expected = np.tanh(
        np.einsum("xyd,xydo->o", patch, conv.weights.values) + conv.bias.values
    )
    np.testing.assert_allclose(out[2, 1, :], expected)


def test_classifier_kinds():
    fully = Convolution.classifier("fully_connected", 3, 2, 5, nb_neurons=4)
    pointwise = Convolution.classifier("convolutional", 3, 2, 5, nb_neurons=4)

    assert fully.output_shape == (1, 1, 4)
    assert fully.kernel_size == (3, 2)
    assert pointwise.output_shape == (3, 2, 4)
    assert pointwise.kernel_size == (1, 1)

    with pytest.raises(AssertionError):
        Convolution.classifier("recurrent", 3, 2, 5, nb_neurons=4)


def test_apply_grads_consumes_gradients():
    conv = Convolution(2, 2, 1, 1, kernel_size=2, activation="identity")
    weights = conv.weights.values.copy()
    X = np.ones((2, 2, 1))

    conv.accumulate_grads(X, np.full((1, 1, 1), 2.0))
    conv.apply_grads(0.5)

    # error 2 on every input of value 1: the weights move by 0.5 * 2
    np.testing.assert_allclose(conv.weights.values, weights + 1.0)
    np.testing.assert_allclose(conv.bias.values, [1.0])
    assert not np.any(conv.weights.grads)


def test_input_importance_conserves_mass():
    conv = Convolution(6, 6, 2, 3, kernel_size=3, stride=1)
    importance = np.random.uniform(size=conv.output_shape)
    target = np.zeros(conv.input_shape)

    conv.input_importance(importance, target)

    assert np.all(target >= 0.0)
    assert np.sum(target) == pytest.approx(np.sum(importance))


def test_copy_is_deep():
    conv = Convolution(3, 3, 1, 2, kernel_size=3)
    other = conv.copy()

    other.weights.values += 1.0

    assert not np.allclose(conv.weights.values, other.weights.values)


@pytest.mark.parametrize("weight_init", ["normal", "uniform", "zeros"])
def test_weight_init_modes(weight_init):
    conv = Convolution(4, 4, 1, 2, kernel_size=2, weight_init=weight_init)

    assert conv.weights.shape == (2, 2, 1, 2)
    assert np.all(np.isfinite(conv.weights.values))
    assert not np.any(conv.bias.values)


def test_unknown_weight_init():
    with pytest.raises(AssertionError):
        Convolution(4, 4, 1, 2, kernel_size=2, weight_init="constant")


def test_from_parameters_rejects_flat_weights():
    with pytest.raises(AssertionError):
        Convolution.from_parameters(
            (4, 4, 1), (2, 2), (2, 2), "tanh", np.array(1.0), np.zeros(2)
        )
