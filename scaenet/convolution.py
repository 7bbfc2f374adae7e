import copy
import typing as t

import numpy as np

from . import _utils
from . import activation as activations
from . import base
from . import config


class Convolution:
    """A convolutional transform: kernel weights, bias and activation.

    Arrays follow the (x, y, channel) layout of ``DataBlock`` values. The
    weights have shape (kernel_width, kernel_height, input_depth,
    output_depth).

    The configured input size only fixes the size of the buffers of the
    layer wrapping this transform; every method accepts any input grid
    at least as large as the kernel and derives the output grid from it.
    """

    def __init__(
        self,
        input_width: int,
        input_height: int,
        input_depth: int,
        output_depth: int,
        kernel_size: t.Union[int, t.Tuple[int, int]],
        stride: t.Optional[t.Union[int, t.Tuple[int, int]]] = None,
        activation: str = config.DEFAULT_ACTIVATION,
        weight_init: str = "uniform",
    ):
        assert _utils.all_positive((input_width, input_height, input_depth))
        assert int(output_depth) > 0
        assert _utils.all_positive(kernel_size)
        assert stride is None or _utils.all_positive(stride)
        assert str(activation) in activations.NAMES, activation

        self.input_width = int(input_width)
        self.input_height = int(input_height)
        self.input_depth = int(input_depth)
        self.output_depth = int(output_depth)

        self.kernel_size = _utils.replicate(kernel_size, 2)
        self.stride = _utils.replicate(
            stride if stride is not None else kernel_size, 2
        )

        kernel_width, kernel_height = self.kernel_size

        assert kernel_width <= self.input_width, (kernel_width, self.input_width)
        assert kernel_height <= self.input_height, (kernel_height, self.input_height)

        self.activation_name = str(activation)
        self.activation = activations.get(self.activation_name)

        fan_in = kernel_width * kernel_height * self.input_depth

        self.weights = base.Tensor.from_shape(
            (kernel_width, kernel_height, self.input_depth, self.output_depth),
            mode=weight_init,
            std=_utils.INIT_RULE_BY_ACTIVATION[self.activation_name],
            dims=(fan_in, self.output_depth),
        )
        self.bias = base.Tensor.from_shape((self.output_depth,), mode="zeros")
        self.parameters = (self.weights, self.bias)

    @classmethod
    def from_parameters(
        cls,
        input_shape: t.Tuple[int, int, int],
        kernel_size: t.Tuple[int, int],
        stride: t.Tuple[int, int],
        activation: str,
        weights: np.ndarray,
        bias: np.ndarray,
    ) -> "Convolution":
        weights = np.asarray(weights, dtype=float)
        bias = np.asarray(bias, dtype=float)

        assert weights.ndim == 4, f"weights of shape {weights.shape} are not a kernel"

        conv = cls(
            *input_shape,
            output_depth=weights.shape[-1],
            kernel_size=kernel_size,
            stride=stride,
            activation=activation,
            weight_init="zeros",
        )

        assert weights.shape == conv.weights.shape, (weights.shape, conv.weights.shape)
        assert bias.shape == conv.bias.shape, (bias.shape, conv.bias.shape)

        conv.weights.values[...] = weights
        conv.bias.values[...] = bias

        return conv

    @classmethod
    def classifier(
        cls,
        kind: str,
        input_width: int,
        input_height: int,
        input_depth: int,
        nb_neurons: int,
        activation: str = config.DEFAULT_ACTIVATION,
    ) -> "Convolution":
        assert kind in LAYER_KINDS, f"unknown layer kind '{kind}'"

        kernel_size = LAYER_KINDS[kind](input_width, input_height)

        return cls(
            input_width,
            input_height,
            input_depth,
            output_depth=nb_neurons,
            kernel_size=kernel_size,
            stride=kernel_size,
            activation=activation,
        )

    def calc_out_spatial_dim(self, input_dim: int, dim: int) -> int:
        return 1 + (input_dim - self.kernel_size[dim]) // self.stride[dim]

    @property
    def output_width(self) -> int:
        return self.calc_out_spatial_dim(self.input_width, 0)

    @property
    def output_height(self) -> int:
        return self.calc_out_spatial_dim(self.input_height, 1)

    @property
    def input_shape(self) -> t.Tuple[int, int, int]:
        return (self.input_width, self.input_height, self.input_depth)

    @property
    def output_shape(self) -> t.Tuple[int, int, int]:
        return (self.output_width, self.output_height, self.output_depth)

    def windows(self, grid_shape):
        """Yield (column, row, x slice, y slice) for every output position."""
        k_width, k_height = self.kernel_size
        s_x, s_y = self.stride

        for c, x_start in _utils.patch_origins(grid_shape[0], k_width, s_x):
            for r, y_start in _utils.patch_origins(grid_shape[1], k_height, s_y):
                yield (
                    c,
                    r,
                    slice(x_start, x_start + k_width),
                    slice(y_start, y_start + k_height),
                )

    def forward(self, X):
        assert X.ndim == 3 and X.shape[2] == self.input_depth, X.shape

        out = np.empty(
            (
                self.calc_out_spatial_dim(X.shape[0], 0),
                self.calc_out_spatial_dim(X.shape[1], 1),
                self.output_depth,
            ),
            dtype=float,
        )

        for c, r, x_slice, y_slice in self.windows(X.shape):
            out[c, r, :] = np.tensordot(
                X[x_slice, y_slice, :], self.weights.values, axes=3
            )

        out += self.bias.values

        return self.activation(out)

    def __call__(self, X):
        return self.forward(X)

    def neuron_errors(self, out, error):
        """Scale output errors by the activation slope at each output."""
        return error * self.activation.derivative(out)

    def accumulate_grads(self, X, deltas):
        # Errors point towards the expected value, so gradients are their
        # opposite.
        dW = np.zeros_like(self.weights.values)

        for c, r, x_slice, y_slice in self.windows(X.shape):
            dW -= np.multiply.outer(X[x_slice, y_slice, :], deltas[c, r, :])

        self.weights.update_grads(dW)
        self.bias.update_grads(-np.sum(deltas, axis=(0, 1)))

    def propagate_error(self, deltas, target):
        """Add the error of every input element onto ``target`` in place."""
        for c, r, x_slice, y_slice in self.windows(target.shape):
            target[x_slice, y_slice, :] += np.tensordot(
                self.weights.values, deltas[c, r, :], axes=([3], [0])
            )

    def apply_grads(self, learning_speed: float):
        for param in self.parameters:
            param.step_and_zero_grad(learning_speed)

    def input_importance(self, importance, target):
        """Distribute output importance over the receptive fields.

        Every output neuron hands its importance to its inputs in
        proportion to the magnitude of the connecting weights. The weights
        are only read here, never updated.
        """
        magnitudes = np.abs(self.weights.values)
        totals = np.sum(magnitudes, axis=(0, 1, 2))
        shares = np.divide(
            magnitudes,
            totals,
            out=np.zeros_like(magnitudes),
            where=totals > 0.0,
        )

        for c, r, x_slice, y_slice in self.windows(target.shape):
            target[x_slice, y_slice, :] += np.tensordot(
                shares, importance[c, r, :], axes=([3], [0])
            )

    def copy(self) -> "Convolution":
        return copy.deepcopy(self)

    def __repr__(self):
        return (
            f"Convolution {self.input_width}x{self.input_height}x{self.input_depth}"
            f" -> {self.output_width}x{self.output_height}x{self.output_depth}"
            f" (kernel {self.kernel_size}, stride {self.stride}, "
            f"{self.activation_name})"
        )


def _fully_connected_kernel(input_width: int, input_height: int):
    return (input_width, input_height)


def _pointwise_kernel(input_width: int, input_height: int):
    return (1, 1)


# Kinds of layers that can be stacked on top of an auto-encoder.
LAYER_KINDS = {
    "fully_connected": _fully_connected_kernel,
    "convolutional": _pointwise_kernel,
}
