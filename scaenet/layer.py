import logging

import numpy as np

from . import config
from . import convolution
from . import errors
from .datablock import DataBlock

logger = logging.getLogger(__name__)


class ConvolutionLayer:
    """One convolution of an FFCNN together with its buffers.

    The layer owns its ``output`` and ``error`` blocks. ``input`` and
    ``prev_error`` are borrowed: once the layer is wired into a network
    they are the output and error blocks of the layer below (or a window
    of the caller's data for the bottom layer). Until then they point to
    blocks owned by the layer itself; ``prev_accumulator`` is the one
    collecting the input error of the bottom layer.
    """

    def __init__(
        self,
        conv: convolution.Convolution,
        learning_speed: float = config.DEFAULT_LEARNING_SPEED,
    ):
        self.convolution = conv
        self.learning_speed = float(learning_speed)

        self.output = DataBlock(*conv.output_shape)
        self.error = DataBlock(*conv.output_shape)

        self.input = DataBlock(*conv.input_shape)
        self.prev_accumulator = DataBlock(*conv.input_shape)
        self.prev_error = self.prev_accumulator

    @classmethod
    def classifier(
        cls,
        below: "ConvolutionLayer",
        nb_neurons: int,
        kind: str = config.DEFAULT_CLASSIFIER_KIND,
        activation: str = config.DEFAULT_ACTIVATION,
    ) -> "ConvolutionLayer":
        """Build a freshly initialized layer reading the output of ``below``."""
        conv = convolution.Convolution.classifier(
            kind,
            below.output.width,
            below.output.height,
            below.output.depth,
            nb_neurons=nb_neurons,
            activation=activation,
        )
        return cls(conv, learning_speed=below.learning_speed)

    @property
    def input_width(self) -> int:
        return self.convolution.input_width

    @property
    def input_height(self) -> int:
        return self.convolution.input_height

    @property
    def input_depth(self) -> int:
        return self.convolution.input_depth

    @property
    def output_depth(self) -> int:
        return self.convolution.output_depth

    def set_input(self, db: DataBlock, x: int = 0, y: int = 0):
        """Bind the input to the window of ``db`` starting at (x, y). No copy."""
        if db.depth != self.input_depth:
            raise errors.StructureError(
                f"input block has depth {db.depth}, the layer expects "
                f"{self.input_depth}"
            )

        if x == 0 and y == 0 and db.shape == self.convolution.input_shape:
            self.input = db

        else:
            self.input = db.view(x, y, self.input_width, self.input_height)

    def set_prev_error(self, db: DataBlock):
        if db.shape != self.convolution.input_shape:
            raise errors.StructureError(
                f"error block of shape {db.shape} cannot receive the input "
                f"error of a layer reading {self.convolution.input_shape}"
            )

        self.prev_error = db

    def set_learning_speed(self, speed: float):
        assert float(speed) >= 0.0
        self.learning_speed = float(speed)
        logger.debug("%r: learning speed set to %g", self, self.learning_speed)

    def compute(self):
        self.output.values[...] = self.convolution.forward(self.input.values)

    def learn(self):
        self.convolution.apply_grads(self.learning_speed)

    def back_propagate(self) -> float:
        """Accumulate weight gradients and push the error one layer down.

        Returns the mean absolute value of this layer's output error.
        """
        err = float(np.mean(np.abs(self.error.values)))

        deltas = self.convolution.neuron_errors(self.output.values, self.error.values)
        self.convolution.accumulate_grads(self.input.values, deltas)
        self.convolution.propagate_error(deltas, self.prev_error.values)

        return err

    def clear_error(self):
        self.error.clear()

    def set_expected(self, x: int, y: int, z: int, value: float):
        self.error.set_value(x, y, z, value - self.output.get_value(x, y, z))

    def add_error(self, x: int, y: int, z: int, delta: float):
        self.error.add_value(x, y, z, delta)

    def evaluate_input_importance(self):
        self.convolution.input_importance(self.output.values, self.input.values)

    def copy(self) -> "ConvolutionLayer":
        """Deep copy; the copy owns standalone versions of every buffer."""
        res = ConvolutionLayer(self.convolution.copy(), self.learning_speed)

        res.input = self.input.copy()
        res.output.values[...] = self.output.values
        res.error.values[...] = self.error.values
        res.prev_accumulator.values[...] = self.prev_accumulator.values

        return res

    def __repr__(self):
        return f"ConvolutionLayer({self.convolution!r}, speed={self.learning_speed:g})"
