import logging
import typing as t

import numpy as np

from . import config
from . import errors
from . import serialization
from .datablock import DataBlock
from .layer import ConvolutionLayer

logger = logging.getLogger(__name__)


class FFCNN:
    """Feed-forward convolutional network built out of an SCAE.

    Layer ``i`` reads the output block of layer ``i - 1`` and pushes its
    input error into the error block of layer ``i - 1``; blocks are
    shared, never copied. Index 0 is the bottom layer, the one reading
    the caller's data.

    Parameters
    ----------
    base : SCAE
        Trained auto-encoder stack. Each of its encoder convolutions is
        copied into one layer of the network.
    nb_classes : int, optional
        When given, classification layers are stacked on top of the
        auto-encoder layers, the last one having ``nb_classes`` outputs.
    additional_layers : sequence of int
        Number of neurons of the hidden classification layers inserted
        below the final one.
    layer_kind : {"fully_connected", "convolutional"}
        Kind of the classification layers.
    activation : str
        Activation of the classification layers.
    """

    def __init__(
        self,
        base,
        nb_classes: t.Optional[int] = None,
        additional_layers: t.Sequence[int] = (),
        layer_kind: str = config.DEFAULT_CLASSIFIER_KIND,
        activation: str = config.DEFAULT_ACTIVATION,
    ):
        assert len(base.layers) > 0, "the auto-encoder has no layer"
        assert nb_classes is not None or not additional_layers
        assert nb_classes is None or int(nb_classes) > 0

        self.input_width = int(base.input_width)
        self.input_height = int(base.input_height)
        self.input_depth = int(base.input_depth)

        self.layers = [ConvolutionLayer(conv.copy()) for conv in base.layers]

        if nb_classes is not None:
            for nb_neurons in (*additional_layers, nb_classes):
                self.layers.append(
                    ConvolutionLayer.classifier(
                        self.top_layer,
                        nb_neurons=int(nb_neurons),
                        kind=layer_kind,
                        activation=activation,
                    )
                )

        self._wire()

    @classmethod
    def _assemble(
        cls,
        input_shape: t.Tuple[int, int, int],
        layers: t.Sequence[ConvolutionLayer],
    ) -> "FFCNN":
        net = cls.__new__(cls)
        net.input_width, net.input_height, net.input_depth = input_shape
        net.layers = list(layers)
        net._wire()
        return net

    def _wire(self):
        bottom = self.layers[0]

        if bottom.convolution.input_shape != self.input_shape:
            raise errors.StructureError(
                f"bottom layer reads {bottom.convolution.input_shape}, the "
                f"network input patch is {self.input_shape}"
            )

        for i in range(1, len(self.layers)):
            below, layer = self.layers[i - 1], self.layers[i]

            if below.output.shape != layer.convolution.input_shape:
                raise errors.StructureError(
                    f"layer {i - 1} outputs {below.output.shape} but layer {i} "
                    f"reads {layer.convolution.input_shape}"
                )

            layer.set_input(below.output, 0, 0)
            layer.set_prev_error(below.error)

        logger.debug("Wired %d layers: %s", len(self.layers), self.layers)

    # Input

    @property
    def input_shape(self) -> t.Tuple[int, int, int]:
        return (self.input_width, self.input_height, self.input_depth)

    def set_input(self, db: DataBlock, x: int, y: int):
        """Read the input patch from ``db`` with its top-left corner at (x, y)."""
        self.layers[0].set_input(db, x, y)

    def center_input(self, db: DataBlock, cx: int, cy: int):
        """Read the input patch from ``db`` centered on (cx, cy)."""
        bottom = self.layers[0]
        self.set_input(
            db,
            cx - bottom.input_width // 2,
            cy - bottom.input_height // 2,
        )

    # Computing

    def compute(self):
        for layer in self.layers:
            layer.compute()

    # Output

    def get_output_class(self, multi_class: bool = False) -> int:
        """Decode the output of the top layer at position (0, 0).

        In single-class mode the index of the highest output is returned,
        the lowest index winning ties. In multi-class mode bit ``i`` of
        the result is set when output ``i`` exceeds the multi-class
        threshold, e.g. 5 (0b101) means classes 0 and 2.
        """
        scores = self.get_output().values[0, 0, :]

        if multi_class:
            res = 0

            for i in np.flatnonzero(scores > config.MULTI_CLASS_THRESHOLD):
                res |= 1 << int(i)

            return res

        res = 0

        for i in range(1, scores.size):
            if scores[i] > scores[res]:
                res = i

        return res

    def get_output_scores(self, decimals: int = 2) -> t.List[float]:
        scores = self.get_output().values[0, 0, :]
        return [round(float(score), decimals) for score in scores]

    def get_output(self) -> DataBlock:
        return self.top_layer.output

    def get_output_size(self) -> int:
        return self.top_layer.output.depth

    def get_output_depth(self) -> int:
        return self.get_output_size()

    # Learning

    def set_expected(self, expected_class: int, expected_value: float):
        self.top_layer.set_expected(0, 0, expected_class, expected_value)

    def add_error(self, z: int, e: float):
        self.top_layer.add_error(0, 0, z, e)

    def learn(self, nb_layers: t.Optional[int] = None):
        """Update the weights of the ``nb_layers`` topmost layers.

        Counts larger than the network simply update every layer.
        """
        nb_layers = self._clamp_layer_count(nb_layers)

        for layer in reversed(self.layers[len(self.layers) - nb_layers :]):
            layer.learn()

    def back_propagate(self, nb_layers: t.Optional[int] = None) -> float:
        """Backpropagate through the ``nb_layers`` topmost layers.

        The top layer is always processed. Afterwards the error block of
        every layer is cleared, whatever the number of layers processed.

        Returns
        -------
        float
            Mean absolute error of the top layer's outputs.
        """
        nb_layers = max(self._clamp_layer_count(nb_layers), 1)

        err = self.top_layer.back_propagate()

        for layer in reversed(self.layers[len(self.layers) - nb_layers : -1]):
            layer.back_propagate()

        for layer in self.layers:
            layer.clear_error()

        return err

    def _clamp_layer_count(self, nb_layers: t.Optional[int]) -> int:
        if nb_layers is None:
            return len(self.layers)

        if int(nb_layers) < 0:
            raise ValueError(f"cannot process {nb_layers} layers")

        return min(int(nb_layers), len(self.layers))

    def evaluate_input_importance(self, channel: t.Optional[int] = None):
        """Attribute the top outputs back to the input patch.

        The top output is seeded with ones (or a one-hot vector on
        ``channel``) and the importance flows down to the bottom layer,
        overwriting every intermediate output block and the input window.
        """
        top = self.top_layer

        if channel is not None and not 0 <= int(channel) < top.output_depth:
            raise IndexError(
                f"channel {channel} out of range for {top.output_depth} outputs"
            )

        top.output.clear()

        if channel is None:
            top.output.values[0, 0, :] = 1.0

        else:
            top.output.values[0, 0, int(channel)] = 1.0

        for layer in reversed(self.layers):
            layer.input.clear()
            layer.evaluate_input_importance()

    # Getters & setters

    @property
    def top_layer(self) -> ConvolutionLayer:
        return self.layers[-1]

    def get_layer(self, n: int) -> ConvolutionLayer:
        if not 0 <= int(n) < len(self.layers):
            raise IndexError(
                f"layer {n} out of range for a network of {len(self.layers)} layers"
            )

        return self.layers[int(n)]

    def count_layers(self) -> int:
        return len(self.layers)

    def get_accumulator(self) -> DataBlock:
        """Input error of the bottom layer, accumulated over backward passes."""
        return self.layers[0].prev_accumulator

    def set_learning_speed(self, speed: float, layer: t.Optional[int] = None):
        """Set the learning speed of one layer, or of all of them."""
        if layer is not None:
            self.get_layer(layer).set_learning_speed(speed)
            return

        for cur_layer in self.layers:
            cur_layer.set_learning_speed(speed)

    def name(self) -> str:
        return "FFCNN"

    def type(self) -> str:
        return "pixel"

    def __len__(self):
        return len(self.layers)

    def __iter__(self):
        return iter(self.layers)

    def __repr__(self):
        strs = [f"FFCNN with {len(self)} layers:"]

        for i, layer in enumerate(self.layers):
            strs.append(f" | {i}. {layer!r}")

        return "\n".join(strs)

    # Persistence

    def save(self, filepath: str):
        """Save the network; the input is first reset to a blank patch."""
        self.set_input(DataBlock(*self.input_shape), 0, 0)
        serialization.save(self, filepath)

    @classmethod
    def load(cls, filepath: str) -> "FFCNN":
        input_shape, layers, input_block = serialization.read(filepath)

        try:
            net = cls._assemble(input_shape, layers)

        except errors.StructureError as exc:
            raise errors.UnreadableNetworkError(
                f"'{filepath}' holds inconsistent layers: {exc}"
            ) from exc

        net.set_input(input_block, 0, 0)

        logger.info("Loaded %d-layer network from '%s'", len(net), filepath)

        return net

    def clone(self) -> "FFCNN":
        """Deep copy sharing no block with this network."""
        try:
            res = FFCNN._assemble(
                self.input_shape, [layer.copy() for layer in self.layers]
            )

        except Exception as exc:
            raise errors.CloneError("could not clone the FFCNN") from exc

        logger.info("Cloned %d-layer network", len(res))

        return res
