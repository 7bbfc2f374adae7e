import logging
import typing as t

import numpy as np
import tqdm.auto

from . import _utils
from . import config
from .convolution import Convolution
from .datablock import DataBlock

logger = logging.getLogger(__name__)


class _AutoEncoderLayer:
    """Encoder convolution plus a decoder rebuilding one kernel patch."""

    def __init__(self, encoder: Convolution, decoder_activation: str):
        self.encoder = encoder

        k_width, k_height = encoder.kernel_size
        self.patch_shape = (k_width, k_height, encoder.input_depth)

        self.decoder = Convolution(
            1,
            1,
            encoder.output_depth,
            output_depth=int(np.prod(self.patch_shape)),
            kernel_size=1,
            activation=decoder_activation,
        )

    def reconstruct(self, patch):
        code = self.encoder(patch)
        recon = self.decoder(code)
        return code, recon.reshape(self.patch_shape)

    def train_patch(self, patch, learning_speed: float) -> float:
        code, recon = self.reconstruct(patch)

        error = (patch - recon).reshape(1, 1, -1)
        recon = recon.reshape(1, 1, -1)

        dec_deltas = self.decoder.neuron_errors(recon, error)
        self.decoder.accumulate_grads(code, dec_deltas)

        code_error = np.zeros_like(code)
        self.decoder.propagate_error(dec_deltas, code_error)

        enc_deltas = self.encoder.neuron_errors(code, code_error)
        self.encoder.accumulate_grads(patch, enc_deltas)

        self.decoder.apply_grads(learning_speed)
        self.encoder.apply_grads(learning_speed)

        return float(np.mean(np.abs(error)))


def _euclidean(a, b):
    return float(np.sqrt(np.sum(np.square(a - b))))


def _manhattan(a, b):
    return float(np.sum(np.abs(a - b)))


DISTANCES = {
    "euclidean": _euclidean,
    "manhattan": _manhattan,
}


class SCAE:
    """Stacked convolutional auto-encoder.

    Layers are trained one at a time, without supervision, to rebuild
    the patches they read. The encoders are what an FFCNN is built from.
    """

    def __init__(self, input_width: int, input_height: int, input_depth: int):
        assert _utils.all_positive((input_width, input_height, input_depth))

        self.input_width = int(input_width)
        self.input_height = int(input_height)
        self.input_depth = int(input_depth)

        self._ae_layers = []  # type: t.List[_AutoEncoderLayer]
        self._input = DataBlock(self.input_width, self.input_height, self.input_depth)

    @property
    def layers(self) -> t.Tuple[Convolution, ...]:
        return tuple(ae.encoder for ae in self._ae_layers)

    @property
    def output_shape(self) -> t.Tuple[int, int, int]:
        if not self._ae_layers:
            return (self.input_width, self.input_height, self.input_depth)

        return self._ae_layers[-1].encoder.output_shape

    def add_layer(
        self,
        kernel_size: t.Union[int, t.Tuple[int, int]],
        nb_features: int,
        stride: t.Optional[t.Union[int, t.Tuple[int, int]]] = None,
        activation: str = config.DEFAULT_ACTIVATION,
        decoder_activation: str = "identity",
    ) -> Convolution:
        """Stack a new layer reading the whole output of the current top."""
        encoder = Convolution(
            *self.output_shape,
            output_depth=nb_features,
            kernel_size=kernel_size,
            stride=stride,
            activation=activation,
        )

        self._ae_layers.append(_AutoEncoderLayer(encoder, decoder_activation))

        logger.debug("Added SCAE layer %d: %r", len(self._ae_layers) - 1, encoder)

        return encoder

    def set_input(self, db: DataBlock, x: int, y: int):
        self._input = db.view(x, y, self.input_width, self.input_height)

    def center_input(self, db: DataBlock, cx: int, cy: int):
        self.set_input(db, cx - self.input_width // 2, cy - self.input_height // 2)

    def _layer_inputs(self, nb_layers: int) -> t.List[np.ndarray]:
        """Forward pass returning the input grid of the ``nb_layers`` lowest layers."""
        inputs = [self._input.values]

        for ae in self._ae_layers[: nb_layers - 1]:
            inputs.append(ae.encoder(inputs[-1]))

        return inputs

    def encode(self) -> DataBlock:
        out = self._input.values

        for ae in self._ae_layers:
            out = ae.encoder(out)

        return DataBlock.from_array(out)

    def train(
        self,
        db: DataBlock,
        nb_samples: int,
        layer: t.Optional[int] = None,
        learning_speed: float = config.DEFAULT_LEARNING_SPEED,
        progress: bool = False,
    ) -> float:
        """Train one layer on random windows of ``db``.

        Layers below the trained one are only used to encode the windows.

        Returns
        -------
        float
            Mean absolute reconstruction error over the samples.
        """
        assert self._ae_layers, "the SCAE has no layer to train"
        assert int(nb_samples) > 0
        assert db.width >= self.input_width and db.height >= self.input_height

        if layer is None:
            layer = len(self._ae_layers) - 1

        if not 0 <= int(layer) < len(self._ae_layers):
            raise IndexError(f"SCAE layer {layer} does not exist")

        layer = int(layer)
        ae = self._ae_layers[layer]
        total_err = 0.0
        it = 0

        for _ in tqdm.auto.tqdm(range(int(nb_samples)), disable=not progress):
            x = np.random.randint(db.width - self.input_width + 1)
            y = np.random.randint(db.height - self.input_height + 1)
            self.set_input(db, x, y)

            grid = self._layer_inputs(layer + 1)[-1]

            for _, _, x_slice, y_slice in ae.encoder.windows(grid.shape):
                total_err += ae.train_patch(grid[x_slice, y_slice, :], learning_speed)
                it += 1

        total_err /= it

        logger.info(
            "Trained SCAE layer %d on %d samples, mean error %.5f",
            layer,
            nb_samples,
            total_err,
        )

        return total_err

    def reconstruction_score(
        self, db: DataBlock, x: int, y: int, distance: str = "euclidean"
    ) -> np.ndarray:
        """Mean distance between each layer's input patches and their rebuild."""
        assert distance in DISTANCES, f"unknown distance '{distance}'"

        dist_fn = DISTANCES[distance]

        self.set_input(db, x, y)
        inputs = self._layer_inputs(len(self._ae_layers))
        scores = np.zeros(len(self._ae_layers), dtype=float)

        for i, (ae, grid) in enumerate(zip(self._ae_layers, inputs)):
            dists = []

            for _, _, x_slice, y_slice in ae.encoder.windows(grid.shape):
                patch = grid[x_slice, y_slice, :]
                _, recon = ae.reconstruct(patch)
                dists.append(dist_fn(patch, recon))

            scores[i] = np.mean(dists)

        return scores

    def __len__(self):
        return len(self._ae_layers)

    def __repr__(self):
        strs = [f"SCAE with {len(self)} layers:"]

        for i, encoder in enumerate(self.layers):
            strs.append(f" | {i}. {encoder!r}")

        return "\n".join(strs)
