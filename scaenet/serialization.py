"""Versioned persistence of FFCNN layer chains.

A network is stored as an uncompressed numpy ``.npz`` archive holding
one record per array:

* ``format`` / ``version``: format tag and schema version;
* ``input_shape``: width, height and depth of the input patch;
* ``input``: the input patch of the bottom layer;
* ``layer_count``;
* for every layer ``i``: ``layer_{i}_geometry`` (input width, height,
  depth, kernel width, height, stride x, y, output depth),
  ``layer_{i}_activation``, ``layer_{i}_weights``, ``layer_{i}_bias``
  and ``layer_{i}_learning_speed``.

Archives are read without pickle support.
"""
import logging
import os
import typing as t
import zipfile

import numpy as np

from . import config
from . import errors
from .convolution import Convolution
from .datablock import DataBlock
from .layer import ConvolutionLayer

logger = logging.getLogger(__name__)


def _layer_records(i: int, layer: ConvolutionLayer) -> t.Dict[str, np.ndarray]:
    conv = layer.convolution

    geometry = np.array(
        [*conv.input_shape, *conv.kernel_size, *conv.stride, conv.output_depth],
        dtype=np.int64,
    )

    return {
        f"layer_{i}_geometry": geometry,
        f"layer_{i}_activation": np.array(conv.activation_name),
        f"layer_{i}_weights": conv.weights.values,
        f"layer_{i}_bias": conv.bias.values,
        f"layer_{i}_learning_speed": np.array(layer.learning_speed, dtype=float),
    }


def save(net, filepath: str):
    """Write ``net`` to ``filepath``, creating parent directories on demand."""
    dirname = os.path.dirname(os.path.abspath(filepath))
    os.makedirs(dirname, exist_ok=True)

    records = {
        "format": np.array(config.FORMAT_TAG),
        "version": np.array(config.FORMAT_VERSION, dtype=np.int64),
        "input_shape": np.array(
            [net.input_width, net.input_height, net.input_depth], dtype=np.int64
        ),
        "input": net.get_layer(0).input.values,
        "layer_count": np.array(net.count_layers(), dtype=np.int64),
    }

    for i, layer in enumerate(net):
        records.update(_layer_records(i, layer))

    # A file object keeps numpy from appending '.npz' to the name.
    with open(filepath, "wb") as f:
        np.savez(f, **records)

    logger.info("Saved %d-layer network to '%s'", net.count_layers(), filepath)


def _read_records(filepath: str) -> t.Dict[str, np.ndarray]:
    try:
        with open(filepath, "rb") as f:
            archive = np.load(f, allow_pickle=False)

            if not isinstance(archive, np.lib.npyio.NpzFile):
                raise errors.UnreadableNetworkError(
                    f"'{filepath}' is not a network archive"
                )

            with archive:
                return {key: archive[key] for key in archive.files}

    except errors.UnreadableNetworkError:
        raise

    except (OSError, EOFError, ValueError, zipfile.BadZipFile) as exc:
        raise errors.UnreadableNetworkError(
            f"cannot read network from '{filepath}': {exc}"
        ) from exc


def _check_format(records: t.Dict[str, np.ndarray], filepath: str):
    if "format" not in records or "version" not in records:
        raise errors.IncompatibleFormatError(
            f"'{filepath}' carries no network format tag"
        )

    tag = str(records["format"])

    if tag != config.FORMAT_TAG:
        raise errors.IncompatibleFormatError(
            f"'{filepath}' has format '{tag}', expected '{config.FORMAT_TAG}'"
        )

    try:
        version = int(records["version"])

    except (ValueError, TypeError) as exc:
        raise errors.IncompatibleFormatError(
            f"'{filepath}' has an unrecognized format version: {exc}"
        ) from exc

    if version != config.FORMAT_VERSION:
        raise errors.IncompatibleFormatError(
            f"'{filepath}' has format version {version}, this library reads "
            f"version {config.FORMAT_VERSION}"
        )


def _build_layer(records: t.Dict[str, np.ndarray], i: int) -> ConvolutionLayer:
    geometry = [int(v) for v in records[f"layer_{i}_geometry"]]

    if len(geometry) != 8:
        raise ValueError(f"layer {i} geometry has {len(geometry)} fields")

    in_w, in_h, in_d, k_w, k_h, s_x, s_y, out_d = geometry

    conv = Convolution.from_parameters(
        input_shape=(in_w, in_h, in_d),
        kernel_size=(k_w, k_h),
        stride=(s_x, s_y),
        activation=str(records[f"layer_{i}_activation"]),
        weights=records[f"layer_{i}_weights"],
        bias=records[f"layer_{i}_bias"],
    )

    if conv.output_depth != out_d:
        raise ValueError(
            f"layer {i} declares {out_d} outputs but stores {conv.output_depth}"
        )

    return ConvolutionLayer(
        conv, learning_speed=float(records[f"layer_{i}_learning_speed"])
    )


def read(filepath: str):
    """Parse a saved network.

    Returns the input shape, the list of unwired layers and the stored
    input block. Nothing is returned unless the whole archive is valid.
    """
    records = _read_records(filepath)
    _check_format(records, filepath)

    try:
        input_shape = tuple(int(v) for v in records["input_shape"])
        layer_count = int(records["layer_count"])
        layers = [_build_layer(records, i) for i in range(layer_count)]
        input_block = DataBlock.from_array(records["input"].astype(float))

        if layer_count < 1:
            raise ValueError("the archive holds no layer")

        if input_block.shape != input_shape:
            raise ValueError(
                f"stored input of shape {input_block.shape} does not match "
                f"{input_shape}"
            )

    # Missing records, malformed geometry or mismatching parameter shapes.
    except (KeyError, IndexError, ValueError, TypeError, AssertionError) as exc:
        raise errors.UnreadableNetworkError(
            f"'{filepath}' holds a corrupt network: {exc}"
        ) from exc

    return input_shape, layers, input_block
