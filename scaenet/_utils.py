import typing as t

import numpy as np


def all_gt(vals, threshold):
    a = not isinstance(vals, int) or vals > threshold
    b = not hasattr(vals, "__len__") or all(map(lambda x: x > threshold, vals))
    return a and b


def all_positive(vals):
    return all_gt(vals, 0.0)


def replicate(vals, n):
    if hasattr(vals, "__len__"):
        assert len(vals) == n
        return tuple(int(v) for v in vals)

    return tuple([int(vals)] * n)


def weight_init_param_he(dist: str, dim_in: int, *args):
    assert dist in {"normal", "uniform"}

    if dist == "normal":
        return np.sqrt(2.0 / dim_in)

    return np.sqrt(6.0 / dim_in)


def weight_init_param_xavier(dist: str, dim_in: int, *args):
    assert dist in {"normal", "uniform"}

    if dist == "normal":
        return np.sqrt(1.0 / (3.0 * dim_in))

    return np.sqrt(1.0 / dim_in)


# NOTE: 'normal' and 'uniform' distributions are initialized to have the
# very same variance.
_WEIGHT_INIT_PARAM = {
    "he": weight_init_param_he,
    "xavier": weight_init_param_xavier,
}

# Known rules of thumb:
# 'he': suitable for ReLU activations
# 'xavier': suitable for Tanh and Sigmoid activations
INIT_RULE_BY_ACTIVATION = {
    "tanh": "xavier",
    "sigmoid": "xavier",
    "identity": "xavier",
    "relu": "he",
}


def get_weight_init_dist_params(
    std: t.Union[str, float],
    dist: str,
    dims: t.Tuple[int, int],
):
    if not isinstance(std, str):
        assert dist == "normal"
        return float(std)

    assert dist in {"normal", "uniform"}
    assert std in _WEIGHT_INIT_PARAM, std

    dim_in, dim_out = dims
    param = _WEIGHT_INIT_PARAM[std](dist, dim_in, dim_out)

    if dist == "normal":
        return param

    return -param, param


def patch_origins(
    input_size: int, kernel_size: int, stride: int
) -> t.Iterator[t.Tuple[int, int]]:
    """Yield (output index, input start) pairs along one spatial axis."""
    for i, start in enumerate(range(0, input_size - kernel_size + 1, stride)):
        yield i, start
