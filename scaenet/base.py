import numpy as np

from . import _utils


class Tensor:
    def __init__(self, values: np.ndarray):
        self.values = np.array(values, dtype=float)
        self.grads = np.zeros_like(self.values, dtype=float)

    def step(self, scale: float = 1.0):
        self.values -= scale * self.grads

    def zero_grad(self):
        self.grads *= 0.0

    def update_grads(self, grads):
        assert grads.shape == self.values.shape, (str(self), grads.shape)
        self.grads += grads

    def step_and_zero_grad(self, scale: float = 1.0):
        self.step(scale)
        self.zero_grad()

    @property
    def size(self):
        return self.values.size

    @property
    def shape(self):
        return self.values.shape

    @staticmethod
    def from_shape(shape, mode: str = "normal", **kwargs):
        assert mode in {"normal", "uniform", "zeros"}, f"unknown init mode '{mode}'"

        if mode == "normal":
            mean = kwargs.get("mean", 0.0)
            std = _utils.get_weight_init_dist_params(
                kwargs.get("std", 1.0), mode, kwargs.get("dims")
            )
            return Tensor(np.random.normal(mean, std, shape))

        if mode == "uniform":
            init_type = kwargs.get("std")

            if init_type is not None:
                low, high = _utils.get_weight_init_dist_params(
                    init_type, mode, kwargs["dims"]
                )

            else:
                high = kwargs.get("high", 1.0)
                low = kwargs.get("low", -high)

            return Tensor(np.random.uniform(low, high, shape))

        return Tensor(np.zeros(shape, dtype=float))

    def __repr__(self):
        return f"Tensor of shape {self.values.shape}"
