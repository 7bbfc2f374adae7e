"""Element-wise activations used by the convolution transforms.

Derivatives are expressed in terms of the activation *output*, which is
what every layer keeps in its output buffer.
"""
import numpy as np
import scipy.special


class _BaseActivation:
    name = ""

    def forward(self, X):
        raise NotImplementedError

    def __call__(self, X):
        return self.forward(X)

    def derivative(self, out):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__} activation"


class Tanh(_BaseActivation):
    name = "tanh"

    def forward(self, X):
        return np.tanh(X)

    def derivative(self, out):
        return 1.0 - np.square(out)


class Sigmoid(_BaseActivation):
    name = "sigmoid"

    def forward(self, X):
        return scipy.special.expit(X)

    def derivative(self, out):
        return out * (1.0 - out)


class ReLU(_BaseActivation):
    name = "relu"

    def forward(self, X):
        return np.maximum(X, 0.0)

    def derivative(self, out):
        return (out > 0.0).astype(float, copy=False)


class Identity(_BaseActivation):
    name = "identity"

    def forward(self, X):
        return np.asarray(X, dtype=float)

    def derivative(self, out):
        return np.ones_like(out, dtype=float)


_ACTIVATIONS = {
    cls.name: cls for cls in (Tanh, Sigmoid, ReLU, Identity)
}

NAMES = tuple(_ACTIVATIONS)


def get(name: str) -> _BaseActivation:
    assert str(name) in _ACTIVATIONS, f"unknown activation '{name}'"
    return _ACTIVATIONS[str(name)]()
