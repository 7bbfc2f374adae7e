import numpy as np
import pytest

from scaenet import DataBlock
from scaenet import FFCNN
from scaenet import SCAE


def test_layers_chain_geometry(scae):
    first, second = scae.layers

    assert len(scae) == 2
    assert first.output_shape == (4, 4, 4)
    assert second.input_shape == first.output_shape
    assert scae.output_shape == (2, 2, 5)


def test_encode(scae, image):
    scae.set_input(image, 1, 1)

    assert scae.encode().shape == (2, 2, 5)


def test_center_input(scae, image):
    scae.center_input(image, 5, 6)
    centered = scae.encode().values

    scae.set_input(image, 2, 3)

    np.testing.assert_array_equal(scae.encode().values, centered)


def test_reconstruction_score(scae, image):
    euclidean = scae.reconstruction_score(image, 0, 0)
    manhattan = scae.reconstruction_score(image, 0, 0, distance="manhattan")

    assert euclidean.shape == (2,)
    assert np.all(euclidean > 0.0)
    assert np.all(manhattan >= euclidean)


def test_training_improves_reconstruction():
    db = DataBlock.from_array(np.random.uniform(size=(12, 12, 1)))
    ae = SCAE(4, 4, 1)
    ae.add_layer(kernel_size=2, nb_features=3)

    before = ae.reconstruction_score(db, 4, 4)[0]
    ae.train(db, nb_samples=500, learning_speed=0.02)
    after = ae.reconstruction_score(db, 4, 4)[0]

    assert after < before


def test_training_only_touches_selected_layer(scae, image):
    weights = [conv.weights.values.copy() for conv in scae.layers]

    scae.train(image, nb_samples=3, layer=0, learning_speed=0.01)

    assert not np.array_equal(weights[0], scae.layers[0].weights.values)
    np.testing.assert_array_equal(weights[1], scae.layers[1].weights.values)


def test_training_unknown_layer(scae, image):
    with pytest.raises(IndexError):
        scae.train(image, nb_samples=1, layer=2)


def test_ffcnn_training_leaves_scae_untouched(scae, image):
    weights = scae.layers[0].weights.values.copy()
    net = FFCNN(scae, nb_classes=2)

    net.set_input(image, 0, 0)
    net.compute()
    net.set_expected(0, 1.0)
    net.back_propagate()
    net.learn()

    np.testing.assert_array_equal(scae.layers[0].weights.values, weights)
