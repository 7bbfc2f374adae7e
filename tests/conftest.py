import numpy as np
import pytest

import scaenet


@pytest.fixture(autouse=True)
def seed():
    np.random.seed(16)


@pytest.fixture
def scae():
    ae = scaenet.SCAE(6, 6, 3)
    ae.add_layer(kernel_size=3, nb_features=4, stride=1)
    ae.add_layer(kernel_size=2, nb_features=5)
    return ae


@pytest.fixture
def net(scae):
    return scaenet.FFCNN(scae, nb_classes=3, additional_layers=(6,))


@pytest.fixture
def image():
    return scaenet.DataBlock.from_array(np.random.uniform(size=(10, 12, 3)))

