import numpy as np
import PIL.Image
import pytest

from scaenet import DataBlock


def test_new_block_is_zeroed():
    db = DataBlock(4, 3, 2)

    assert db.shape == (4, 3, 2)
    assert (db.width, db.height, db.depth) == (4, 3, 2)
    assert not np.any(db.values)


def test_point_access():
    db = DataBlock(4, 3, 2)

    db.set_value(3, 2, 1, 0.5)
    db.add_value(3, 2, 1, 0.25)

    assert db.get_value(3, 2, 1) == pytest.approx(0.75)
    assert db.values[3, 2, 1] == pytest.approx(0.75)


def test_view_aliases_parent():
    db = DataBlock(5, 5, 2)
    view = db.view(1, 2, 3, 2)

    view.set_value(0, 0, 1, 4.0)
    db.set_value(3, 3, 0, -1.0)

    assert view.shape == (3, 2, 2)
    assert db.get_value(1, 2, 1) == 4.0
    assert view.get_value(2, 1, 0) == -1.0
    assert view.shares_memory(db)


def test_clear_is_in_place():
    db = DataBlock.from_array(np.ones((4, 4, 1)))
    view = db.view(0, 0, 2, 2)

    db.clear()

    assert not np.any(view.values)


@pytest.mark.parametrize("x, y", [(-1, 0), (0, -1), (3, 0), (0, 4)])
def test_view_outside_block(x, y):
    db = DataBlock(5, 5, 1)

    with pytest.raises(IndexError):
        db.view(x, y, 3, 2)


def test_copy_is_independent():
    db = DataBlock.from_array(np.ones((2, 2, 2)))
    other = db.copy()

    other.clear()

    assert np.all(db.values == 1.0)
    assert not other.shares_memory(db)


def test_from_image_uses_xy_layout(tmp_path):
    pixels = np.zeros((2, 4, 3), dtype=np.uint8)
    pixels[1, 3] = (255, 0, 0)
    filepath = tmp_path / "img.png"
    PIL.Image.fromarray(pixels).save(filepath)

    db = DataBlock.from_image(str(filepath))

    assert db.shape == (4, 2, 3)
    assert db.get_value(3, 1, 0) == 1.0
    assert db.get_value(3, 1, 1) == 0.0
    assert db.values.max() == 1.0


def test_image_export(tmp_path):
    db = DataBlock.from_array(np.random.randint(256, size=(5, 3, 3)) / 255.0)
    filepath = tmp_path / "out.png"

    db.to_image(str(filepath))
    loaded = DataBlock.from_image(str(filepath))

    np.testing.assert_allclose(loaded.values, db.values)
