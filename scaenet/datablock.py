import typing as t

import numpy as np
import PIL.Image


class DataBlock:
    """Mutable 3-D float buffer addressed by (x, y, z).

    Values are stored in a numpy array of shape (width, height, depth).
    Blocks returned by ``view`` share memory with their parent, so writes
    through either one are visible in both.
    """

    def __init__(self, width: int, height: int, depth: int):
        assert int(width) > 0
        assert int(height) > 0
        assert int(depth) > 0

        self.values = np.zeros((int(width), int(height), int(depth)), dtype=float)

    @classmethod
    def from_array(cls, values: np.ndarray) -> "DataBlock":
        values = np.asarray(values, dtype=float)

        if values.ndim == 2:
            values = np.expand_dims(values, -1)

        assert values.ndim == 3, values.shape

        db = cls.__new__(cls)
        db.values = values
        return db

    @classmethod
    def from_image(cls, filepath: str) -> "DataBlock":
        with PIL.Image.open(filepath) as img:
            pixels = np.asarray(img.convert("RGB"), dtype=float)

        # PIL yields (rows, columns, channels); blocks are (x, y, channel).
        pixels = np.ascontiguousarray(np.transpose(pixels, (1, 0, 2))) / 255.0

        return cls.from_array(pixels)

    def to_image(self, filepath: str):
        assert self.depth in {1, 3}, "only grey or RGB blocks can be exported"

        pixels = np.clip(self.values, 0.0, 1.0) * 255.0
        pixels = np.transpose(pixels, (1, 0, 2)).round().astype(np.uint8)

        if self.depth == 1:
            pixels = pixels[:, :, 0]

        PIL.Image.fromarray(pixels).save(filepath)

    @property
    def width(self) -> int:
        return self.values.shape[0]

    @property
    def height(self) -> int:
        return self.values.shape[1]

    @property
    def depth(self) -> int:
        return self.values.shape[2]

    @property
    def shape(self) -> t.Tuple[int, int, int]:
        return self.values.shape

    def get_value(self, x: int, y: int, z: int) -> float:
        return float(self.values[x, y, z])

    def set_value(self, x: int, y: int, z: int, value: float):
        self.values[x, y, z] = value

    def add_value(self, x: int, y: int, z: int, value: float):
        self.values[x, y, z] += value

    def clear(self):
        self.values.fill(0.0)

    def view(self, x: int, y: int, width: int, height: int) -> "DataBlock":
        x, y, width, height = int(x), int(y), int(width), int(height)

        if (
            x < 0
            or y < 0
            or width <= 0
            or height <= 0
            or x + width > self.width
            or y + height > self.height
        ):
            raise IndexError(
                f"window ({x}, {y}) of size {width}x{height} does not fit "
                f"in a {self.width}x{self.height} block"
            )

        return DataBlock.from_array(self.values[x : x + width, y : y + height, :])

    def shares_memory(self, other: "DataBlock") -> bool:
        return np.shares_memory(self.values, other.values)

    def copy(self) -> "DataBlock":
        return DataBlock.from_array(self.values.copy())

    def __repr__(self):
        return f"DataBlock {self.width}x{self.height}x{self.depth}"
