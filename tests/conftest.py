"""Shared test fixtures for art similarity tests."""

import numpy as np
import cv2
import pytest

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def solid(color, size=(256, 256)):
    """Generate an RGB image filled with one color."""
    img = np.zeros((size[0], size[1], 3), dtype=np.uint8)
    img[:, :] = color
    return img


@pytest.fixture
def red_image():
    """Generate a 256x256 solid red image."""
    return solid(RED)


@pytest.fixture
def blue_image():
    """Generate a 256x256 solid blue image."""
    return solid(BLUE)


@pytest.fixture
def green_image():
    """Generate a 256x256 solid green image."""
    return solid(GREEN)


@pytest.fixture
def split_image():
    """Generate a 256x256 image, red left of column 100 and blue right of it."""
    img = solid(BLUE)
    img[:, :100] = RED
    return img


@pytest.fixture
def noise_image():
    """Generate a 200x300 random noise image."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 256, (200, 300, 3), dtype=np.uint8)


@pytest.fixture
def all_colors_image():
    """Generate a 256x256 image holding all 64 quantized colors equally."""
    codes = (np.arange(256 * 256) % 64).reshape(256, 256)
    img = np.zeros((256, 256, 3), dtype=np.uint8)
    img[..., 0] = (codes // 16) * 64 + 32
    img[..., 1] = ((codes // 4) % 4) * 64 + 32
    img[..., 2] = (codes % 4) * 64 + 32
    return img


@pytest.fixture
def write_image(tmp_path):
    """Return a function that saves an RGB array as PNG and returns its path."""
    def _write(name, image_rgb):
        path = tmp_path / name
        cv2.imwrite(str(path), cv2.cvtColor(image_rgb, cv2.COLOR_RGB2BGR))
        return str(path)
    return _write


@pytest.fixture
def corrupt_file(tmp_path):
    """Create a file with a .png name that is not an image."""
    path = tmp_path / "corrupt.png"
    path.write_bytes(b"this is not a png")
    return str(path)
