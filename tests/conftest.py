import io

import numpy as np
import pytest
from PIL import Image

from qrembed.app import create_app
from qrembed.config import Settings


def image_bytes(img: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_png():
    """Factory for in-memory PNG uploads."""
    def _make(size=(64, 64), color=(200, 30, 30, 255), mode="RGBA"):
        return image_bytes(Image.new(mode, size, color))
    return _make


@pytest.fixture
def transparent_pixel_png():
    return image_bytes(Image.new("RGBA", (1, 1), (0, 0, 0, 0)))


@pytest.fixture
def logo_png():
    """A two-tone square logo: dark ring on a light field."""
    arr = np.full((120, 120, 3), 240, dtype=np.uint8)
    arr[20:100, 20:100] = (30, 60, 160)
    arr[45:75, 45:75] = (240, 240, 240)
    return image_bytes(Image.fromarray(arr))


@pytest.fixture
def noisy_png():
    rng = np.random.default_rng(7)
    arr = rng.integers(0, 256, size=(96, 96, 3), dtype=np.uint8)
    return image_bytes(Image.fromarray(arr))


@pytest.fixture
def dev_settings():
    return Settings(env="development")


@pytest.fixture
def client(dev_settings):
    app = create_app(dev_settings)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def prod_client():
    app = create_app(Settings(env="production"))
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def to_bytes():
    return image_bytes
