# tests/conftest.py
import os
import sys

import numpy as np
import pytest

# pytest-dotenv has already loaded .env at this point
pp = os.getenv("PYTHONPATH")
if pp:
    for p in pp.split(os.pathsep):
        if p:
            sys.path.insert(0, p)


def make_image(h=240, w=320, value=30, squares=()):
    """Gray-level BGR image with filled squares given as (x, y, size, value)."""
    img = np.full((h, w, 3), value, dtype=np.uint8)
    for x, y, k, v in squares:
        img[y : y + k, x : x + k] = v
    return img


@pytest.fixture
def image_factory():
    return make_image
