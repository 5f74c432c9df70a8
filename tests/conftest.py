"""Shared fixtures for sdm tests."""

import numpy as np
import pytest
from rasterio.transform import from_bounds

from sdm.rasters import RasterStack


@pytest.fixture
def separated_1d():
    """10 presences ~ N(5, 1) and 10 background ~ N(0, 1), one feature."""
    rng = np.random.default_rng(0)
    X = np.concatenate([rng.normal(5.0, 1.0, 10), rng.normal(0.0, 1.0, 10)])[:, np.newaxis]
    y = np.array([True] * 10 + [False] * 10)
    return X, y


@pytest.fixture
def informative_data():
    """Feature 1 separates the classes, features 0 and 2 are noise."""
    rng = np.random.default_rng(42)
    n = 60
    y = np.array([True] * (n // 2) + [False] * (n // 2))
    X = rng.normal(0.0, 1.0, (n, 3))
    X[y, 1] += 4.0
    return X, y


@pytest.fixture
def stack():
    """20x20 grid over (0, 0)-(2, 2); layer 0 rises west to east, layer 1 is noise."""
    height = width = 20
    rng = np.random.default_rng(7)
    gradient = np.tile(np.linspace(0.0, 10.0, width), (height, 1))
    noise = rng.normal(0.0, 1.0, (height, width))
    layers = np.stack([gradient, noise], axis=-1)
    layers[0, 0, :] = np.nan
    transform = from_bounds(0.0, 0.0, 2.0, 2.0, width, height)
    return RasterStack(layers, transform, names=["temperature", "noise"])


@pytest.fixture
def presence_points(stack):
    """Occurrences in the eastern (warm) columns."""
    points = []
    for row in range(2, 18, 2):
        for col in (16, 17, 18, 19):
            points.append(stack.pixel_to_coords(row, col))
    return points
