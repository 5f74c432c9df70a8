"""
Training data preparation: presence points plus random background cells.
"""

import logging
from typing import Sequence

import numpy as np

from .errors import InvalidInput
from .rasters import RasterStack

logger = logging.getLogger(__name__)

# Default ratio of background samples to occurrences
BACKGROUND_RATIO = 5


def sample_background(
    stack: RasterStack,
    n_samples: int,
    exclude_points: Sequence[tuple[float, float]],
    seed: int = 42,
) -> tuple[np.ndarray, list[tuple[float, float]]]:
    """
    Sample random background cells from the raster stack.

    Cells holding an excluded point (an occurrence) and invalid cells are
    never drawn, and no cell is drawn twice.

    Args:
        stack: Environmental layers
        n_samples: Number of background samples to draw
        exclude_points: (lon, lat) points whose cells are excluded
        seed: Random seed for reproducibility

    Returns:
        Tuple of (features array, coordinates list)
    """
    rng = np.random.default_rng(seed)
    height, width, channels = stack.shape

    available = stack.valid_cells().copy()
    for lon, lat in exclude_points:
        row, col = stack.coords_to_pixel(lon, lat)
        if 0 <= row < height and 0 <= col < width:
            available[row, col] = False

    candidates = np.flatnonzero(available)
    if len(candidates) < n_samples:
        logger.warning(
            f"Only {len(candidates)} background cells available (requested {n_samples})"
        )
    chosen = rng.choice(candidates, size=min(n_samples, len(candidates)), replace=False)

    rows, cols = np.unravel_index(chosen, (height, width))
    features = stack.layers[rows, cols, :].reshape(len(chosen), channels)
    coords = [stack.pixel_to_coords(r, c) for r, c in zip(rows, cols)]
    return features, coords


def prepare_training_data(
    stack: RasterStack,
    presence_points: Sequence[tuple[float, float]],
    background_ratio: int = BACKGROUND_RATIO,
    seed: int = 42,
) -> tuple[np.ndarray, np.ndarray, list[tuple[float, float]]]:
    """
    Build the feature matrix and labels for presence vs background.

    Args:
        stack: Environmental layers
        presence_points: (lon, lat) occurrence points
        background_ratio: Background samples per valid presence
        seed: Random seed for background sampling

    Returns:
        Tuple of (X features, y labels, points)
        - X: array of shape (n_samples, n_layers)
        - y: boolean labels (True for presence)
        - points: (lon, lat) of each row, presences first
    """
    presence_features, valid_mask = stack.sample_at_points(presence_points)

    n_invalid = int((~valid_mask).sum())
    if n_invalid > 0:
        logger.warning(f"{n_invalid} occurrences outside raster coverage or on nodata cells")

    positives = presence_features[valid_mask]
    valid_points = [p for p, v in zip(presence_points, valid_mask) if v]
    if len(positives) < 2:
        raise InvalidInput(f"Need at least 2 valid occurrences, found {len(positives)}")

    n_background = len(positives) * background_ratio
    negatives, background_points = sample_background(stack, n_background, valid_points, seed)
    if len(negatives) == 0:
        raise InvalidInput("No background cells available")

    X = np.vstack([positives, negatives])
    y = np.array([True] * len(positives) + [False] * len(negatives))
    points = valid_points + background_points

    logger.info(f"Training samples: {len(X)} (presence: {len(positives)}, background: {len(negatives)})")
    return X, y, points
