"""
Probability maps and candidate locations.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import rasterio.transform
from joblib import Parallel, delayed
from tqdm import tqdm

from .model import NaiveBayesClassifier
from .rasters import RasterStack

logger = logging.getLogger(__name__)


def predict_probability_map(
    classifier: NaiveBayesClassifier,
    stack: RasterStack,
    features: Optional[Sequence[int]] = None,
    batch_size: int = 50_000,
    n_jobs: Optional[int] = None,
    show_progress: bool = False,
) -> np.ndarray:
    """
    Predict presence probability for every cell of the stack.

    Cells are scored in batches; each batch writes only its own slice of a
    pre-allocated output buffer. Invalid cells are NaN.

    Args:
        classifier: Fitted classifier
        stack: Environmental layers
        features: Layer indices the classifier was trained on (default: all)
        batch_size: Cells per prediction batch
        n_jobs: Parallel jobs over batches (None: serial)
        show_progress: Show a progress bar

    Returns:
        Array of shape (height, width)
    """
    height, width, _ = stack.shape
    cells, valid_mask = stack.cell_features()
    if features is not None:
        cells = cells[:, list(features)]

    probabilities = np.full(height * width, np.nan)
    valid_idx = np.flatnonzero(valid_mask)
    batches = [valid_idx[i:i + batch_size] for i in range(0, len(valid_idx), batch_size)]

    logger.info(f"Prediction grid: {height * width} cells ({len(valid_idx)} valid)")
    results = Parallel(n_jobs=n_jobs)(
        delayed(classifier.predict_proba)(cells[batch])
        for batch in tqdm(batches, desc="Classifying", disable=not show_progress)
    )
    for batch, probs in zip(batches, results):
        probabilities[batch] = probs

    grid = probabilities.reshape(height, width)
    if len(valid_idx):
        logger.info(f"Score range: {np.nanmin(grid):.3f} - {np.nanmax(grid):.3f}")
    return grid


def generate_candidate_locations(
    grid: np.ndarray,
    transform: rasterio.transform.Affine,
    threshold: float = 0.5,
    max_points: Optional[int] = None,
    seed: int = 42,
) -> dict:
    """
    Convert cells with probability >= threshold to GeoJSON points.

    Args:
        grid: (height, width) probability grid, NaN for invalid cells
        transform: Affine transform of the grid
        threshold: Minimum probability to include as candidate
        max_points: Randomly subsample to at most this many points
        seed: Random seed for subsampling

    Returns:
        GeoJSON FeatureCollection of candidate locations
    """
    with np.errstate(invalid="ignore"):
        rows, cols = np.where(grid >= threshold)

    if max_points is not None and len(rows) > max_points:
        idx = np.random.default_rng(seed).choice(len(rows), max_points, replace=False)
        rows, cols = rows[idx], cols[idx]

    features = []
    for row, col in zip(rows, cols):
        lon, lat = rasterio.transform.xy(transform, row, col)
        features.append({
            "type": "Feature",
            "properties": {"probability": float(grid[row, col])},
            "geometry": {"type": "Point", "coordinates": [float(lon), float(lat)]}
        })

    # Ascending, so high values render on top
    features.sort(key=lambda f: f["properties"]["probability"])

    logger.info(f"Found {len(features)} candidate locations with probability >= {threshold}")

    return {
        "type": "FeatureCollection",
        "name": "candidate_locations",
        "crs": {
            "type": "name",
            "properties": {"name": "urn:ogc:def:crs:OGC:1.3:CRS84"}
        },
        "features": features,
        "metadata": {
            "threshold": threshold,
            "total_cells": int(grid.size),
            "valid_cells": int(np.isfinite(grid).sum()),
            "n_candidates": len(features),
        }
    }


def save_candidates_geojson(candidates: dict, path: str | Path) -> None:
    """Save candidate locations to GeoJSON file."""
    with open(path, "w") as f:
        json.dump(candidates, f, indent=2)
    logger.info(f"Saved {len(candidates['features'])} candidates to {path}")
