"""
Monte-Carlo estimation of per-feature Shapley values for single predictions.

For feature i of observation x, each draw samples a random feature ordering
and a random reference row z. Two hybrids are formed that take x on the
features ordered before i and z on those after it; they differ only in
feature i (x_i in one, z_i in the other). The Shapley value is the mean
difference of the model output between the two.
"""

import logging
from typing import Callable, Optional

import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from .errors import InvalidConfiguration, InvalidInput, NumericDegeneracy
from .splits import RandomState

logger = logging.getLogger(__name__)

# Monte-Carlo draws per feature
DEFAULT_SHAPLEY_SAMPLES = 50

PredictFn = Callable[[np.ndarray], np.ndarray]


def _check_inputs(x, reference, n_samples: int) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float)
    reference = np.atleast_2d(np.asarray(reference, dtype=float))
    if x.ndim != 1:
        raise InvalidInput(f"Observation must be a 1-D feature vector, got shape {x.shape}")
    if len(reference) == 0:
        raise InvalidConfiguration("Reference pool is empty")
    if reference.shape[1] != len(x):
        raise InvalidInput(
            f"Reference rows have {reference.shape[1]} features, observation has {len(x)}"
        )
    if n_samples < 1:
        raise InvalidConfiguration(f"n_samples must be >= 1, got {n_samples}")
    return x, reference


def _hybrid_pairs(
    x: np.ndarray,
    reference: np.ndarray,
    feature: int,
    n_samples: int,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray]:
    n_features = len(x)
    # Rank of each feature in a random ordering, one row per draw
    ranks = rng.random((n_samples, n_features)).argsort(axis=1).argsort(axis=1)
    z = reference[rng.integers(len(reference), size=n_samples)]

    before = ranks < ranks[:, [feature]]
    without_i = np.where(before, x, z)
    with_i = without_i.copy()
    with_i[:, feature] = x[feature]
    return with_i, without_i


def _marginal_contributions(predict: PredictFn, with_i, without_i) -> np.ndarray:
    n = len(with_i)
    outputs = np.asarray(predict(np.vstack([with_i, without_i])), dtype=float)
    if not np.isfinite(outputs).all():
        raise NumericDegeneracy(
            "Model returned non-finite probabilities; wrap it with with_neutral_fill first"
        )
    return outputs[:n] - outputs[n:]


def shapley_value(
    predict: PredictFn,
    x,
    reference,
    feature: int,
    n_samples: int = DEFAULT_SHAPLEY_SAMPLES,
    random_state: RandomState = None,
) -> float:
    """
    Estimate the Shapley value of one feature for one observation.

    Args:
        predict: Maps a 2-D feature array to 1-D probabilities
        x: Observation to explain, shape (n_features,)
        reference: Background rows drawn from to fill absent features
        feature: Index of the feature to attribute
        n_samples: Number of Monte-Carlo draws
        random_state: Seed or numpy Generator

    Returns:
        Estimated contribution of the feature to predict(x)
    """
    x, reference = _check_inputs(x, reference, n_samples)
    if not 0 <= feature < len(x):
        raise InvalidConfiguration(f"Feature {feature} out of range for {len(x)} features")

    rng = np.random.default_rng(random_state)
    with_i, without_i = _hybrid_pairs(x, reference, feature, n_samples, rng)
    return float(_marginal_contributions(predict, with_i, without_i).mean())


def shapley_values(
    predict: PredictFn,
    x,
    reference,
    n_samples: int = DEFAULT_SHAPLEY_SAMPLES,
    random_state: RandomState = None,
) -> np.ndarray:
    """Shapley value estimates for every feature of one observation."""
    x, reference = _check_inputs(x, reference, n_samples)
    rng = np.random.default_rng(random_state)

    pairs = [_hybrid_pairs(x, reference, i, n_samples, rng) for i in range(len(x))]
    with_all = np.vstack([p[0] for p in pairs])
    without_all = np.vstack([p[1] for p in pairs])

    contributions = _marginal_contributions(predict, with_all, without_all)
    return contributions.reshape(len(x), n_samples).mean(axis=1)


def _explain_one(predict, x, reference, n_samples, seed) -> np.ndarray:
    return shapley_values(predict, x, reference, n_samples, np.random.default_rng(seed))


def explain_cells(
    predict: PredictFn,
    cells,
    reference,
    n_samples: int = DEFAULT_SHAPLEY_SAMPLES,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
    show_progress: bool = False,
) -> np.ndarray:
    """
    Shapley values for many observations (e.g. raster cells).

    Each cell gets its own seed spawned from ``random_state``, so results do
    not depend on how tasks are scheduled.

    Args:
        predict: Maps a 2-D feature array to 1-D probabilities
        cells: Observations, shape (n_cells, n_features)
        reference: Background rows
        n_samples: Monte-Carlo draws per feature
        n_jobs: Parallel jobs over cells (None: serial)
        random_state: Seed for the per-cell seed sequence
        show_progress: Show a progress bar

    Returns:
        Array of shape (n_cells, n_features)
    """
    cells = np.atleast_2d(np.asarray(cells, dtype=float))
    n_cells, n_features = cells.shape
    values = np.zeros((n_cells, n_features))
    if n_cells == 0:
        return values

    seeds = np.random.SeedSequence(random_state).spawn(n_cells)
    logger.info(f"Estimating Shapley values for {n_cells} cells x {n_features} features")

    results = Parallel(n_jobs=n_jobs)(
        delayed(_explain_one)(predict, cells[i], reference, n_samples, seeds[i])
        for i in tqdm(range(n_cells), desc="Shapley", disable=not show_progress)
    )
    for i, row in enumerate(results):
        values[i] = row
    return values
