"""
Holdout and k-fold partitions of sample indices.
"""

import logging
from typing import NamedTuple, Optional

import numpy as np

from .errors import InvalidConfiguration, InvalidInput

logger = logging.getLogger(__name__)

RandomState = Optional[int | np.random.Generator]


class Fold(NamedTuple):
    """Train/validation index pair of one cross-validation fold."""

    train: np.ndarray
    validation: np.ndarray


def _ordered_indices(n_samples: int, shuffle: bool, random_state: RandomState) -> np.ndarray:
    indices = np.arange(n_samples)
    if shuffle:
        rng = np.random.default_rng(random_state)
        indices = rng.permutation(indices)
    return indices


def holdout_split(
    y: np.ndarray,
    test_fraction: float = 0.2,
    shuffle: bool = True,
    stratify: bool = False,
    random_state: RandomState = None,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Split sample indices into a training part and a held-out part.

    Args:
        y: Labels (only their count is used unless stratify is set)
        test_fraction: Fraction of samples to hold out, in (0, 1)
        shuffle: Permute indices before splitting
        stratify: Split each class separately with the same fraction
        random_state: Seed or numpy Generator for the permutation

    Returns:
        Tuple of (train_indices, test_indices), both sorted
    """
    y = np.asarray(y)
    n_samples = len(y)

    if not 0.0 < test_fraction < 1.0:
        raise InvalidConfiguration(f"test_fraction must be in (0, 1), got {test_fraction}")

    rng = np.random.default_rng(random_state)

    if stratify:
        if y.ndim != 1:
            raise InvalidInput("Stratified split needs a 1-D label vector")
        groups = [np.flatnonzero(y == label) for label in np.unique(y)]
    else:
        groups = [np.arange(n_samples)]

    train_parts = []
    test_parts = []
    for group in groups:
        order = rng.permutation(group) if shuffle else group
        n_test = int(round(len(group) * test_fraction))
        test_parts.append(order[:n_test])
        train_parts.append(order[n_test:])

    train_idx = np.sort(np.concatenate(train_parts)).astype(int)
    test_idx = np.sort(np.concatenate(test_parts)).astype(int)

    if len(train_idx) == 0 or len(test_idx) == 0:
        raise InvalidConfiguration(
            f"Holdout of {test_fraction} over {n_samples} samples leaves an empty side "
            f"(train={len(train_idx)}, test={len(test_idx)})"
        )

    logger.debug(f"Holdout split: {len(train_idx)} train, {len(test_idx)} test")
    return train_idx, test_idx


def kfold_splits(
    n_samples: int,
    k: int = 5,
    shuffle: bool = True,
    stratify: Optional[np.ndarray] = None,
    random_state: RandomState = None,
) -> list[Fold]:
    """
    Partition sample indices into k nearly-equal validation blocks.

    The first ``n_samples % k`` blocks hold one extra index. Each fold trains on
    the complement of its block. Without ``stratify`` the blocks are contiguous
    runs of the (optionally permuted) index range. With ``stratify`` each class's
    indices are dealt round-robin across the blocks, so every fold keeps about
    the same class balance and every training part sees each class.

    Args:
        n_samples: Number of samples
        k: Number of folds (2 <= k <= n_samples)
        shuffle: Permute indices before blocking
        stratify: Labels to balance across folds (each class needs 2+ members)
        random_state: Seed or numpy Generator for the permutation

    Returns:
        List of k Fold(train, validation) pairs
    """
    if k < 2:
        raise InvalidConfiguration(f"k-fold needs k >= 2, got {k}")
    if k > n_samples:
        raise InvalidConfiguration(f"Cannot make {k} folds from {n_samples} samples")

    if stratify is None:
        indices = _ordered_indices(n_samples, shuffle, random_state)
        blocks = np.array_split(indices, k)
    else:
        labels = np.asarray(stratify)
        if labels.shape != (n_samples,):
            raise InvalidInput(
                f"Stratified k-fold needs {n_samples} labels, got shape {labels.shape}"
            )
        rng = np.random.default_rng(random_state)
        dealt = []
        for label in np.unique(labels):
            group = np.flatnonzero(labels == label)
            if len(group) < 2:
                raise InvalidInput(
                    f"Class {label!r} has {len(group)} sample; stratified folds need at least 2"
                )
            dealt.append(rng.permutation(group) if shuffle else group)
        order = np.concatenate(dealt)
        blocks = [order[i::k] for i in range(k)]

    folds = []
    for i, block in enumerate(blocks):
        train = np.concatenate([b for j, b in enumerate(blocks) if j != i])
        folds.append(Fold(train=np.sort(train), validation=np.sort(block)))

    return folds
