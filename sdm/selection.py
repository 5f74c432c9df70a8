"""
Greedy forward selection of environmental variables.
"""

import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .errors import InvalidConfiguration
from .model import NaiveBayesClassifier, as_feature_matrix
from .splits import Fold
from .validation import check_features, cross_validate

logger = logging.getLogger(__name__)


class SelectionStep(NamedTuple):
    feature: int
    score: float


@dataclass
class SelectionResult:
    """Outcome of forward selection."""

    selected: list[int]
    score: float
    history: list[SelectionStep] = field(default_factory=list)


def forward_select(
    X,
    y,
    folds: Sequence[Fold],
    initial: Sequence[int] = (),
    candidates: Optional[Sequence[int]] = None,
    threshold: float = 0.5,
    max_features: Optional[int] = None,
    n_jobs: Optional[int] = None,
    estimator: Optional[NaiveBayesClassifier] = None,
    show_progress: bool = False,
) -> SelectionResult:
    """
    Grow a feature subset one variable at a time by cross-validated MCC.

    Each round adds the candidate whose inclusion gives the highest mean MCC
    across folds, as long as it strictly beats the best score so far. Equal
    scores go to the lowest feature index. An empty seed subset starts from
    a score of -inf, so at least one variable is always chosen.

    Args:
        X: Feature matrix of shape (n_samples, n_features)
        y: Labels
        folds: Folds from kfold_splits
        initial: Seed subset that is always kept
        candidates: Indices eligible for addition (default: all not in initial)
        threshold: Decision threshold used for the fold confusion matrices
        max_features: Stop once the subset reaches this size
        n_jobs: Parallel jobs over folds
        estimator: Unfitted estimator cloned per fold (default: NaiveBayesClassifier())
        show_progress: Show a progress bar per round

    Returns:
        SelectionResult with the ordered subset, its score and accepted steps
    """
    X = as_feature_matrix(X)
    n_features = X.shape[1]

    selected = check_features(initial, n_features) if len(initial) else []
    if candidates is None:
        pool = [f for f in range(n_features) if f not in selected]
    else:
        pool = [f for f in check_features(candidates, n_features) if f not in selected]
    pool.sort()

    if max_features is not None and max_features < max(len(selected), 1):
        raise InvalidConfiguration(
            f"max_features={max_features} is smaller than the seed subset or zero"
        )

    if selected:
        best_score = cross_validate(X, y, folds, selected, threshold, n_jobs, estimator).mean_mcc
    else:
        best_score = -np.inf
    logger.info(f"Forward selection from {selected or 'empty set'} (score {best_score:.4f})")

    history = []
    while pool and (max_features is None or len(selected) < max_features):
        round_best_feature, round_best_score = None, -np.inf
        for feature in tqdm(pool, desc=f"Round {len(history) + 1}", disable=not show_progress):
            score = cross_validate(
                X, y, folds, selected + [feature], threshold, n_jobs, estimator
            ).mean_mcc
            logger.debug(f"  candidate {feature}: {score:.4f}")
            if score > round_best_score:
                round_best_feature, round_best_score = feature, score

        if round_best_score <= best_score:
            logger.info(f"No candidate improves on {best_score:.4f}; stopping")
            break

        selected.append(round_best_feature)
        pool.remove(round_best_feature)
        best_score = round_best_score
        history.append(SelectionStep(round_best_feature, round_best_score))
        logger.info(f"Added feature {round_best_feature}: mean MCC {best_score:.4f}")

    return SelectionResult(selected=selected, score=float(best_score), history=history)
