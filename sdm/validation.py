"""
Cross-validation of the classifier and decision-threshold tuning.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from joblib import Parallel, delayed
from sklearn.base import clone

from .errors import InvalidConfiguration, InvalidInput
from .metrics import ConfusionMatrix
from .model import NaiveBayesClassifier, as_binary_labels, as_feature_matrix
from .splits import Fold

logger = logging.getLogger(__name__)

# Candidate thresholds scanned by tune_threshold
DEFAULT_THRESHOLDS = np.round(np.linspace(0.01, 0.99, 99), 2)


@dataclass
class CrossValidationResult:
    """Per-fold confusion matrices of one cross-validation run."""

    features: list[int]
    threshold: float
    matrices: list[ConfusionMatrix]

    @property
    def scores(self) -> np.ndarray:
        return np.array([m.mcc for m in self.matrices])

    @property
    def mean_mcc(self) -> float:
        return float(self.scores.mean())

    @property
    def pooled(self) -> ConfusionMatrix:
        return sum(self.matrices, ConfusionMatrix())


def check_features(features: Optional[Sequence[int]], n_features: int) -> list[int]:
    """
    Validate a feature subset against the number of available columns.

    Args:
        features: Column indices, or None for all columns
        n_features: Number of columns in the feature matrix

    Returns:
        The subset as a list of ints, order preserved
    """
    if features is None:
        features = range(n_features)
    features = [int(f) for f in features]

    if not features:
        raise InvalidConfiguration("Feature subset is empty")
    if len(set(features)) != len(features):
        raise InvalidConfiguration(f"Feature subset has duplicates: {features}")
    out_of_range = [f for f in features if not 0 <= f < n_features]
    if out_of_range:
        raise InvalidConfiguration(
            f"Feature indices {out_of_range} out of range for {n_features} features"
        )
    return features


def _check_folds(folds: Sequence[Fold]) -> list[Fold]:
    folds = list(folds)
    if not folds:
        raise InvalidConfiguration("No folds given")
    return folds


def _check_data(X, y) -> tuple[np.ndarray, np.ndarray]:
    X = as_feature_matrix(X)
    y = as_binary_labels(y)
    if X.shape[0] != len(y):
        raise InvalidInput(f"Feature matrix has {X.shape[0]} rows but {len(y)} labels")
    return X, y


def _fold_probabilities(estimator, X, y, fold: Fold) -> np.ndarray:
    model = clone(estimator).fit(X[fold.train], y[fold.train])
    return model.predict_proba(X[fold.validation])


def _evaluate_fold(estimator, X, y, fold: Fold, threshold: float) -> ConfusionMatrix:
    probabilities = _fold_probabilities(estimator, X, y, fold)
    return ConfusionMatrix.from_predictions(probabilities, y[fold.validation], threshold)


def cross_validate(
    X,
    y,
    folds: Sequence[Fold],
    features: Optional[Sequence[int]] = None,
    threshold: float = 0.5,
    n_jobs: Optional[int] = None,
    estimator: Optional[NaiveBayesClassifier] = None,
) -> CrossValidationResult:
    """
    Fit on each fold's training rows and score its validation rows.

    Args:
        X: Feature matrix of shape (n_samples, n_features)
        y: Labels
        folds: Folds from kfold_splits
        features: Column subset to use (default: all)
        threshold: Decision threshold for the confusion matrices
        n_jobs: Parallel jobs over folds (None: serial)
        estimator: Unfitted estimator to clone per fold (default: NaiveBayesClassifier())

    Returns:
        CrossValidationResult with one matrix per fold, in fold order
    """
    X, y = _check_data(X, y)
    folds = _check_folds(folds)
    features = check_features(features, X.shape[1])
    estimator = estimator if estimator is not None else NaiveBayesClassifier()
    X_sub = X[:, features]

    matrices = Parallel(n_jobs=n_jobs)(
        delayed(_evaluate_fold)(estimator, X_sub, y, fold, threshold) for fold in folds
    )

    result = CrossValidationResult(features=features, threshold=threshold, matrices=list(matrices))
    logger.debug(f"CV features={features}: mean MCC {result.mean_mcc:.4f}")
    return result


def out_of_fold_probabilities(
    X,
    y,
    folds: Sequence[Fold],
    features: Optional[Sequence[int]] = None,
    n_jobs: Optional[int] = None,
    estimator: Optional[NaiveBayesClassifier] = None,
) -> np.ndarray:
    """
    Probability for each sample from the fold in which it was held out.

    Samples that are in no validation block are left as NaN.
    """
    X, y = _check_data(X, y)
    folds = _check_folds(folds)
    features = check_features(features, X.shape[1])
    estimator = estimator if estimator is not None else NaiveBayesClassifier()
    X_sub = X[:, features]

    fold_probs = Parallel(n_jobs=n_jobs)(
        delayed(_fold_probabilities)(estimator, X_sub, y, fold) for fold in folds
    )

    probabilities = np.full(len(y), np.nan)
    for fold, probs in zip(folds, fold_probs):
        probabilities[fold.validation] = probs
    return probabilities


def tune_threshold(
    probabilities,
    labels,
    thresholds: Optional[Sequence[float]] = None,
) -> tuple[float, float]:
    """
    Pick the decision threshold that maximises MCC.

    Ties go to the threshold closest to 0.5, then to the lower one.

    Args:
        probabilities: Predicted probabilities (e.g. out-of-fold)
        labels: True labels
        thresholds: Candidate thresholds (default: 0.01 to 0.99 by 0.01)

    Returns:
        Tuple of (best_threshold, best_mcc)
    """
    if thresholds is None:
        thresholds = DEFAULT_THRESHOLDS
    thresholds = sorted(float(t) for t in thresholds)
    if not thresholds:
        raise InvalidConfiguration("No candidate thresholds given")

    best_threshold, best_mcc = None, -np.inf
    for threshold in thresholds:
        mcc = ConfusionMatrix.from_predictions(probabilities, labels, threshold).mcc
        if mcc > best_mcc or (
            mcc == best_mcc and abs(threshold - 0.5) < abs(best_threshold - 0.5)
        ):
            best_threshold, best_mcc = threshold, mcc

    logger.info(f"Tuned threshold: {best_threshold:.2f} (MCC {best_mcc:.3f})")
    return best_threshold, best_mcc
