"""
Gaussian Naive Bayes presence/background classifier.
"""

import logging
from typing import Callable

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin

from .errors import InvalidConfiguration, InvalidInput, NumericDegeneracy

logger = logging.getLogger(__name__)

# Floor applied to per-class feature variances
DEFAULT_MIN_VARIANCE = 1e-9

# Probability substituted for non-finite predictions
NEUTRAL_PROBABILITY = 0.5


def as_binary_labels(y) -> np.ndarray:
    """Coerce labels to a boolean vector, rejecting anything that is not 0/1."""
    y = np.asarray(y)
    if y.ndim != 1:
        raise InvalidInput(f"Labels must be 1-D, got shape {y.shape}")
    if y.dtype != bool:
        if not np.isin(y, (0, 1)).all():
            raise InvalidInput("Labels must be boolean or 0/1")
        y = y.astype(bool)
    return y


def as_feature_matrix(X) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise InvalidInput(f"Feature matrix must be 2-D, got shape {X.shape}")
    return X


class NaiveBayesClassifier(ClassifierMixin, BaseEstimator):
    """
    Gaussian Naive Bayes for presence (True) vs background (False).

    Each feature is modelled per class as an independent normal distribution
    with population (ddof=0) variance. Variances below ``min_variance`` are
    raised to it; ``min_variance=0`` disables the floor and a constant
    feature then raises NumericDegeneracy.

    Fitted attributes follow scikit-learn naming: ``class_prior_`` and the
    rows of ``theta_``/``var_`` are ordered [background, presence].
    """

    def __init__(self, min_variance: float = DEFAULT_MIN_VARIANCE):
        self.min_variance = min_variance

    def fit(self, X, y) -> "NaiveBayesClassifier":
        """
        Estimate class priors and per-class feature means and variances.

        Args:
            X: Feature matrix of shape (n_samples, n_features)
            y: Labels (True/1 for presence, False/0 for background)

        Returns:
            The fitted classifier
        """
        X = as_feature_matrix(X)
        y = as_binary_labels(y)

        if X.shape[0] != len(y):
            raise InvalidInput(f"Feature matrix has {X.shape[0]} rows but {len(y)} labels")
        if X.shape[1] == 0:
            raise InvalidConfiguration("Cannot fit on an empty feature subset")
        if self.min_variance < 0:
            raise InvalidConfiguration(f"min_variance must be >= 0, got {self.min_variance}")

        counts = np.array([(~y).sum(), y.sum()])
        if (counts == 0).any():
            missing = "presence" if counts[1] == 0 else "background"
            raise InvalidInput(f"No {missing} examples in training data")

        theta = np.vstack([X[~y].mean(axis=0), X[y].mean(axis=0)])
        var = np.vstack([X[~y].var(axis=0), X[y].var(axis=0)])

        if self.min_variance > 0:
            n_floored = int((var < self.min_variance).sum())
            if n_floored:
                logger.debug(f"Flooring {n_floored} class/feature variances at {self.min_variance}")
            var = np.maximum(var, self.min_variance)
        elif (var == 0).any():
            cls, feature = np.argwhere(var == 0)[0]
            raise NumericDegeneracy(
                f"Feature {feature} has zero variance in class {bool(cls)}"
            )

        self.classes_ = np.array([False, True])
        self.class_count_ = counts
        self.class_prior_ = counts / counts.sum()
        self.theta_ = theta
        self.var_ = var
        self.n_features_in_ = X.shape[1]
        return self

    @property
    def std_(self) -> np.ndarray:
        return np.sqrt(self.var_)

    def _check_fitted(self, X) -> np.ndarray:
        if not hasattr(self, "theta_"):
            raise RuntimeError("Model has not been trained yet")
        X = np.atleast_2d(np.asarray(X, dtype=float))
        if X.shape[1] != self.n_features_in_:
            raise InvalidInput(
                f"Expected {self.n_features_in_} features, got {X.shape[1]}"
            )
        return X

    def joint_log_likelihood(self, X) -> np.ndarray:
        """
        Unnormalised log P(class) + sum_j log N(x_j | class).

        Returns:
            Array of shape (n_samples, 2), columns [background, presence]
        """
        X = self._check_fitted(X)
        jll = []
        for c in range(2):
            log_density = -0.5 * (
                np.log(2.0 * np.pi * self.var_[c]) + (X - self.theta_[c]) ** 2 / self.var_[c]
            )
            jll.append(np.log(self.class_prior_[c]) + log_density.sum(axis=1))
        return np.column_stack(jll)

    def predict_proba(self, X) -> np.ndarray:
        """
        Predict probability of presence.

        Computes P(+)L(+) / (P(+)L(+) + P(-)L(-)) in log space. Rows with
        non-finite features give NaN; see sanitize_probabilities.

        Args:
            X: Feature matrix

        Returns:
            Array of probabilities for the positive class
        """
        jll = self.joint_log_likelihood(X)
        log_evidence = np.logaddexp(jll[:, 0], jll[:, 1])
        return np.exp(jll[:, 1] - log_evidence)

    def predict(self, X, threshold: float = 0.5) -> np.ndarray:
        """
        Predict presence at a decision threshold.

        Args:
            X: Feature matrix
            threshold: Probabilities >= threshold are classed as presence

        Returns:
            Boolean array of predictions
        """
        return self.predict_proba(X) >= threshold


def sanitize_probabilities(probabilities, fill_value: float = NEUTRAL_PROBABILITY) -> np.ndarray:
    """Replace non-finite probabilities with a neutral value."""
    probabilities = np.array(probabilities, dtype=float)
    bad = ~np.isfinite(probabilities)
    if bad.any():
        logger.debug(f"Replacing {int(bad.sum())} non-finite probabilities with {fill_value}")
        probabilities[bad] = fill_value
    return probabilities


def with_neutral_fill(
    predict: Callable[[np.ndarray], np.ndarray],
    fill_value: float = NEUTRAL_PROBABILITY,
) -> Callable[[np.ndarray], np.ndarray]:
    """Wrap a prediction callable so it never returns non-finite probabilities."""

    def wrapped(X):
        return sanitize_probabilities(predict(X), fill_value)

    return wrapped
