"""
Confusion matrix and the rate statistics derived from it.
"""

import math
from dataclasses import asdict, dataclass

import numpy as np

from .errors import InvalidInput, NumericDegeneracy
from .model import as_binary_labels


def _rate(numerator: int, denominator: int, name: str) -> float:
    if denominator == 0:
        raise NumericDegeneracy(f"{name} is undefined: zero denominator")
    return numerator / denominator


@dataclass(frozen=True)
class ConfusionMatrix:
    """Counts of prediction-vs-truth outcomes at one decision threshold."""

    tp: int = 0
    fp: int = 0
    tn: int = 0
    fn: int = 0

    def __post_init__(self):
        for name, value in asdict(self).items():
            if value < 0:
                raise InvalidInput(f"Confusion count {name} must be non-negative, got {value}")

    @classmethod
    def from_predictions(
        cls,
        probabilities,
        labels,
        threshold: float = 0.5,
    ) -> "ConfusionMatrix":
        """
        Tabulate predictions against true labels.

        Args:
            probabilities: Predicted probabilities of presence
            labels: True labels
            threshold: Probabilities >= threshold count as positive

        Returns:
            ConfusionMatrix
        """
        probabilities = np.asarray(probabilities, dtype=float)
        labels = as_binary_labels(labels)

        if probabilities.shape != labels.shape:
            raise InvalidInput(f"Got {probabilities.size} predictions for {len(labels)} labels")
        if not np.isfinite(probabilities).all():
            raise InvalidInput("Probabilities contain non-finite values; sanitize them first")

        predicted = probabilities >= threshold
        return cls(
            tp=int((predicted & labels).sum()),
            fp=int((predicted & ~labels).sum()),
            tn=int((~predicted & ~labels).sum()),
            fn=int((~predicted & labels).sum()),
        )

    def __add__(self, other: "ConfusionMatrix") -> "ConfusionMatrix":
        if not isinstance(other, ConfusionMatrix):
            return NotImplemented
        return ConfusionMatrix(
            tp=self.tp + other.tp,
            fp=self.fp + other.fp,
            tn=self.tn + other.tn,
            fn=self.fn + other.fn,
        )

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    @property
    def fpr(self) -> float:
        return _rate(self.fp, self.fp + self.tn, "FPR")

    @property
    def fnr(self) -> float:
        return _rate(self.fn, self.fn + self.tp, "FNR")

    @property
    def tpr(self) -> float:
        return _rate(self.tp, self.tp + self.fn, "TPR")

    @property
    def tnr(self) -> float:
        return _rate(self.tn, self.tn + self.fp, "TNR")

    @property
    def accuracy(self) -> float:
        return _rate(self.tp + self.tn, self.total, "Accuracy")

    @property
    def mcc(self) -> float:
        """Matthews correlation coefficient; 0.0 when any marginal is empty."""
        denominator = (
            (self.tp + self.fp) * (self.tp + self.fn) * (self.tn + self.fp) * (self.tn + self.fn)
        )
        if denominator == 0:
            return 0.0
        return (self.tp * self.tn - self.fp * self.fn) / math.sqrt(denominator)

    def as_dict(self) -> dict:
        """Counts plus every rate that is defined for these counts."""
        result = asdict(self)
        for name in ("fpr", "fnr", "tpr", "tnr", "accuracy"):
            try:
                result[name] = getattr(self, name)
            except NumericDegeneracy:
                result[name] = None
        result["mcc"] = self.mcc
        return result


def confusion_matrix(probabilities, labels, threshold: float = 0.5) -> ConfusionMatrix:
    """Function form of ConfusionMatrix.from_predictions."""
    return ConfusionMatrix.from_predictions(probabilities, labels, threshold)


def matthews_corrcoef(probabilities, labels, threshold: float = 0.5) -> float:
    return ConfusionMatrix.from_predictions(probabilities, labels, threshold).mcc
