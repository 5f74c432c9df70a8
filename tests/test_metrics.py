"""Tests for sdm.metrics module."""

import math

import numpy as np
import pytest
from sklearn.metrics import matthews_corrcoef as sk_mcc

from sdm.errors import InvalidInput, NumericDegeneracy
from sdm.metrics import ConfusionMatrix, confusion_matrix, matthews_corrcoef


class TestRates:
    def test_perfect_classifier(self):
        cm = ConfusionMatrix(tp=5, fp=0, tn=5, fn=0)
        assert cm.mcc == pytest.approx(1.0)
        assert cm.tpr == pytest.approx(1.0)
        assert cm.tnr == pytest.approx(1.0)
        assert cm.fpr == pytest.approx(0.0)
        assert cm.fnr == pytest.approx(0.0)

    def test_inverted_classifier(self):
        cm = ConfusionMatrix(tp=0, fp=4, tn=0, fn=4)
        assert cm.mcc == pytest.approx(-1.0)

    def test_known_values(self):
        cm = ConfusionMatrix(tp=6, fp=2, tn=8, fn=4)
        assert cm.fpr == pytest.approx(2 / 10)
        assert cm.fnr == pytest.approx(4 / 10)
        assert cm.tpr == pytest.approx(6 / 10)
        assert cm.tnr == pytest.approx(8 / 10)
        assert cm.accuracy == pytest.approx(14 / 20)
        expected = (6 * 8 - 2 * 4) / math.sqrt(8 * 10 * 10 * 12)
        assert cm.mcc == pytest.approx(expected)

    def test_all_zero_mcc_is_zero(self):
        cm = ConfusionMatrix()
        assert cm.mcc == 0.0
        assert not math.isnan(cm.mcc)

    @pytest.mark.parametrize("counts", [
        dict(tp=5, fp=0, tn=0, fn=0),
        dict(tp=0, fp=0, tn=5, fn=3),
        dict(tp=3, fp=2, tn=0, fn=0),
    ])
    def test_degenerate_denominator_mcc_is_zero(self, counts):
        assert ConfusionMatrix(**counts).mcc == 0.0

    def test_rate_with_zero_denominator_raises(self):
        cm = ConfusionMatrix(tp=3, fn=1)
        with pytest.raises(NumericDegeneracy):
            cm.fpr
        with pytest.raises(NumericDegeneracy):
            cm.tnr
        assert cm.tpr == pytest.approx(0.75)

    def test_negative_count_rejected(self):
        with pytest.raises(InvalidInput):
            ConfusionMatrix(tp=-1)

    def test_as_dict_marks_undefined_rates(self):
        d = ConfusionMatrix(tp=2, fn=2).as_dict()
        assert d["tp"] == 2
        assert d["fpr"] is None
        assert d["tpr"] == pytest.approx(0.5)
        assert d["mcc"] == 0.0


class TestFromPredictions:
    def test_counts(self):
        probs = [0.9, 0.8, 0.3, 0.6, 0.1, 0.4]
        labels = [True, True, True, False, False, False]
        cm = ConfusionMatrix.from_predictions(probs, labels)
        assert (cm.tp, cm.fp, cm.tn, cm.fn) == (2, 1, 2, 1)
        assert cm.total == 6

    def test_threshold_is_inclusive(self):
        cm = confusion_matrix([0.5], [1], threshold=0.5)
        assert cm.tp == 1

    def test_threshold_changes_counts(self):
        probs = [0.9, 0.3, 0.6, 0.1]
        labels = [1, 1, 0, 0]
        assert confusion_matrix(probs, labels, 0.5).fp == 1
        assert confusion_matrix(probs, labels, 0.7).fp == 0

    def test_length_mismatch(self):
        with pytest.raises(InvalidInput):
            confusion_matrix([0.1, 0.2], [1])

    def test_nan_probabilities_rejected(self):
        with pytest.raises(InvalidInput, match="sanitize"):
            confusion_matrix([0.1, np.nan], [1, 0])

    def test_matches_sklearn(self):
        rng = np.random.default_rng(5)
        probs = rng.random(200)
        labels = rng.random(200) < 0.4
        expected = sk_mcc(labels, probs >= 0.35)
        assert matthews_corrcoef(probs, labels, 0.35) == pytest.approx(expected)


class TestPooling:
    def test_add(self):
        a = ConfusionMatrix(tp=1, fp=2, tn=3, fn=4)
        b = ConfusionMatrix(tp=10, fp=20, tn=30, fn=40)
        assert a + b == ConfusionMatrix(tp=11, fp=22, tn=33, fn=44)

    def test_sum_with_empty_start(self):
        matrices = [ConfusionMatrix(tp=1), ConfusionMatrix(tn=2)]
        assert sum(matrices, ConfusionMatrix()) == ConfusionMatrix(tp=1, tn=2)
