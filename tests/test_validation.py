"""Tests for sdm.validation module."""

import numpy as np
import pytest

from sdm.errors import InvalidConfiguration, InvalidInput
from sdm.model import NaiveBayesClassifier
from sdm.splits import kfold_splits
from sdm.validation import (
    check_features,
    cross_validate,
    out_of_fold_probabilities,
    tune_threshold,
)


@pytest.fixture
def folds(informative_data):
    X, _ = informative_data
    return kfold_splits(len(X), 5, random_state=0)


class TestCheckFeatures:
    def test_default_is_all(self):
        assert check_features(None, 3) == [0, 1, 2]

    def test_order_preserved(self):
        assert check_features([2, 0], 3) == [2, 0]

    @pytest.mark.parametrize("features", [[], [0, 0], [3], [-1]])
    def test_invalid(self, features):
        with pytest.raises(InvalidConfiguration):
            check_features(features, 3)


class TestCrossValidate:
    def test_one_matrix_per_fold(self, informative_data, folds):
        X, y = informative_data
        result = cross_validate(X, y, folds, features=[1])
        assert len(result.matrices) == 5
        assert result.pooled.total == len(y)
        for fold, cm in zip(folds, result.matrices):
            assert cm.total == len(fold.validation)

    def test_mean_mcc(self, informative_data, folds):
        X, y = informative_data
        result = cross_validate(X, y, folds, features=[1])
        assert result.mean_mcc == pytest.approx(result.scores.mean())
        assert result.mean_mcc > 0.7

    def test_noise_feature_scores_lower(self, informative_data, folds):
        X, y = informative_data
        informative = cross_validate(X, y, folds, features=[1]).mean_mcc
        noise = cross_validate(X, y, folds, features=[0]).mean_mcc
        assert informative > noise

    def test_parallel_matches_serial(self, informative_data, folds):
        X, y = informative_data
        serial = cross_validate(X, y, folds, features=[0, 1])
        parallel = cross_validate(X, y, folds, features=[0, 1], n_jobs=2)
        assert serial.matrices == parallel.matrices

    def test_custom_estimator(self, informative_data, folds):
        X, y = informative_data
        result = cross_validate(
            X, y, folds, features=[1], estimator=NaiveBayesClassifier(min_variance=1.0)
        )
        assert len(result.matrices) == 5

    def test_empty_features(self, informative_data, folds):
        X, y = informative_data
        with pytest.raises(InvalidConfiguration):
            cross_validate(X, y, folds, features=[])

    def test_length_mismatch(self, informative_data, folds):
        X, y = informative_data
        with pytest.raises(InvalidInput):
            cross_validate(X, y[:-1], folds)

    def test_no_folds(self, informative_data):
        X, y = informative_data
        with pytest.raises(InvalidConfiguration, match="No folds"):
            cross_validate(X, y, [])


class TestOutOfFold:
    def test_every_sample_scored_once(self, informative_data, folds):
        X, y = informative_data
        probs = out_of_fold_probabilities(X, y, folds, features=[1])
        assert probs.shape == (len(y),)
        assert np.isfinite(probs).all()
        assert ((probs >= 0) & (probs <= 1)).all()

    def test_matches_fold_models(self, informative_data, folds):
        X, y = informative_data
        probs = out_of_fold_probabilities(X, y, folds, features=[1])
        fold = folds[0]
        model = NaiveBayesClassifier().fit(X[fold.train][:, [1]], y[fold.train])
        expected = model.predict_proba(X[fold.validation][:, [1]])
        assert probs[fold.validation] == pytest.approx(expected)

    def test_no_folds(self, informative_data):
        X, y = informative_data
        with pytest.raises(InvalidConfiguration, match="No folds"):
            out_of_fold_probabilities(X, y, [], features=[1])


class TestTuneThreshold:
    def test_tie_goes_to_threshold_nearest_half(self):
        threshold, mcc = tune_threshold([0.1, 0.2, 0.6, 0.7], [0, 0, 1, 1])
        assert threshold == pytest.approx(0.5)
        assert mcc == pytest.approx(1.0)

    def test_low_separating_threshold(self):
        threshold, mcc = tune_threshold([0.1, 0.3, 0.35, 0.4], [0, 0, 1, 1])
        assert threshold == pytest.approx(0.35)
        assert mcc == pytest.approx(1.0)

    def test_custom_grid(self):
        threshold, _ = tune_threshold([0.1, 0.9], [0, 1], thresholds=[0.2, 0.8])
        assert threshold == pytest.approx(0.2)

    def test_empty_grid(self):
        with pytest.raises(InvalidConfiguration):
            tune_threshold([0.1], [0], thresholds=[])
