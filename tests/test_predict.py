"""Tests for sdm.predict module."""

import json

import numpy as np
import pytest

from sdm.model import NaiveBayesClassifier
from sdm.predict import (
    generate_candidate_locations,
    predict_probability_map,
    save_candidates_geojson,
)
from sdm.training import prepare_training_data


@pytest.fixture
def fitted(stack, presence_points):
    X, y, _ = prepare_training_data(stack, presence_points, background_ratio=3, seed=0)
    return NaiveBayesClassifier().fit(X[:, [0]], y)


class TestProbabilityMap:
    def test_shape_and_invalid_cells(self, stack, fitted):
        grid = predict_probability_map(fitted, stack, features=[0])
        assert grid.shape == (20, 20)
        assert np.isnan(grid[0, 0])
        assert np.isfinite(grid).sum() == 399

    def test_matches_direct_prediction(self, stack, fitted):
        grid = predict_probability_map(fitted, stack, features=[0])
        expected = fitted.predict_proba(stack.layers[7, 12, [0]][np.newaxis])[0]
        assert grid[7, 12] == pytest.approx(expected)

    def test_east_more_suitable_than_west(self, stack, fitted):
        grid = predict_probability_map(fitted, stack, features=[0])
        assert np.nanmean(grid[:, -2:]) > np.nanmean(grid[:, :2])

    def test_batches_and_jobs_do_not_change_result(self, stack, fitted):
        single = predict_probability_map(fitted, stack, features=[0])
        batched = predict_probability_map(fitted, stack, features=[0], batch_size=37, n_jobs=2)
        np.testing.assert_allclose(batched, single, equal_nan=True)


class TestCandidates:
    def test_only_cells_above_threshold(self, stack):
        grid = np.zeros((20, 20))
        grid[3, 4] = 0.9
        grid[5, 6] = 0.7
        grid[0, 0] = np.nan
        geojson = generate_candidate_locations(grid, stack.transform, threshold=0.7)

        probs = [f["properties"]["probability"] for f in geojson["features"]]
        assert probs == [0.7, 0.9]
        assert geojson["metadata"]["n_candidates"] == 2
        assert geojson["metadata"]["valid_cells"] == 399

        lon, lat = geojson["features"][1]["geometry"]["coordinates"]
        assert stack.coords_to_pixel(lon, lat) == (3, 4)

    def test_max_points(self, stack):
        grid = np.ones((20, 20))
        geojson = generate_candidate_locations(grid, stack.transform, threshold=0.5, max_points=10)
        assert len(geojson["features"]) == 10

    def test_save(self, tmp_path, stack):
        geojson = generate_candidate_locations(np.ones((20, 20)), stack.transform, 0.5)
        path = tmp_path / "candidates.geojson"
        save_candidates_geojson(geojson, path)
        assert len(json.loads(path.read_text())["features"]) == 400
