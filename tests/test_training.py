"""Tests for sdm.training and sdm.occurrences modules."""

import json

import numpy as np
import pytest

from sdm.errors import InvalidInput
from sdm.occurrences import extract_coordinates, load_occurrences, occurrences_to_geojson
from sdm.training import prepare_training_data, sample_background


class TestSampleBackground:
    def test_excludes_presence_and_nodata_cells(self, stack, presence_points):
        features, coords = sample_background(stack, 300, presence_points, seed=1)
        presence_cells = {stack.coords_to_pixel(*p) for p in presence_points}
        drawn_cells = [stack.coords_to_pixel(*c) for c in coords]

        assert len(coords) == 300
        assert features.shape == (300, 2)
        assert np.isfinite(features).all()
        assert presence_cells.isdisjoint(drawn_cells)
        assert (0, 0) not in drawn_cells
        assert len(set(drawn_cells)) == len(drawn_cells)

    def test_features_match_cells(self, stack):
        features, coords = sample_background(stack, 5, [], seed=2)
        for row, (lon, lat) in zip(features, coords):
            r, c = stack.coords_to_pixel(lon, lat)
            assert row == pytest.approx(stack.layers[r, c])

    def test_more_than_available(self, stack, presence_points):
        features, coords = sample_background(stack, 1000, presence_points, seed=3)
        assert len(coords) == 400 - 1 - len(presence_points)

    def test_seed_is_deterministic(self, stack):
        _, a = sample_background(stack, 10, [], seed=4)
        _, b = sample_background(stack, 10, [], seed=4)
        assert a == b


class TestPrepareTrainingData:
    def test_shapes_and_labels(self, stack, presence_points):
        X, y, points = prepare_training_data(stack, presence_points, background_ratio=2, seed=0)
        n = len(presence_points)
        assert X.shape == (3 * n, 2)
        assert y.dtype == bool
        assert y[:n].all()
        assert not y[n:].any()
        assert len(points) == len(X)

    def test_drops_points_outside_coverage(self, stack, presence_points):
        points = presence_points + [(10.0, 10.0), stack.pixel_to_coords(0, 0)]
        X, y, _ = prepare_training_data(stack, points, background_ratio=1)
        assert y.sum() == len(presence_points)

    def test_too_few_occurrences(self, stack):
        with pytest.raises(InvalidInput):
            prepare_training_data(stack, [stack.pixel_to_coords(5, 5), (50.0, 50.0)])


class TestOccurrences:
    def test_geojson_round_trip(self, tmp_path):
        points = [(0.1, 52.2), (0.15, 52.25)]
        geojson = occurrences_to_geojson(points, "Quercus robur")
        assert geojson["name"] == "Quercus_robur_occurrences"
        assert geojson["features"][0]["properties"]["name"] == "Quercus robur"

        path = tmp_path / "occ.geojson"
        path.write_text(json.dumps(geojson))
        assert load_occurrences(path) == points

    def test_skips_non_point_features(self):
        features = [
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [1.0, 2.0]}},
            {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}},
            {"type": "Feature", "geometry": None},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [None, 2.0]}},
        ]
        assert extract_coordinates(features) == [(1.0, 2.0)]

    def test_not_a_feature_collection(self, tmp_path):
        path = tmp_path / "bad.geojson"
        path.write_text(json.dumps({"type": "Feature"}))
        with pytest.raises(InvalidInput):
            load_occurrences(path)
