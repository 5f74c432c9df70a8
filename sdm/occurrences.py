"""
Species occurrence points in GeoJSON form.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .errors import InvalidInput

logger = logging.getLogger(__name__)


def extract_coordinates(features: list[dict]) -> list[tuple[float, float]]:
    """
    Extract (lon, lat) coordinates from GeoJSON point features.

    Features without point geometry are skipped.

    Args:
        features: List of GeoJSON Feature dictionaries

    Returns:
        List of (longitude, latitude) tuples
    """
    coords = []
    for feature in features:
        geometry = feature.get("geometry") or {}
        if geometry.get("type") != "Point":
            continue
        coordinates = geometry.get("coordinates") or []
        if len(coordinates) < 2 or coordinates[0] is None or coordinates[1] is None:
            continue
        coords.append((float(coordinates[0]), float(coordinates[1])))
    return coords


def load_occurrences(path: str | Path) -> list[tuple[float, float]]:
    """
    Load occurrence points from a GeoJSON FeatureCollection.

    Args:
        path: GeoJSON file path

    Returns:
        List of (longitude, latitude) tuples
    """
    with open(path) as f:
        data = json.load(f)

    if data.get("type") != "FeatureCollection":
        raise InvalidInput(f"{path} is not a GeoJSON FeatureCollection")

    features = data.get("features", [])
    coords = extract_coordinates(features)
    skipped = len(features) - len(coords)
    if skipped:
        logger.warning(f"Skipped {skipped} features without point coordinates in {path}")
    logger.info(f"Loaded {len(coords)} occurrences from {path}")
    return coords


def occurrences_to_geojson(
    points: list[tuple[float, float]],
    species_name: Optional[str] = None,
) -> dict:
    """
    Convert (lon, lat) points to a GeoJSON FeatureCollection.

    Args:
        points: List of (longitude, latitude) tuples
        species_name: Optional name stored on each feature

    Returns:
        GeoJSON FeatureCollection
    """
    properties = {"name": species_name} if species_name else {}
    features = [
        {
            "type": "Feature",
            "properties": dict(properties),
            "geometry": {
                "type": "Point",
                "coordinates": [lon, lat]
            }
        }
        for lon, lat in points
    ]

    collection = {
        "type": "FeatureCollection",
        "crs": {
            "type": "name",
            "properties": {"name": "urn:ogc:def:crs:OGC:1.3:CRS84"}
        },
        "features": features
    }
    if species_name:
        collection["name"] = f"{species_name.replace(' ', '_')}_occurrences"
    return collection
