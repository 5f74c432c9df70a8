"""
Environmental raster layers sampled as classifier features.

Layers are read from local GeoTIFFs into a single (height, width, layers)
array. Nodata cells become NaN and are treated as invalid everywhere.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import rasterio
import rasterio.transform
from rasterio.crs import CRS

from .errors import InvalidInput

logger = logging.getLogger(__name__)

DEFAULT_CRS = "EPSG:4326"


class RasterStack:
    """
    A stack of co-registered environmental layers.
    """

    def __init__(
        self,
        layers: np.ndarray,
        transform: rasterio.transform.Affine,
        crs=DEFAULT_CRS,
        names: Optional[Sequence[str]] = None,
    ):
        """
        Args:
            layers: Array of shape (height, width, n_layers)
            transform: Affine transform from pixel to map coordinates
            crs: Coordinate reference system of the grid
            names: Layer names (default: layer_0, layer_1, ...)
        """
        layers = np.asarray(layers, dtype=np.float64)
        if layers.ndim == 2:
            layers = layers[:, :, np.newaxis]
        if layers.ndim != 3:
            raise InvalidInput(f"Layer stack must be (height, width, layers), got {layers.shape}")

        if names is None:
            names = [f"layer_{i}" for i in range(layers.shape[2])]
        names = list(names)
        if len(names) != layers.shape[2]:
            raise InvalidInput(f"Got {len(names)} names for {layers.shape[2]} layers")

        self.layers = layers
        self.transform = transform
        self.crs = CRS.from_user_input(crs)
        self.names = names

    @classmethod
    def from_files(
        cls,
        paths: Sequence[str | Path],
        names: Optional[Sequence[str]] = None,
    ) -> "RasterStack":
        """
        Load layers from GeoTIFF files.

        Every band of every file becomes one layer. All files must share
        shape and transform.

        Args:
            paths: GeoTIFF paths
            names: Layer names (default: file stem, suffixed by band number
                for multi-band files)

        Returns:
            RasterStack
        """
        if not paths:
            raise InvalidInput("No raster paths given")

        bands = []
        default_names = []
        transform = crs = None
        shape = None

        for path in paths:
            path = Path(path)
            with rasterio.open(path) as src:
                if transform is None:
                    transform, crs, shape = src.transform, src.crs, (src.height, src.width)
                elif (src.height, src.width) != shape or src.transform != transform:
                    raise InvalidInput(f"{path} is not aligned with {paths[0]}")

                data = src.read().astype(np.float64)
                for b in range(src.count):
                    nodata = src.nodatavals[b]
                    if nodata is not None:
                        data[b][data[b] == nodata] = np.nan
                    bands.append(data[b])
                    default_names.append(path.stem if src.count == 1 else f"{path.stem}_{b + 1}")
                logger.info(f"Loaded {path} ({src.count} band(s))")

        layers = np.stack(bands, axis=-1)
        logger.info(f"Raster stack shape: {layers.shape}")
        return cls(layers, transform, crs or DEFAULT_CRS, names or default_names)

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.layers.shape

    @property
    def n_layers(self) -> int:
        return self.layers.shape[2]

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) of the grid."""
        height, width, _ = self.shape
        left, bottom, right, top = rasterio.transform.array_bounds(height, width, self.transform)
        return (left, bottom, right, top)

    def coords_to_pixel(self, lon: float, lat: float) -> tuple[int, int]:
        row, col = rasterio.transform.rowcol(self.transform, lon, lat)
        return int(row), int(col)

    def pixel_to_coords(self, row: int, col: int) -> tuple[float, float]:
        lon, lat = rasterio.transform.xy(self.transform, row, col)
        return float(lon), float(lat)

    def valid_cells(self) -> np.ndarray:
        """Boolean (height, width) mask of cells with every layer finite."""
        return np.isfinite(self.layers).all(axis=2)

    def sample_at_points(
        self, points: Sequence[tuple[float, float]]
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Sample layer values at the given points.

        Args:
            points: List of (lon, lat) tuples

        Returns:
            Tuple of (features, valid_mask)
            - features: array of shape (n_points, n_layers), NaN where invalid
            - valid_mask: boolean array of points inside the grid on valid cells
        """
        height, width, channels = self.shape
        features = np.full((len(points), channels), np.nan)
        valid_mask = np.zeros(len(points), dtype=bool)

        for i, (lon, lat) in enumerate(points):
            row, col = self.coords_to_pixel(lon, lat)
            if 0 <= row < height and 0 <= col < width:
                features[i] = self.layers[row, col, :]
                valid_mask[i] = np.isfinite(features[i]).all()

        return features, valid_mask

    def cell_features(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Flatten the grid to one feature row per cell (row-major).

        Returns:
            Tuple of (features (height*width, n_layers), valid_mask (height*width,))
        """
        height, width, channels = self.shape
        features = self.layers.reshape(height * width, channels)
        return features, self.valid_cells().reshape(-1)


def save_probability_raster(
    path: str | Path,
    grid: np.ndarray,
    transform: rasterio.transform.Affine,
    crs=DEFAULT_CRS,
) -> None:
    """Write a (height, width) probability grid as a single-band float32 GeoTIFF."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        path, "w",
        driver="GTiff",
        height=grid.shape[0],
        width=grid.shape[1],
        count=1,
        dtype=np.float32,
        crs=crs,
        transform=transform,
        nodata=np.nan,
    ) as dst:
        dst.write(grid.astype(np.float32), 1)
    logger.info(f"Saved probability raster: {path}")
