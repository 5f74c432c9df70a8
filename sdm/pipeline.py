"""
End-to-end species distribution workflow.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import rasterio.transform

from .errors import InvalidConfiguration
from .metrics import ConfusionMatrix
from .model import DEFAULT_MIN_VARIANCE, NaiveBayesClassifier, with_neutral_fill
from .predict import generate_candidate_locations, predict_probability_map
from .rasters import RasterStack, save_probability_raster
from .selection import SelectionResult, forward_select
from .shapley import DEFAULT_SHAPLEY_SAMPLES, explain_cells
from .splits import holdout_split, kfold_splits
from .training import BACKGROUND_RATIO, prepare_training_data
from .validation import CrossValidationResult, cross_validate, out_of_fold_probabilities, tune_threshold

logger = logging.getLogger(__name__)

N_FOLDS = 5
TEST_FRACTION = 0.2
SEED = 42


@dataclass
class PipelineConfig:
    """Settings for run_pipeline."""

    n_folds: int = N_FOLDS
    test_fraction: float = TEST_FRACTION
    background_ratio: int = BACKGROUND_RATIO
    seed: int = SEED
    initial_features: Sequence[int] = ()
    max_features: Optional[int] = None
    threshold: Optional[float] = None  # None: tune on out-of-fold predictions
    min_variance: float = DEFAULT_MIN_VARIANCE
    explain: bool = False
    shapley_samples: int = DEFAULT_SHAPLEY_SAMPLES
    n_jobs: Optional[int] = None

    def __post_init__(self):
        if self.n_folds < 2:
            raise InvalidConfiguration(f"n_folds must be >= 2, got {self.n_folds}")
        if not 0.0 < self.test_fraction < 1.0:
            raise InvalidConfiguration(f"test_fraction must be in (0, 1), got {self.test_fraction}")
        if self.background_ratio < 1:
            raise InvalidConfiguration(f"background_ratio must be >= 1, got {self.background_ratio}")
        if self.threshold is not None and not 0.0 <= self.threshold <= 1.0:
            raise InvalidConfiguration(f"threshold must be in [0, 1], got {self.threshold}")
        if self.min_variance < 0:
            raise InvalidConfiguration(f"min_variance must be >= 0, got {self.min_variance}")
        if self.shapley_samples < 1:
            raise InvalidConfiguration(f"shapley_samples must be >= 1, got {self.shapley_samples}")
        self.initial_features = tuple(self.initial_features)


@dataclass
class ModelResult:
    """Container for a fitted model and its evaluation."""

    layer_names: list[str]
    selection: SelectionResult
    threshold: float
    cv: CrossValidationResult
    holdout: ConfusionMatrix
    classifier: NaiveBayesClassifier
    probabilities: np.ndarray  # (H, W) probability map
    transform: rasterio.transform.Affine
    crs: str
    bbox: tuple[float, float, float, float]
    n_presence: int
    n_background: int
    shapley: Optional[np.ndarray] = None  # (H, W, n_selected)
    config: PipelineConfig = field(default_factory=PipelineConfig)

    @property
    def selected(self) -> list[int]:
        return self.selection.selected

    @property
    def selected_names(self) -> list[str]:
        return [self.layer_names[i] for i in self.selected]

    def summary(self) -> dict:
        return {
            "selected_features": self.selected,
            "selected_names": self.selected_names,
            "selection_history": [
                {"feature": step.feature, "name": self.layer_names[step.feature], "mcc": step.score}
                for step in self.selection.history
            ],
            "threshold": self.threshold,
            "cv_mcc_mean": self.cv.mean_mcc,
            "cv_mcc_folds": [float(s) for s in self.cv.scores],
            "holdout": self.holdout.as_dict(),
            "n_presence": self.n_presence,
            "n_background": self.n_background,
            "bbox": list(self.bbox),
        }

    def to_geojson(self, max_points: Optional[int] = 5000) -> dict:
        """Cells at or above the decision threshold as GeoJSON points."""
        geojson = generate_candidate_locations(
            self.probabilities, self.transform, self.threshold, max_points, self.config.seed
        )
        geojson["metadata"]["selected_names"] = self.selected_names
        geojson["metadata"]["bbox"] = list(self.bbox)
        return geojson

    def save(self, output_dir: Path) -> dict[str, Path]:
        """Save results to files."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = {}

        tiff_path = output_dir / "probability.tif"
        save_probability_raster(tiff_path, self.probabilities, self.transform, self.crs)
        paths["raster"] = tiff_path

        geojson = self.to_geojson()
        geojson_path = output_dir / "candidates.geojson"
        with open(geojson_path, "w") as f:
            json.dump(geojson, f)
        paths["candidates"] = geojson_path
        logger.info(f"Saved {len(geojson['features'])} candidates: {geojson_path}")

        summary_path = output_dir / "results.json"
        with open(summary_path, "w") as f:
            json.dump(self.summary(), f, indent=2)
        paths["summary"] = summary_path
        logger.info(f"Saved results summary: {summary_path}")

        if self.shapley is not None:
            shapley_path = output_dir / "shapley.npy"
            np.save(shapley_path, self.shapley)
            paths["shapley"] = shapley_path
            logger.info(f"Saved Shapley values: {shapley_path}")

        return paths


def run_pipeline(
    stack: RasterStack,
    presence_points: Sequence[tuple[float, float]],
    config: Optional[PipelineConfig] = None,
) -> ModelResult:
    """
    Fit and evaluate a species distribution model.

    Samples background cells, holds out a stratified test set, selects
    variables by cross-validated MCC on the rest, tunes the decision
    threshold, fits the final classifier and maps presence probability.

    Args:
        stack: Environmental layers
        presence_points: (lon, lat) occurrence points
        config: Pipeline settings (default: PipelineConfig())

    Returns:
        ModelResult with probability map and evaluation
    """
    config = config or PipelineConfig()
    estimator = NaiveBayesClassifier(min_variance=config.min_variance)

    logger.info("=" * 60)
    logger.info(f"Species distribution model: {stack.n_layers} layers, {len(presence_points)} occurrences")
    logger.info("=" * 60)

    logger.info("[1/6] Preparing training data...")
    X, y, _ = prepare_training_data(stack, presence_points, config.background_ratio, config.seed)

    logger.info("[2/6] Splitting holdout set...")
    train_idx, test_idx = holdout_split(
        y, config.test_fraction, stratify=True, random_state=config.seed
    )
    X_train, y_train = X[train_idx], y[train_idx]
    X_test, y_test = X[test_idx], y[test_idx]
    folds = kfold_splits(
        len(y_train), config.n_folds, stratify=y_train, random_state=config.seed
    )
    logger.info(f"  Train: {len(train_idx)}, holdout: {len(test_idx)}, folds: {config.n_folds}")
    if len(np.unique(y_test)) < 2:
        logger.warning(
            f"  Holdout has a single class ({int(y_test.sum())} occurrences of {len(y_test)}); "
            f"its MCC is 0 by construction"
        )

    logger.info("[3/6] Selecting variables...")
    selection_threshold = config.threshold if config.threshold is not None else 0.5
    selection = forward_select(
        X_train, y_train, folds,
        initial=config.initial_features,
        threshold=selection_threshold,
        max_features=config.max_features,
        n_jobs=config.n_jobs,
        estimator=estimator,
    )
    selected = selection.selected
    logger.info(f"  Selected: {[stack.names[i] for i in selected]}")

    logger.info("[4/6] Choosing decision threshold...")
    if config.threshold is None:
        oof = out_of_fold_probabilities(
            X_train, y_train, folds, selected, config.n_jobs, estimator
        )
        threshold, _ = tune_threshold(oof, y_train)
    else:
        threshold = config.threshold
    cv = cross_validate(X_train, y_train, folds, selected, threshold, config.n_jobs, estimator)
    logger.info(f"  Threshold {threshold:.2f}, CV mean MCC {cv.mean_mcc:.3f}")

    logger.info("[5/6] Fitting final model and scoring holdout...")
    classifier = NaiveBayesClassifier(min_variance=config.min_variance)
    classifier.fit(X_train[:, selected], y_train)
    holdout = ConfusionMatrix.from_predictions(
        classifier.predict_proba(X_test[:, selected]), y_test, threshold
    )
    logger.info(f"  Holdout MCC {holdout.mcc:.3f} ({holdout.tp} TP, {holdout.fp} FP, "
                f"{holdout.tn} TN, {holdout.fn} FN)")

    logger.info("[6/6] Mapping presence probability...")
    grid = predict_probability_map(classifier, stack, selected, n_jobs=config.n_jobs)

    shapley = None
    if config.explain:
        height, width, _ = stack.shape
        cells, valid_mask = stack.cell_features()
        values = explain_cells(
            with_neutral_fill(classifier.predict_proba),
            cells[valid_mask][:, selected],
            X_train[:, selected],
            n_samples=config.shapley_samples,
            n_jobs=config.n_jobs,
            random_state=config.seed,
        )
        flat = np.full((height * width, len(selected)), np.nan)
        flat[valid_mask] = values
        shapley = flat.reshape(height, width, len(selected))

    logger.info("=" * 60)
    logger.info("COMPLETE")
    logger.info("=" * 60)

    return ModelResult(
        layer_names=list(stack.names),
        selection=selection,
        threshold=threshold,
        cv=cv,
        holdout=holdout,
        classifier=classifier,
        probabilities=grid,
        transform=stack.transform,
        crs=stack.crs.to_string(),
        bbox=stack.bbox,
        n_presence=int(y.sum()),
        n_background=int((~y).sum()),
        shapley=shapley,
        config=config,
    )
