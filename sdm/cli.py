"""
Command-line interface for the species distribution model.
"""

import argparse
import logging
from pathlib import Path

from .model import DEFAULT_MIN_VARIANCE
from .occurrences import load_occurrences
from .pipeline import N_FOLDS, SEED, TEST_FRACTION, PipelineConfig, run_pipeline
from .rasters import RasterStack
from .shapley import DEFAULT_SHAPLEY_SAMPLES
from .training import BACKGROUND_RATIO

logger = logging.getLogger(__name__)


def build_model(
    raster_paths: list[Path],
    occurrences_path: Path,
    output_dir: Path,
    config: PipelineConfig,
    layer_names: list[str] | None = None,
) -> dict:
    """
    Complete workflow: load layers and occurrences, fit, map, save.

    Args:
        raster_paths: GeoTIFF files with environmental layers
        occurrences_path: GeoJSON FeatureCollection of occurrence points
        output_dir: Directory to save outputs
        config: Pipeline settings
        layer_names: Optional names for the layers

    Returns:
        Results summary dictionary
    """
    stack = RasterStack.from_files(raster_paths, names=layer_names)
    points = load_occurrences(occurrences_path)

    result = run_pipeline(stack, points, config)
    paths = result.save(output_dir)

    summary = result.summary()
    summary["outputs"] = {name: str(path) for name, path in paths.items()}

    logger.info(f"Selected layers: {', '.join(result.selected_names)}")
    logger.info(f"Threshold: {result.threshold:.2f}")
    logger.info(f"CV mean MCC: {result.cv.mean_mcc:.3f}")
    logger.info(f"Holdout MCC: {result.holdout.mcc:.3f}")
    logger.info(f"Outputs saved to {output_dir}/")
    return summary


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Fit a Naive Bayes species distribution model from raster layers and occurrences"
    )
    parser.add_argument("rasters", nargs="+", type=Path, help="GeoTIFF environmental layers")
    parser.add_argument("--occurrences", "-O", type=Path, required=True,
                        help="GeoJSON FeatureCollection of occurrence points")
    parser.add_argument("--output-dir", "-o", type=Path, default=Path("./output"), help="Output directory")
    parser.add_argument("--names", nargs="+", help="Layer names (one per band)")
    parser.add_argument("--folds", "-k", type=int, default=N_FOLDS, help="Cross-validation folds")
    parser.add_argument("--test-fraction", type=float, default=TEST_FRACTION,
                        help="Fraction of samples held out for final evaluation")
    parser.add_argument("--background-ratio", type=int, default=BACKGROUND_RATIO,
                        help="Background samples per occurrence")
    parser.add_argument("--initial", type=int, nargs="*", default=[],
                        help="Layer indices always kept during selection")
    parser.add_argument("--max-features", type=int, default=None, help="Maximum selected layers")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Fixed decision threshold (default: tuned by MCC)")
    parser.add_argument("--min-variance", type=float, default=DEFAULT_MIN_VARIANCE,
                        help="Floor for per-class feature variances (0 disables)")
    parser.add_argument("--explain", action="store_true", help="Compute per-cell Shapley values")
    parser.add_argument("--shapley-samples", type=int, default=DEFAULT_SHAPLEY_SAMPLES,
                        help="Monte-Carlo draws per feature")
    parser.add_argument("--jobs", "-j", type=int, default=None, help="Parallel jobs")
    parser.add_argument("--seed", "-s", type=int, default=SEED, help="Random seed")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = PipelineConfig(
        n_folds=args.folds,
        test_fraction=args.test_fraction,
        background_ratio=args.background_ratio,
        seed=args.seed,
        initial_features=args.initial,
        max_features=args.max_features,
        threshold=args.threshold,
        min_variance=args.min_variance,
        explain=args.explain,
        shapley_samples=args.shapley_samples,
        n_jobs=args.jobs,
    )

    return build_model(
        raster_paths=args.rasters,
        occurrences_path=args.occurrences,
        output_dir=args.output_dir,
        config=config,
        layer_names=args.names,
    )


if __name__ == "__main__":
    main()
