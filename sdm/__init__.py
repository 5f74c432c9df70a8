"""
Species Distribution Model with Gaussian Naive Bayes

This package builds a presence/background classifier from environmental
raster layers and species occurrence points, with cross-validated variable
selection, threshold tuning and Monte-Carlo Shapley explanations.
"""

from .errors import SDMError, InvalidInput, InvalidConfiguration, NumericDegeneracy
from .model import NaiveBayesClassifier, sanitize_probabilities, with_neutral_fill
from .splits import Fold, holdout_split, kfold_splits
from .metrics import ConfusionMatrix, confusion_matrix, matthews_corrcoef
from .validation import CrossValidationResult, cross_validate, out_of_fold_probabilities, tune_threshold
from .selection import SelectionResult, forward_select
from .shapley import shapley_value, shapley_values, explain_cells
from .rasters import RasterStack, save_probability_raster
from .occurrences import load_occurrences, occurrences_to_geojson, extract_coordinates
from .training import sample_background, prepare_training_data
from .predict import predict_probability_map, generate_candidate_locations, save_candidates_geojson
from .pipeline import PipelineConfig, ModelResult, run_pipeline

__all__ = [
    'SDMError',
    'InvalidInput',
    'InvalidConfiguration',
    'NumericDegeneracy',
    'NaiveBayesClassifier',
    'sanitize_probabilities',
    'with_neutral_fill',
    'Fold',
    'holdout_split',
    'kfold_splits',
    'ConfusionMatrix',
    'confusion_matrix',
    'matthews_corrcoef',
    'CrossValidationResult',
    'cross_validate',
    'out_of_fold_probabilities',
    'tune_threshold',
    'SelectionResult',
    'forward_select',
    'shapley_value',
    'shapley_values',
    'explain_cells',
    'RasterStack',
    'save_probability_raster',
    'load_occurrences',
    'occurrences_to_geojson',
    'extract_coordinates',
    'sample_background',
    'prepare_training_data',
    'predict_probability_map',
    'generate_candidate_locations',
    'save_candidates_geojson',
    'PipelineConfig',
    'ModelResult',
    'run_pipeline',
]
