# Importance package
# Feature registry, model adapters, configuration and data plumbing for importance runs

from .errors import (
    ImportanceError,
    UnsupportedImportance,
    SchemaMismatch,
    IterationFitFailure,
    DegenerateNormalization,
)
from .registry import FeatureRegistry
from .models import ModelAdapter, FittedModel, build_model, build_adapters, SUPPORTED_MODELS
from .config_schema import validate_config, ConfigValidationError
from .io import load_config, create_run_dir, save_tables, save_summary, save_data_profile, save_models
from .data import load_dataset, preprocess_data, validate_data_integrity
from .cv import split_train_test, score_regression, run_repeated_cv_regression

__all__ = [
    'ImportanceError',
    'UnsupportedImportance',
    'SchemaMismatch',
    'IterationFitFailure',
    'DegenerateNormalization',
    'FeatureRegistry',
    'ModelAdapter',
    'FittedModel',
    'build_model',
    'build_adapters',
    'SUPPORTED_MODELS',
    'validate_config',
    'ConfigValidationError',
    'load_config',
    'create_run_dir',
    'save_tables',
    'save_summary',
    'save_data_profile',
    'save_models',
    'load_dataset',
    'preprocess_data',
    'validate_data_integrity',
    'split_train_test',
    'score_regression',
    'run_repeated_cv_regression',
]
