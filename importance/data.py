# Data loading and feature matrix preparation
# The dataset arrives cleaned and merged (traffic + weather + emergency response);
# this module only selects predictors, encodes categoricals and fixes the registry.

import numpy as np
import pandas as pd

from .registry import FeatureRegistry


def load_dataset(config, dataset_path=None):
    """Load dataset from an explicit path or the config's data.dataset_path."""
    path = dataset_path or config['data'].get('dataset_path')

    if not path:
        raise ValueError("No dataset path given (use --dataset or data.dataset_path)")

    print(f"Loading dataset: {path}")
    df = pd.read_csv(path)

    return df, path


def preprocess_data(df, config):
    """
    Split a cleaned dataset into predictors and target and fix the feature registry.

    Identifier columns and ignored columns never enter the registry.
    Object/category columns are one-hot encoded when data.encode_categoricals is set.

    Returns:
        X: DataFrame of features (columns in registry order)
        y: Series of target values
        registry: FeatureRegistry
    """
    data_cfg = config['data']
    target = data_cfg['target_column']

    if target not in df.columns:
        raise ValueError(f"Target column '{target}' not found in dataset. Available: {list(df.columns)}")

    id_columns = [c for c in data_cfg.get('id_columns', []) or [] if c in df.columns]
    ignored = [c for c in data_cfg.get('ignored_columns', []) or [] if c in df.columns and c != target]

    feature_cols = [c for c in df.columns
                    if c != target
                    and c not in id_columns
                    and c not in ignored]

    if ignored:
        print(f"IGNORED columns (not used as predictors): {ignored}")

    X = df[feature_cols].copy()
    y = df[target].astype(float).copy()

    categorical = X.select_dtypes(include=['object', 'category', 'bool']).columns.tolist()
    if categorical:
        if data_cfg.get('encode_categoricals', True):
            X = pd.get_dummies(X, columns=categorical, dtype=float)
            print(f"ENCODED categorical columns: {categorical}")
        else:
            raise ValueError(
                f"Non-numeric predictors {categorical} found and data.encode_categoricals is false"
            )

    X.columns = [str(c) for c in X.columns]
    registry = FeatureRegistry.from_frame(X)

    return X, y, registry


def validate_data_integrity(X, y):
    """
    Validate data integrity before training.

    Checks:
    - No NaN/infinite values in features or target
    - At least two rows and one feature
    """
    errors = []

    if X.shape[0] < 2:
        errors.append(f"Need at least 2 rows, got {X.shape[0]}")
    if X.shape[1] < 1:
        errors.append("No predictor columns left after preprocessing")

    nan_cols = X.columns[X.isnull().any()].tolist()
    if nan_cols:
        errors.append(f"NaN values found in features: {nan_cols}")

    if y.isnull().any():
        errors.append(f"NaN values found in target ({y.name}): {y.isnull().sum()} missing")

    numeric_cols = X.select_dtypes(include=[np.number]).columns
    for col in numeric_cols:
        if not np.isfinite(X[col]).all():
            errors.append(f"Infinite values found in feature: {col}")

    if np.issubdtype(y.dtype, np.number) and not np.isfinite(y).all():
        errors.append(f"Infinite values found in target: {y.name}")

    if errors:
        raise ValueError("Data integrity check failed:\n  - " + "\n  - ".join(errors))

    return True
