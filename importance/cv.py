# Train/test splitting and regression scoring

import numpy as np
from sklearn.model_selection import RepeatedKFold, train_test_split
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from scipy.stats import spearmanr


def _validate_split(train_idx, test_idx, X, y):
    """
    Validate split integrity.

    Assertions:
    - Train/test indices are disjoint and non-empty
    - No NaN values in split data
    """
    train_set = set(train_idx)
    test_set = set(test_idx)
    if not train_set or not test_set:
        raise ValueError("Split produced an empty train or test partition")
    if not train_set.isdisjoint(test_set):
        overlap = train_set.intersection(test_set)
        raise ValueError(f"SPLIT LEAK: Train/test indices overlap! {len(overlap)} shared indices")

    if X.iloc[train_idx].isnull().any().any() or X.iloc[test_idx].isnull().any().any():
        raise ValueError("Split contains NaN in features")
    if y.iloc[train_idx].isnull().any() or y.iloc[test_idx].isnull().any():
        raise ValueError("Split contains NaN in target")

    return True


def split_train_test(X, y, test_size=0.2, random_state=None):
    """
    Positional train/test split of a feature frame and target series.

    Returns:
        X_train, X_test, y_train, y_test
    """
    positions = np.arange(len(X))
    train_idx, test_idx = train_test_split(
        positions, test_size=test_size, random_state=random_state
    )
    _validate_split(train_idx, test_idx, X, y)

    return X.iloc[train_idx], X.iloc[test_idx], y.iloc[train_idx], y.iloc[test_idx]


def score_regression(y_true, y_pred):
    """MAE, RMSE, R2 and Spearman of predictions against held-out targets."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    # Handle constant arrays for Spearman correlation
    if np.std(y_true) > 1e-8 and np.std(y_pred) > 1e-8:
        spearman = float(spearmanr(y_true, y_pred)[0])
    else:
        spearman = 0.0

    return {
        'mae': float(mean_absolute_error(y_true, y_pred)),
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'r2': float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float('nan'),
        'spearman': spearman,
    }


def run_repeated_cv_regression(adapter, X, y, n_splits=5, n_repeats=3, seed=None, verbose=True):
    """
    Run repeated K-fold cross-validation for one model adapter.

    Returns dict with metrics: mae, rmse, spearman, r2
    Each metric has: mean, std, all (list of fold scores)
    """
    if verbose:
        print(f"Running {n_splits}-fold x {n_repeats} repeats CV ({adapter.name})...")

    cv = RepeatedKFold(n_splits=n_splits, n_repeats=n_repeats, random_state=seed)

    fold_scores = {'mae': [], 'rmse': [], 'spearman': [], 'r2': []}

    for train_idx, val_idx in cv.split(X):
        _validate_split(train_idx, val_idx, X, y)

        X_train, X_val = X.iloc[train_idx], X.iloc[val_idx]
        y_train, y_val = y.iloc[train_idx], y.iloc[val_idx]

        fitted = adapter.fit(X_train, y_train)
        scores = score_regression(y_val, adapter.predict(fitted, X_val))
        for metric, value in scores.items():
            fold_scores[metric].append(value)

    results = {
        metric: {'mean': float(np.mean(values)), 'std': float(np.std(values)), 'all': values}
        for metric, values in fold_scores.items()
    }
    results['n_folds'] = n_splits
    results['n_repeats'] = n_repeats
    return results
