# I/O utilities for importance runs
# Config loading, run directory management, table and summary export

import os
import json
import hashlib
from datetime import datetime

import numpy as np
import yaml
import pandas as pd


def load_config(config_path):
    """Load YAML configuration file."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Config file is empty or invalid: {config_path}")

    return config


def config_hash(config):
    """Generate deterministic hash of config for run naming."""
    config_str = json.dumps(config, sort_keys=True)
    return hashlib.md5(config_str.encode()).hexdigest()[:8]


def dataset_hash(df):
    """Content fingerprint of the whole dataset (row values and column names)."""
    row_hashes = pd.util.hash_pandas_object(df, index=False).to_numpy()
    digest = hashlib.md5(row_hashes.tobytes())
    digest.update(','.join(map(str, df.columns)).encode())
    return digest.hexdigest()[:12]


def create_run_dir(config, output_dir=None):
    """Create unique run directory for importance outputs."""
    output_dir = output_dir or config['experiment'].get('output_dir', 'runs')
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    cfg_hash = config_hash(config)
    run_name = f"{config['experiment']['name']}_{timestamp}_{cfg_hash}"
    run_dir = os.path.join(output_dir, run_name)
    os.makedirs(run_dir, exist_ok=True)
    return run_dir


def save_tables(run_dir, tables):
    """
    Write each DataFrame as <name>.csv in the run directory.

    Undefined cells are written as empty fields, never as 0.

    Returns:
        Dict mapping table name to written path
    """
    paths = {}
    for name, df in tables.items():
        if df is None:
            continue
        path = os.path.join(run_dir, f'{name}.csv')
        index = not isinstance(df.index, pd.RangeIndex)
        df.to_csv(path, index=index)
        paths[name] = path
    return paths


def save_summary(run_dir, config, summary):
    """Save config and a JSON summary of the run."""
    with open(os.path.join(run_dir, 'config.yaml'), 'w') as f:
        yaml.dump(config, f, default_flow_style=False)

    path = os.path.join(run_dir, 'summary.json')
    with open(path, 'w') as f:
        json.dump(summary, f, indent=2, default=_json_default)
    return path


def save_models(run_dir, fitted):
    """Dump every fitted estimator as models/<name>.joblib."""
    import joblib

    model_dir = os.path.join(run_dir, 'models')
    os.makedirs(model_dir, exist_ok=True)

    paths = {}
    for name, model in fitted.items():
        path = os.path.join(model_dir, f'{name}.joblib')
        joblib.dump(model.estimator, path)
        paths[name] = path
    print(f"Models saved to: {model_dir}")
    return paths


def save_data_profile(run_dir, df, X, y, dataset_path):
    """
    Record which dataset and which registry features a run was computed on.

    Raw dataset columns that did not become predictors are listed as dropped.
    """
    registry_features = [str(c) for c in X.columns]
    profile = {
        'dataset_path': str(dataset_path) if dataset_path else 'in_memory',
        'dataset_hash': dataset_hash(df),
        'n_rows': int(len(df)),
        'source_columns': [str(c) for c in df.columns],
        'dropped_columns': [str(c) for c in df.columns if str(c) not in registry_features],
        'registry_size': len(registry_features),
        'features_used': registry_features,
        'target_column': y.name,
        'target_summary': {k: float(v) for k, v in y.describe().items()},
        'created_at': datetime.now().isoformat(timespec='seconds'),
    }

    path = os.path.join(run_dir, 'data_profile.json')
    with open(path, 'w') as f:
        json.dump(profile, f, indent=2, default=_json_default)

    return profile


def _json_default(obj):
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
