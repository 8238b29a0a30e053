# Importance Analysis Runner
# Fits every tracked model family on a cleaned traffic dataset, builds a consensus
# importance ranking per method, measures rank stability under resampling and
# compares the methods. Writes all tables to a fresh run directory.

import argparse
import random
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pandas as pd

from importance.config_schema import validate_config, ConfigValidationError
from importance.errors import UnsupportedImportance
from importance.io import (
    load_config, create_run_dir, save_tables, save_summary, save_data_profile, save_models
)
from importance.data import load_dataset, preprocess_data, validate_data_integrity
from importance.models import build_adapters, get_model_info
from importance.cv import split_train_test, score_regression, run_repeated_cv_regression

from analysis.normalization import normalize_all
from analysis.aggregation import aggregate_importance, top_k, consensus_ranks
from analysis.stability import run_stability_analysis, identify_unstable_features, AVG_RANK_COLUMN
from analysis.agreement import compare_methods
from analysis.interpretability import get_explainer


def set_seeds(seed):
    """Set all random seeds for reproducibility."""
    random.seed(seed)
    np.random.seed(seed)


def evaluate_models(adapters, X_train, y_train, X_test, y_test):
    """
    Fit every adapter on the training split and score it on the test split.

    Returns:
        fitted: Dict model name -> FittedModel
        performance: DataFrame with mae, rmse, r2, spearman per model
    """
    fitted = {}
    rows = []
    for name, adapter in adapters.items():
        fitted[name] = adapter.fit(X_train, y_train)
        scores = score_regression(y_test, adapter.predict(fitted[name], X_test))
        rows.append({'model': name, **scores})
        print(f"{name:25s} | MAE: {scores['mae']:.4f} | RMSE: {scores['rmse']:.4f} | R2: {scores['r2']:.4f}")

    return fitted, pd.DataFrame(rows)


def compute_method_importances(method, adapters, fitted, X, y, explainer_params=None, substitute=None):
    """
    Raw importance per model for one method.

    Models that cannot report native importance are either scored with the
    substitute explainer or skipped.

    Returns:
        raw: Dict model name -> {feature: score}
        substitutions: Dict model name -> substitute method used
        skipped: List of model names without a score for this method
    """
    explainer_params = explainer_params or {}
    raw, substitutions, skipped = {}, {}, []

    for name, adapter in adapters.items():
        explainer = get_explainer(method, adapter, explainer_params.get(method))
        try:
            raw[name] = explainer.importance(fitted[name], X, y)
        except UnsupportedImportance as e:
            if substitute:
                sub = get_explainer(substitute, adapter, explainer_params.get(substitute))
                raw[name] = sub.importance(fitted[name], X, y)
                substitutions[name] = substitute
                print(f"  {name}: no native importance, substituted {substitute}")
            else:
                skipped.append(name)
                print(f"  {name}: skipped ({e})")

    return raw, substitutions, skipped


def raw_importance_table(method, raw, normalized):
    """Long table of raw and normalized scores per (method, model, feature)."""
    rows = []
    for model, scores in normalized.items():
        for feat, value in scores.items():
            rows.append({
                'method': method,
                'model': model,
                'feature': feat,
                'raw_importance': float(raw[model].get(feat, 0.0)),
                'normalized_importance': float(value),
            })
    return pd.DataFrame(rows)


def run_importance_analysis(config_path, dataset_path=None, output_dir=None):
    """
    Run the full importance analysis.

    Args:
        config_path: Path to YAML config file
        dataset_path: Optional path to dataset CSV (overrides config)
        output_dir: Optional output directory (overrides config)

    Returns:
        run_dir: Path to output directory
    """
    config = load_config(config_path)

    if output_dir:
        config['experiment']['output_dir'] = output_dir

    try:
        validate_config(config)
    except ConfigValidationError as e:
        print(f"\nCONFIG ERROR:\n{e}")
        raise

    seed = config['experiment']['seed']
    set_seeds(seed)

    importance_cfg = config.get('importance', {}) or {}
    methods = importance_cfg.get('methods', ['native'])
    k = importance_cfg.get('top_k', 10)
    stability_cfg = config.get('stability', {}) or {}
    eval_cfg = config.get('evaluation', {}) or {}

    print("=" * 60)
    print("FEATURE IMPORTANCE ANALYSIS")
    print("=" * 60)
    print(f"Experiment: {config['experiment']['name']}")
    print(f"Target: {config['data']['target_column']}")
    print(f"Models: {config['models']['tracked']}")
    print(f"Methods: {methods}")
    print(f"Seed: {seed}")
    print("=" * 60)

    # Load data
    df, actual_path = load_dataset(config, dataset_path)
    X, y, registry = preprocess_data(df, config)
    validate_data_integrity(X, y)

    print(f"\nDataset shape: {X.shape}")
    print(f"Features: {len(registry)}")

    adapters = build_adapters(config)
    test_size = config.get('split', {}).get('test_size', 0.2)
    X_train, X_test, y_train, y_test = split_train_test(X, y, test_size=test_size, random_state=seed)

    # Model performance
    print("\n" + "=" * 60)
    print("MODEL PERFORMANCE (held-out split)")
    print("=" * 60)
    fitted, performance = evaluate_models(adapters, X_train, y_train, X_test, y_test)

    tables = {'model_performance': performance}

    if eval_cfg.get('cv_repeats', 0):
        cv_rows = []
        for name, adapter in adapters.items():
            res = run_repeated_cv_regression(
                adapter, X, y,
                n_splits=eval_cfg.get('cv_splits', 5),
                n_repeats=eval_cfg['cv_repeats'],
                seed=seed
            )
            cv_rows.append({'model': name, **{f'{m}_{s}': res[m][s]
                                              for m in ['mae', 'rmse', 'r2', 'spearman']
                                              for s in ['mean', 'std']}})
        tables['model_cv'] = pd.DataFrame(cv_rows)

    # Consensus per importance method
    print("\n" + "=" * 60)
    print("CONSENSUS IMPORTANCE")
    print("=" * 60)
    summary = {
        'experiment': config['experiment']['name'],
        'n_rows': int(len(X)),
        'n_features': len(registry),
        'models': {name: get_model_info(adapter.model_type) for name, adapter in adapters.items()},
        'methods': {},
    }
    comparison_columns = {}
    raw_tables = []

    for method in methods:
        print(f"\n[{method}]")
        raw, substitutions, skipped = compute_method_importances(
            method, adapters, fitted, X_test, y_test,
            explainer_params=importance_cfg,
            substitute=importance_cfg.get('substitute_explainer')
        )
        if not raw:
            print(f"  No model produced {method} importance; method skipped")
            summary['methods'][method] = {'models': [], 'skipped': skipped}
            continue

        normalized = normalize_all(raw, registry)
        consensus = aggregate_importance(normalized, registry)
        tables[f'consensus_{method}'] = consensus
        raw_tables.append(raw_importance_table(method, raw, normalized))
        comparison_columns[method] = consensus_ranks(consensus)

        top = top_k(consensus, k)
        for _, row in top.iterrows():
            print(f"  {int(row['Rank']):3d}. {row['feature']:35s} {row['Mean_Importance']:.4f}")

        summary['methods'][method] = {
            'models': list(raw),
            'substitutions': substitutions,
            'skipped': skipped,
            'top_features': top['feature'].tolist(),
        }

    if raw_tables:
        tables['raw_importance'] = pd.concat(raw_tables, ignore_index=True)

    # Stability
    if stability_cfg.get('enabled', True):
        print("\n" + "=" * 60)
        print("RANK STABILITY")
        print("=" * 60)
        reference = stability_cfg.get('reference_models')
        stable_adapters = {name: a for name, a in adapters.items() if a.supports_importance}
        excluded = [name for name in adapters if name not in stable_adapters]
        if excluded:
            print(f"Excluded from stability (no native importance): {excluded}")

        stability = run_stability_analysis(
            stable_adapters, X, y, registry,
            n_iterations=stability_cfg.get('n_iterations', 10),
            sample_frac=stability_cfg.get('sample_frac', 0.8),
            test_size=stability_cfg.get('test_size', 0.2),
            reference_models=reference,
            n_jobs=stability_cfg.get('n_jobs', 1),
            random_state=stability_cfg.get('random_state')
        )
        avg_rank = stability.avg_rank_table()
        tables['stability_summary'] = stability.summary()
        tables['stability_avg_rank'] = avg_rank
        tables['stability_scores'] = stability.score_summary()
        tables['unstable_features'] = identify_unstable_features(
            stability, stability_cfg.get('instability_threshold', 2.0)
        )
        comparison_columns['stability'] = dict(zip(avg_rank['feature'], avg_rank[AVG_RANK_COLUMN]))

        for _, row in avg_rank.head(k).iterrows():
            print(f"  {row['feature']:35s} Avg_Rank: {row[AVG_RANK_COLUMN]:.2f}")

        summary['stability'] = {
            'n_iterations': stability.n_iterations,
            'models': list(stability.models),
            'reference_models': list(stability.reference_models),
            'n_failed_fits': len(stability.failures),
            'failures': list(stability.failures),
            'top_features': avg_rank['feature'].head(k).tolist(),
        }

    # Method agreement
    if len(comparison_columns) >= 2:
        print("\n" + "=" * 60)
        print("METHOD AGREEMENT (Spearman)")
        print("=" * 60)
        comparison = compare_methods(comparison_columns, registry, kind='rank')
        tables['method_ranks'] = comparison.ranks
        tables['method_correlation'] = comparison.correlation
        tables['method_pairs'] = comparison.pairs()
        tables['method_top_features'] = comparison.long_form(k=k)
        print(comparison.correlation.round(3).to_string())
        summary['method_agreement'] = comparison.pairs().to_dict(orient='records')
    else:
        print("\nMethod agreement skipped (fewer than two ranking methods)")

    # Save
    run_dir = create_run_dir(config)
    save_data_profile(run_dir, df, X, y, actual_path)
    save_tables(run_dir, tables)
    save_summary(run_dir, config, summary)
    if config['experiment'].get('save_models', False):
        save_models(run_dir, fitted)

    print("\n" + "=" * 60)
    print(f"Importance analysis complete! Results saved to: {run_dir}")
    print("=" * 60)

    return run_dir


def main():
    parser = argparse.ArgumentParser(
        description='Consensus feature importance and rank stability for traffic volume models'
    )
    parser.add_argument('--config', '-c', type=str, default='configs/traffic_importance.yaml',
                        help='Path to config YAML file')
    parser.add_argument('--dataset', '-d', type=str, default=None,
                        help='Path to cleaned dataset CSV (overrides config)')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Output directory (overrides config)')
    args = parser.parse_args()

    run_importance_analysis(args.config, args.dataset, args.output_dir)


if __name__ == "__main__":
    main()
