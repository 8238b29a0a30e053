# Stability Analysis Module
# Quantifies how sensitive importance ranks are to resampling of the training data.
# Each iteration draws its own subsample, refits every tracked model family and
# records the rank of every feature; the records are reduced to mean/std rank.

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import train_test_split

from importance.errors import IterationFitFailure, SchemaMismatch, UnsupportedImportance
from importance.registry import FeatureRegistry
from importance.cv import score_regression
from importance.config_schema import N_REFERENCE_MODELS

from .aggregation import importance_to_ranks


# Population standard deviation over the N observed ranks (sentinels included)
RANK_STD_DDOF = 0

AVG_RANK_COLUMN = 'Avg_Rank'


@dataclass(frozen=True)
class StabilityRecord:
    """Ranks observed for one (feature, model) pair across N iterations."""
    feature: str
    model: str
    ranks: Tuple[int, ...]
    missing: Tuple[bool, ...]

    def __post_init__(self):
        if len(self.ranks) != len(self.missing):
            raise ValueError("ranks and missing flags must have the same length")
        if not self.ranks:
            raise ValueError("StabilityRecord needs at least one observation")

    @property
    def n_iterations(self) -> int:
        return len(self.ranks)

    @property
    def n_missing(self) -> int:
        return int(sum(self.missing))

    @property
    def mean_rank(self) -> float:
        return float(np.mean(self.ranks))

    @property
    def std_rank(self) -> float:
        return float(np.std(self.ranks, ddof=RANK_STD_DDOF))


@dataclass(frozen=True)
class StabilityResult:
    """
    Outcome of one stability run.

    Holds one StabilityRecord per (feature, model) plus the per-iteration
    held-out R2 of each model (NaN where the iteration failed) and the
    failure messages.
    """
    registry: FeatureRegistry
    models: Tuple[str, ...]
    reference_models: Tuple[str, ...]
    n_iterations: int
    records: Tuple[StabilityRecord, ...]
    scores: Dict[str, Tuple[float, ...]] = field(default_factory=dict)
    failures: Tuple[str, ...] = ()

    def record(self, feature: str, model: str) -> StabilityRecord:
        for rec in self.records:
            if rec.feature == feature and rec.model == model:
                return rec
        raise KeyError((feature, model))

    def summary(self) -> pd.DataFrame:
        """Long table: feature, model, mean_rank, std_rank, n_iterations, n_missing."""
        return pd.DataFrame([{
            'feature': rec.feature,
            'model': rec.model,
            'mean_rank': rec.mean_rank,
            'std_rank': rec.std_rank,
            'n_iterations': rec.n_iterations,
            'n_missing': rec.n_missing,
        } for rec in self.records])

    def avg_rank_table(self) -> pd.DataFrame:
        """
        Wide table with <model>_mean_rank / <model>_std_rank per tracked model and
        Avg_Rank (mean of the reference models' mean ranks), sorted ascending.
        Ties keep registry order.
        """
        summary = self.summary()
        wide = pd.DataFrame({'feature': list(self.registry.features)})

        for model in self.models:
            model_rows = summary[summary['model'] == model].set_index('feature')
            wide[f'{model}_mean_rank'] = wide['feature'].map(model_rows['mean_rank'])
            wide[f'{model}_std_rank'] = wide['feature'].map(model_rows['std_rank'])
            wide[f'{model}_n_missing'] = wide['feature'].map(model_rows['n_missing']).astype(int)

        reference_cols = [f'{m}_mean_rank' for m in self.reference_models]
        wide[AVG_RANK_COLUMN] = wide[reference_cols].mean(axis=1)
        wide['n_iterations'] = self.n_iterations

        return wide.sort_values(AVG_RANK_COLUMN, kind='stable').reset_index(drop=True)

    def score_summary(self) -> pd.DataFrame:
        """Held-out R2 stability per model over the successful iterations."""
        rows = []
        for model in self.models:
            values = np.array(self.scores.get(model, ()), dtype=float)
            ok = values[~np.isnan(values)]
            row = {'model': model, 'n_iterations': self.n_iterations, 'n_failed': int(len(values) - len(ok))}
            if len(ok):
                mean_val = float(np.mean(ok))
                row.update({
                    'r2_mean': mean_val,
                    'r2_std': float(np.std(ok)),
                    'r2_cv': float(np.std(ok) / abs(mean_val)) if mean_val != 0 else np.inf,
                    'r2_min': float(np.min(ok)),
                    'r2_max': float(np.max(ok)),
                })
            rows.append(row)
        return pd.DataFrame(rows)


def _iteration_split(rng, n_rows, sample_frac, test_size):
    """Subsample row positions and split them into train/test positions."""
    n_sample = max(2, int(round(sample_frac * n_rows)))
    n_sample = min(n_sample, n_rows)
    sample_idx = rng.choice(n_rows, size=n_sample, replace=False)

    train_idx, test_idx = train_test_split(
        sample_idx, test_size=test_size, random_state=int(rng.integers(2**31 - 1))
    )
    return np.sort(train_idx), np.sort(test_idx)


def _sentinel_outcome(n, failure):
    return np.full(n, n, dtype=int), np.ones(n, dtype=bool), np.nan, str(failure)


def _run_iteration(iteration, seed_seq, adapters, X, y, registry, sample_frac, test_size):
    """
    One resampling iteration over every tracked model.

    Works only on its own generator, indices and fitted models; X, y and the
    registry are read-only. A subsample that cannot be split fails the
    iteration for every model.

    Returns:
        Dict model name -> (ranks, missing, r2, failure message or None)
    """
    rng = np.random.default_rng(seed_seq)
    n = len(registry)

    try:
        train_idx, test_idx = _iteration_split(rng, len(X), sample_frac, test_size)
    except Exception as exc:
        return {name: _sentinel_outcome(n, IterationFitFailure(name, iteration, exc)) for name in adapters}

    X_train, X_test = X.iloc[train_idx], X.iloc[test_idx]
    y_train, y_test = y.iloc[train_idx], y.iloc[test_idx]

    outcome = {}
    for name, adapter in adapters.items():
        model_seed = int(rng.integers(2**31 - 1))
        try:
            fitted = adapter.fit(X_train, y_train, random_state=model_seed)
            raw = adapter.importance(fitted)
            ranks, missing = importance_to_ranks(raw, registry)
            r2 = score_regression(y_test, adapter.predict(fitted, X_test))['r2']
            outcome[name] = (ranks, missing, r2, None)
        except (UnsupportedImportance, SchemaMismatch):
            raise
        except Exception as exc:
            outcome[name] = _sentinel_outcome(n, IterationFitFailure(name, iteration, exc))

    return outcome


def run_stability_analysis(
    adapters: Mapping,
    X: pd.DataFrame,
    y: pd.Series,
    registry: FeatureRegistry,
    n_iterations: int = 10,
    sample_frac: float = 0.8,
    test_size: float = 0.2,
    reference_models: Optional[Sequence[str]] = None,
    n_jobs: int = 1,
    random_state: Optional[int] = None,
    verbose: bool = True
) -> StabilityResult:
    """
    Repeat fit + importance extraction over resampled splits and collect ranks.

    Args:
        adapters: Mapping model name -> adapter with fit/predict/importance
        X: Full feature matrix (columns in registry order)
        y: Target values
        registry: Feature registry of the run
        n_iterations: Number of resampling iterations N
        sample_frac: Fraction of rows drawn (without replacement) per iteration
        test_size: Inner held-out fraction of each subsample
        reference_models: The two models averaged into Avg_Rank (default: first two tracked)
        n_jobs: joblib parallelism over iterations
        random_state: Seed for the iteration seed sequence; None draws fresh entropy
        verbose: Print progress and failures

    Returns:
        StabilityResult with exactly N rank observations per (feature, model)

    Raises:
        UnsupportedImportance / SchemaMismatch: contract violations abort the run
    """
    if n_iterations < 1:
        raise ValueError("n_iterations must be >= 1")
    if not 0 < sample_frac <= 1:
        raise ValueError(f"sample_frac must be in (0, 1], got {sample_frac}")
    if not adapters:
        raise ValueError("Need at least one tracked model")

    registry.check_columns(X.columns)
    if len(X) != len(y):
        raise ValueError(f"X has {len(X)} rows but y has {len(y)}")

    models = tuple(adapters.keys())
    if reference_models is None:
        reference_models = models[:2]
    reference_models = tuple(reference_models)
    if len(set(reference_models)) != N_REFERENCE_MODELS:
        raise ValueError(
            f"Avg_Rank needs exactly {N_REFERENCE_MODELS} distinct reference_models, "
            f"got {list(reference_models)}"
        )
    unknown_ref = [m for m in reference_models if m not in models]
    if unknown_ref:
        raise ValueError(f"reference_models must be tracked models, got {list(reference_models)}")

    for name, adapter in adapters.items():
        if getattr(adapter, 'supports_importance', True) is False:
            raise UnsupportedImportance(getattr(adapter, 'model_type', name))

    if verbose:
        print(f"Running stability analysis: {n_iterations} iterations x {len(models)} models "
              f"(sample_frac={sample_frac}, n_jobs={n_jobs})...")

    seed_seqs = np.random.SeedSequence(random_state).spawn(n_iterations)

    outcomes = Parallel(n_jobs=n_jobs)(
        delayed(_run_iteration)(i, seed_seqs[i], adapters, X, y, registry, sample_frac, test_size)
        for i in range(n_iterations)
    )

    # Pre-sized (model, feature, iteration) slots; iteration i owns column i
    n_features = len(registry)
    rank_slots = np.zeros((len(models), n_features, n_iterations), dtype=int)
    missing_slots = np.zeros((len(models), n_features, n_iterations), dtype=bool)
    score_slots = np.full((len(models), n_iterations), np.nan)
    failures = []

    for i, outcome in enumerate(outcomes):
        for m, model in enumerate(models):
            ranks, missing, r2, failure = outcome[model]
            rank_slots[m, :, i] = ranks
            missing_slots[m, :, i] = missing
            score_slots[m, i] = r2
            if failure is not None:
                failures.append(failure)
                if verbose:
                    print(f"  WARNING: {failure} -> sentinel ranks recorded")

    records = tuple(
        StabilityRecord(
            feature=feat,
            model=model,
            ranks=tuple(int(r) for r in rank_slots[m, f]),
            missing=tuple(bool(v) for v in missing_slots[m, f]),
        )
        for m, model in enumerate(models)
        for f, feat in enumerate(registry.features)
    )

    if verbose:
        print(f"Stability analysis complete: {n_iterations} iterations, {len(failures)} failed fits")

    return StabilityResult(
        registry=registry,
        models=models,
        reference_models=reference_models,
        n_iterations=n_iterations,
        records=records,
        scores={model: tuple(float(v) for v in score_slots[m]) for m, model in enumerate(models)},
        failures=tuple(failures),
    )


def identify_unstable_features(
    result: StabilityResult,
    instability_threshold: float = 2.0,
    models: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Flag features whose rank standard deviation exceeds a threshold.

    Args:
        result: StabilityResult
        instability_threshold: Rank std above which a feature counts as unstable
        models: Models to check (default: the reference models)

    Returns:
        DataFrame with feature, max_std_rank, worst_model, is_unstable,
        sorted by max_std_rank descending
    """
    models = list(models or result.reference_models)
    unknown = [m for m in models if m not in result.models]
    if unknown:
        raise ValueError(f"Models not in the stability run: {unknown}. Tracked: {list(result.models)}")
    summary = result.summary()
    summary = summary[summary['model'].isin(models)]

    rows = []
    for feat in result.registry.features:
        feat_rows = summary[summary['feature'] == feat]
        worst = feat_rows.loc[feat_rows['std_rank'].idxmax()]
        rows.append({
            'feature': feat,
            'max_std_rank': float(worst['std_rank']),
            'worst_model': worst['model'],
            'is_unstable': bool(worst['std_rank'] > instability_threshold),
        })

    df = pd.DataFrame(rows)
    return df.sort_values('max_std_rank', ascending=False, kind='stable').reset_index(drop=True)
