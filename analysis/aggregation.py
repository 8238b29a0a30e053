# Aggregator
# Consensus importance across models and rank conversion shared with the stability loop

from typing import Dict, Mapping, Tuple

import numpy as np
import pandas as pd

from importance.errors import SchemaMismatch
from importance.registry import FeatureRegistry

from .normalization import normalize_all


MEAN_COLUMN = 'Mean_Importance'
RANK_COLUMN = 'Rank'


def _rank_descending(scores: np.ndarray) -> np.ndarray:
    """
    Ranks 1..n by descending score; equal scores keep their input order.

    The input order is registry order, which makes tie-breaking deterministic.
    """
    order = np.argsort(-scores, kind='stable')
    ranks = np.empty(len(scores), dtype=int)
    ranks[order] = np.arange(1, len(scores) + 1)
    return ranks


def aggregate_importance(normalized: Mapping[str, pd.Series], registry: FeatureRegistry) -> pd.DataFrame:
    """
    Combine normalized per-model importances into a consensus ranking.

    Args:
        normalized: Mapping model name -> normalized importance over the registry
        registry: Feature registry of the run

    Returns:
        DataFrame with columns feature, one per model, Mean_Importance, Rank;
        sorted ascending by Rank
    """
    if not normalized:
        raise ValueError("Need at least one model to aggregate")

    columns = {}
    for model_name, scores in normalized.items():
        if tuple(scores.index) != registry.features:
            unknown = registry.unknown(scores.index)
            raise SchemaMismatch(
                unknown,
                f"Normalized importance for '{model_name}' is not indexed by the registry"
            )
        columns[model_name] = scores.to_numpy(dtype=float)

    table = pd.DataFrame(columns)
    table.insert(0, 'feature', list(registry.features))

    mean = table[list(columns)].mean(axis=1).to_numpy()
    table[MEAN_COLUMN] = mean
    table[RANK_COLUMN] = _rank_descending(mean)

    return table.sort_values(RANK_COLUMN, kind='stable').reset_index(drop=True)


def consensus_from_raw(importances: Mapping[str, Mapping[str, float]], registry: FeatureRegistry) -> pd.DataFrame:
    """Normalize raw per-model importance vectors and aggregate them."""
    return aggregate_importance(normalize_all(importances, registry), registry)


def top_k(consensus: pd.DataFrame, k: int) -> pd.DataFrame:
    """First k consensus rows. Ranks are carried over unchanged."""
    if k < 0:
        raise ValueError("k must be non-negative")
    return consensus.sort_values(RANK_COLUMN, kind='stable').head(k).copy()


def importance_to_ranks(importance: Mapping[str, float], registry: FeatureRegistry) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert one raw importance vector to ranks in registry order.

    Features present in the vector are ranked 1..m by descending score (ties in
    registry order). Features absent from the vector get the worst possible rank
    len(registry) and are flagged as missing. A present feature with score 0 is
    ranked normally.

    Returns:
        ranks: int array, one entry per registry feature
        missing: bool array, True where the rank is the missing sentinel
    """
    registry.validate(importance.keys())

    n = len(registry)
    ranks = np.full(n, n, dtype=int)
    missing = np.ones(n, dtype=bool)

    present = [registry.index(f) for f in registry.features if f in importance]
    if present:
        scores = np.array([float(importance[registry.features[i]]) for i in present])
        ranks[present] = _rank_descending(scores)
        missing[present] = False

    return ranks, missing


def consensus_ranks(consensus: pd.DataFrame) -> Dict[str, int]:
    """Feature -> consensus rank mapping, for method comparison."""
    return dict(zip(consensus['feature'], consensus[RANK_COLUMN].astype(int)))
