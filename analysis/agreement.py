# Method-Agreement Comparator
# Rank correlation between importance methodologies (native vs. explainer-derived).
# A method that never scored a feature leaves that cell undefined (NaN); nothing is
# interpolated, and correlations use only rows both methods defined.

from dataclasses import dataclass
from itertools import combinations
from typing import List, Mapping, Optional

import numpy as np
import pandas as pd
from scipy.stats import spearmanr

from importance.registry import FeatureRegistry

# Fewest shared features for which a pairwise correlation is reported
MIN_PAIRWISE_OBS = 3


@dataclass(frozen=True)
class MethodComparison:
    """
    Ranks of every feature under each methodology plus their Spearman matrix.

    ranks: feature-indexed DataFrame, one column per method, NaN = never scored
    correlation: symmetric method x method Spearman matrix, unit diagonal
    p_values: matching p-value matrix (NaN on the diagonal and undefined pairs)
    n_obs: pairwise-complete observation counts
    """
    ranks: pd.DataFrame
    correlation: pd.DataFrame
    p_values: pd.DataFrame
    n_obs: pd.DataFrame

    @property
    def methods(self) -> List[str]:
        return list(self.ranks.columns)

    def top_features(self, k: int, by: Optional[str] = None) -> List[str]:
        """
        Top-k features by one method's rank, or the union of every method's
        top-k (in registry order) when `by` is None.
        """
        if by is not None:
            if by not in self.ranks.columns:
                raise KeyError(f"Unknown method '{by}'")
            return self.ranks[by].dropna().sort_values(kind='stable').head(k).index.tolist()

        selected = set()
        for method in self.methods:
            selected.update(self.ranks[method].dropna().sort_values(kind='stable').head(k).index)
        return [f for f in self.ranks.index if f in selected]

    def long_form(self, k: Optional[int] = None, by: Optional[str] = None) -> pd.DataFrame:
        """
        Long (feature, method, rank, evaluated) table for side-by-side comparison.

        evaluated=False marks a feature the method never scored; its rank is NaN.
        """
        features = list(self.ranks.index) if k is None else self.top_features(k, by)
        rows = []
        for feat in features:
            for method in self.methods:
                rank = self.ranks.at[feat, method]
                rows.append({
                    'feature': feat,
                    'method': method,
                    'rank': rank,
                    'evaluated': bool(pd.notna(rank)),
                })
        return pd.DataFrame(rows, columns=['feature', 'method', 'rank', 'evaluated'])

    def pairs(self) -> pd.DataFrame:
        """Upper-triangle correlation pairs as a long table."""
        rows = []
        for a, b in combinations(self.methods, 2):
            rows.append({
                'method_a': a,
                'method_b': b,
                'spearman': self.correlation.at[a, b],
                'p_value': self.p_values.at[a, b],
                'n_obs': int(self.n_obs.at[a, b]),
            })
        return pd.DataFrame(rows, columns=['method_a', 'method_b', 'spearman', 'p_value', 'n_obs'])


def _ranks_from_importance(scores: pd.Series) -> pd.Series:
    """Rank defined entries by descending importance; ties keep registry order."""
    defined = scores.dropna()
    order = np.argsort(-defined.to_numpy(dtype=float), kind='stable')
    ranks = pd.Series(np.nan, index=scores.index)
    ranks.loc[defined.index[order]] = np.arange(1, len(defined) + 1, dtype=float)
    return ranks


def build_rank_table(columns: Mapping[str, Mapping[str, float]], registry: FeatureRegistry,
                     kind: str = 'rank') -> pd.DataFrame:
    """
    Feature x method rank table in registry order.

    Args:
        columns: Mapping method name -> {feature: rank or importance}
        registry: Feature registry of the run
        kind: 'rank' (lower = more important) or 'importance' (higher = more important)
    """
    if kind not in ('rank', 'importance'):
        raise ValueError(f"kind must be 'rank' or 'importance', got '{kind}'")

    index = pd.Index(registry.features, name='feature')
    table = pd.DataFrame(index=index)

    for method, values in columns.items():
        registry.validate(values.keys())
        col = pd.Series(np.nan, index=index, dtype=float)
        for feat, value in values.items():
            if value is not None and pd.notna(value):
                col[feat] = float(value)
        table[method] = _ranks_from_importance(col) if kind == 'importance' else col

    return table


def compare_methods(columns: Mapping[str, Mapping[str, float]], registry: FeatureRegistry,
                    kind: str = 'rank') -> MethodComparison:
    """
    Correlate rankings produced by independently computed importance methods.

    Args:
        columns: Mapping method name -> {feature: rank or importance}; features a
            method never scored are simply left out (or given as NaN/None)
        registry: Feature registry of the run
        kind: 'rank' or 'importance'

    Returns:
        MethodComparison
    """
    if len(columns) < 2:
        raise ValueError("Need at least two methods to compare")

    ranks = build_rank_table(columns, registry, kind)
    methods = list(ranks.columns)

    corr = pd.DataFrame(np.nan, index=methods, columns=methods)
    pvals = pd.DataFrame(np.nan, index=methods, columns=methods)
    n_obs = pd.DataFrame(0, index=methods, columns=methods)

    for method in methods:
        corr.at[method, method] = 1.0
        n_obs.at[method, method] = int(ranks[method].notna().sum())

    for a, b in combinations(methods, 2):
        both = ranks[[a, b]].dropna()
        n_obs.at[a, b] = n_obs.at[b, a] = len(both)

        if len(both) < MIN_PAIRWISE_OBS:
            continue
        if both[a].nunique() < 2 or both[b].nunique() < 2:
            continue

        rho, p_value = spearmanr(both[a], both[b])
        corr.at[a, b] = corr.at[b, a] = float(rho)
        pvals.at[a, b] = pvals.at[b, a] = float(p_value)

    return MethodComparison(ranks=ranks, correlation=corr, p_values=pvals, n_obs=n_obs)
