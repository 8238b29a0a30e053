# Importance Normalizer
# Puts raw importance vectors from different model families on a common [0, 1] scale

import warnings
from typing import Dict, Mapping

import numpy as np
import pandas as pd

from importance.errors import DegenerateNormalization
from importance.registry import FeatureRegistry


def fill_missing(importance: Mapping[str, float], registry: FeatureRegistry) -> pd.Series:
    """
    Expand an importance vector to every registry feature, in registry order.

    Features the vector does not mention get a score of 0.

    Raises:
        SchemaMismatch: the vector names a feature outside the registry
        ValueError: a score is negative or not finite
    """
    registry.validate(importance.keys())

    scores = pd.Series(0.0, index=pd.Index(registry.features, name='feature'), dtype=float)
    for feat, score in importance.items():
        scores[feat] = float(score)

    bad = scores.index[~np.isfinite(scores.values)].tolist()
    if bad:
        raise ValueError(f"Non-finite importance scores for: {bad}")
    negative = scores.index[scores.values < 0].tolist()
    if negative:
        raise ValueError(f"Negative importance scores for: {negative}")

    return scores


def normalize_importance(importance: Mapping[str, float], registry: FeatureRegistry) -> pd.Series:
    """
    Rescale an importance vector so that its maximum is 1.

    An all-zero vector stays all-zero (a DegenerateNormalization warning is
    emitted instead of dividing by zero).

    Args:
        importance: Mapping feature -> non-negative raw score
        registry: Feature registry of the run

    Returns:
        Series indexed by every registry feature, values in [0, 1]
    """
    scores = fill_missing(importance, registry)
    max_score = scores.max()

    if max_score > 0:
        normalized = scores / max_score
    else:
        warnings.warn(
            "All-zero importance vector; normalized scores left at zero",
            DegenerateNormalization,
            stacklevel=2
        )
        normalized = scores.copy()

    normalized.name = 'normalized_importance'
    return normalized


def normalize_all(importances: Mapping[str, Mapping[str, float]],
                  registry: FeatureRegistry) -> Dict[str, pd.Series]:
    """Normalize a mapping of model name -> raw importance vector."""
    return {name: normalize_importance(vec, registry) for name, vec in importances.items()}
