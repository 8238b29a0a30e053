# Analysis Module
# Normalization, consensus aggregation, rank stability and method agreement
# for feature importances of traffic-volume models

from .normalization import (
    fill_missing,
    normalize_importance,
    normalize_all
)

from .aggregation import (
    aggregate_importance,
    consensus_from_raw,
    top_k,
    importance_to_ranks,
    consensus_ranks
)

from .stability import (
    StabilityRecord,
    StabilityResult,
    run_stability_analysis,
    identify_unstable_features
)

from .agreement import (
    MethodComparison,
    build_rank_table,
    compare_methods
)

from .interpretability import (
    NativeImportance,
    ShapExplainer,
    LimeExplainer,
    PermutationExplainer,
    get_explainer
)

__all__ = [
    'fill_missing',
    'normalize_importance',
    'normalize_all',
    'aggregate_importance',
    'consensus_from_raw',
    'top_k',
    'importance_to_ranks',
    'consensus_ranks',
    'StabilityRecord',
    'StabilityResult',
    'run_stability_analysis',
    'identify_unstable_features',
    'MethodComparison',
    'build_rank_table',
    'compare_methods',
    'NativeImportance',
    'ShapExplainer',
    'LimeExplainer',
    'PermutationExplainer',
    'get_explainer'
]
