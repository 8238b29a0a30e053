# Interpretability Module
# Native and post-hoc importance methods behind one interface:
#   importance(fitted, X, y=None) -> {feature: non-negative score}
# Uses SHAP, LIME and permutation importance for post-hoc interpretability

from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.inspection import permutation_importance

from importance.models import FittedModel, ModelAdapter, LINEAR_MODELS, TREE_MODELS

# Optional explainer backends
try:
    import shap
    HAS_SHAP = True
except ImportError:
    HAS_SHAP = False

try:
    from lime.lime_tabular import LimeTabularExplainer
    HAS_LIME = True
except ImportError:
    LimeTabularExplainer = None
    HAS_LIME = False


# =============================================================================
# NATIVE IMPORTANCE
# =============================================================================

class NativeImportance:
    """The model family's own importance, exposed through the explainer interface."""

    method = 'native'

    def __init__(self, adapter: ModelAdapter):
        self.adapter = adapter

    def importance(self, fitted: FittedModel, X=None, y=None) -> Dict[str, float]:
        return self.adapter.importance(fitted)


# =============================================================================
# SHAP VALUES
# =============================================================================

class ShapExplainer:
    """
    Mean absolute SHAP value per feature.

    TreeExplainer for tree families, LinearExplainer for linear families,
    KernelExplainer for anything else.
    """

    method = 'shap'

    def __init__(self, adapter: ModelAdapter, background_samples: int = 100,
                 max_samples: int = 500, kernel_nsamples: int = 100, random_state: int = 42):
        self.adapter = adapter
        self.background_samples = background_samples
        self.max_samples = max_samples
        self.kernel_nsamples = kernel_nsamples
        self.random_state = random_state

    def shap_values(self, fitted: FittedModel, X: pd.DataFrame) -> np.ndarray:
        """SHAP value matrix (rows explained x features)."""
        if not HAS_SHAP:
            raise ImportError("SHAP not installed. Run: pip install shap")

        rng = np.random.RandomState(self.random_state)
        X_arr = np.asarray(X, dtype=float)

        if len(X_arr) > self.max_samples:
            idx = rng.choice(len(X_arr), self.max_samples, replace=False)
            X_explain = X_arr[idx]
        else:
            X_explain = X_arr

        if len(X_arr) > self.background_samples:
            bg_idx = rng.choice(len(X_arr), self.background_samples, replace=False)
            background = X_arr[bg_idx]
        else:
            background = X_arr

        model_type = fitted.model_type
        if model_type in TREE_MODELS:
            explainer = shap.TreeExplainer(fitted.estimator)
            values = explainer.shap_values(X_explain, check_additivity=False)
        elif model_type in LINEAR_MODELS:
            explainer = shap.LinearExplainer(fitted.estimator, background)
            values = explainer.shap_values(X_explain)
        else:
            def predict_fn(x):
                frame = pd.DataFrame(x, columns=list(fitted.feature_names))
                return self.adapter.predict(fitted, frame)

            explainer = shap.KernelExplainer(predict_fn, background)
            values = explainer.shap_values(X_explain, nsamples=self.kernel_nsamples, silent=True)

        values = np.asarray(values, dtype=float)
        if values.ndim == 1:
            values = values.reshape(1, -1)
        return values

    def importance(self, fitted: FittedModel, X, y=None) -> Dict[str, float]:
        values = self.shap_values(fitted, X)
        mean_abs = np.abs(values).mean(axis=0)
        return {feat: float(v) for feat, v in zip(fitted.feature_names, mean_abs)}


# =============================================================================
# LIME
# =============================================================================

class LimeExplainer:
    """
    Mean absolute LIME weight per feature over a sample of explained rows.

    LIME is local; averaging |weight| over several rows turns it into a global
    ranking comparable with the other methods.
    """

    method = 'lime'

    def __init__(self, adapter: ModelAdapter, n_instances: int = 20, num_samples: int = 1000,
                 discretize_continuous: bool = True, random_state: int = 42):
        self.adapter = adapter
        self.n_instances = n_instances
        self.num_samples = num_samples
        self.discretize_continuous = discretize_continuous
        self.random_state = random_state

    def importance(self, fitted: FittedModel, X, y=None) -> Dict[str, float]:
        if not HAS_LIME:
            raise ImportError("LIME not installed. Run: pip install lime")

        feature_names = list(fitted.feature_names)
        X_arr = np.asarray(X, dtype=float)

        explainer = LimeTabularExplainer(
            training_data=X_arr,
            feature_names=feature_names,
            mode='regression',
            discretize_continuous=self.discretize_continuous,
            random_state=self.random_state
        )

        def predict_fn(x):
            return self.adapter.predict(fitted, pd.DataFrame(x, columns=feature_names))

        rng = np.random.RandomState(self.random_state)
        n_rows = min(self.n_instances, len(X_arr))
        rows = rng.choice(len(X_arr), n_rows, replace=False)

        totals = np.zeros(len(feature_names))
        for row in rows:
            exp = explainer.explain_instance(
                data_row=X_arr[row],
                predict_fn=predict_fn,
                num_features=len(feature_names),
                num_samples=self.num_samples
            )
            # Regression explanations are stored under label 1
            for feat_idx, weight in exp.as_map()[1]:
                totals[feat_idx] += abs(weight)

        mean_abs = totals / max(n_rows, 1)
        return {feat: float(v) for feat, v in zip(feature_names, mean_abs)}


# =============================================================================
# PERMUTATION IMPORTANCE
# =============================================================================

class PermutationExplainer:
    """Permutation importance on held-out data, clipped at zero."""

    method = 'permutation'

    def __init__(self, adapter: ModelAdapter, n_repeats: int = 10,
                 scoring: str = 'neg_mean_absolute_error', random_state: int = 42):
        self.adapter = adapter
        self.n_repeats = n_repeats
        self.scoring = scoring
        self.random_state = random_state

    def importance(self, fitted: FittedModel, X, y=None) -> Dict[str, float]:
        if y is None:
            raise ValueError("Permutation importance needs target values")

        result = permutation_importance(
            fitted.estimator, X, y,
            n_repeats=self.n_repeats,
            random_state=self.random_state,
            scoring=self.scoring
        )
        # A feature whose shuffling improves the score contributes nothing
        scores = np.clip(result.importances_mean, 0.0, None)
        return {feat: float(v) for feat, v in zip(fitted.feature_names, scores)}


EXPLAINERS = {
    'native': NativeImportance,
    'shap': ShapExplainer,
    'lime': LimeExplainer,
    'permutation': PermutationExplainer,
}


def get_explainer(method: str, adapter: ModelAdapter, params: Optional[Dict] = None):
    """Resolve an importance method name to an explainer bound to an adapter."""
    if method not in EXPLAINERS:
        raise ValueError(f"Unknown importance method '{method}'. Supported: {list(EXPLAINERS)}")
    if method == 'native':
        return NativeImportance(adapter)
    return EXPLAINERS[method](adapter, **(params or {}))
