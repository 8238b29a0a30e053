# Model building utilities and the uniform fit/predict/importance adapter
# Each regression family reports importance on its own native scale:
#   linear models -> |coefficient|, forests / sklearn boosting -> impurity reduction,
#   xgboost / lightgbm -> gain. No cross-model normalization happens here.

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
from sklearn.linear_model import LinearRegression, Ridge, Lasso
from sklearn.ensemble import RandomForestRegressor, GradientBoostingRegressor
from sklearn.neighbors import KNeighborsRegressor

from .errors import UnsupportedImportance

try:
    from xgboost import XGBRegressor
    HAS_XGBOOST = True
except ImportError:
    XGBRegressor = None
    HAS_XGBOOST = False

try:
    from lightgbm import LGBMRegressor
    HAS_LIGHTGBM = True
except ImportError:
    LGBMRegressor = None
    HAS_LIGHTGBM = False


SUPPORTED_MODELS = [
    'linear_regression', 'ridge', 'lasso',
    'random_forest_reg', 'gradient_boosting_reg',
    'xgboost_reg', 'lightgbm_reg',
    'knn_reg',
]

# Models that support random_state parameter
MODELS_WITH_RANDOM_STATE = [
    'lasso', 'random_forest_reg', 'gradient_boosting_reg', 'xgboost_reg', 'lightgbm_reg'
]

# Native importance mechanism per family
IMPORTANCE_KIND = {
    'linear_regression': 'coefficient',
    'ridge': 'coefficient',
    'lasso': 'coefficient',
    'random_forest_reg': 'impurity',
    'gradient_boosting_reg': 'impurity',
    'xgboost_reg': 'gain',
    'lightgbm_reg': 'gain',
    'knn_reg': None,
}

LINEAR_MODELS = ['linear_regression', 'ridge', 'lasso']
TREE_MODELS = ['random_forest_reg', 'gradient_boosting_reg', 'xgboost_reg', 'lightgbm_reg']


def build_model(model_type, params=None, seed=None):
    """
    Build an unfitted estimator for a model type.

    Note: LinearRegression, Ridge and KNN are deterministic and don't take random_state.
    """
    params = dict(params or {})

    if model_type == 'linear_regression':
        return LinearRegression(**params)

    elif model_type == 'ridge':
        return Ridge(**params)

    elif model_type == 'lasso':
        return Lasso(random_state=seed, **params)

    elif model_type == 'random_forest_reg':
        return RandomForestRegressor(random_state=seed, **params)

    elif model_type == 'gradient_boosting_reg':
        return GradientBoostingRegressor(random_state=seed, **params)

    elif model_type == 'xgboost_reg':
        if not HAS_XGBOOST:
            raise ImportError("XGBoost not installed. Run: pip install xgboost")
        params.setdefault('importance_type', 'gain')
        return XGBRegressor(random_state=seed, verbosity=0, **params)

    elif model_type == 'lightgbm_reg':
        if not HAS_LIGHTGBM:
            raise ImportError("LightGBM not installed. Run: pip install lightgbm")
        params.setdefault('importance_type', 'gain')
        return LGBMRegressor(random_state=seed, verbose=-1, **params)

    elif model_type == 'knn_reg':
        return KNeighborsRegressor(**params)

    else:
        raise ValueError(
            f"Unknown model type: '{model_type}'. "
            f"Supported: {SUPPORTED_MODELS}"
        )


@dataclass(frozen=True)
class FittedModel:
    """Handle to a trained estimator plus the feature names it was fit on."""
    model_type: str
    estimator: object
    feature_names: tuple


class ModelAdapter:
    """
    Uniform fit/predict/importance wrapper around one regression family.

    Every call to fit() trains a fresh estimator, so one adapter can be shared
    read-only across resampling iterations.
    """

    def __init__(self, model_type: str, params: Optional[Dict] = None, seed: Optional[int] = None,
                 name: Optional[str] = None):
        if model_type not in SUPPORTED_MODELS:
            raise ValueError(
                f"Unknown model type: '{model_type}'. "
                f"Supported: {SUPPORTED_MODELS}"
            )
        self.model_type = model_type
        self.params = dict(params or {})
        self.seed = seed
        self.name = name or model_type

    def __repr__(self):
        return f"ModelAdapter(name={self.name!r}, model_type={self.model_type!r})"

    @property
    def supports_importance(self) -> bool:
        return IMPORTANCE_KIND.get(self.model_type) is not None

    def fit(self, X, y, random_state: Optional[int] = None) -> FittedModel:
        """Train a new estimator. random_state overrides the adapter seed."""
        seed = self.seed if random_state is None else random_state
        estimator = build_model(self.model_type, self.params, seed)
        estimator.fit(X, y)

        if hasattr(X, 'columns'):
            feature_names = tuple(str(c) for c in X.columns)
        else:
            feature_names = tuple(f'x{i}' for i in range(np.asarray(X).shape[1]))

        return FittedModel(self.model_type, estimator, feature_names)

    def predict(self, fitted: FittedModel, X) -> np.ndarray:
        return np.ravel(np.asarray(fitted.estimator.predict(X), dtype=float))

    def importance(self, fitted: FittedModel) -> Dict[str, float]:
        """
        Raw native importance per feature, non-negative, on the family's own scale.

        Raises:
            UnsupportedImportance: the family has no native mechanism
        """
        kind = IMPORTANCE_KIND.get(fitted.model_type)
        estimator = fitted.estimator

        if kind == 'coefficient':
            scores = np.abs(np.ravel(estimator.coef_))
        elif kind in ('impurity', 'gain'):
            scores = np.asarray(estimator.feature_importances_, dtype=float)
        else:
            raise UnsupportedImportance(fitted.model_type)

        if len(scores) != len(fitted.feature_names):
            raise ValueError(
                f"{fitted.model_type} returned {len(scores)} importance scores "
                f"for {len(fitted.feature_names)} features"
            )

        # Guard against tiny negative values from numerical noise
        scores = np.clip(scores, 0.0, None)

        return {feat: float(score) for feat, score in zip(fitted.feature_names, scores)}


def build_adapters(config) -> Dict[str, ModelAdapter]:
    """Build one adapter per tracked model from the 'models' config section."""
    tracked = config['models']['tracked']
    all_params = config['models'].get('params', {}) or {}
    seed = config['experiment']['seed']

    return {
        model_type: ModelAdapter(model_type, all_params.get(model_type, {}), seed)
        for model_type in tracked
    }


def get_model_info(model_type) -> Dict:
    """Get information about a model type."""
    return {
        'type': model_type,
        'supports_random_state': model_type in MODELS_WITH_RANDOM_STATE,
        'importance_kind': IMPORTANCE_KIND.get(model_type),
        'family': 'linear' if model_type in LINEAR_MODELS else
                  'tree' if model_type in TREE_MODELS else 'other',
    }

