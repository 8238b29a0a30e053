import numpy as np
import pytest
from importance.models import (
    ModelAdapter, build_model, build_adapters, get_model_info, SUPPORTED_MODELS,
    HAS_XGBOOST, HAS_LIGHTGBM
)
from importance.errors import UnsupportedImportance


@pytest.mark.parametrize("model_type", [
    "linear_regression", "ridge", "lasso", "random_forest_reg", "gradient_boosting_reg"
])
def test_native_importance_is_non_negative_per_feature(model_type, numeric_xy, numeric_registry):
    X, y = numeric_xy
    params = {"n_estimators": 20} if model_type in ("random_forest_reg", "gradient_boosting_reg") else {}
    adapter = ModelAdapter(model_type, params, seed=0)

    fitted = adapter.fit(X, y)
    scores = adapter.importance(fitted)

    assert set(scores) == set(numeric_registry)
    assert all(v >= 0 for v in scores.values())
    assert adapter.predict(fitted, X).shape == (len(X),)


def test_linear_importance_is_coefficient_magnitude(numeric_xy):
    X, y = numeric_xy
    adapter = ModelAdapter("linear_regression")
    fitted = adapter.fit(X, y)
    scores = adapter.importance(fitted)

    expected = np.abs(fitted.estimator.coef_)
    assert np.allclose([scores[f] for f in X.columns], expected)


@pytest.mark.skipif(not HAS_XGBOOST, reason="xgboost not installed")
def test_xgboost_reports_gain(numeric_xy):
    X, y = numeric_xy
    adapter = ModelAdapter("xgboost_reg", {"n_estimators": 20}, seed=0)
    fitted = adapter.fit(X, y)
    assert fitted.estimator.importance_type == "gain"
    assert all(v >= 0 for v in adapter.importance(fitted).values())


@pytest.mark.skipif(not HAS_LIGHTGBM, reason="lightgbm not installed")
def test_lightgbm_reports_gain(numeric_xy):
    X, y = numeric_xy
    adapter = ModelAdapter("lightgbm_reg", {"n_estimators": 20, "min_child_samples": 5}, seed=0)
    fitted = adapter.fit(X, y)
    assert fitted.estimator.importance_type == "gain"
    assert set(adapter.importance(fitted)) == set(X.columns)


def test_knn_has_no_native_importance(numeric_xy):
    X, y = numeric_xy
    adapter = ModelAdapter("knn_reg")
    assert not adapter.supports_importance

    fitted = adapter.fit(X, y)
    with pytest.raises(UnsupportedImportance) as exc_info:
        adapter.importance(fitted)
    assert exc_info.value.model_type == "knn_reg"


def test_fit_returns_fresh_estimator(numeric_xy):
    X, y = numeric_xy
    adapter = ModelAdapter("random_forest_reg", {"n_estimators": 5}, seed=0)
    a = adapter.fit(X, y)
    b = adapter.fit(X, y, random_state=1)
    assert a.estimator is not b.estimator
    assert b.estimator.random_state == 1
    assert a.estimator.random_state == 0


def test_unknown_model_type_raises():
    with pytest.raises(ValueError, match="Unknown model type"):
        ModelAdapter("svm_magic")
    with pytest.raises(ValueError, match="Unknown model type"):
        build_model("svm_magic")


def test_build_adapters_from_config(base_config):
    adapters = build_adapters(base_config)
    assert list(adapters) == base_config["models"]["tracked"]
    assert adapters["random_forest_reg"].params == {"n_estimators": 20}
    assert adapters["linear_regression"].seed == base_config["experiment"]["seed"]


def test_model_info_families():
    assert get_model_info("ridge")["family"] == "linear"
    assert get_model_info("gradient_boosting_reg")["importance_kind"] == "impurity"
    assert get_model_info("knn_reg")["importance_kind"] is None
    assert set(SUPPORTED_MODELS) >= {"linear_regression", "random_forest_reg", "gradient_boosting_reg"}
