import numpy as np
import pytest
from importance.cv import split_train_test, score_regression, run_repeated_cv_regression, _validate_split
from importance.models import ModelAdapter


def test_split_is_disjoint_and_complete(numeric_xy):
    X, y = numeric_xy
    X_train, X_test, y_train, y_test = split_train_test(X, y, test_size=0.25, random_state=0)

    assert set(X_train.index).isdisjoint(set(X_test.index))
    assert len(X_train) + len(X_test) == len(X)
    assert (X_train.index == y_train.index).all()
    assert (X_test.index == y_test.index).all()


def test_split_same_seed_same_partition(numeric_xy):
    X, y = numeric_xy
    a = split_train_test(X, y, test_size=0.25, random_state=3)
    b = split_train_test(X, y, test_size=0.25, random_state=3)
    assert list(a[1].index) == list(b[1].index)


def test_validate_split_rejects_overlap(numeric_xy):
    X, y = numeric_xy
    with pytest.raises(ValueError, match="overlap"):
        _validate_split(np.array([0, 1, 2]), np.array([2, 3]), X, y)


def test_score_regression_perfect_prediction():
    y = np.array([1.0, 2.0, 3.0, 4.0])
    scores = score_regression(y, y)
    assert scores["mae"] == 0.0
    assert scores["rmse"] == 0.0
    assert scores["r2"] == pytest.approx(1.0)
    assert scores["spearman"] == pytest.approx(1.0)


def test_score_regression_constant_prediction_has_zero_spearman():
    scores = score_regression([1.0, 2.0, 3.0], [2.0, 2.0, 2.0])
    assert scores["spearman"] == 0.0


def test_repeated_cv_returns_expected_keys(numeric_xy):
    X, y = numeric_xy
    adapter = ModelAdapter("ridge")
    res = run_repeated_cv_regression(adapter, X, y, n_splits=4, n_repeats=2, seed=42, verbose=False)

    for k in ["mae", "rmse", "spearman", "r2"]:
        assert "mean" in res[k] and "std" in res[k] and "all" in res[k]
        assert len(res[k]["all"]) == 8

    assert res["n_folds"] == 4
    assert res["n_repeats"] == 2
    assert res["mae"]["mean"] >= 0
