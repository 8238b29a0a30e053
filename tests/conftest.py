import pytest
import pandas as pd
import numpy as np

from importance.registry import FeatureRegistry
from importance.models import ModelAdapter


@pytest.fixture(scope="session")
def seed():
    return 42


@pytest.fixture
def tiny_traffic_df(seed):
    """
    Small deterministic dataframe resembling the cleaned traffic dataset.
    Includes:
      - traffic_volume (regression target) driven mostly by hour and temp
      - date_time identifier that must never enter the registry
      - one categorical weather column
      - one pure-noise feature
    """
    rng = np.random.default_rng(seed)
    n = 80

    hour = rng.integers(0, 24, size=n)
    temp = rng.normal(loc=15.0, scale=8.0, size=n)
    rain = rng.exponential(scale=1.0, size=n)
    incidents = rng.integers(0, 4, size=n)
    noise = rng.normal(size=n)

    df = pd.DataFrame({
        "date_time": pd.date_range("2024-01-01", periods=n, freq="h").astype(str),
        "hour": hour,
        "temp": temp,
        "rain_1h": rain,
        "emergency_calls": incidents,
        "noise": noise,
        "weather_main": rng.choice(["Clear", "Rain", "Snow"], size=n),
    })
    df["traffic_volume"] = (
        200 * np.sin(hour / 24 * np.pi) + 10 * temp - 30 * rain
        - 15 * incidents + rng.normal(scale=5.0, size=n)
    )
    return df


@pytest.fixture
def numeric_xy(tiny_traffic_df):
    """Numeric feature frame + target without the identifier and categorical column."""
    X = tiny_traffic_df[["hour", "temp", "rain_1h", "emergency_calls", "noise"]].astype(float)
    y = tiny_traffic_df["traffic_volume"]
    return X, y


@pytest.fixture
def numeric_registry(numeric_xy):
    X, _ = numeric_xy
    return FeatureRegistry.from_frame(X)


@pytest.fixture
def abc_registry():
    return FeatureRegistry(("A", "B", "C"))


@pytest.fixture
def fast_adapters(seed):
    return {
        "linear_regression": ModelAdapter("linear_regression", seed=seed),
        "random_forest_reg": ModelAdapter("random_forest_reg", {"n_estimators": 20}, seed=seed),
    }


@pytest.fixture
def base_config(tmp_path, seed):
    """
    Minimal config for an importance run on traffic_volume.
    """
    cfg = {
        "experiment": {
            "name": "pytest_importance",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": "DUMMY.csv",
            "target_column": "traffic_volume",
            "id_columns": ["date_time"],
            "ignored_columns": [],
            "encode_categoricals": True
        },
        "models": {
            "tracked": ["linear_regression", "random_forest_reg", "gradient_boosting_reg"],
            "params": {
                "random_forest_reg": {"n_estimators": 20},
                "gradient_boosting_reg": {"n_estimators": 20}
            }
        },
        "split": {"test_size": 0.25},
        "importance": {
            "methods": ["native", "permutation"],
            "top_k": 5,
            "substitute_explainer": None,
            "permutation": {"n_repeats": 3}
        },
        "stability": {
            "enabled": True,
            "n_iterations": 3,
            "sample_frac": 0.8,
            "test_size": 0.2,
            "reference_models": ["random_forest_reg", "gradient_boosting_reg"],
            "n_jobs": 1,
            "random_state": 7
        },
        "evaluation": {"cv_splits": 3, "cv_repeats": 0}
    }
    return cfg


@pytest.fixture
def patch_dataset_loader(monkeypatch, tiny_traffic_df):
    """
    Monkeypatch load_dataset so runs don't hit disk.
    """
    def _fake_load_dataset(config, dataset_path=None):
        return tiny_traffic_df.copy(), "test_dataset.csv"

    monkeypatch.setattr("importance.data.load_dataset", _fake_load_dataset)
    monkeypatch.setattr("runners.run_importance.load_dataset", _fake_load_dataset)
    return _fake_load_dataset


@pytest.fixture
def write_yaml(tmp_path):
    import yaml
    def _write(cfg, name="temp.yaml"):
        p = tmp_path / name
        with open(p, "w") as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
        return str(p)
    return _write
