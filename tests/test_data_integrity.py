import pytest
import copy
import numpy as np
from importance.data import preprocess_data, validate_data_integrity


def test_preprocess_excludes_target_and_identifiers(tiny_traffic_df, base_config):
    X, y, registry = preprocess_data(tiny_traffic_df, base_config)
    assert "traffic_volume" not in X.columns
    assert "date_time" not in X.columns
    assert len(X) == len(y)
    assert y.name == "traffic_volume"
    assert registry.features == tuple(X.columns)


def test_preprocess_encodes_categoricals(tiny_traffic_df, base_config):
    X, _, registry = preprocess_data(tiny_traffic_df, base_config)
    assert "weather_main" not in X.columns
    assert {"weather_main_Clear", "weather_main_Rain", "weather_main_Snow"} <= set(registry)
    assert X.select_dtypes(exclude=[np.number]).empty


def test_preprocess_rejects_categoricals_when_encoding_disabled(tiny_traffic_df, base_config):
    cfg = copy.deepcopy(base_config)
    cfg["data"]["encode_categoricals"] = False
    with pytest.raises(ValueError, match="Non-numeric predictors"):
        preprocess_data(tiny_traffic_df, cfg)


def test_ignored_columns_never_enter_registry(tiny_traffic_df, base_config):
    cfg = copy.deepcopy(base_config)
    cfg["data"]["ignored_columns"] = ["noise"]
    _, _, registry = preprocess_data(tiny_traffic_df, cfg)
    assert "noise" not in registry


def test_missing_target_raises(tiny_traffic_df, base_config):
    cfg = copy.deepcopy(base_config)
    cfg["data"]["target_column"] = "Nonexistent_Target"
    with pytest.raises(ValueError, match="not found"):
        preprocess_data(tiny_traffic_df, cfg)


def test_validate_data_integrity_catches_nan(tiny_traffic_df, base_config):
    df = tiny_traffic_df.copy()
    df.loc[0, "temp"] = np.nan
    X, y, _ = preprocess_data(df, base_config)
    with pytest.raises(ValueError, match="NaN values"):
        validate_data_integrity(X, y)


def test_validate_data_integrity_catches_inf(tiny_traffic_df, base_config):
    df = tiny_traffic_df.copy()
    df.loc[3, "rain_1h"] = np.inf
    X, y, _ = preprocess_data(df, base_config)
    with pytest.raises(ValueError, match="Infinite values"):
        validate_data_integrity(X, y)


def test_validate_data_integrity_passes_clean_data(tiny_traffic_df, base_config):
    X, y, _ = preprocess_data(tiny_traffic_df, base_config)
    assert validate_data_integrity(X, y)
