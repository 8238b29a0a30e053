import pytest
import copy
from importance.config_schema import validate_config, ConfigValidationError
from importance.io import config_hash, load_config


def test_base_config_is_valid(base_config):
    assert validate_config(base_config)


def test_config_validates_required_keys():
    incomplete_config = {
        "experiment": {"name": "test"}
        # Missing seed, data, models
    }
    with pytest.raises(ConfigValidationError, match="Missing required"):
        validate_config(incomplete_config)


def test_config_rejects_invalid_model_type(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["models"]["tracked"] = ["linear_regression", "invalid_model"]
    with pytest.raises(ConfigValidationError, match="Invalid model type"):
        validate_config(cfg)


def test_config_rejects_invalid_method(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["importance"]["methods"] = ["native", "saliency"]
    with pytest.raises(ConfigValidationError, match="Invalid importance method"):
        validate_config(cfg)


def test_config_requires_two_reference_models(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["stability"]["reference_models"] = ["random_forest_reg"]
    with pytest.raises(ConfigValidationError, match="exactly 2"):
        validate_config(cfg)


def test_config_rejects_untracked_reference_model(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["stability"]["reference_models"] = ["random_forest_reg", "xgboost_reg"]
    with pytest.raises(ConfigValidationError, match="not in models.tracked"):
        validate_config(cfg)


def test_config_rejects_reference_model_without_native_importance(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["models"]["tracked"].append("knn_reg")
    cfg["stability"]["reference_models"] = ["random_forest_reg", "knn_reg"]
    with pytest.raises(ConfigValidationError, match="without native importance"):
        validate_config(cfg)


def test_config_default_reference_needs_two_native_models(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["models"]["tracked"] = ["knn_reg", "ridge"]
    cfg["stability"]["reference_models"] = None
    with pytest.raises(ConfigValidationError, match="with native importance"):
        validate_config(cfg)


@pytest.mark.parametrize("frac", [0, -0.1, 1.5])
def test_config_rejects_bad_sample_frac(base_config, frac):
    cfg = copy.deepcopy(base_config)
    cfg["stability"]["sample_frac"] = frac
    with pytest.raises(ConfigValidationError, match="sample_frac"):
        validate_config(cfg)


def test_config_reports_all_errors_at_once(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["stability"]["n_iterations"] = 0
    cfg["split"]["test_size"] = 2
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_config(cfg)
    message = str(exc_info.value)
    assert "n_iterations" in message
    assert "test_size" in message


def test_stability_checks_skipped_when_disabled(base_config):
    cfg = copy.deepcopy(base_config)
    cfg["stability"] = {"enabled": False, "n_iterations": 0}
    assert validate_config(cfg)


def test_config_hash_deterministic(base_config):
    h1 = config_hash(base_config)
    h2 = config_hash(base_config)
    assert h1 == h2

    # Same content but different key insertion order should still match
    cfg2 = {k: base_config[k] for k in reversed(list(base_config))}
    assert config_hash(cfg2) == h1


def test_load_config_roundtrip(base_config, write_yaml):
    path = write_yaml(base_config)
    assert load_config(path) == base_config


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_shipped_config_is_valid():
    import os
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    cfg = load_config(os.path.join(root, "configs", "traffic_importance.yaml"))
    assert validate_config(cfg)
