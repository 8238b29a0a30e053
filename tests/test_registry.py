import pytest
import pandas as pd
from importance.registry import FeatureRegistry
from importance.errors import SchemaMismatch


def test_registry_preserves_order():
    registry = FeatureRegistry(("hour", "temp", "rain_1h"))
    assert list(registry) == ["hour", "temp", "rain_1h"]
    assert registry.index("rain_1h") == 2
    assert len(registry) == 3


def test_registry_accepts_list_and_stores_tuple():
    registry = FeatureRegistry(["a", "b"])
    assert registry.features == ("a", "b")


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError, match="Duplicate"):
        FeatureRegistry(("a", "b", "a"))


def test_registry_rejects_empty():
    with pytest.raises(ValueError, match="at least one"):
        FeatureRegistry(())


def test_registry_is_immutable():
    registry = FeatureRegistry(("a", "b"))
    with pytest.raises(Exception):
        registry.features = ("c",)


def test_validate_raises_schema_mismatch():
    registry = FeatureRegistry(("a", "b"))
    with pytest.raises(SchemaMismatch) as exc_info:
        registry.validate(["a", "zzz"])
    assert exc_info.value.unknown_features == ["zzz"]


def test_index_of_unknown_feature_raises():
    registry = FeatureRegistry(("a",))
    with pytest.raises(SchemaMismatch):
        registry.index("b")


def test_from_frame_and_check_columns():
    X = pd.DataFrame({"x1": [1.0], "x2": [2.0]})
    registry = FeatureRegistry.from_frame(X)
    registry.check_columns(X.columns)

    with pytest.raises(SchemaMismatch):
        registry.check_columns(["x2", "x1"])


def test_equal_registries_compare_equal():
    assert FeatureRegistry(("a", "b")) == FeatureRegistry(["a", "b"])
