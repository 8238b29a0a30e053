# Feature Registry
# Canonical ordered feature list shared by every model and resampling iteration of a run

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple

import pandas as pd

from .errors import SchemaMismatch


@dataclass(frozen=True)
class FeatureRegistry:
    """Immutable ordered set of feature names.

    The registry order is the tie-breaking order for every ranking in the
    pipeline, so it must be identical for all models within one run.
    """
    features: Tuple[str, ...]

    def __post_init__(self):
        features = tuple(str(f) for f in self.features)
        if not features:
            raise ValueError("FeatureRegistry requires at least one feature")

        seen = set()
        duplicates = []
        for feat in features:
            if feat in seen:
                duplicates.append(feat)
            seen.add(feat)
        if duplicates:
            raise ValueError(f"Duplicate feature names in registry: {duplicates}")

        object.__setattr__(self, 'features', features)
        object.__setattr__(self, '_positions', {f: i for i, f in enumerate(features)})

    @classmethod
    def from_frame(cls, X: pd.DataFrame) -> 'FeatureRegistry':
        """Build a registry from the columns of a feature matrix."""
        return cls(tuple(X.columns))

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[str]:
        return iter(self.features)

    def __contains__(self, name) -> bool:
        return name in self._positions

    def index(self, name: str) -> int:
        """Position of a feature in registry order."""
        try:
            return self._positions[name]
        except KeyError:
            raise SchemaMismatch([name]) from None

    def unknown(self, names: Iterable[str]) -> List[str]:
        """Names that are not part of the registry, in input order."""
        return [n for n in names if n not in self._positions]

    def validate(self, names: Iterable[str]) -> None:
        """Raise SchemaMismatch if any name falls outside the registry."""
        unknown = self.unknown(names)
        if unknown:
            raise SchemaMismatch(unknown)

    def check_columns(self, columns: Sequence[str]) -> None:
        """Ensure a feature matrix carries exactly the registry columns, in order."""
        columns = [str(c) for c in columns]
        if tuple(columns) != self.features:
            missing = [f for f in self.features if f not in columns]
            extra = self.unknown(columns)
            raise SchemaMismatch(
                extra,
                f"Feature matrix does not match registry "
                f"(missing={missing}, unexpected={extra})"
            )
