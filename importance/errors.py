# Error taxonomy for the importance pipeline
# Contract violations abort a run; degenerate cases are absorbed with defined fallbacks


class ImportanceError(Exception):
    """Base class for importance pipeline errors."""
    pass


class UnsupportedImportance(ImportanceError):
    """Raised when a model family has no native importance mechanism."""

    def __init__(self, model_type, message=None):
        self.model_type = model_type
        super().__init__(
            message or f"Model type '{model_type}' cannot report native feature importance. "
                       f"Use a post-hoc explainer (shap, lime, permutation) instead."
        )


class SchemaMismatch(ImportanceError):
    """Raised when an importance vector references features outside the registry."""

    def __init__(self, unknown_features, message=None):
        self.unknown_features = list(unknown_features)
        super().__init__(
            message or f"Features not in registry: {self.unknown_features}"
        )


class IterationFitFailure(ImportanceError):
    """A single stability iteration failed to fit or score a model.

    Never propagated out of the stability loop: the iteration is recorded
    with sentinel ranks and the run continues.
    """

    def __init__(self, model_name, iteration, cause):
        self.model_name = model_name
        self.iteration = iteration
        self.cause = cause
        super().__init__(
            f"Iteration {iteration}: '{model_name}' failed ({type(cause).__name__}: {cause})"
        )


class DegenerateNormalization(UserWarning):
    """Warning category for all-zero importance vectors (normalized to all zeros)."""
    pass
