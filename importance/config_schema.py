# Config schema validation
# Validates config structure, types and value ranges for importance runs

from .models import SUPPORTED_MODELS, IMPORTANCE_KIND

REQUIRED_KEYS = {
    'experiment': ['name', 'seed'],
    'data': ['target_column'],
    'models': ['tracked'],
}

ALLOWED_METHODS = ['native', 'shap', 'lime', 'permutation']

# Explainers that may stand in for a model family without native importance
ALLOWED_SUBSTITUTES = ['shap', 'lime', 'permutation', None]

N_REFERENCE_MODELS = 2


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def validate_config(config):
    """
    Validate an importance run configuration.

    Args:
        config: dict - Configuration dictionary

    Raises:
        ConfigValidationError listing every problem found
    """
    errors = []

    for section, required_keys in REQUIRED_KEYS.items():
        if section not in config or not isinstance(config[section], dict):
            errors.append(f"Missing required section: '{section}'")
            continue
        for key in required_keys:
            if key not in config[section]:
                errors.append(f"Missing required key: '{section}.{key}'")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    if not isinstance(config['experiment'].get('seed'), int):
        errors.append("experiment.seed must be an integer")

    # Models
    tracked = config['models'].get('tracked') or []
    if not isinstance(tracked, list) or not tracked:
        errors.append("models.tracked must be a non-empty list")
        tracked = []
    unknown_models = [m for m in tracked if m not in SUPPORTED_MODELS]
    if unknown_models:
        errors.append(f"Invalid model type(s) {unknown_models}. Allowed: {SUPPORTED_MODELS}")
    if len(set(tracked)) != len(tracked):
        errors.append("models.tracked contains duplicates")

    # Data
    target = config['data'].get('target_column')
    id_columns = config['data'].get('id_columns', []) or []
    if target in id_columns:
        errors.append(f"Target '{target}' is also listed in data.id_columns")

    # Split
    test_size = config.get('split', {}).get('test_size', 0.2)
    if not _is_fraction(test_size):
        errors.append(f"split.test_size must be in (0, 1), got {test_size}")

    # Importance methods
    importance_cfg = config.get('importance', {}) or {}
    methods = importance_cfg.get('methods', ['native'])
    bad_methods = [m for m in methods if m not in ALLOWED_METHODS]
    if bad_methods:
        errors.append(f"Invalid importance method(s) {bad_methods}. Allowed: {ALLOWED_METHODS}")

    substitute = importance_cfg.get('substitute_explainer')
    if substitute not in ALLOWED_SUBSTITUTES:
        errors.append(f"Invalid substitute_explainer '{substitute}'. Allowed: {ALLOWED_SUBSTITUTES}")

    top_k = importance_cfg.get('top_k', 10)
    if not isinstance(top_k, int) or top_k < 1:
        errors.append("importance.top_k must be a positive integer")

    # Stability
    stability_cfg = config.get('stability', {}) or {}
    if stability_cfg.get('enabled', True):
        n_iterations = stability_cfg.get('n_iterations', 10)
        if not isinstance(n_iterations, int) or n_iterations < 1:
            errors.append("stability.n_iterations must be an integer >= 1")

        sample_frac = stability_cfg.get('sample_frac', 0.8)
        if not (isinstance(sample_frac, (int, float)) and 0 < sample_frac <= 1):
            errors.append(f"stability.sample_frac must be in (0, 1], got {sample_frac}")

        if not _is_fraction(stability_cfg.get('test_size', 0.2)):
            errors.append("stability.test_size must be in (0, 1)")

        reference = stability_cfg.get('reference_models')
        if reference is not None:
            if len(set(reference)) != N_REFERENCE_MODELS:
                errors.append(
                    f"stability.reference_models must name exactly {N_REFERENCE_MODELS} distinct models, "
                    f"got {reference}"
                )
            not_tracked = [m for m in reference if m not in tracked]
            if not_tracked:
                errors.append(f"stability.reference_models not in models.tracked: {not_tracked}")
            no_native = [m for m in reference if m in SUPPORTED_MODELS and IMPORTANCE_KIND[m] is None]
            if no_native:
                errors.append(f"stability.reference_models without native importance: {no_native}")
        else:
            native_tracked = [m for m in tracked if m in SUPPORTED_MODELS and IMPORTANCE_KIND[m] is not None]
            if len(native_tracked) < N_REFERENCE_MODELS:
                errors.append(
                    f"stability needs at least {N_REFERENCE_MODELS} tracked models with native importance "
                    f"when reference_models is not given, got {native_tracked}"
                )

        n_jobs = stability_cfg.get('n_jobs', 1)
        if not isinstance(n_jobs, int) or n_jobs == 0:
            errors.append("stability.n_jobs must be a non-zero integer")

    # Evaluation
    eval_cfg = config.get('evaluation', {}) or {}
    if eval_cfg.get('cv_repeats', 0):
        cv_splits = eval_cfg.get('cv_splits', 5)
        if not isinstance(cv_splits, int) or cv_splits < 2:
            errors.append("evaluation.cv_splits must be >= 2")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    return True


def _is_fraction(value):
    return isinstance(value, (int, float)) and 0 < value < 1
