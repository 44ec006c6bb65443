"""Dispatcher for protein-level group comparison.

The inference routines themselves ("proposed" mixed model, "t" test and
"limma" empirical Bayes) are provided by external packages and plugged in
with register_inference_model. This module only checks the model name and
hands the converted data and annotation to the registered routine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import pandas as pd

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

INFERENCE_MODELS = ('proposed', 't', 'limma')

InferenceRoutine = Callable[[pd.DataFrame, pd.DataFrame], pd.DataFrame]

_registry: dict[str, InferenceRoutine] = {}


def register_inference_model(name: str):
    """Decorator registering the routine that implements one model.

    Example:
        >>> @register_inference_model('t')
        ... def protein_ttest(data, annotation):
        ...     ...
    """
    if name not in INFERENCE_MODELS:
        raise ConfigurationError(
            f"Unknown inference model '{name}'. Use one of {INFERENCE_MODELS}"
        )

    def decorator(func: InferenceRoutine) -> InferenceRoutine:
        if name in _registry:
            logger.info(f"Replacing inference routine for model '{name}'")
        _registry[name] = func
        return func

    return decorator


def unregister_inference_model(name: str) -> None:
    _registry.pop(name, None)


def registered_models() -> list[str]:
    return sorted(_registry)


def group_comparison(
    data: pd.DataFrame,
    annotation: pd.DataFrame,
    model: str,
) -> pd.DataFrame:
    """Run the selected group comparison model.

    Args:
        data: Protein- or PSM-level data from this package
        annotation: Run/channel annotation
        model: One of 'proposed', 't', 'limma'

    Returns:
        Whatever the registered routine returns (a comparison table)

    Raises:
        ConfigurationError: If model is not one of the known models
        NotImplementedError: If no routine is registered for the model
    """
    if model not in INFERENCE_MODELS:
        raise ConfigurationError(
            f"Unknown inference model '{model}'. Use one of {INFERENCE_MODELS}"
        )

    routine = _registry.get(model)
    if routine is None:
        raise NotImplementedError(
            f"No routine registered for model '{model}'. Register one with "
            f"register_inference_model('{model}')."
        )

    logger.info(f"Running group comparison with model '{model}'")
    return routine(data, annotation)
