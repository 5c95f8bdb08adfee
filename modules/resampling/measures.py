from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Union

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    brier_score_loss,
    f1_score,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
)

from utils.exceptions import ConfigurationError

LOSS = "loss"
SCORE = "score"

DETERMINISTIC = "deterministic"
PROBABILISTIC = "probabilistic"


def is_better(candidate: float, incumbent: float, orientation: str) -> bool:
    """Strict comparison: higher wins for scores, lower for losses."""
    if orientation == SCORE:
        return candidate > incumbent
    return candidate < incumbent


def _root_mean_squared_error(y_true, y_pred, sample_weight=None):
    return float(np.sqrt(mean_squared_error(y_true, y_pred, sample_weight=sample_weight)))


def _misclassification_rate(y_true, y_pred, sample_weight=None):
    return 1.0 - accuracy_score(y_true, y_pred, sample_weight=sample_weight)


def _brier_loss(y_true, y_proba, sample_weight=None):
    # Binary targets only; positive class is the second column
    proba = np.asarray(y_proba)
    if proba.ndim == 2:
        proba = proba[:, -1]
    return brier_score_loss(y_true, proba, sample_weight=sample_weight)


@dataclass(frozen=True)
class Measure:
    """
    A named performance measure.

    ``func(y_true, y_pred, sample_weight=None)`` must return a float.
    ``orientation`` tells selection rules whether lower (loss) or higher
    (score) is better. ``prediction_type`` is the kind of prediction the
    measure consumes: point predictions or class probabilities.
    """
    name: str
    func: Callable[..., float] = field(compare=False)
    orientation: str = LOSS
    prediction_type: str = DETERMINISTIC
    supports_weights: bool = True

    def __call__(self, y_true, y_pred, sample_weight=None) -> float:
        if sample_weight is not None and self.supports_weights:
            return float(self.func(y_true, y_pred, sample_weight=sample_weight))
        return float(self.func(y_true, y_pred))

    def is_better(self, candidate: float, incumbent: float) -> bool:
        return is_better(candidate, incumbent, self.orientation)


MEASURES: Dict[str, Measure] = {
    # Regression
    'mae': Measure('mae', mean_absolute_error),
    'mse': Measure('mse', mean_squared_error),
    'rmse': Measure('rmse', _root_mean_squared_error),
    'r2': Measure('r2', r2_score, orientation=SCORE),

    # Classification (point predictions)
    'accuracy': Measure('accuracy', accuracy_score, orientation=SCORE),
    'balanced_accuracy': Measure('balanced_accuracy', balanced_accuracy_score, orientation=SCORE),
    'misclassification_rate': Measure('misclassification_rate', _misclassification_rate),
    'f1': Measure('f1', f1_score, orientation=SCORE),

    # Classification (probabilities)
    'log_loss': Measure('log_loss', log_loss, prediction_type=PROBABILISTIC),
    'brier_loss': Measure('brier_loss', _brier_loss, prediction_type=PROBABILISTIC),
}


def get_measure(spec: Union[str, Measure, Callable]) -> Measure:
    """
    Resolve a measure from a registry name, a ``Measure`` or a plain callable.

    Plain callables are treated as deterministic losses named after the function.
    """
    if isinstance(spec, Measure):
        return spec
    if isinstance(spec, str):
        try:
            return MEASURES[spec]
        except KeyError:
            raise ConfigurationError(
                f"Unknown measure '{spec}'. Available: {sorted(MEASURES)}"
            ) from None
    if callable(spec):
        name = getattr(spec, '__name__', type(spec).__name__)
        return Measure(name, spec, supports_weights=False)
    raise ConfigurationError(f"Cannot interpret {spec!r} as a measure.")


def as_measures(spec: Any) -> List[Measure]:
    """Normalize one measure or a sequence of measures to a list of ``Measure``."""
    if spec is None:
        return []
    if isinstance(spec, (str, Measure)) or callable(spec):
        return [get_measure(spec)]
    if isinstance(spec, Sequence):
        return [get_measure(m) for m in spec]
    raise ConfigurationError(f"Cannot interpret {spec!r} as a measure or list of measures.")
