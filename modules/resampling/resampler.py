import time
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
from joblib import Parallel, delayed
from sklearn.base import clone
from sklearn.utils.validation import has_fit_parameter

from modules.resampling.measures import Measure, PROBABILISTIC, as_measures
from modules.search_engine.acceleration import Acceleration
from utils import constants
from utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Holdout:
    """
    Single train/test split.

    The first ``fraction_train`` of the rows train the model and the rest test
    it, unless ``shuffle`` is set, in which case rows are permuted first.
    Follows the scikit-learn splitter interface (``split``/``get_n_splits``).
    """

    def __init__(self, fraction_train: float = constants.DEFAULT_HOLDOUT_FRACTION,
                 shuffle: bool = False, random_state: Optional[int] = None):
        if not (0.0 < fraction_train < 1.0):
            raise ConfigurationError(
                f"fraction_train must be between 0 and 1 (exclusive), got {fraction_train}"
            )
        self.fraction_train = fraction_train
        self.shuffle = shuffle
        self.random_state = random_state

    def split(self, X, y=None, groups=None) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        n_samples = len(X)
        indices = np.arange(n_samples)
        if self.shuffle:
            np.random.default_rng(self.random_state).shuffle(indices)
        n_train = int(round(self.fraction_train * n_samples))
        if n_train == 0 or n_train == n_samples:
            raise ValueError(
                f"Holdout with fraction_train={self.fraction_train} leaves an empty "
                f"train or test set for {n_samples} samples."
            )
        yield indices[:n_train], indices[n_train:]

    def get_n_splits(self, X=None, y=None, groups=None) -> int:
        return 1

    def __repr__(self):
        return (f"Holdout(fraction_train={self.fraction_train}, shuffle={self.shuffle}, "
                f"random_state={self.random_state})")


@dataclass
class PerformanceEvaluation:
    """Raw outcome of evaluating one model configuration."""
    measures: List[str]
    orientations: List[str]
    measurement: List[float]
    per_fold: List[List[float]]
    operation: str
    n_splits: int
    duration_sec: float = 0.0
    fit_times: List[float] = field(default_factory=list)

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.measures, self.measurement))


def _take(data, idx):
    if data is None:
        return None
    if hasattr(data, 'iloc'):
        return data.iloc[idx]
    return np.asarray(data)[idx]


def _evaluate_split(model, X, y, sample_weight, measure_weights, train, test,
                    measures: List[Measure], operation: str) -> Tuple[List[float], float]:
    """Fit a fresh clone of ``model`` on one split and score it with every measure."""
    estimator = clone(model)
    fit_kwargs = {}
    if sample_weight is not None and has_fit_parameter(estimator, 'sample_weight'):
        fit_kwargs['sample_weight'] = _take(sample_weight, train)

    start = time.time()
    estimator.fit(_take(X, train), _take(y, train), **fit_kwargs)
    fit_time = time.time() - start

    y_pred = getattr(estimator, operation)(_take(X, test))
    y_test = _take(y, test)
    w_test = _take(measure_weights, test)
    return [m(y_test, y_pred, sample_weight=w_test) for m in measures], fit_time


class Resampler:
    """
    Resampling evaluator bound to one dataset.

    ``model`` is a slot: callers replace it with the configuration to be
    evaluated, then call ``evaluate()``. Each split fits a clone, so the slot
    model itself is never fitted.
    """

    def __init__(self, model, X, y, sample_weight=None, resampling=None, measures=None,
                 weights=None, operation: str = "predict", check_measure: bool = True,
                 repeats: int = 1, acceleration: Optional[Acceleration] = None):
        self.model = model
        self.X = X
        self.y = y
        self.sample_weight = sample_weight
        self.resampling = resampling if resampling is not None else Holdout()
        self.measures = as_measures(measures)
        self.weights = weights
        self.operation = operation
        self.check_measure = check_measure
        self.repeats = repeats
        self.acceleration = acceleration or Acceleration.sequential()

        if not self.measures:
            raise ConfigurationError("Resampler requires at least one measure.")
        if self.repeats < 1:
            raise ConfigurationError(f"repeats must be >= 1, got {self.repeats}.")
        if self.check_measure:
            self._check_measures()

    def _check_measures(self) -> None:
        """Verify each measure can consume what ``operation`` produces."""
        if not hasattr(self.model, self.operation):
            raise ConfigurationError(
                f"Model {type(self.model).__name__} does not support operation '{self.operation}'."
            )
        probabilistic_op = self.operation == "predict_proba"
        for m in self.measures:
            if (m.prediction_type == PROBABILISTIC) != probabilistic_op:
                raise ConfigurationError(
                    f"Measure '{m.name}' expects {m.prediction_type} predictions, "
                    f"incompatible with operation '{self.operation}'."
                )

    def clone(self) -> "Resampler":
        """Fresh evaluator with the same settings and data binding."""
        return Resampler(
            model=self.model,
            X=self.X,
            y=self.y,
            sample_weight=self.sample_weight,
            resampling=self.resampling,
            measures=self.measures,
            weights=self.weights,
            operation=self.operation,
            check_measure=self.check_measure,
            repeats=self.repeats,
            acceleration=self.acceleration,
        )

    def _splits(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        splits = []
        for _ in range(self.repeats):
            splits.extend(self.resampling.split(self.X, self.y))
        return splits

    def evaluate(self) -> PerformanceEvaluation:
        """Evaluate the model currently in the slot."""
        start = time.time()
        splits = self._splits()
        measure_weights = self.weights if self.weights is not None else self.sample_weight

        tasks = (
            delayed(_evaluate_split)(self.model, self.X, self.y, self.sample_weight,
                                     measure_weights, train, test, self.measures, self.operation)
            for train, test in splits
        )
        n_workers = min(self.acceleration.resolve_workers(), len(splits))
        if n_workers > 1:
            fold_results = Parallel(n_jobs=n_workers, backend=self.acceleration.joblib_backend())(tasks)
        else:
            fold_results = [fn(*args, **kwargs) for fn, args, kwargs in tasks]

        per_fold = [[scores[i] for scores, _ in fold_results] for i in range(len(self.measures))]
        measurement = [float(np.mean(values)) for values in per_fold]
        duration = time.time() - start
        logger.debug(
            f"Evaluated {type(self.model).__name__} over {len(splits)} splits in {duration:.2f}s"
        )

        return PerformanceEvaluation(
            measures=[m.name for m in self.measures],
            orientations=[m.orientation for m in self.measures],
            measurement=measurement,
            per_fold=per_fold,
            operation=self.operation,
            n_splits=len(splits),
            duration_sec=duration,
            fit_times=[t for _, t in fold_results],
        )
