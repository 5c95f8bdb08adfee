import copy
import gc
import time
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sklearn.base import clone
from sklearn.utils.validation import has_fit_parameter

from modules.resampling import Holdout, Resampler, as_measures
from modules.search_engine import Acceleration, EvaluatorPool, History, build
from modules.tuning_strategy import Grid
from utils import constants
from utils.comparison import is_same_except
from utils.exceptions import ConfigurationError, ModelTrainingError, NotTrainedError


@dataclass
class MetaState:
    """Everything ``update`` needs to continue a previous search."""
    history: History
    snapshot: "TunedModel"
    state: Any
    evaluators: EvaluatorPool


@dataclass
class TrainedArtifact:
    """The selected configuration and, if trained, its estimator fitted on all data."""
    best_model: Any
    fitted_model: Optional[Any] = None
    report: Optional[Dict[str, Any]] = None

    @property
    def is_trained(self) -> bool:
        return self.fitted_model is not None


class TunedModel:
    """
    Hyperparameter tuning controller.

    Searches over clones of ``model`` mutated according to ``range``, using
    ``tuning`` to propose candidates and a resampling evaluator to score
    them, then (optionally) trains the best configuration on all the data.

    Calling ``update`` with the meta-state of a previous fit continues that
    search when only ``n`` was raised; any other change starts over.
    """

    CONFIG_FIELDS = (
        'model', 'tuning', 'resampling', 'measure', 'weights', 'operation', 'range',
        'train_best', 'repeats', 'n', 'acceleration', 'acceleration_resampling', 'check_measure',
    )

    def __init__(self, model=None, tuning=None, resampling=None, measure=None, weights=None,
                 operation: str = "predict", range=None, train_best: bool = True, repeats: int = 1,
                 n=None, acceleration: Optional[Acceleration] = None,
                 acceleration_resampling: Optional[Acceleration] = None, check_measure: bool = True,
                 logger: Optional[logging.Logger] = None):
        if model is None:
            raise ConfigurationError(
                "You need to specify model=... . If tuning=Explicit(), any model in the range will do."
            )
        if range is None:
            raise ConfigurationError("You need to specify range=... .")

        self.model = model
        self.tuning = tuning if tuning is not None else Grid()
        self.resampling = resampling if resampling is not None else Holdout()
        self.measure = as_measures(measure)
        self.weights = weights
        self.operation = operation
        self.range = range
        self.train_best = train_best
        self.repeats = repeats
        self.n = n
        self.acceleration = acceleration or Acceleration.sequential()
        self.acceleration_resampling = acceleration_resampling or Acceleration.sequential()
        self.check_measure = check_measure
        self.logger = logger or logging.getLogger(__name__)

        self._validate()
        message = self._clean()
        if message:
            self.logger.info(message)

    def _validate(self) -> None:
        if not self.measure:
            raise ConfigurationError("You need to specify measure=... .")
        if self.repeats < 1:
            raise ConfigurationError(f"repeats must be >= 1, got {self.repeats}.")
        if self.n is not None and self.n < 1:
            raise ConfigurationError(f"n must be >= 1 when provided, got {self.n}.")

    def _clean(self) -> str:
        """Advice on acceleration combinations that rarely pay off."""
        outer, inner = self.acceleration.policy, self.acceleration_resampling.policy
        if inner == constants.POLICY_PROCESSES and outer in (constants.POLICY_PROCESSES,
                                                             constants.POLICY_THREADS):
            return (
                f"The combination acceleration={outer} and acceleration_resampling={inner} is "
                f"not generally optimal. You may want to consider setting acceleration=processes "
                f"and acceleration_resampling=threads."
            )
        return ""

    # ------------------------------------------------------------------ #
    # Configuration access                                               #
    # ------------------------------------------------------------------ #
    def get_params(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.CONFIG_FIELDS}

    def set_params(self, **params) -> "TunedModel":
        unknown = [k for k in params if k not in self.CONFIG_FIELDS]
        if unknown:
            raise ConfigurationError(f"Unknown TunedModel parameters: {unknown}")
        for name, value in params.items():
            if name == 'measure':
                value = as_measures(value)
            setattr(self, name, value)
        self._validate()
        return self

    def __deepcopy__(self, memo):
        cls = type(self)
        new = cls.__new__(cls)
        memo[id(self)] = new
        for name in self.CONFIG_FIELDS:
            setattr(new, name, copy.deepcopy(getattr(self, name), memo))
        new.logger = self.logger
        return new

    def __repr__(self) -> str:
        return (f"TunedModel(model={type(self.model).__name__}, tuning={self.tuning!r}, "
                f"n={self.n}, acceleration={self.acceleration.policy})")

    def resolve_n(self):
        """Iteration target: ``n`` if set, else the strategy's default for the range."""
        if self.n is not None:
            return self.n
        return self.tuning.default_iteration_count(self.range)

    # ------------------------------------------------------------------ #
    # Fit / Update                                                       #
    # ------------------------------------------------------------------ #
    def _make_resampler(self, X, y, sample_weight=None) -> Resampler:
        return Resampler(
            model=self.model,
            X=X,
            y=y,
            sample_weight=sample_weight,
            resampling=self.resampling,
            measures=self.measure,
            weights=self.weights,
            operation=self.operation,
            check_measure=self.check_measure,
            repeats=self.repeats,
            acceleration=self.acceleration_resampling,
        )

    def _train_best(self, best_model, verbosity: int, X, y, sample_weight=None) -> TrainedArtifact:
        if not self.train_best:
            return TrainedArtifact(best_model=best_model)

        estimator = clone(best_model)
        fit_kwargs = {}
        if sample_weight is not None and has_fit_parameter(estimator, 'sample_weight'):
            fit_kwargs['sample_weight'] = sample_weight

        if verbosity >= constants.VERBOSITY_PROGRESS:
            self.logger.info(f"Training best model {type(estimator).__name__} on {len(X)} samples.")
        try:
            start_time = time.time()
            estimator.fit(X, y, **fit_kwargs)
            duration = time.time() - start_time
        except Exception as e:
            gc.collect()
            raise ModelTrainingError(f"Failed to train best model: {str(e)}") from e

        report = {
            'fit_time_sec': duration,
            'n_samples': len(X),
            'learned_attributes': sorted(_learned_params(estimator)),
        }
        return TrainedArtifact(best_model=best_model, fitted_model=estimator, report=report)

    def _finalize(self, history: History, state, evaluators: EvaluatorPool, verbosity: int,
                  X, y, sample_weight=None) -> Tuple[TrainedArtifact, MetaState, Dict[str, Any]]:
        best_model, best_result = self.tuning.select_best(history)
        fitresult = self._train_best(best_model, verbosity, X, y, sample_weight)

        report = {
            'best_model': best_model,
            'best_result': best_result,
            'best_report': fitresult.report,
        }
        report.update(self.tuning.summarize(history, state))

        meta_state = MetaState(
            history=history,
            snapshot=copy.deepcopy(self),
            state=state,
            evaluators=evaluators,
        )
        return fitresult, meta_state, report

    def fit(self, verbosity: int, X, y, sample_weight=None):
        """
        Run a fresh search.

        Returns:
            (fitresult, meta_state, report)
        """
        n = self.resolve_n()
        if verbosity >= constants.VERBOSITY_PROGRESS:
            self.logger.info(f"Attempting to evaluate {n} models.")

        state = self.tuning.setup(self.model, self.range, verbosity)

        # Worker 0 evaluator; the pool clones it for additional threads
        evaluators = EvaluatorPool(self._make_resampler(X, y, sample_weight))

        history = build(None, n, self.tuning, self.model, state, verbosity,
                        self.acceleration, evaluators)

        return self._finalize(history, state, evaluators, verbosity, X, y, sample_weight)

    def update(self, verbosity: int, old_fitresult: TrainedArtifact, old_meta_state: MetaState,
               X, y, sample_weight=None):
        """
        Extend the previous search if only ``n`` grew, otherwise search afresh.

        Lowering ``n`` also starts over: the history is cumulative and is
        never truncated.
        """
        history, old_tuned_model, evaluators = (
            old_meta_state.history,
            old_meta_state.snapshot,
            old_meta_state.evaluators,
        )
        # Search on a copy; the old meta-state must stay usable if a batch fails
        state = copy.deepcopy(old_meta_state.state)

        n = self.resolve_n()
        old_n = old_tuned_model.resolve_n()

        if is_same_except(self, old_tuned_model, ['n']) and n >= old_n:
            if verbosity >= constants.VERBOSITY_PROGRESS:
                self.logger.info(
                    f"Attempting to add {n - old_n} models to search, bringing total to {n}."
                )
            history = build(history, n, self.tuning, self.model, state, verbosity,
                            self.acceleration, evaluators)
            return self._finalize(history, state, evaluators, verbosity, X, y, sample_weight)

        if verbosity >= constants.VERBOSITY_PROGRESS:
            self.logger.info("Configuration changed; restarting the search from scratch.")
        return self.fit(verbosity, X, y, sample_weight)

    # ------------------------------------------------------------------ #
    # Using the result                                                   #
    # ------------------------------------------------------------------ #
    def _fitted_estimator(self, fitresult: TrainedArtifact):
        if not fitresult.is_trained:
            raise NotTrainedError(
                "The best model was not trained (train_best=False); fit it yourself from "
                "fitted_params()['best_model']."
            )
        return fitresult.fitted_model

    def predict(self, fitresult: TrainedArtifact, X):
        return self._fitted_estimator(fitresult).predict(X)

    def predict_proba(self, fitresult: TrainedArtifact, X):
        return self._fitted_estimator(fitresult).predict_proba(X)

    def fitted_params(self, fitresult: TrainedArtifact) -> Dict[str, Any]:
        if not fitresult.is_trained:
            return {'best_model': fitresult.best_model, 'best_fitted_params': None}
        return {
            'best_model': fitresult.best_model,
            'best_fitted_params': _learned_params(fitresult.fitted_model),
        }


def _learned_params(estimator) -> Dict[str, Any]:
    """Attributes set by ``fit`` (scikit-learn convention: trailing underscore)."""
    return {
        k: v for k, v in vars(estimator).items()
        if k.endswith('_') and not k.startswith('_')
    }
