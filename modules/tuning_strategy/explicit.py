from dataclasses import dataclass
from typing import Any, List

from modules.tuning_strategy.base import TuningStrategy, as_count
from utils.exceptions import ConfigurationError


@dataclass
class ExplicitState:
    models: List[Any]


@dataclass(frozen=True)
class Explicit(TuningStrategy):
    """
    Evaluate an explicit list of models, in order.

    ``range`` is the list itself; the prototype model is ignored, so any
    member of the list will do. Like ``Grid``, the next model is the one at
    position ``len(history)``.
    """

    def setup(self, model, range, verbosity: int) -> ExplicitState:
        if not isinstance(range, (list, tuple)) or len(range) == 0:
            raise ConfigurationError("Explicit tuning requires range to be a non-empty list of models.")
        missing = [type(m).__name__ for m in range if not hasattr(m, 'fit')]
        if missing:
            raise ConfigurationError(f"Explicit range contains objects that are not models: {missing}")
        return ExplicitState(models=list(range))

    def propose_batch(self, state: ExplicitState, history, remaining_count, verbosity: int) -> List[Any]:
        start = len(history)
        count = as_count(remaining_count)
        stop = None if count is None else start + count
        return state.models[start:stop]

    def default_iteration_count(self, range) -> int:
        if not isinstance(range, (list, tuple)):
            raise ConfigurationError("Explicit tuning requires range to be a non-empty list of models.")
        return len(range)
