from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.base import clone

from modules.tuning_strategy.base import TuningStrategy, as_count
from modules.tuning_strategy.ranges import NumericRange, validate_param_range
from utils.exceptions import ConfigurationError


@dataclass
class RandomSearchState:
    model: Any
    param_range: Dict[str, Any]
    rng: np.random.RandomState


@dataclass(frozen=True)
class RandomSearch(TuningStrategy):
    """
    Independent random sampling of the range.

    Value lists are sampled uniformly; ``NumericRange`` entries are sampled
    on their own scale. The supply never runs out, so the search always
    stops at the iteration budget.
    """
    random_state: Optional[int] = None

    def setup(self, model, range, verbosity: int) -> RandomSearchState:
        param_range = validate_param_range(model, range)
        return RandomSearchState(
            model=model,
            param_range=param_range,
            rng=np.random.RandomState(self.random_state),
        )

    def _sample_point(self, state: RandomSearchState) -> Dict[str, Any]:
        point = {}
        for name, spec in state.param_range.items():
            if isinstance(spec, NumericRange):
                point[name] = spec.sample(state.rng)
            else:
                point[name] = spec[state.rng.randint(len(spec))]
        return point

    def propose_batch(self, state: RandomSearchState, history, remaining_count, verbosity: int) -> List[Any]:
        count = as_count(remaining_count)
        if count is None:
            raise ConfigurationError("RandomSearch requires a finite iteration budget (n).")
        batch = []
        for _ in range(count):
            point = self._sample_point(state)
            batch.append((clone(state.model).set_params(**point), point))
        return batch
