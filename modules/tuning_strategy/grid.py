from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
from sklearn.base import clone
from sklearn.model_selection import ParameterGrid

from modules.tuning_strategy.base import TuningStrategy, as_count
from modules.tuning_strategy.ranges import NumericRange, validate_param_range
from utils.exceptions import ConfigurationError


@dataclass
class GridState:
    model: Any
    points: List[Dict[str, Any]]


@dataclass(frozen=True)
class Grid(TuningStrategy):
    """
    Exhaustive search over the cartesian product of the range.

    Value lists are used as given; ``NumericRange`` entries are discretized
    into ``resolution`` points. With ``shuffle`` the visiting order is a
    seeded permutation of the grid. The next candidate is the point at
    position ``len(history)``, so a batch that fails is proposed again.
    """
    resolution: int = 10
    shuffle: bool = False
    random_state: Optional[int] = None

    def _expand_values(self, param_range: Mapping[str, Any]) -> ParameterGrid:
        return ParameterGrid({
            name: spec.grid(self.resolution) if isinstance(spec, NumericRange) else list(spec)
            for name, spec in param_range.items()
        })

    def _expand(self, param_range: Dict[str, Any]) -> List[Dict[str, Any]]:
        names = list(param_range)
        # ParameterGrid iterates keys in sorted order; keep the caller's order instead
        points = [{name: p[name] for name in names} for p in self._expand_values(param_range)]
        if self.shuffle:
            order = np.random.RandomState(self.random_state).permutation(len(points))
            points = [points[i] for i in order]
        return points

    def setup(self, model, range, verbosity: int) -> GridState:
        param_range = validate_param_range(model, range)
        return GridState(model=model, points=self._expand(param_range))

    def propose_batch(self, state: GridState, history, remaining_count, verbosity: int) -> List[Any]:
        # Candidates already in the history are never proposed again
        start = len(history)
        count = as_count(remaining_count)
        stop = None if count is None else start + count
        points = state.points[start:stop]
        return [(clone(state.model).set_params(**p), p) for p in points]

    def default_iteration_count(self, range) -> int:
        if not isinstance(range, Mapping) or not range:
            raise ConfigurationError("Range must be a non-empty mapping of parameter names to values.")
        return len(self._expand_values(range))
