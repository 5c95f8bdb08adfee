"""
Tuning strategy protocol.

A strategy never runs evaluations itself. The search loop asks it for
candidate models, evaluates them, and hands each raw evaluation back to
``make_result`` for recording in the history.
"""

import abc
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from modules.resampling.measures import is_better
from modules.search_engine.history import History, metamodel_model, metamodel_metadata
from utils import constants
from utils.exceptions import EmptyHistoryError


def as_count(remaining_count) -> Optional[int]:
    """Slice bound for a batch request; ``None`` when unbounded."""
    if remaining_count is None or (isinstance(remaining_count, float) and math.isinf(remaining_count)):
        return None
    return int(remaining_count)


@dataclass(frozen=True)
class TuningResult:
    """History entry produced by the bundled strategies."""
    measures: Tuple[str, ...]
    orientations: Tuple[str, ...]
    measurement: Tuple[float, ...]
    per_fold: Tuple[Tuple[float, ...], ...]
    metadata: Any = None

    @property
    def objective(self) -> float:
        """Value of the optimized (first) measure."""
        return self.measurement[0]

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.measures, self.measurement))


class TuningStrategy(abc.ABC):
    """
    Abstract base class for tuning strategies.

    Subclasses must implement ``setup`` and ``propose_batch``. The remaining
    hooks have defaults: results record every measurement, the first measure
    is optimized according to its orientation (earliest entry wins ties) and
    the summary tabulates the history.
    """

    @abc.abstractmethod
    def setup(self, model, range, verbosity: int) -> Any:
        """
        Create the search state for a fresh search.

        Raises:
            ConfigurationError: If ``range`` does not fit ``model``.
        """
        raise NotImplementedError("Subclasses must implement setup.")

    @abc.abstractmethod
    def propose_batch(self, state, history: History, remaining_count, verbosity: int) -> List[Any]:
        """
        Return up to ``remaining_count`` new metamodels.

        Returning fewer signals that the supply is exhausted; returning none
        ends the search.
        """
        raise NotImplementedError("Subclasses must implement propose_batch.")

    def make_result(self, history: History, state, evaluation, metadata) -> TuningResult:
        return TuningResult(
            measures=tuple(evaluation.measures),
            orientations=tuple(evaluation.orientations),
            measurement=tuple(float(v) for v in evaluation.measurement),
            per_fold=tuple(tuple(float(v) for v in fold) for fold in evaluation.per_fold),
            metadata=metadata,
        )

    def select_best(self, history: History) -> Tuple[Any, Any]:
        if len(history) == 0:
            raise EmptyHistoryError("Cannot select a best model from an empty history.")

        records = history.records
        best = records[0]
        orientation = best.result.orientations[0]
        for record in records[1:]:
            if is_better(record.result.objective, best.result.objective, orientation):
                best = record
        return best.model, best.result

    def summarize(self, history: History, state) -> Dict[str, Any]:
        return {'history': history, 'plotting': self.history_table(history)}

    def default_iteration_count(self, range) -> Any:
        return constants.DEFAULT_N_ITERATIONS

    @staticmethod
    def history_table(history: History) -> pd.DataFrame:
        """One row per evaluation: model type, search point (if any), measurements."""
        rows = []
        for i, record in enumerate(history):
            row: Dict[str, Any] = {'iteration': i + 1, 'model': type(record.model).__name__}
            result = record.result
            metadata = getattr(result, 'metadata', None)
            if isinstance(metadata, dict):
                row.update({f"param_{k}": v for k, v in metadata.items()})
            if hasattr(result, 'as_dict'):
                row.update(result.as_dict())
            rows.append(row)
        return pd.DataFrame(rows)
