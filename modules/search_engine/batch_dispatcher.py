"""
Batch dispatch of evaluation events under a concurrency policy.

Every policy returns ``(model, entry)`` pairs in the order the metamodels
were submitted, whatever order they actually complete in.
"""

import logging
import threading
from typing import Any, Dict, List, Sequence, Tuple

from joblib import Parallel, delayed
from tqdm import tqdm

from modules.search_engine.acceleration import Acceleration
from modules.search_engine.event_runner import run_event
from modules.search_engine.history import History
from utils import constants

logger = logging.getLogger(__name__)


class EvaluatorPool:
    """
    Per-worker evaluators, addressed by worker index.

    Worker 0 holds the template. Other workers get a clone of the template
    the first time they ask, and keep it for the rest of the search.
    """

    def __init__(self, template):
        self._evaluators: Dict[int, Any] = {0: template}
        self._lock = threading.Lock()

    @property
    def template(self):
        return self._evaluators[0]

    def get(self, worker_id: int):
        with self._lock:
            if worker_id not in self._evaluators:
                self._evaluators[worker_id] = self.template.clone()
                logger.debug(f"Created evaluator for worker {worker_id}")
            return self._evaluators[worker_id]

    def __len__(self) -> int:
        return len(self._evaluators)

    def __contains__(self, worker_id: int) -> bool:
        return worker_id in self._evaluators

    def __getstate__(self):
        # Locks cannot be pickled
        return {'_evaluators': self._evaluators}

    def __setstate__(self, state):
        self._evaluators = state['_evaluators']
        self._lock = threading.Lock()


def _progress_bar(n_metamodels: int, verbosity: int) -> tqdm:
    return tqdm(
        total=n_metamodels,
        desc=f"Evaluating over {n_metamodels} metamodels: ",
        bar_format=constants.PROGRESS_BAR_FORMAT,
        disable=verbosity < constants.VERBOSITY_PROGRESS,
    )


def partition(n_items: int, n_parts: int) -> List[range]:
    """Split ``range(n_items)`` into at most ``n_parts`` contiguous chunks."""
    if n_items == 0:
        return []
    size = -(-n_items // max(1, n_parts))
    return [range(start, min(start + size, n_items)) for start in range(0, n_items, size)]


def _assemble_sequential(metamodels, evaluators: EvaluatorPool, verbosity, strategy,
                         history, state) -> List[Tuple[Any, Any]]:
    evaluator = evaluators.template
    ret = []
    with _progress_bar(len(metamodels), verbosity) as pbar:
        for m in metamodels:
            ret.append(run_event(m, evaluator, strategy, history, state, verbosity))
            pbar.update(1)
    return ret


def _run_chunk(metamodels, evaluator, strategy, history, state, verbosity) -> List[Tuple[Any, Any]]:
    return [run_event(m, evaluator, strategy, history, state, verbosity) for m in metamodels]


def _assemble_processes(metamodels, evaluators: EvaluatorPool, verbosity, strategy,
                        history, state, n_workers: int) -> List[Tuple[Any, Any]]:
    # One task per worker: the template is pickled once per chunk and the
    # unpickled copy serves every event of that chunk
    evaluator = evaluators.template
    parts = partition(len(metamodels), n_workers)
    ret = []
    chunks = Parallel(n_jobs=len(parts), backend="loky", return_as="generator")(
        delayed(_run_chunk)([metamodels[i] for i in indices], evaluator, strategy, history, state, verbosity)
        for indices in parts
    )
    with _progress_bar(len(metamodels), verbosity) as pbar:
        # Chunks are contiguous and arrive in submission order
        for chunk in chunks:
            ret.extend(chunk)
            pbar.update(len(chunk))
    return ret


def _assemble_threads(metamodels, evaluators: EvaluatorPool, verbosity, strategy,
                      history, state, n_workers: int) -> List[Tuple[Any, Any]]:
    n_metamodels = len(metamodels)
    ret: List[Any] = [None] * n_metamodels
    parts = partition(n_metamodels, min(n_metamodels, n_workers))
    lock = threading.Lock()

    with _progress_bar(n_metamodels, verbosity) as pbar:

        def run_partition(worker_id: int, indices: range) -> None:
            evaluator = evaluators.get(worker_id)
            for i in indices:
                ret[i] = run_event(metamodels[i], evaluator, strategy, history, state, verbosity)
                with lock:
                    pbar.update(1)

        Parallel(n_jobs=len(parts), backend="threading")(
            delayed(run_partition)(worker_id, indices) for worker_id, indices in enumerate(parts)
        )
    return ret


def assemble_events(metamodels: Sequence[Any], evaluators: EvaluatorPool, verbosity: int,
                    strategy, history: History, state,
                    acceleration: Acceleration) -> List[Tuple[Any, Any]]:
    """
    Evaluate a batch of metamodels under ``acceleration``.

    Args:
        metamodels: Candidates proposed by the tuning strategy.
        evaluators: Pool of per-worker evaluators for this search.
        verbosity: Progress is shown at verbosity >= 1.
        strategy: Tuning strategy, used to build history entries.
        history: History so far (read only).
        state: Search state of the strategy.
        acceleration: Concurrency policy.

    Returns:
        List of (model, entry) pairs in submission order.

    Raises:
        EvaluationError: If any event fails; the whole batch is abandoned.
    """
    metamodels = list(metamodels)
    if not metamodels:
        return []

    n_workers = acceleration.resolve_workers()
    if acceleration.policy == constants.POLICY_PROCESSES and n_workers > 1:
        return _assemble_processes(metamodels, evaluators, verbosity, strategy, history, state,
                                   min(n_workers, len(metamodels)))
    if acceleration.policy == constants.POLICY_THREADS and n_workers > 1:
        return _assemble_threads(metamodels, evaluators, verbosity, strategy, history, state, n_workers)
    return _assemble_sequential(metamodels, evaluators, verbosity, strategy, history, state)
