import logging
from typing import Optional

from modules.search_engine.acceleration import Acceleration
from modules.search_engine.batch_dispatcher import EvaluatorPool, assemble_events
from modules.search_engine.history import History
from utils import constants

logger = logging.getLogger(__name__)


def _format_count(n) -> str:
    return "unbounded" if n == constants.UNBOUNDED else str(int(n))


def build(history: Optional[History], n, strategy, model, state, verbosity: int,
          acceleration: Acceleration, evaluators: EvaluatorPool) -> History:
    """
    Grow ``history`` until it holds ``n`` entries or the strategy runs dry.

    Batches are requested, evaluated and appended strictly one after
    another, so each request sees every earlier result. Existing entries
    are never removed or reordered.

    Args:
        history: History to build on (``None`` for a fresh search).
        n: Target number of entries (may be ``UNBOUNDED``).
        strategy: Tuning strategy supplying candidates.
        model: Prototype model of the search.
        state: Search state from ``strategy.setup``.
        verbosity: Verbosity level.
        acceleration: Concurrency policy for each batch.
        evaluators: Per-worker evaluator pool.

    Returns:
        The extended History (the input object itself if nothing was added).
    """
    history = History.coerce(history)
    j = len(history)
    models_exhausted = False

    while j < n and not models_exhausted:
        remaining = n - j
        metamodels = list(strategy.propose_batch(state, history, remaining, verbosity))
        delta_j = len(metamodels)

        if delta_j < remaining:
            models_exhausted = True
            if verbosity > constants.VERBOSITY_SILENT:
                logger.info(
                    f"Only {j + delta_j} (of {_format_count(n)}) models evaluated. "
                    f"Model supply exhausted."
                )
        if delta_j == 0:
            break
        if delta_j > remaining:
            metamodels = metamodels[:int(remaining)]
            delta_j = len(metamodels)

        logger.debug(
            f"Dispatching batch of {delta_j} {type(model).__name__} configurations "
            f"({acceleration.policy})"
        )
        batch = assemble_events(metamodels, evaluators, verbosity, strategy, history, state, acceleration)
        history = history.extend(batch)
        j += delta_j

    return history
