import logging
from typing import Any, Tuple

from modules.search_engine.history import History, metamodel_metadata, metamodel_model
from utils import constants
from utils.exceptions import EvaluationError

logger = logging.getLogger(__name__)


def _describe_params(model) -> Any:
    if hasattr(model, 'get_params'):
        return model.get_params(deep=False)
    return repr(model)


def run_event(metamodel, evaluator, strategy, history: History, state,
              verbosity: int = 0) -> Tuple[Any, Any]:
    """
    Evaluate one metamodel and convert the outcome into a history entry.

    The evaluator's model slot is overwritten with the metamodel's model, so
    one evaluator must never serve two events at the same time.

    Returns:
        (model, entry) pair for the history.

    Raises:
        EvaluationError: If the evaluation fails for any reason.
    """
    model = metamodel_model(metamodel)
    metadata = metamodel_metadata(metamodel)

    evaluator.model = model
    try:
        evaluation = evaluator.evaluate()
    except Exception as e:
        raise EvaluationError(
            f"Evaluation of {type(model).__name__} with {_describe_params(model)} failed: {e}"
        ) from e

    entry = strategy.make_result(history, state, evaluation, metadata)

    if verbosity >= constants.VERBOSITY_PARAMS:
        logger.info(f"hyperparameters: {_describe_params(model)}")
    if verbosity >= constants.VERBOSITY_RESULTS:
        logger.info(f"result: {entry}")

    return model, entry
