"""
Search Engine Module
====================

Responsibility:
- Append-only history of evaluated configurations.
- Running one evaluation event on an evaluator.
- Dispatching batches of events sequentially, across processes or threads.
- The search loop that requests, evaluates and appends batches.
"""

from .acceleration import Acceleration
from .history import History, HistoryRecord, metamodel_model, metamodel_metadata
from .event_runner import run_event
from .batch_dispatcher import EvaluatorPool, assemble_events
from .search_loop import build

__all__ = [
    'Acceleration',
    'History',
    'HistoryRecord',
    'metamodel_model',
    'metamodel_metadata',
    'run_event',
    'EvaluatorPool',
    'assemble_events',
    'build'
]
