"""
Tuning Strategy Module
======================

Responsibility:
- The protocol every tuning strategy satisfies (setup, candidate proposal,
  result construction, best selection, summary).
- Reference strategies: Explicit list, exhaustive Grid, RandomSearch.
- Hyperparameter range types.
"""

from .base import TuningStrategy, TuningResult, metamodel_model, metamodel_metadata
from .ranges import NumericRange, parse_range
from .explicit import Explicit
from .grid import Grid
from .random_search import RandomSearch

__all__ = [
    'TuningStrategy',
    'TuningResult',
    'metamodel_model',
    'metamodel_metadata',
    'NumericRange',
    'parse_range',
    'Explicit',
    'Grid',
    'RandomSearch'
]
