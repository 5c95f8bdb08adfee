"""
Resampling Module
=================

Responsibility:
- Cross-validation style performance evaluation of one model configuration.
- Holdout splitter alongside any scikit-learn splitter.
- Registry of named loss/score measures with orientation.
"""

from .measures import Measure, MEASURES, get_measure, as_measures
from .resampler import Holdout, PerformanceEvaluation, Resampler

__all__ = [
    'Measure',
    'MEASURES',
    'get_measure',
    'as_measures',
    'Holdout',
    'PerformanceEvaluation',
    'Resampler'
]
