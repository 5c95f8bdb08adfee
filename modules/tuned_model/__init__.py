"""
Tuned Model Module
==================

Responsibility:
- The tuning controller: configuration, fresh fit, incremental update.
- Best-model selection and optional retraining on all data.
- A data-bound session that routes repeated fit requests.
"""

from .tuned_model import TunedModel, MetaState, TrainedArtifact
from .session import TuningSession

__all__ = ['TunedModel', 'MetaState', 'TrainedArtifact', 'TuningSession']
