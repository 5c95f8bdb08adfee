"""
Configuration Manager Module
============================

Responsibility:
- Loading and schema validation of JSON run configurations.
- Logical validation of tuning, resampling, measure and budget settings.
- Resource guardrails (grid size, memory).
- Translation of a configuration into a TunedModel.
"""

from .config_manager import ConfigurationManager, build_resampling, build_strategy, build_tuned_model

__all__ = ['ConfigurationManager', 'build_resampling', 'build_strategy', 'build_tuned_model']
