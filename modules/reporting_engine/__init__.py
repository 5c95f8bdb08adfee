"""
Reporting Engine Module
=======================

Responsibility:
- Persisting the history of a tuning run as a table.
- Persisting the best configuration and its measurements.
"""

from .reporting_engine import ReportingEngine

__all__ = ['ReportingEngine']
