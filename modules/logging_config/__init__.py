"""
Logging Configuration Module
============================

Responsibility:
- Root logger setup for command-line runs (console and rotating file).
"""

from .logging_config import ColoredFormatter, LoggingConfigurator

__all__ = ['ColoredFormatter', 'LoggingConfigurator']
