"""
Custom exception hierarchy for the hyperparameter tuning controller.
"""

class TuningException(Exception):
    """Base exception for all tuning errors."""
    pass

class ConfigurationError(TuningException):
    """Controller, range or configuration file validation failed."""
    pass

class EmptyHistoryError(TuningException):
    """Best-model selection was requested on an empty history."""
    pass

class EvaluationError(TuningException):
    """Resampling evaluation of a single model configuration failed."""
    pass

class NotTrainedError(TuningException):
    """Prediction requested but the best model was never trained."""
    pass

class DataLoadingError(TuningException):
    """Input data could not be loaded for tuning."""
    pass

class ModelTrainingError(TuningException):
    """Training the selected best model on the full data failed."""
    pass
