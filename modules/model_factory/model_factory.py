import inspect
from typing import Dict, Any, List

from sklearn.ensemble import (
    ExtraTreesClassifier,
    ExtraTreesRegressor,
    GradientBoostingClassifier,
    GradientBoostingRegressor,
    HistGradientBoostingClassifier,
    HistGradientBoostingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.neighbors import KNeighborsClassifier, KNeighborsRegressor
from sklearn.linear_model import (
    ElasticNet,
    Lasso,
    LinearRegression,
    LogisticRegression,
    Ridge,
    RidgeClassifier,
)
from sklearn.svm import SVC, SVR
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from sklearn.neural_network import MLPClassifier, MLPRegressor
from sklearn.kernel_ridge import KernelRidge

from utils.exceptions import ConfigurationError


class ModelFactory:
    """
    Builds the prototype model of a search from its scikit-learn class name.
    """

    REGRESSORS = {
        'ExtraTreesRegressor': ExtraTreesRegressor,
        'RandomForestRegressor': RandomForestRegressor,
        'GradientBoostingRegressor': GradientBoostingRegressor,
        'HistGradientBoostingRegressor': HistGradientBoostingRegressor,
        'DecisionTreeRegressor': DecisionTreeRegressor,
        'KNeighborsRegressor': KNeighborsRegressor,
        'MLPRegressor': MLPRegressor,
        'LinearRegression': LinearRegression,
        'Ridge': Ridge,
        'Lasso': Lasso,
        'ElasticNet': ElasticNet,
        'KernelRidge': KernelRidge,
        'SVR': SVR,
    }

    CLASSIFIERS = {
        'ExtraTreesClassifier': ExtraTreesClassifier,
        'RandomForestClassifier': RandomForestClassifier,
        'GradientBoostingClassifier': GradientBoostingClassifier,
        'HistGradientBoostingClassifier': HistGradientBoostingClassifier,
        'DecisionTreeClassifier': DecisionTreeClassifier,
        'KNeighborsClassifier': KNeighborsClassifier,
        'MLPClassifier': MLPClassifier,
        'LogisticRegression': LogisticRegression,
        'RidgeClassifier': RidgeClassifier,
        'SVC': SVC,
    }

    @classmethod
    def create(cls, model_name: str, params: Dict[str, Any] = None) -> Any:
        """
        Create and return an instantiated model.

        Parameters the class does not accept are dropped.
        """
        if params is None:
            params = {}

        model_class = cls.REGRESSORS.get(model_name) or cls.CLASSIFIERS.get(model_name)
        if model_class is None:
            raise ConfigurationError(
                f"Unknown model name: {model_name}. Available: {cls.get_available_models()}"
            )
        return model_class(**cls._filter_params(model_class, params))

    @classmethod
    def get_available_models(cls) -> List[str]:
        return list(cls.REGRESSORS.keys()) + list(cls.CLASSIFIERS.keys())

    @classmethod
    def is_classifier(cls, model_name: str) -> bool:
        return model_name in cls.CLASSIFIERS

    @staticmethod
    def _filter_params(model_class, params: Dict[str, Any]) -> Dict[str, Any]:
        sig = inspect.signature(model_class.__init__)

        valid_keys = [
            p.name for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        ]
        if any(p.kind == p.VAR_KEYWORD for p in sig.parameters.values()):
            return params

        return {k: v for k, v in params.items() if k in valid_keys}
