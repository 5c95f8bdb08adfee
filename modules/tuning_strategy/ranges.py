from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

import numpy as np
from scipy import stats

from utils.exceptions import ConfigurationError

LINEAR = "linear"
LOG = "log"


@dataclass(frozen=True)
class NumericRange:
    """
    A one-dimensional numeric hyperparameter range.

    Grids discretize it into ``resolution`` points; random search samples
    it uniformly on the chosen scale.
    """
    lower: float
    upper: float
    scale: str = LINEAR
    value_type: str = "float"

    def __post_init__(self):
        if self.lower >= self.upper:
            raise ConfigurationError(f"Range lower bound ({self.lower}) must be < upper bound ({self.upper}).")
        if self.scale not in (LINEAR, LOG):
            raise ConfigurationError(f"Unknown range scale '{self.scale}'. Use '{LINEAR}' or '{LOG}'.")
        if self.scale == LOG and self.lower <= 0:
            raise ConfigurationError(f"Log-scale range requires a positive lower bound, got {self.lower}.")
        if self.value_type not in ("float", "int"):
            raise ConfigurationError(f"Unknown range type '{self.value_type}'. Use 'float' or 'int'.")

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "NumericRange":
        try:
            return cls(
                lower=cfg['lower'],
                upper=cfg['upper'],
                scale=cfg.get('scale', LINEAR),
                value_type=cfg.get('type', 'float'),
            )
        except KeyError as e:
            raise ConfigurationError(f"Numeric range is missing {e}.") from None

    def grid(self, resolution: int) -> List[Any]:
        """Evenly spaced points on the range's scale, both ends included."""
        if resolution < 1:
            raise ConfigurationError(f"resolution must be >= 1, got {resolution}.")
        if self.scale == LOG:
            points = np.logspace(np.log10(self.lower), np.log10(self.upper), resolution)
        else:
            points = np.linspace(self.lower, self.upper, resolution)

        if self.value_type == "int":
            # Rounding can collapse neighbours on narrow ranges
            values = []
            for p in points:
                v = int(round(p))
                if v not in values:
                    values.append(v)
            return values
        return [float(p) for p in points]

    def sample(self, rng: np.random.RandomState) -> Any:
        """Draw one value on the range's scale."""
        if self.value_type == "int":
            if self.scale == LOG:
                return int(round(stats.loguniform(self.lower, self.upper).rvs(random_state=rng)))
            return int(stats.randint(int(self.lower), int(self.upper) + 1).rvs(random_state=rng))
        if self.scale == LOG:
            return float(stats.loguniform(self.lower, self.upper).rvs(random_state=rng))
        return float(stats.uniform(self.lower, self.upper - self.lower).rvs(random_state=rng))


def parse_range(cfg: Mapping[str, Any]) -> Dict[str, Any]:
    """Build a parameter range dict from its JSON form."""
    parsed: Dict[str, Any] = {}
    for name, spec in cfg.items():
        if isinstance(spec, Mapping):
            parsed[name] = NumericRange.from_config(spec)
        else:
            parsed[name] = list(spec)
    return parsed


def validate_param_range(model, param_range: Any) -> Dict[str, Any]:
    """
    Check that ``param_range`` maps known parameters of ``model`` to a
    non-empty value list or a ``NumericRange``.
    """
    if not isinstance(param_range, Mapping) or not param_range:
        raise ConfigurationError("Range must be a non-empty mapping of parameter names to values.")
    if not hasattr(model, 'get_params'):
        raise ConfigurationError(f"Model {type(model).__name__} does not expose get_params().")

    known = model.get_params(deep=True)
    unknown = [name for name in param_range if name not in known]
    if unknown:
        raise ConfigurationError(
            f"Range parameters {unknown} are not hyperparameters of {type(model).__name__}."
        )

    for name, values in param_range.items():
        if isinstance(values, NumericRange):
            continue
        if isinstance(values, (str, bytes)) or not hasattr(values, '__len__') or len(values) == 0:
            raise ConfigurationError(f"Range for '{name}' must be a non-empty list of values or a NumericRange.")
    return dict(param_range)
