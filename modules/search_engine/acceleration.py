from dataclasses import dataclass
from typing import Any, Dict, Optional

from joblib import effective_n_jobs

from utils import constants
from utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class Acceleration:
    """
    Concurrency policy selector.

    ``policy`` is one of ``sequential``, ``processes`` or ``threads``.
    ``n_workers=None`` means one worker per available core.
    """
    policy: str = constants.POLICY_SEQUENTIAL
    n_workers: Optional[int] = None

    def __post_init__(self):
        if self.policy not in constants.POLICIES:
            raise ConfigurationError(
                f"Unknown acceleration policy '{self.policy}'. Available: {list(constants.POLICIES)}"
            )
        if self.n_workers is not None and self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1 when provided, got {self.n_workers}.")

    @classmethod
    def sequential(cls) -> "Acceleration":
        return cls(constants.POLICY_SEQUENTIAL)

    @classmethod
    def processes(cls, n_workers: Optional[int] = None) -> "Acceleration":
        return cls(constants.POLICY_PROCESSES, n_workers)

    @classmethod
    def threads(cls, n_workers: Optional[int] = None) -> "Acceleration":
        return cls(constants.POLICY_THREADS, n_workers)

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]]) -> "Acceleration":
        if not cfg:
            return cls.sequential()
        return cls(cfg.get('policy', constants.POLICY_SEQUENTIAL), cfg.get('n_workers'))

    @property
    def is_sequential(self) -> bool:
        return self.policy == constants.POLICY_SEQUENTIAL

    def resolve_workers(self) -> int:
        """Number of workers actually available under this policy."""
        if self.is_sequential:
            return 1
        return effective_n_jobs(-1 if self.n_workers is None else self.n_workers)

    def joblib_backend(self) -> str:
        return "threading" if self.policy == constants.POLICY_THREADS else "loky"
