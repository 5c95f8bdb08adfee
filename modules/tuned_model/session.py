import logging
from typing import Any, Dict, Optional

from modules.search_engine import History
from modules.tuned_model.tuned_model import MetaState, TrainedArtifact, TunedModel
from utils.exceptions import NotTrainedError


class TuningSession:
    """
    Binds a ``TunedModel`` to one dataset and handles repeated fit requests.

    The first ``fit()`` runs a fresh search; later calls go through
    ``TunedModel.update`` so that raising ``n`` continues the search. The
    stored fit result, meta-state and report are replaced only when a call
    succeeds, so a failed call leaves the previous search intact.
    """

    def __init__(self, tuned_model: TunedModel, X, y, sample_weight=None,
                 logger: Optional[logging.Logger] = None):
        self.tuned_model = tuned_model
        self.X = X
        self.y = y
        self.sample_weight = sample_weight
        self.logger = logger or tuned_model.logger

        self.fitresult: Optional[TrainedArtifact] = None
        self.meta_state: Optional[MetaState] = None
        self.report: Optional[Dict[str, Any]] = None
        self.n_fits = 0

    @property
    def is_fitted(self) -> bool:
        return self.meta_state is not None

    @property
    def history(self) -> History:
        return self.meta_state.history if self.is_fitted else History()

    def fit(self, verbosity: int = 1) -> "TuningSession":
        if not self.is_fitted:
            outcome = self.tuned_model.fit(verbosity, self.X, self.y, self.sample_weight)
        else:
            outcome = self.tuned_model.update(
                verbosity, self.fitresult, self.meta_state, self.X, self.y, self.sample_weight
            )
        self.fitresult, self.meta_state, self.report = outcome
        self.n_fits += 1
        self.logger.info(
            f"Tuning fit #{self.n_fits} complete: {len(self.history)} models in history."
        )
        return self

    def _require_fit(self) -> TrainedArtifact:
        if self.fitresult is None:
            raise NotTrainedError("TuningSession has not been fitted yet; call fit() first.")
        return self.fitresult

    def predict(self, X):
        return self.tuned_model.predict(self._require_fit(), X)

    def predict_proba(self, X):
        return self.tuned_model.predict_proba(self._require_fit(), X)

    def fitted_params(self) -> Dict[str, Any]:
        return self.tuned_model.fitted_params(self._require_fit())
