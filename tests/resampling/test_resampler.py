import numpy as np
import pandas as pd
import pytest
from sklearn.dummy import DummyRegressor
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.model_selection import KFold

from modules.resampling import Holdout, PerformanceEvaluation, Resampler
from modules.search_engine import Acceleration
from utils.exceptions import ConfigurationError


@pytest.fixture
def regression_data():
    rng = np.random.RandomState(0)
    X = pd.DataFrame({'a': rng.rand(30), 'b': rng.rand(30)})
    y = pd.Series(3.0 * X['a'] - 2.0 * X['b'])
    return X, y


class TestHoldout:

    def test_split_sizes_without_shuffle(self):
        (train, test), = list(Holdout(0.7).split(np.zeros((10, 1))))
        assert train.tolist() == list(range(7))
        assert test.tolist() == [7, 8, 9]

    def test_shuffle_is_seeded(self):
        first = next(Holdout(0.5, shuffle=True, random_state=3).split(np.zeros((10, 1))))
        second = next(Holdout(0.5, shuffle=True, random_state=3).split(np.zeros((10, 1))))
        assert first[0].tolist() == second[0].tolist()
        assert sorted(first[0].tolist() + first[1].tolist()) == list(range(10))

    def test_invalid_fraction(self):
        with pytest.raises(ConfigurationError):
            Holdout(1.0)

    def test_empty_side_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            list(Holdout(0.9).split(np.zeros((2, 1))))

    def test_get_n_splits(self):
        assert Holdout().get_n_splits() == 1


class TestResampler:

    def test_exact_model_scores_zero(self, regression_data):
        X, y = regression_data
        evaluation = Resampler(LinearRegression(), X, y, measures=['mae', 'r2']).evaluate()

        assert isinstance(evaluation, PerformanceEvaluation)
        assert evaluation.measures == ['mae', 'r2']
        assert evaluation.orientations == ['loss', 'score']
        assert evaluation.measurement[0] == pytest.approx(0.0, abs=1e-9)
        assert evaluation.measurement[1] == pytest.approx(1.0)
        assert evaluation.n_splits == 1

    def test_cv_measurement_is_fold_mean(self, regression_data):
        X, y = regression_data
        evaluation = Resampler(DummyRegressor(), X, y, resampling=KFold(3), measures='mae').evaluate()

        assert evaluation.n_splits == 3
        assert len(evaluation.per_fold[0]) == 3
        assert evaluation.measurement[0] == pytest.approx(np.mean(evaluation.per_fold[0]))
        assert len(evaluation.fit_times) == 3
        assert evaluation.as_dict() == {'mae': evaluation.measurement[0]}

    def test_repeats_multiply_splits(self, regression_data):
        X, y = regression_data
        evaluation = Resampler(DummyRegressor(), X, y, resampling=KFold(3), measures='mae',
                               repeats=2).evaluate()
        assert evaluation.n_splits == 6

    def test_slot_model_is_never_fitted(self, regression_data):
        X, y = regression_data
        resampler = Resampler(LinearRegression(), X, y, measures='mae')
        resampler.evaluate()
        assert not hasattr(resampler.model, 'coef_')

    def test_parallel_folds_match_sequential(self, regression_data):
        X, y = regression_data
        sequential = Resampler(DummyRegressor(), X, y, resampling=KFold(3), measures='mae').evaluate()
        threaded = Resampler(DummyRegressor(), X, y, resampling=KFold(3), measures='mae',
                             acceleration=Acceleration.threads(3)).evaluate()
        assert threaded.per_fold == sequential.per_fold

    def test_weights_change_the_measurement(self):
        X = np.zeros((10, 1))
        y = np.array([0.0] * 7 + [1.0, 5.0, 1.0])
        w = np.array([1.0] * 7 + [1.0, 0.0, 1.0])
        model = DummyRegressor(strategy="constant", constant=1.0)
        unweighted = Resampler(model, X, y, measures='mae').evaluate()
        weighted = Resampler(model, X, y, measures='mae', weights=w).evaluate()
        assert unweighted.measurement[0] == pytest.approx(4.0 / 3.0)
        assert weighted.measurement[0] == pytest.approx(0.0)

    def test_probabilistic_measure_requires_predict_proba(self, regression_data):
        X, y = regression_data
        labels = (y > y.median()).astype(int)
        with pytest.raises(ConfigurationError, match="incompatible with operation"):
            Resampler(LogisticRegression(), X, labels, measures='log_loss')

        evaluation = Resampler(LogisticRegression(), X, labels, measures='log_loss',
                               operation='predict_proba').evaluate()
        assert evaluation.operation == 'predict_proba'

    def test_check_measure_can_be_disabled(self, regression_data):
        X, y = regression_data
        resampler = Resampler(LinearRegression(), X, y, measures='log_loss', check_measure=False)
        assert resampler.measures[0].name == 'log_loss'

    def test_missing_operation(self, regression_data):
        X, y = regression_data
        with pytest.raises(ConfigurationError, match="does not support operation"):
            Resampler(LinearRegression(), X, y, measures='mae', operation='predict_proba',
                      check_measure=True)

    @pytest.mark.parametrize("kwargs", [{'measures': None}, {'measures': 'mae', 'repeats': 0}])
    def test_invalid_configuration(self, regression_data, kwargs):
        X, y = regression_data
        with pytest.raises(ConfigurationError):
            Resampler(LinearRegression(), X, y, **kwargs)

    def test_clone_is_independent(self, regression_data):
        X, y = regression_data
        resampler = Resampler(LinearRegression(), X, y, measures='mae', repeats=2)
        copy = resampler.clone()
        copy.model = DummyRegressor()
        assert isinstance(resampler.model, LinearRegression)
        assert copy.repeats == 2
        assert copy.X is resampler.X
