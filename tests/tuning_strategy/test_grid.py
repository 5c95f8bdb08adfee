import pytest
from sklearn.linear_model import Ridge

from modules.search_engine import History
from modules.tuning_strategy import Grid, NumericRange
from utils.exceptions import ConfigurationError


@pytest.fixture
def param_range():
    return {'alpha': [0.1, 1.0, 10.0], 'fit_intercept': [True, False]}


class TestGrid:

    def test_default_count_is_grid_size(self, param_range):
        assert Grid().default_iteration_count(param_range) == 6
        assert Grid(resolution=4).default_iteration_count({'alpha': NumericRange(0.0, 1.0)}) == 4

    def test_default_count_rejects_non_mapping(self):
        with pytest.raises(ConfigurationError):
            Grid().default_iteration_count([Ridge()])

    def test_proposes_every_point_once(self, param_range):
        grid = Grid()
        state = grid.setup(Ridge(), param_range, 0)
        first = grid.propose_batch(state, History(), 4, 0)
        rest = grid.propose_batch(state, History(first), 4, 0)

        assert len(first) == 4
        assert len(rest) == 2
        assert grid.propose_batch(state, History(first + rest), 4, 0) == []

        points = [meta for _, meta in first + rest]
        assert len({tuple(sorted(p.items())) for p in points}) == 6

    def test_candidates_are_configured_clones(self, param_range):
        prototype = Ridge()
        grid = Grid()
        state = grid.setup(prototype, param_range, 0)
        model, point = grid.propose_batch(state, History(), 1, 0)[0]

        assert model is not prototype
        assert model.alpha == point['alpha']
        assert model.fit_intercept == point['fit_intercept']
        assert prototype.alpha == 1.0

    def test_keeps_parameter_order(self):
        grid = Grid()
        state = grid.setup(Ridge(), {'tol': [0.1], 'alpha': [1.0]}, 0)
        _, point = grid.propose_batch(state, History(), 1, 0)[0]
        assert list(point) == ['tol', 'alpha']

    def test_unbounded_request_returns_everything(self, param_range):
        grid = Grid()
        state = grid.setup(Ridge(), param_range, 0)
        assert len(grid.propose_batch(state, History(), float('inf'), 0)) == 6

    def test_shuffle_is_seeded_permutation(self, param_range):
        def order(seed):
            grid = Grid(shuffle=True, random_state=seed)
            state = grid.setup(Ridge(), param_range, 0)
            return [meta for _, meta in grid.propose_batch(state, History(), 6, 0)]

        plain = Grid()
        state = plain.setup(Ridge(), param_range, 0)
        unshuffled = [meta for _, meta in plain.propose_batch(state, History(), 6, 0)]

        assert order(1) == order(1)
        assert sorted(map(repr, order(1))) == sorted(map(repr, unshuffled))

    def test_numeric_range_discretized(self):
        grid = Grid(resolution=3)
        state = grid.setup(Ridge(), {'alpha': NumericRange(1.0, 3.0)}, 0)
        values = [meta['alpha'] for _, meta in grid.propose_batch(state, History(), 10, 0)]
        assert values == [1.0, 2.0, 3.0]

    def test_setup_rejects_unknown_parameter(self):
        with pytest.raises(ConfigurationError):
            Grid().setup(Ridge(), {'depth': [1, 2]}, 0)

    def test_next_point_follows_history_length(self, param_range):
        grid = Grid()
        state = grid.setup(Ridge(), param_range, 0)
        first = grid.propose_batch(state, History(), 2, 0)

        # Nothing was recorded, so the same points come back
        again = grid.propose_batch(state, History(), 2, 0)
        assert [meta for _, meta in again] == [meta for _, meta in first]

        after = grid.propose_batch(state, History(first), 2, 0)
        assert [meta for _, meta in after] == [meta for _, meta in grid.propose_batch(state, History(), 4, 0)][2:]
