import pickle
import threading

import numpy as np
import pytest
from sklearn.base import clone
from sklearn.dummy import DummyRegressor

from modules.resampling import Resampler
from modules.search_engine import Acceleration, EvaluatorPool, History, assemble_events
from modules.search_engine import batch_dispatcher
from modules.search_engine.batch_dispatcher import partition
from modules.tuning_strategy import Grid
from utils.exceptions import EvaluationError


@pytest.fixture
def resampler():
    # All-zero target: a constant prediction k scores MAE == k
    X = np.zeros((20, 1))
    y = np.zeros(20)
    return Resampler(DummyRegressor(strategy="constant", constant=0.0), X, y, measures='mae')


def constant_metamodels(values):
    model = DummyRegressor(strategy="constant", constant=0.0)
    return [(clone(model).set_params(constant=float(v)), {'constant': float(v)}) for v in values]


def run_batch(resampler, acceleration, values):
    return assemble_events(
        constant_metamodels(values), EvaluatorPool(resampler), 0, Grid(), History(), None, acceleration
    )


class TestPartition:

    def test_even_split(self):
        assert partition(6, 3) == [range(0, 2), range(2, 4), range(4, 6)]

    def test_uneven_split_covers_everything_once(self):
        parts = partition(7, 3)
        assert [i for p in parts for i in p] == list(range(7))
        assert len(parts) == 3

    def test_more_parts_than_items(self):
        assert partition(2, 5) == [range(0, 1), range(1, 2)]

    def test_empty(self):
        assert partition(0, 4) == []


class TestEvaluatorPool:

    def test_template_is_worker_zero(self, resampler):
        pool = EvaluatorPool(resampler)
        assert pool.get(0) is resampler
        assert pool.template is resampler
        assert len(pool) == 1

    def test_other_workers_get_lazy_clones(self, resampler):
        pool = EvaluatorPool(resampler)
        assert 2 not in pool
        second = pool.get(2)
        assert second is not resampler
        assert isinstance(second, Resampler)
        assert pool.get(2) is second
        assert len(pool) == 2

    def test_pool_survives_pickling(self, resampler):
        pool = EvaluatorPool(resampler)
        pool.get(1)
        restored = pickle.loads(pickle.dumps(pool))
        assert len(restored) == 2
        assert restored.get(3) is not None


class TestAssembleEvents:

    def test_sequential_keeps_order(self, resampler):
        values = [4, 1, 3, 2]
        results = run_batch(resampler, Acceleration.sequential(), values)
        assert [entry.measurement[0] for _, entry in results] == [4.0, 1.0, 3.0, 2.0]
        assert [m.constant for m, _ in results] == [4.0, 1.0, 3.0, 2.0]

    @pytest.mark.parametrize("acceleration", [Acceleration.threads(3), Acceleration.processes(2)])
    def test_parallel_policies_match_sequential(self, resampler, acceleration):
        values = [5, 3, 8, 1, 9, 2, 7]
        expected = run_batch(resampler, Acceleration.sequential(), values)
        actual = run_batch(resampler, acceleration, values)
        assert [e for _, e in actual] == [e for _, e in expected]
        assert [m.get_params() for m, _ in actual] == [m.get_params() for m, _ in expected]

    def test_processes_send_one_chunk_per_worker(self, resampler, monkeypatch):
        submitted = []

        class InlineParallel:
            """Runs tasks in this process and records what was submitted."""

            def __init__(self, n_jobs, backend, **kwargs):
                self.n_jobs = n_jobs
                self.backend = backend

            def __call__(self, tasks):
                tasks = list(tasks)
                submitted.append((self.backend, self.n_jobs, [len(args[0]) for _, args, _ in tasks]))
                return [func(*args, **kwargs) for func, args, kwargs in tasks]

        monkeypatch.setattr(batch_dispatcher, "Parallel", InlineParallel)
        values = [5, 3, 8, 1, 9, 2, 7]
        results = run_batch(resampler, Acceleration.processes(3), values)

        assert submitted == [("loky", 3, [3, 3, 1])]
        assert [e.measurement[0] for _, e in results] == [float(v) for v in values]

    def test_threads_use_one_evaluator_per_partition(self, resampler):
        pool = EvaluatorPool(resampler)
        assemble_events(constant_metamodels(range(6)), pool, 0, Grid(), History(), None,
                        Acceleration.threads(3))
        assert len(pool) == 3

        # Evaluators are reused by later batches of the same search
        assemble_events(constant_metamodels(range(6)), pool, 0, Grid(), History(), None,
                        Acceleration.threads(3))
        assert len(pool) == 3

    def test_threads_never_share_an_evaluator(self, resampler):
        seen = {}
        lock = threading.Lock()

        class TrackingResampler(Resampler):
            def evaluate(self):
                with lock:
                    seen.setdefault(id(self), set()).add(threading.get_ident())
                return super().evaluate()

            def clone(self):
                return TrackingResampler(self.model, self.X, self.y, measures=self.measures)

        template = TrackingResampler(resampler.model, resampler.X, resampler.y, measures='mae')
        assemble_events(constant_metamodels(range(8)), EvaluatorPool(template), 0, Grid(),
                        History(), None, Acceleration.threads(4))
        assert all(len(threads) == 1 for threads in seen.values())

    def test_single_worker_degrades_to_sequential(self, resampler):
        pool = EvaluatorPool(resampler)
        results = assemble_events(constant_metamodels([2, 1]), pool, 0, Grid(), History(), None,
                                  Acceleration.threads(1))
        assert [e.measurement[0] for _, e in results] == [2.0, 1.0]
        assert len(pool) == 1

    def test_empty_batch(self, resampler):
        assert run_batch(resampler, Acceleration.threads(2), []) == []

    @pytest.mark.parametrize("acceleration", [Acceleration.sequential(), Acceleration.threads(2)])
    def test_failing_event_aborts_batch(self, resampler, acceleration):
        metamodels = constant_metamodels([1, 2, 3])
        # An unknown strategy makes DummyRegressor.fit raise
        metamodels[1][0].set_params(strategy="not-a-strategy")
        with pytest.raises(EvaluationError):
            assemble_events(metamodels, EvaluatorPool(resampler), 0, Grid(), History(), None, acceleration)
