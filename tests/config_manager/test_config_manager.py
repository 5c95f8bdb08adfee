import copy
import hashlib
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from sklearn.ensemble import RandomForestRegressor
from sklearn.model_selection import KFold, StratifiedKFold

from modules.config_manager import ConfigurationManager, build_resampling, build_tuned_model
from modules.resampling import Holdout
from modules.search_engine import Acceleration
from modules.tuned_model import TunedModel
from modules.tuning_strategy import Explicit, Grid, NumericRange, RandomSearch
from utils.exceptions import ConfigurationError

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "config" / "schema.json"


@pytest.fixture
def valid_config(tmp_path):
    return {
        "seed": 7,
        "model": {"name": "RandomForestRegressor", "params": {"n_estimators": 5}},
        "tuning": {"strategy": "grid", "resolution": 3},
        "range": {
            "max_depth": {"lower": 2, "upper": 6, "type": "int"},
            "min_samples_leaf": [1, 2],
        },
        "resampling": {"strategy": "cv", "n_folds": 3, "shuffle": True},
        "measures": ["mae", "r2"],
        "n": None,
        "acceleration": {"policy": "threads", "n_workers": 2},
        "data": {"file_path": "data.csv", "target": "y", "drop_columns": []},
        "outputs": {"base_results_dir": str(tmp_path / "results")},
    }


@pytest.fixture
def write_config(tmp_path):
    def _write(config):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config))
        return ConfigurationManager(str(path), str(SCHEMA_PATH))
    return _write


class TestLoadAndValidate:

    def test_valid_config(self, write_config, valid_config):
        config = write_config(valid_config).load_and_validate()
        assert config["model"]["name"] == "RandomForestRegressor"
        assert "max_memory_mb" in config["resources"]

    def test_seeds_propagated(self, write_config, valid_config):
        config = write_config(valid_config).load_and_validate()
        assert config["tuning"]["seed"] == 7
        assert config["resampling"]["seed"] == 1007

    def test_explicit_seeds_are_kept(self, write_config, valid_config):
        valid_config["tuning"]["seed"] = 1
        config = write_config(valid_config).load_and_validate()
        assert config["tuning"]["seed"] == 1

    def test_missing_file(self, tmp_path):
        manager = ConfigurationManager(str(tmp_path / "nope.json"), str(SCHEMA_PATH))
        with pytest.raises(ConfigurationError, match="File not found"):
            manager.load_and_validate()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            ConfigurationManager(str(path), str(SCHEMA_PATH)).load_and_validate()

    @pytest.mark.parametrize("mutate", [
        lambda c: c["tuning"].update(strategy="bayesian"),
        lambda c: c.pop("measures"),
        lambda c: c["resampling"].update(strategy="bootstrap"),
        lambda c: c["range"].update(max_depth={"lower": 2}),
    ])
    def test_schema_violations(self, write_config, valid_config, mutate):
        mutate(valid_config)
        with pytest.raises(ConfigurationError, match="Schema validation failed"):
            write_config(valid_config).load_and_validate()

    @pytest.mark.parametrize("mutate, message", [
        (lambda c: c["model"].update(name="QuantumForest"), "Unknown model name"),
        (lambda c: c.update(measures=["mae", "happiness"]), "Unknown measures"),
        (lambda c: c.update(n=0), "n must be >= 1"),
        (lambda c: c.update(repeats=0), "repeats must be >= 1"),
        (lambda c: c["acceleration"].update(n_workers=0), "n_workers must be a positive integer"),
        (lambda c: c["tuning"].update(strategy="explicit"), "list of models"),
        (lambda c: c["data"].update(drop_columns=["y"]), "cannot be dropped"),
        (lambda c: c.update(range={"max_depth": {"lower": 5, "upper": 1}}), "lower bound"),
    ])
    def test_logic_violations(self, write_config, valid_config, mutate, message):
        mutate(valid_config)
        with pytest.raises(ConfigurationError, match=message):
            write_config(valid_config).load_and_validate()

    def test_grid_explosion_guard(self, write_config, valid_config):
        valid_config["resources"] = {"max_hpo_configs": 4}
        with pytest.raises(ConfigurationError, match="Grid Explosion"):
            write_config(valid_config).load_and_validate()

    def test_budget_lifts_grid_explosion_guard(self, write_config, valid_config):
        valid_config["resources"] = {"max_hpo_configs": 4}
        valid_config["n"] = 3
        assert write_config(valid_config).load_and_validate()["n"] == 3

    def test_memory_warning(self, write_config, valid_config):
        valid_config["resources"] = {"max_memory_mb": 4096}
        manager = write_config(valid_config)
        manager.logger = MagicMock()
        with patch("modules.config_manager.config_manager.psutil.virtual_memory") as vm:
            vm.return_value.total = 1024 * 1024 * 1024
            manager.load_and_validate()
        manager.logger.warning.assert_called_once()


class TestArtifacts:

    def test_save_artifacts(self, write_config, valid_config, tmp_path):
        manager = write_config(valid_config)
        manager.load_and_validate()
        run_id = manager.generate_run_id()

        config_dir = manager.save_artifacts(str(tmp_path / "run"))

        saved = json.loads((config_dir / "config_used.json").read_text())
        assert saved == manager.config
        expected_hash = hashlib.sha256(json.dumps(manager.config, sort_keys=True).encode()).hexdigest()
        assert (config_dir / "config_hash.txt").read_text() == expected_hash
        metadata = json.loads((config_dir / "run_metadata.json").read_text())
        assert metadata["run_id"] == run_id
        assert metadata["config_hash"] == expected_hash

    def test_run_id_is_stable(self, write_config, valid_config):
        manager = write_config(valid_config)
        assert manager.generate_run_id() == manager.generate_run_id()


class TestBuildTunedModel:

    def test_grid_configuration(self, write_config, valid_config):
        manager = write_config(valid_config)
        manager.load_and_validate()
        tm = manager.build_tuned_model()

        assert isinstance(tm, TunedModel)
        assert isinstance(tm.model, RandomForestRegressor)
        assert tm.model.n_estimators == 5
        assert tm.tuning == Grid(resolution=3, shuffle=False, random_state=7)
        assert tm.range["max_depth"] == NumericRange(2, 6, value_type="int")
        assert isinstance(tm.resampling, KFold)
        assert tm.resampling.random_state == 1007
        assert [m.name for m in tm.measure] == ["mae", "r2"]
        assert tm.acceleration == Acceleration.threads(2)
        assert tm.acceleration_resampling == Acceleration.sequential()
        assert tm.resolve_n() == 6

    def test_random_configuration(self, valid_config):
        valid_config["tuning"] = {"strategy": "random", "seed": 3}
        valid_config["n"] = 12
        tm = build_tuned_model(valid_config)
        assert tm.tuning == RandomSearch(random_state=3)
        assert tm.resolve_n() == 12

    def test_explicit_configuration(self, valid_config):
        valid_config["tuning"] = {"strategy": "explicit"}
        valid_config["range"] = [
            {"name": "Ridge", "params": {"alpha": 0.5}},
            {"name": "Lasso"},
        ]
        tm = build_tuned_model(valid_config)
        assert isinstance(tm.tuning, Explicit)
        assert [type(m).__name__ for m in tm.range] == ["Ridge", "Lasso"]
        assert tm.resolve_n() == 2

    def test_requires_loaded_config(self, tmp_path):
        with pytest.raises(ConfigurationError, match="No configuration loaded"):
            ConfigurationManager(str(tmp_path / "c.json"), str(SCHEMA_PATH)).build_tuned_model()


class TestBuildResampling:

    def test_holdout_defaults(self):
        holdout = build_resampling({})
        assert isinstance(holdout, Holdout)
        assert holdout.fraction_train == 0.7

    def test_seed_ignored_without_shuffle(self):
        assert build_resampling({"strategy": "cv", "seed": 3}).random_state is None

    def test_stratified(self):
        splitter = build_resampling({"strategy": "stratified_cv", "n_folds": 4, "shuffle": True, "seed": 1})
        assert isinstance(splitter, StratifiedKFold)
        assert splitter.n_splits == 4
        assert splitter.random_state == 1
