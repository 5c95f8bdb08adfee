import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from sklearn.model_selection import KFold, StratifiedKFold

from modules.model_factory import ModelFactory
from modules.resampling import Holdout, MEASURES
from modules.search_engine import Acceleration
from modules.tuned_model import TunedModel
from modules.tuning_strategy import Explicit, Grid, NumericRange, RandomSearch, parse_range
from utils.exceptions import ConfigurationError
from utils import constants

STRATEGIES = ('explicit', 'grid', 'random')
RESAMPLING_STRATEGIES = ('holdout', 'cv', 'stratified_cv')


class ConfigurationManager:
    """
    Manages loading, validation and interpretation of a tuning run configuration.

    The JSON file is checked against ``config/schema.json`` first, then
    against the logical rules the schema cannot express. A validated
    configuration can be turned into a ready-to-fit ``TunedModel``.
    """

    DEFAULT_MAX_HPO_CONFIGS = 1000

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Load the config, validate schema, logic and resources, and propagate seeds.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        self._validate_schema()
        self._validate_logic()
        self._validate_resources()
        self._propagate_seeds()

        return self.config

    def generate_run_id(self) -> str:
        """Timestamp-based run identifier (YYYYMMDD_HHMMSS), created once."""
        if not self.run_id:
            self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> Path:
        """
        Save configuration artifacts to the run directory for reproducibility.

        Saves config_used.json, config_hash.txt (SHA256 of the sorted JSON)
        and run_metadata.json.
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        with open(config_dir / "config_used.json", 'w') as f:
            json.dump(self.config, f, indent=2)

        config_hash = hashlib.sha256(json.dumps(self.config, sort_keys=True).encode()).hexdigest()
        with open(config_dir / "config_hash.txt", 'w') as f:
            f.write(config_hash)

        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'config_hash': config_hash,
            'working_directory': os.getcwd(),
        }
        with open(config_dir / "run_metadata.json", 'w') as f:
            json.dump(metadata, f, indent=2)

        return config_dir

    def _load_json(self, path: str) -> Dict[str, Any]:
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Rules that depend on several keys or on the model registry."""
        # --- Model ---
        model_cfg = self.config.get('model', {})
        if model_cfg.get('name') not in ModelFactory.get_available_models():
            raise ConfigurationError(
                f"Unknown model name: {model_cfg.get('name')}. "
                f"Available: {ModelFactory.get_available_models()}"
            )

        # --- Tuning ---
        tuning = self.config.get('tuning', {})
        strategy = tuning.get('strategy', 'grid')
        if strategy not in STRATEGIES:
            raise ConfigurationError(f"Unknown tuning strategy '{strategy}'. Available: {list(STRATEGIES)}")
        if tuning.get('resolution', 10) < 1:
            raise ConfigurationError(f"tuning.resolution must be >= 1, got {tuning.get('resolution')}")

        # --- Range ---
        param_range = self.config.get('range')
        if not param_range:
            raise ConfigurationError("Range cannot be empty.")
        if strategy == 'explicit':
            if not isinstance(param_range, list):
                raise ConfigurationError("An explicit search needs 'range' to be a list of models.")
            for entry in param_range:
                if entry.get('name') not in ModelFactory.get_available_models():
                    raise ConfigurationError(f"Unknown model name in range: {entry.get('name')}")
        else:
            if not isinstance(param_range, dict):
                raise ConfigurationError(
                    f"A {strategy} search needs 'range' to map parameter names to values."
                )
            parse_range(param_range)
            if strategy == 'random' and self.config.get('n') is None:
                self.logger.info(
                    f"Random search without 'n'; defaulting to {constants.DEFAULT_N_ITERATIONS} iterations."
                )

        # --- Resampling ---
        resampling = self.config.get('resampling', {})
        if resampling.get('strategy', 'holdout') not in RESAMPLING_STRATEGIES:
            raise ConfigurationError(
                f"Unknown resampling strategy '{resampling.get('strategy')}'. "
                f"Available: {list(RESAMPLING_STRATEGIES)}"
            )
        fraction = resampling.get('fraction_train', constants.DEFAULT_HOLDOUT_FRACTION)
        if not (0.0 < fraction < 1.0):
            raise ConfigurationError(f"fraction_train must be between 0 and 1 (exclusive), got {fraction}")
        if resampling.get('n_folds', constants.DEFAULT_CV_FOLDS) < 2:
            raise ConfigurationError(f"n_folds must be >= 2, got {resampling.get('n_folds')}.")

        # --- Measures ---
        measures = self.config.get('measures')
        measures = [measures] if isinstance(measures, str) else (measures or [])
        if not measures:
            raise ConfigurationError("At least one measure must be specified.")
        unknown = [m for m in measures if m not in MEASURES]
        if unknown:
            raise ConfigurationError(f"Unknown measures {unknown}. Available: {sorted(MEASURES)}")

        # --- Budget ---
        n = self.config.get('n')
        if n is not None and n < 1:
            raise ConfigurationError(f"n must be >= 1 when provided, got {n}.")
        if self.config.get('repeats', 1) < 1:
            raise ConfigurationError(f"repeats must be >= 1, got {self.config.get('repeats')}.")

        # --- Acceleration ---
        for key in ('acceleration', 'acceleration_resampling'):
            n_workers = (self.config.get(key) or {}).get('n_workers')
            if n_workers is not None and n_workers <= 0:
                raise ConfigurationError(f"{key}.n_workers must be a positive integer, got {n_workers}")

        # --- Data ---
        data = self.config.get('data', {})
        for key in ('file_path', 'target'):
            if not data.get(key):
                raise ConfigurationError(f"Data '{key}' must be specified and non-empty.")
        if data['target'] in data.get('drop_columns', []):
            raise ConfigurationError(f"Target column '{data['target']}' cannot be dropped.")

    def _validate_resources(self) -> None:
        """Guard against grid explosions and memory settings beyond the machine."""
        resources = self.config.get('resources', {})

        if self.config.get('tuning', {}).get('strategy', 'grid') == 'grid':
            resolution = self.config.get('tuning', {}).get('resolution', 10)
            total_configs = 1
            for values in parse_range(self.config['range']).values():
                total_configs *= len(values.grid(resolution)) if isinstance(values, NumericRange) else len(values)

            max_configs = resources.get('max_hpo_configs', self.DEFAULT_MAX_HPO_CONFIGS)
            if total_configs > max_configs and self.config.get('n') is None:
                raise ConfigurationError(
                    f"Grid Explosion Detected! Total configurations ({total_configs}) exceeds "
                    f"safety limit ({max_configs}). Reduce the range, set 'n', or increase "
                    f"'resources.max_hpo_configs'."
                )
            self.logger.info(f"Grid size validated: {total_configs} combinations (Limit: {max_configs})")

        system_ram_mb = int(psutil.virtual_memory().total / (1024 * 1024))
        config_max_ram = resources.get('max_memory_mb', int(system_ram_mb * 0.8))
        if config_max_ram > system_ram_mb:
            self.logger.warning(
                f"Configured max_memory_mb ({config_max_ram}MB) exceeds physical system RAM "
                f"({system_ram_mb}MB). This may lead to instability."
            )

        self.config.setdefault('resources', {})['max_memory_mb'] = config_max_ram

    def _propagate_seeds(self) -> None:
        """Fill unset tuning/resampling seeds from the master ``seed``."""
        master_seed = self.config.get('seed')
        if master_seed is None:
            return

        tuning = self.config.setdefault('tuning', {})
        if tuning.get('seed') is None:
            tuning['seed'] = master_seed
        resampling = self.config.setdefault('resampling', {})
        if resampling.get('seed') is None:
            resampling['seed'] = master_seed + 1000
        self.logger.debug(
            f"Seeds propagated from master ({master_seed}): tuning={tuning['seed']}, "
            f"resampling={resampling['seed']}"
        )

    # ------------------------------------------------------------------ #
    # Interpretation                                                     #
    # ------------------------------------------------------------------ #
    def build_tuned_model(self, logger: Optional[logging.Logger] = None) -> TunedModel:
        """Translate the validated configuration into a ``TunedModel``."""
        if not self.config:
            raise ConfigurationError("No configuration loaded; call load_and_validate() first.")
        return build_tuned_model(self.config, logger=logger)


def build_strategy(tuning: Dict[str, Any]):
    strategy = tuning.get('strategy', 'grid')
    if strategy == 'explicit':
        return Explicit()
    if strategy == 'grid':
        return Grid(
            resolution=tuning.get('resolution', 10),
            shuffle=tuning.get('shuffle', False),
            random_state=tuning.get('seed'),
        )
    if strategy == 'random':
        return RandomSearch(random_state=tuning.get('seed'))
    raise ConfigurationError(f"Unknown tuning strategy '{strategy}'. Available: {list(STRATEGIES)}")


def build_resampling(resampling: Dict[str, Any]):
    strategy = resampling.get('strategy', 'holdout')
    shuffle = resampling.get('shuffle', False)
    # scikit-learn rejects a seed without shuffling
    seed = resampling.get('seed') if shuffle else None

    if strategy == 'holdout':
        return Holdout(
            fraction_train=resampling.get('fraction_train', constants.DEFAULT_HOLDOUT_FRACTION),
            shuffle=shuffle,
            random_state=seed,
        )
    n_folds = resampling.get('n_folds', constants.DEFAULT_CV_FOLDS)
    if strategy == 'cv':
        return KFold(n_splits=n_folds, shuffle=shuffle, random_state=seed)
    if strategy == 'stratified_cv':
        return StratifiedKFold(n_splits=n_folds, shuffle=shuffle, random_state=seed)
    raise ConfigurationError(
        f"Unknown resampling strategy '{strategy}'. Available: {list(RESAMPLING_STRATEGIES)}"
    )


def build_tuned_model(config: Dict[str, Any], logger: Optional[logging.Logger] = None) -> TunedModel:
    """Build a ``TunedModel`` from a (validated) configuration dict."""
    model_cfg = config['model']
    model = ModelFactory.create(model_cfg['name'], model_cfg.get('params'))

    tuning = config.get('tuning', {})
    if tuning.get('strategy', 'grid') == 'explicit':
        param_range = [ModelFactory.create(m['name'], m.get('params')) for m in config['range']]
    else:
        param_range = parse_range(config['range'])

    return TunedModel(
        model=model,
        tuning=build_strategy(tuning),
        resampling=build_resampling(config.get('resampling', {})),
        measure=config['measures'],
        operation=config.get('operation', 'predict'),
        range=param_range,
        train_best=config.get('train_best', True),
        repeats=config.get('repeats', 1),
        n=config.get('n'),
        acceleration=Acceleration.from_config(config.get('acceleration')),
        acceleration_resampling=Acceleration.from_config(config.get('acceleration_resampling')),
        check_measure=config.get('check_measure', True),
        logger=logger,
    )
