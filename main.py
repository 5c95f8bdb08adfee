#!/usr/bin/env python
"""
Hyperparameter Tuning - Main Entry Point
Loads a run configuration and a dataset, tunes the configured model and
writes the tuning report.
"""
import sys
import logging
import argparse
import traceback
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from modules.config_manager import ConfigurationManager
from modules.logging_config import LoggingConfigurator
from modules.reporting_engine import ReportingEngine
from modules.tuned_model import TuningSession
from utils import constants
from utils.exceptions import DataLoadingError, TuningException
from utils.file_io import read_dataframe


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="Hyperparameter tuning of a scikit-learn model",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )
    parser.add_argument(
        "--schema",
        type=str,
        default=str(Path(__file__).parent / "config" / "schema.json"),
        help="Path to the configuration JSON schema"
    )
    parser.add_argument(
        "--verbosity",
        type=int,
        default=constants.VERBOSITY_PROGRESS,
        help="-1 silent, 0 quiet, 1 progress, 2 results, 3 hyperparameters"
    )
    parser.add_argument(
        "--n",
        type=int,
        default=None,
        help="Override the number of models to evaluate"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and data without tuning"
    )
    return parser.parse_args(argv)


def load_data(config: dict, logger: logging.Logger):
    """
    Read the dataset and split it into features and target.

    Raises:
        DataLoadingError: Missing or unreadable file, or absent columns.
    """
    data_cfg = config['data']
    path = Path(data_cfg['file_path'])
    if not path.exists():
        raise DataLoadingError(f"Data file not found: {path}")

    try:
        df = read_dataframe(path)
    except ValueError as e:
        raise DataLoadingError(str(e)) from e

    target = data_cfg['target']
    if target not in df.columns:
        raise DataLoadingError(f"Target column '{target}' not found in {path}")

    drop = [c for c in data_cfg.get('drop_columns', []) if c in df.columns]
    X = df.drop(columns=drop + [target])
    y = df[target]
    logger.info(f"Data loaded: {len(df)} samples, {X.shape[1]} features")
    return X, y


def main(argv=None):
    """
    Returns:
        int: Exit code (0 for success, 1 for errors, 130 when interrupted)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config = config_manager.load_and_validate()
        if args.n is not None:
            config['n'] = args.n

        LoggingConfigurator(config).setup()
        logger = logging.getLogger('tuning')
        logger.info(f"Configuration loaded from: {args.config}")

        run_id = config_manager.generate_run_id()
        run_dir = Path(config.get('outputs', {}).get('base_results_dir', 'results')).absolute()
        run_dir.mkdir(parents=True, exist_ok=True)
        config.setdefault('outputs', {})['base_results_dir'] = str(run_dir)
        config_manager.save_artifacts(str(run_dir))

        tuned_model = config_manager.build_tuned_model(logger=logger)
        X, y = load_data(config, logger)

        logger.info(f"Run ID: {run_id}")
        logger.info(f"Tuning {tuned_model!r}")

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without tuning.")
            print("\n[SUCCESS] Configuration validated successfully.")
            return 0

        session = TuningSession(tuned_model, X, y, logger=logger)
        session.fit(verbosity=args.verbosity)

        paths = ReportingEngine(config, logger).execute(session.report, run_id)

        logger.info("TUNING COMPLETED SUCCESSFULLY")
        logger.info(f"Best model: {session.report['best_model']!r}")
        for name, path in paths.items():
            logger.info(f"  {name}: {path}")

        print(f"\n[SUCCESS] Tuning completed. Results saved to: {run_dir}")
        return 0

    except TuningException as e:
        msg = f"Tuning Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Tuning interrupted by user.")
        if logger:
            logger.warning("Tuning interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
