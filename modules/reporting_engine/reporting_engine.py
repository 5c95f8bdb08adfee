import datetime
import logging
from pathlib import Path
from typing import Any, Dict

import pandas as pd

from modules.base.base_engine import BaseEngine
from modules.tuning_strategy import TuningStrategy
from utils import constants
from utils.error_handling import handle_engine_errors
from utils.file_io import save_dataframe, save_json


def _describe_model(model) -> Dict[str, Any]:
    params = model.get_params(deep=False) if hasattr(model, 'get_params') else {}
    return {
        'model': type(model).__name__,
        'params': {k: v if isinstance(v, (int, float, str, bool, type(None))) else repr(v)
                   for k, v in params.items()},
    }


class ReportingEngine(BaseEngine):
    """
    Persists a tuning report.

    Writes the history table (Parquet, optional Excel copy) and the best
    configuration with its measurements (JSON).
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.excel_copy = self.config.get('outputs', {}).get('save_excel_copy', False)

    def _get_engine_directory_name(self) -> str:
        return constants.TUNING_REPORT_DIR

    @handle_engine_errors("Reporting")
    def execute(self, report: Dict[str, Any], run_id: str) -> Dict[str, Path]:
        """
        Save the report artifacts.

        Args:
            report: Report returned by ``TunedModel.fit``/``update``.
            run_id: Run identifier recorded in the best-configuration file.

        Returns:
            Mapping of artifact name to written path.
        """
        self.logger.info("Writing tuning report...")
        paths: Dict[str, Path] = {}

        table = report.get('plotting')
        if table is None and report.get('history') is not None:
            table = TuningStrategy.history_table(report['history'])
        if table is not None and not table.empty:
            paths['history'] = save_dataframe(
                self._parquet_safe(table),
                self.output_dir / "tuning_history.parquet",
                excel_copy=self.excel_copy,
            )

        best_result = report['best_result']
        best = {
            'run_id': run_id,
            'timestamp': datetime.datetime.now().isoformat(),
            **_describe_model(report['best_model']),
            'metrics': best_result.as_dict() if hasattr(best_result, 'as_dict') else repr(best_result),
            'n_evaluated': len(report['history']) if report.get('history') is not None else None,
            'best_report': report.get('best_report'),
        }
        paths['best_configuration'] = save_json(best, self.output_dir / "best_configuration.json")

        self.logger.info(f"Best Config Found: {best['model']} {best['metrics']}")
        return paths

    @staticmethod
    def _parquet_safe(df: pd.DataFrame) -> pd.DataFrame:
        """Stringify object columns mixing types, which Parquet cannot store."""
        out = df.copy()
        for col in out.columns:
            if out[col].dtype == object:
                kinds = {type(v) for v in out[col].dropna()}
                if len(kinds) > 1 or not kinds <= {str}:
                    out[col] = out[col].map(lambda v: v if v is None else str(v))
        return out
