import pytest
from unittest.mock import MagicMock

from utils.error_handling import handle_engine_errors
from utils.exceptions import TuningException, ConfigurationError


class DummyEngine:
    def __init__(self):
        self.logger = MagicMock()

    @handle_engine_errors("Dummy step")
    def run(self, fail_with=None):
        if fail_with is not None:
            raise fail_with
        return "ok"


def test_passes_return_value_through():
    assert DummyEngine().run() == "ok"


def test_own_errors_are_reraised_untouched():
    engine = DummyEngine()
    original = ConfigurationError("bad range")
    with pytest.raises(ConfigurationError) as exc_info:
        engine.run(fail_with=original)
    assert exc_info.value is original
    engine.logger.error.assert_not_called()


def test_foreign_errors_are_logged_and_wrapped():
    engine = DummyEngine()
    with pytest.raises(TuningException, match="Dummy step failed: disk full") as exc_info:
        engine.run(fail_with=OSError("disk full"))
    assert isinstance(exc_info.value.__cause__, OSError)
    engine.logger.error.assert_called_once()
