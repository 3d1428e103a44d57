import logging

from src.core.errors import ErrorCode, ParameterizationError
from src.core.logging_utils import ENV_LOG_DIR, default_log_dir, log_once


def test_error_code_messages():
    assert ErrorCode.OK.ok
    assert not ErrorCode.ERROR_EMPTY_MESH.ok
    assert all(code.message for code in ErrorCode)


def test_parameterization_error_carries_code():
    err = ParameterizationError(ErrorCode.ERROR_BORDER_TOO_SHORT, "component 2 (10 faces)")

    assert isinstance(err, RuntimeError)
    assert err.code is ErrorCode.ERROR_BORDER_TOO_SHORT
    assert str(err) == "The border of the input mesh is too short: component 2 (10 faces)"
    assert str(ParameterizationError(ErrorCode.ERROR_EMPTY_MESH)) == "Input mesh is empty"


def test_default_log_dir_honors_env(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_LOG_DIR, str(tmp_path))

    assert default_log_dir() == tmp_path


def test_log_once_only_logs_first_time(caplog):
    logger = logging.getLogger("tests.log_once")

    with caplog.at_level(logging.WARNING, logger="tests.log_once"):
        assert log_once(logger, "tests:log_once:key", logging.WARNING, "degenerate %d", 1)
        assert not log_once(logger, "tests:log_once:key", logging.WARNING, "degenerate %d", 2)

    messages = [r.getMessage() for r in caplog.records if r.name == "tests.log_once"]
    assert messages == ["degenerate 1"]
