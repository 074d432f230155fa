import logging
import logging.handlers
import tempfile
from pathlib import Path

import pytest

from health_agent.config.logging import (
    LOG_FILENAME,
    RequestIdFilter,
    _resolve_log_dir,
    clear_request_id,
    configure_logging,
    get_request_id,
    set_request_id,
)


@pytest.fixture(autouse=True)
def reset_logging_and_env(monkeypatch):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.delenv("APP_DATA_DIR", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)
    clear_request_id()


def test_resolve_log_dir_explicit_env_var(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_LOG_DIR", str(tmp_path))
    assert _resolve_log_dir() == tmp_path


def test_resolve_log_dir_app_data_dir_env_var(monkeypatch, tmp_path):
    monkeypatch.delenv("APP_LOG_DIR", raising=False)
    monkeypatch.setenv("APP_DATA_DIR", str(tmp_path))
    assert _resolve_log_dir() == tmp_path / "logs"


def test_resolve_log_dir_fallback_to_tmp(monkeypatch):
    monkeypatch.delenv("APP_LOG_DIR", raising=False)
    assert _resolve_log_dir() == Path(tempfile.gettempdir()) / "health-agent"


def test_configure_logging_creates_directory(monkeypatch, tmp_path):
    log_dir = tmp_path / "nested" / "logs"
    monkeypatch.setenv("APP_LOG_DIR", str(log_dir))
    assert configure_logging() == log_dir / LOG_FILENAME
    assert log_dir.is_dir()


def test_configure_logging_permission_error_fallback(monkeypatch):
    primary = Path("/non_writable_dir/logs")
    monkeypatch.setattr("health_agent.config.logging._resolve_log_dir", lambda: primary)

    original_mkdir = Path.mkdir
    mkdir_calls = []

    def mkdir_spy(path_instance, parents=False, exist_ok=False):
        mkdir_calls.append(path_instance)
        if path_instance == primary:
            raise PermissionError("Simulated permission denied")
        return original_mkdir(path_instance, parents=parents, exist_ok=exist_ok)

    monkeypatch.setattr(Path, "mkdir", mkdir_spy)

    returned = configure_logging()
    fallback = Path(tempfile.gettempdir()) / "health-agent"
    assert returned == fallback / LOG_FILENAME
    assert mkdir_calls == [primary, fallback]


def test_configure_logging_handlers_and_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    dummy = logging.StreamHandler()
    logging.getLogger().addHandler(dummy)

    configure_logging()

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert dummy not in root.handlers
    assert len(root.handlers) == 2
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
    assert logging.getLogger("openai").level == logging.WARNING


def test_request_id_filter_stamps_records():
    clear_request_id()
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
    assert RequestIdFilter().filter(record)
    assert record.request_id == "-"

    set_request_id("abc123")
    RequestIdFilter().filter(record)
    assert record.request_id == "abc123"


def test_set_request_id_generates_when_blank():
    rid = set_request_id("  ")
    assert len(rid) == 12
    assert get_request_id() == rid
    clear_request_id()
    assert get_request_id() == "-"


def test_request_id_written_to_log_file(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_LOG_DIR", str(tmp_path))
    logfile = configure_logging()
    set_request_id("req-42")
    logging.getLogger("health_agent.test").info("hello from test")
    for h in logging.getLogger().handlers:
        h.flush()
    assert "rid=req-42 hello from test" in logfile.read_text()
