from __future__ import annotations
import os
import uuid
import logging
import contextvars
import tempfile
from pathlib import Path
from logging.handlers import RotatingFileHandler

from health_agent.config.settings import settings

LOG_FORMAT = "%(asctime)s | [%(levelname)s] [%(name)s] rid=%(request_id)s %(message)s"
LOG_FILENAME = "health-agent.log"


def _resolve_log_dir() -> Path:
    # APP_LOG_DIR wins, then APP_DATA_DIR/logs, then the temp dir
    base = os.getenv("APP_LOG_DIR")
    if base:
        return Path(base)
    data = os.getenv("APP_DATA_DIR")
    if data:
        return Path(data) / "logs"
    return Path(tempfile.gettempdir()) / "health-agent"


_rid_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default="-"
)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = _rid_var.get()  # type: ignore[attr-defined]
        return True


def set_request_id(rid: str | None) -> str:
    """Bind ``rid`` (or a fresh id) to the current context and return it."""
    value = (rid or "").strip()[:64] or uuid.uuid4().hex[:12]
    _rid_var.set(value)
    return value


def get_request_id() -> str:
    return _rid_var.get()


def clear_request_id() -> None:
    _rid_var.set("-")


def configure_logging() -> Path:
    log_dir = _resolve_log_dir()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        log_dir = Path(tempfile.gettempdir()) / "health-agent"
        log_dir.mkdir(parents=True, exist_ok=True)

    logfile = log_dir / LOG_FILENAME

    root = logging.getLogger()
    root.setLevel(os.getenv("LOG_LEVEL", settings.log_level).upper())

    # Reload-safe: drop whatever handlers a previous configure installed
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(LOG_FORMAT)
    fileh = RotatingFileHandler(logfile, maxBytes=2_000_000, backupCount=2)
    fileh.setFormatter(fmt)
    fileh.addFilter(RequestIdFilter())
    streamh = logging.StreamHandler()
    streamh.setFormatter(fmt)
    streamh.addFilter(RequestIdFilter())

    root.addHandler(fileh)
    root.addHandler(streamh)

    # Provider SDKs are chatty at INFO
    for noisy in ("httpx", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging to %s", logfile)
    return logfile
