import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DEFAULT_LOG_DIR = Path("logs")
LOG_FILE_NAME = "app.log"
# Outbound HTTP clients (Gemini, Nominatim, Cloudinary) log every connection at INFO.
NOISY_LOGGERS = ("urllib3", "cloudinary")

_state: dict = {"key": None, "path": None}


def _resolve_level(level) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level or "INFO").upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    log_dir: Optional[str] = None,
    *,
    level="INFO",
    log_to_file: bool = True,
) -> Optional[Path]:
    """Install the stream handler and, when enabled, the rotating app.log handler.

    Calling again with the same settings is a no-op, so the app factory can be
    invoked repeatedly from tests. Returns the log file path, or ``None`` when
    only the console is used.
    """

    directory = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    numeric_level = _resolve_level(level)
    key = (directory, numeric_level, log_to_file)
    if _state["key"] == key:
        return _state["path"]

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    log_path = None
    if log_to_file:
        directory.mkdir(parents=True, exist_ok=True)
        log_path = directory / LOG_FILE_NAME
        handlers.append(RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    _state.update(key=key, path=log_path)
    return log_path


def get_logger(name: str = "ecotrack") -> logging.Logger:
    if _state["key"] is None:
        configure_logging()
    return logging.getLogger(name)
