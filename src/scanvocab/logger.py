# -*- coding: utf-8 -*-
import logging
import logging.handlers
import os
import sys
from typing import Optional

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5


def _log_uncaught(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logging.getLogger("scanvocab").critical(
        "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback),
    )


def setup_logger(app_name: str = "scanvocab", log_dir: Optional[str] = None, level: int = logging.INFO) -> str:
    """
    Route the pipeline's module loggers (raw_tokens, processed_tokens,
    llm_words, hybrid_merge...) to a rotating file and to stderr.

    stdout is left alone so `scan --json` output can be piped.

    Args:
        app_name: Log file stem
        log_dir: Directory for the log file (default: ./logs)
        level: Threshold for both handlers

    Returns:
        Path of the log file
    """
    log_dir = log_dir or os.path.join(os.getcwd(), "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, f"{app_name}.log")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Repeated setup in one process must not duplicate output
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    console_handler = logging.StreamHandler(sys.stderr)
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)

    sys.excepthook = _log_uncaught

    root_logger.debug(f"Logging to {log_file}")
    return log_file
