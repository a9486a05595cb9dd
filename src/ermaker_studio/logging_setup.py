"""
Logging configuration for ERMaker Studio.
"""
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_PREFIX = "ermaker_"

_configured = False


def configure_logging(level: Union[int, str] = logging.INFO,
                      log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Install a console handler and, when log_dir is given, a timestamped log file.

    Idempotent: later calls only adjust the level.

    Returns:
        Path of the log file, or None when logging to the console only
    """
    global _configured
    package_logger = logging.getLogger("ermaker_studio")
    package_logger.setLevel(level)
    if _configured:
        return None

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    package_logger.addHandler(console)

    log_path = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"{LOG_FILE_PREFIX}{timestamp}.log"
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    _configured = True
    package_logger.info(f"Logging initialized{f'. Log file: {log_path}' if log_path else ''}")
    return log_path


def reset_logging():
    """Remove the handlers installed by configure_logging (tests)."""
    global _configured
    package_logger = logging.getLogger("ermaker_studio")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    _configured = False
