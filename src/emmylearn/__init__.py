"""Emmy's Learning App - sign-in core.

OAuth sign-in flow management for a children's educational app.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"

# Marks handlers installed by setup_logging so a second call replaces them
_HANDLER_TAG = "_emmylearn_handler"


def setup_logging(
    log_dir: Path | None = None,
    *,
    console_level: int = logging.INFO,
) -> Path:
    """Send log records to a rotating per-process file and to the console.

    The file gets everything from DEBUG up, including per-flow trace events.
    Calling this again replaces the handlers installed by the previous call.

    Args:
        log_dir: Directory for log files. Defaults to ``APP__LOG_DIR``.
        console_level: Minimum level echoed to stderr.

    Returns:
        Path of the log file.
    """
    if log_dir is None:
        from emmylearn.config import get_settings

        log_dir = get_settings().app.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"emmylearn.{os.getpid()}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in [h for h in root_logger.handlers if getattr(h, _HANDLER_TAG, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    # 10MB per file, 5 backups
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    for handler in (file_handler, console_handler):
        setattr(handler, _HANDLER_TAG, True)
        root_logger.addHandler(handler)

    logging.getLogger(__name__).debug("Logging to %s", log_file.absolute())
    return log_file
