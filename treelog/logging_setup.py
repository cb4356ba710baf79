"""File logging for treelog.

Logs never go to the console: a stray line on stdout or stderr would shift
every row offset the renderer relies on.
"""

import logging
from pathlib import Path

LOG_FILE_NAME = "treelog.log"


def setup_logging(log_dir: str | Path, level: int | str = logging.WARNING) -> Path:
    """Send treelog logs to <log_dir>/treelog.log.

    Call once, before the first task starts. Calling again replaces the
    previous handler.

    Args:
        log_dir: Directory for the log file (created if needed)
        level: Logging level for the treelog logger

    Returns:
        Path to the log file
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    logger = logging.getLogger("treelog")
    logger.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(fh)

    # Keep records away from the root logger's console handlers
    logger.propagate = False

    return log_file
