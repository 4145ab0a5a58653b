import logging
import os
import sys


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name.

    Usage in any module:
        from utils.logger import get_logger
        logger = get_logger(__name__)
        logger.info("Tick finished")
    """
    return logging.getLogger(name)


def setup_logging(log_level: str = "INFO", log_file: str = "") -> None:
    """Call once at startup from main.py to configure logging globally.

    Always logs to stdout. When log_file is set, the same records are also
    appended to that file (its directory is created if missing).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for h in handlers:
        h.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # requests/urllib3 log every connection at DEBUG; the poll loop would drown in them
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
