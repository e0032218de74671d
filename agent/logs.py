"""File logger setup shared by the agent and tool executor."""

import logging
import os


def build_logger(name: str, log_dir: str, filename: str) -> logging.Logger:
    """Return a non-propagating logger that appends to ``log_dir/filename``."""
    os.makedirs(log_dir, exist_ok=True)
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    log_path = os.path.join(log_dir, filename)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
