import logging
import os
import sys

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level_name: str | None = None) -> None:
    """
    Configure application-wide logging.

    - Root level from the argument, else LOG_LEVEL, else INFO
    - Logs to stdout
    - Keeps httpx request chatter at WARNING
    """
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    # Uvicorn may have configured handlers already; only adjust the level then
    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
