import logging
import os


def attach_error_log(logger: logging.Logger, logfile: str) -> logging.Logger:
    """Append ERROR records of `logger` to `logfile`, once per file."""

    path = os.path.abspath(logfile)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == path:
            return logger

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.ERROR)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    logger.addHandler(handler)
    return logger
