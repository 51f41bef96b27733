import logging
import os

from rich.logging import RichHandler


class CenteredFormatter(logging.Formatter):
    longest_name_length = 16  # widens as longer logger names show up

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=16):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        width = CenteredFormatter.longest_name_length
        # format a copy so other handlers still see the original name
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.center(width)
        return super().format(record)


def _level(debug=None) -> int:
    if debug is None:
        debug = os.getenv("DEBUG", "").strip().lower() in ("1", "true", "yes", "on")
    return logging.DEBUG if debug else logging.INFO


def get_logger(name=None, debug=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.

    The level is DEBUG when ``debug`` is true (or, when ``debug`` is None,
    when the DEBUG environment variable is set), INFO otherwise.
    """
    if name is None:
        name = "shopdb"
    logger = logging.getLogger(name)
    log_level = _level(debug)
    logger.setLevel(log_level)

    if not logger.handlers:
        formatter = CenteredFormatter("[%(name)s]  %(message)s")

        console_handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized with RichHandler.")

    for handler in logger.handlers:
        handler.setLevel(log_level)

    return logger
