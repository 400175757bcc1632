import logging
import sys

from src.config import DEFAULT_LOG_LEVEL, LOG_FORMAT


def setup_logging(logger_name, level=DEFAULT_LOG_LEVEL):
    """Configure console logging for a logger with the project formatter"""

    # Create formatter
    formatter = logging.Formatter(LOG_FORMAT)

    # Create logger
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def format_number(value, decimals=1, grouping=True):
    """
    Format a number with a fixed '.' radix point, independent of the host locale.

    Args:
        value: Number to format
        decimals: Digits after the radix point
        grouping: Insert ',' thousands separators

    Returns:
        str: Formatted number, 'NaN' for not-a-number
    """
    value = float(value)
    if value != value:
        return "NaN"
    spec = f"{',' if grouping else ''}.{decimals}f"
    return format(value, spec)
