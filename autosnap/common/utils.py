
import logging
import sys

from .errors import ConfigurationError


def setup_logging(log_file='autosnap.log', level=logging.INFO):
    """Configures logging for the application"""
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ConfigurationError(f"Unknown log_level: {name!r}")
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def get_logger(name):
    """Returns a logger instance with the given name"""
    return logging.getLogger(name)


def get_human_size(bytes_val):
    for unit in ['B', 'KiB', 'MiB', 'GiB', 'TiB']:
        if bytes_val < 1024:
            return f"{bytes_val:.2f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.2f} PiB"


def format_duration(delta):
    """Formats a timedelta as '1d 2h 5m 3s', dropping sub-second precision"""
    total = int(delta.total_seconds())
    if total <= 0:
        return "0s"
    parts = []
    for unit, seconds in (('d', 86400), ('h', 3600), ('m', 60), ('s', 1)):
        amount, total = divmod(total, seconds)
        if amount:
            parts.append(f"{amount}{unit}")
    return ' '.join(parts)
