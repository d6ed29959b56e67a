"""Logging setup for programs embedding pkgplan."""

import logging
import logging.handlers

LOGGER_NAME = "pkgplan"


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for terminal output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[2m',      # Dim
        'INFO': '',              # Normal (no color)
        'WARNING': '\033[93m',   # Yellow/orange
        'ERROR': '\033[91m',     # Bright red
        'CRITICAL': '\033[91m',  # Bright red
    }
    RESET = '\033[0m'

    def format(self, record):
        message = super().format(record)
        color = self.COLORS.get(record.levelname, '')
        if color:
            return f"{color}{message}{self.RESET}"
        return message


def setup_logging(verbose: bool = False, syslog: bool = False,
                  address: str = '/dev/log') -> logging.Handler:
    """Attach a handler to the pkgplan logger.

    Args:
        verbose: Log debug messages (phase and repository tracing)
        syslog: Log to syslog instead of colored stderr
        address: Syslog socket

    Returns:
        The installed handler
    """
    if syslog:
        handler = logging.handlers.SysLogHandler(address=address)
        handler.setFormatter(logging.Formatter(
            'pkgplan: %(levelname)s - %(message)s'
        ))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return handler
