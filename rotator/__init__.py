"""
rotator - grandfather-father-son backup rotation on top of an archive store.
"""

import logging
import sys
from logging.handlers import SysLogHandler


__version__ = '1.0.0'

LOG_FORMAT = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
SYSLOG_FORMAT = 'rotator[%(process)d]: %(levelname)s %(message)s'


def configure_logging(level: str = 'info', use_syslog: bool = False):
    """
    Configure package logging.

    Diagnostics go to stderr; with use_syslog they are also sent to the
    local syslog daemon. Calling this again replaces the handlers.

    Args:
        level: One of error, warning, info, debug
        use_syslog: Also log to /dev/log
    """
    log_level = getattr(logging, level.upper())

    logger = logging.getLogger('rotator')
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if use_syslog:
        try:
            syslog_handler = SysLogHandler(address='/dev/log')
        except OSError as e:
            logger.warning(f"Syslog is not available, logging to stderr only: {e}")
        else:
            syslog_handler.setLevel(log_level)
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_FORMAT))
            logger.addHandler(syslog_handler)

    logger.debug(f"Logging configured (level: {logging.getLevelName(log_level)})")
