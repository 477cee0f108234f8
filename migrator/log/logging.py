"""
Logging setup built on loguru.

Modules import ``logger`` from here and pass structured fields as keyword
arguments, e.g. ``logger.info("Migration applied", event_type="migration_applied")``.
Keyword arguments land in the record's ``extra`` dict, which the JSON sink
serializes.
"""

import sys
from typing import Optional, TextIO

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[app_name]}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(
    app_name: str = "migrator",
    log_level: str = "INFO",
    json_logs: bool = False,
    sink: Optional[TextIO] = None,
) -> None:
    """
    Replace loguru's default sink with one configured for the migrator.

    Args:
        app_name: Name attached to every record as ``extra.app_name``.
        log_level: Minimum level to emit.
        json_logs: Emit one JSON document per record instead of text.
        sink: Stream to write to; defaults to the current sys.stderr.
    """
    if sink is None:
        sink = sys.stderr
    logger.remove()
    logger.configure(extra={"app_name": app_name})

    if json_logs:
        logger.add(sink, level=log_level.upper(), serialize=True)
    else:
        logger.add(sink, level=log_level.upper(), format=TEXT_FORMAT, colorize=None)


__all__ = ["logger", "configure_logging"]
