"""
Logging setup for docschema entry points.

Library modules only create loggers; handlers are installed here, once,
by whatever process embeds docschema (the CLI calls setup_logging()).
JSON output carries the `extra={...}` context of each record as
top-level keys.
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import LogFormat, Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings) -> None:
    """Configure the root logger from settings.

    Args:
        settings: Application settings (log_level, log_format)
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == LogFormat.JSON:
        formatter: logging.Formatter = json_log_formatter.VerboseJSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
