# paintquote/core/logging_config.py
import logging
import sys

import structlog

from .settings import settings


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog + standard logging.
    Logs go to stdout as JSON unless json_logs is off (local dev).
    """
    level_name = (level or settings.log_level).upper()
    use_json = settings.json_logs if json_logs is None else json_logs

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
