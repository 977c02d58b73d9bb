import logging
import sys

import structlog

from dateplanner import config


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure stdlib logging and structlog for the application.

    Args:
        level: Log level name, defaults to LOG_LEVEL
        fmt: "console" or "json", defaults to LOG_FORMAT
    """
    level_name = (level or config.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    renderer_name = (fmt or config.LOG_FORMAT).lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    # httpx logs full request URLs, which carry the weather and model keys
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if renderer_name == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger(__name__)
    logger.info("Logging configured", level=level_name, format=renderer_name)
