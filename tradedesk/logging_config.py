"""
logging_config.py — Loguru setup for the dispatch service

Business Rules:
- One stdout sink; stdlib loggers (uvicorn, SQLAlchemy, the Graph client,
  the scheduler) are forwarded into it
- JSON lines once either delivery channel is live, coloured text otherwise
- Every record carries request_id ("-" outside a request)

Called by: tradedesk/main.py (lifespan)
Depends on: loguru, config.settings
"""

import logging
import sys

from loguru import logger

from .config import settings

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "botocore", "weasyprint", "fontTools")

TEXT_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> "
    "[{extra[request_id]}] <cyan>{name}</cyan>:{line} {message}"
)


class _StdlibForwarder(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = sys._getframe(1), 1
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None, json_lines: bool | None = None) -> None:
    """Replace every loguru sink with the service's stdout sink. Safe to call again."""
    level = (level or settings.log_level).upper()
    if json_lines is None:
        json_lines = settings.live_email or settings.live_messages

    logger.remove()
    logger.configure(extra={"request_id": "-"})
    if json_lines:
        logger.add(sys.stdout, level=level, serialize=True)
    else:
        logger.add(sys.stdout, level=level, format=TEXT_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_StdlibForwarder()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging at {} as {}", level, "json" if json_lines else "text")
