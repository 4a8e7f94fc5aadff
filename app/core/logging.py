import logging
import socket
import sys
from typing import Any

from loguru import logger

from app.config import get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[instance]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | {extra}"
)

PLAIN_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[instance]} | "
    "{name}:{function}:{line} | {message} | {extra}"
)


class InterceptHandler(logging.Handler):
    """Intercept stdlib logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that called the stdlib logger
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _status_poll_filter(record: dict[str, Any]) -> bool:
    """Drop status polling and health check access lines unless running at DEBUG."""
    message = record.get("message", "")
    if "/health" in message or "job-status" in message:
        return bool(record["level"].no <= 10)  # DEBUG level
    return True


def setup_logging() -> None:
    """Configure loguru for the application.

    Every record carries the instance name, so output from several servers
    contending for the same job lock can be told apart once aggregated.
    """
    settings = get_settings()

    logger.remove()
    logger.configure(extra={"instance": settings.instance_name or socket.gethostname()})

    if settings.log_json:
        logger.add(
            sys.stderr,
            level=settings.log_level,
            serialize=True,
            filter=_status_poll_filter,
            backtrace=False,
            diagnose=False,
        )
    elif settings.debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=CONSOLE_FORMAT,
            backtrace=True,
            diagnose=True,
        )
    else:
        logger.add(
            sys.stderr,
            level=settings.log_level,
            format=PLAIN_FORMAT,
            filter=_status_poll_filter,
            backtrace=True,
            diagnose=False,
        )

    # Route uvicorn, sqlalchemy and apscheduler through loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ["uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine", "apscheduler"]:
        logging.getLogger(name).handlers = [InterceptHandler()]

    logger.bind(level=settings.log_level, json=settings.log_json).debug("logging_configured")


def get_logger(name: str) -> Any:
    """Get a logger bound to a module name."""
    return logger.bind(name=name)
