import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

from core.metadata import SERVICE_NAME

# Graph tokens, app secrets and OAuth codes must never reach the log files
SECRET_FIELDS = frozenset({"access_token", "client_secret", "code", "authorization", "apikey"})
_SECRET_IN_TEXT = re.compile(r"(?<!\w)((?:access_token|client_secret|code)=)[^&\s]+")
REDACTED = "***"


def redact_text(value: str) -> str:
    return _SECRET_IN_TEXT.sub(rf"\g<1>{REDACTED}", value)


def redact_secrets(logger, method_name, event_dict):
    for key, value in list(event_dict.items()):
        if key.lower() in SECRET_FIELDS:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "=" in value:
            event_dict[key] = redact_text(value)
    return event_dict


def _renderer(log_format: str):
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging():
    """Route structlog and stdlib logging through one formatter.

    LOG_FORMAT=console switches the JSON output to a readable line format
    for local runs; the rotating file always gets JSON.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file = os.getenv("LOG_FILE", "logs/adwizard-campaign-service.log")
    log_format = os.getenv("LOG_FORMAT", "json").lower()
    environment = os.getenv("ENVIRONMENT", "dev")

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    file_handler = RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=shared_processors,
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=shared_processors,
        )
    )

    for handler in (file_handler, console_handler):
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    # httpx logs full request URLs, which carry the Graph access token
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME, environment=environment)

    return root_logger
