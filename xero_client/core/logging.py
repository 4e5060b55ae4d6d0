"""Structlog configuration for the Xero client."""

import logging
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from xero_client.config.logging import LoggingSettings


# Custom theme for console output
CUSTOM_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "critical": "bold white on red",
        "debug": "dim white",
        "timestamp": "dim cyan",
    }
)

_SECRET_KEYS = frozenset(
    {"access_token", "refresh_token", "id_token", "client_secret", "token"}
)


def mask_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Structlog processor replacing credential values with a masked preview."""
    for key in _SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        if value is None:
            continue
        text = str(value)
        event_dict[key] = f"{text[:4]}***" if len(text) > 12 else "***"
    return event_dict


def setup_logging(
    json_logs: bool = False,
    log_level_name: str = "INFO",
    show_time: bool = True,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        json_logs: Render JSON lines instead of console output
        log_level_name: Logging level name
        show_time: Whether console output shows timestamps
    """
    level = getattr(logging, log_level_name.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        mask_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if json_logs:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        handler: logging.Handler = logging.StreamHandler()
        extra_processors: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info
        ]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
        handler = RichHandler(
            console=Console(theme=CUSTOM_THEME, stderr=True),
            show_time=show_time,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        extra_processors = []

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *extra_processors,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # Quiet noisy transport loggers
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def setup_logging_from_settings(settings: LoggingSettings) -> None:
    """Configure logging from a ``LoggingSettings`` section."""
    setup_logging(
        json_logs=settings.format == "json",
        log_level_name=settings.level,
        show_time=settings.show_time,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
