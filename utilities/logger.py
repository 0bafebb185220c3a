"""
Comprehensive logging system using structlog.
Provides structured logging with different output formats and levels.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Enable debug mode for more verbose logging
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Configure structlog processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )

    # Add format-specific processors
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Set up file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))

        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class CycleLogger:
    """
    Specialized logger for refresh cycles with context management.
    """

    def __init__(self, name: str = "update_cycle"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> 'CycleLogger':
        """
        Bind context variables to the logger.

        Args:
            **kwargs: Context variables to bind

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def clear_context(self) -> 'CycleLogger':
        """Clear all context variables."""
        self.context.clear()
        return self

    def log_cycle_start(self, today: str, categories: list) -> None:
        self.logger.info(
            "Refreshing WebUntis data",
            today=today,
            categories=categories,
            **self.context
        )

    def log_cycle_complete(self, emitted: int, duration_seconds: float, errors: int = 0) -> None:
        self.logger.info(
            "Refresh cycle completed",
            notifications_emitted=emitted,
            duration_seconds=duration_seconds,
            errors=errors,
            **self.context
        )

    def log_notification(self, category: str, title: str, fingerprint: str) -> None:
        """Log an accepted notification."""
        self.logger.info(
            "Notification emitted",
            category=category,
            title=title,
            fingerprint=fingerprint[:12],
            **self.context
        )

    def log_suppressed(self, category: str, fingerprint: str) -> None:
        self.logger.debug(
            "Notification already delivered",
            category=category,
            fingerprint=fingerprint[:12],
            **self.context
        )

    def log_category_error(self, category: str, error: str) -> None:
        """Log a failure isolated to one category."""
        self.logger.error(
            "Category fetch failed",
            category=category,
            error=error,
            **self.context
        )

    def log_persistence(self, target: str, success: bool) -> None:
        level = "debug" if success else "error"
        getattr(self.logger, level)(
            "Persistence operation",
            target=target,
            success=success,
            **self.context
        )
