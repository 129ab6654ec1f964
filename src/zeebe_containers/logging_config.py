"""
Zeebe Containers Structured Logging Module
JSON-based structured logging for container lifecycle events
"""

import logging
import os
import sys
from typing import Optional
import structlog
from pythonjsonlogger import jsonlogger

# ============================================================================
# STRUCTURED LOGGING CONFIGURATION
# ============================================================================

def setup_json_logging(
    log_level: str = "INFO",
    service_name: str = "zeebe-containers",
    environment: str = os.getenv("ZEEBE_CONTAINERS_ENVIRONMENT", "test")
):
    """
    Setup JSON structured logging, typically from a test suite's conftest.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Name reported in every log entry
        environment: Environment name (test, ci, ...)
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_handler = logging.StreamHandler(sys.stdout)
    json_formatter = jsonlogger.JsonFormatter(
        fmt='%(timestamp)s %(levelname)s %(name)s %(message)s',
        timestamp=True
    )
    json_handler.setFormatter(json_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))
    root_logger.handlers.clear()
    root_logger.addHandler(json_handler)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=environment,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger instance
    """
    return structlog.get_logger(name)


# ============================================================================
# LOGGING CONTEXT MANAGERS
# ============================================================================

class LogContext:
    """Context manager for scoped logging context"""

    def __init__(self, logger: structlog.BoundLogger, **context):
        self.logger = logger
        self.context = context

    def __enter__(self):
        self.logger = self.logger.bind(**self.context)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.logger.error(
                "context_error",
                error_type=exc_type.__name__,
                error_message=str(exc_val)
            )


def log_error(
    logger: structlog.BoundLogger,
    error: Exception,
    context: str,
    **extra
):
    """
    Log error with full context and stack trace

    Args:
        logger: Structlog logger instance
        error: Exception instance
        context: Context description
        **extra: Additional context fields
    """
    logger.error(
        context,
        error_type=type(error).__name__,
        error_message=str(error),
        exc_info=True,
        **extra
    )


def log_container_event(
    logger: structlog.BoundLogger,
    event: str,
    node: str,
    role: str,
    duration_ms: Optional[float] = None,
    **extra
):
    """
    Log a container lifecycle event (created, started, stopped, failed)

    Args:
        logger: Structlog logger instance
        event: Lifecycle event name
        node: Node name, e.g. "zeebe-broker-0"
        role: Node role value
        duration_ms: Duration of the lifecycle step in milliseconds
        **extra: Additional context fields
    """
    level = "warning" if event == "failed" else "info"
    getattr(logger, level)(
        "container_event",
        lifecycle=event,
        node=node,
        role=role,
        duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
        **extra
    )


# ============================================================================
# FILTERING AND UTILITIES
# ============================================================================

def clear_context():
    """Clear all context variables"""
    structlog.contextvars.clear_contextvars()


def bind_context(**context):
    """Add context to all future log entries"""
    structlog.contextvars.bind_contextvars(**context)


def unbind_context(*keys):
    """Remove context variables"""
    structlog.contextvars.unbind_contextvars(*keys)


# ============================================================================
# INITIALIZATION
# ============================================================================

if os.getenv("ZEEBE_CONTAINERS_JSON_LOGGING", "false").lower() == "true":
    setup_json_logging()
