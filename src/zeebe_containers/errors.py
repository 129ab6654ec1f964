"""
Centralized Error Handling for Zeebe Containers

Provides the exception hierarchy raised by the topology builder, the node
containers and the cluster, together with helpers to classify and log
failures in a structured format.
"""

import logging
from typing import Any, Dict, List, Optional
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class ZeebeContainersError(Exception):
    """Base exception for all zeebe-containers errors."""

    def __init__(self, message: str, component: str = "unknown",
                 context: Optional[Dict[str, Any]] = None):
        """Initialize exception with metadata.

        Args:
            message: Error message
            component: Component where error occurred (e.g. "broker-0")
            context: Additional context data
        """
        self.message = message
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to structured log format."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class InvalidTopologyError(ZeebeContainersError):
    """Raised when a cluster topology violates its invariants."""
    pass


class ConfigurationError(ZeebeContainersError):
    """Raised when a container is mutated after it was started."""
    pass


class ProvisioningError(ZeebeContainersError):
    """Raised when the container runtime rejects a create/start/volume request."""
    pass


class NotReadyError(ZeebeContainersError):
    """Raised when an accessor is used before the required lifecycle step."""
    pass


class IllegalStateError(ZeebeContainersError):
    """Raised when a container is started twice or restarted after stopping."""
    pass


class ClusterStartError(ZeebeContainersError):
    """Raised when a node of the cluster failed to start.

    Carries the node that failed and the nodes that were already started,
    which the caller is responsible for stopping.
    """

    def __init__(self, message: str, cause: ProvisioningError,
                 started: Optional[List[str]] = None,
                 component: str = "cluster"):
        self.cause = cause
        self.started = list(started or [])
        super().__init__(
            message,
            component=component,
            context={
                "failed_node": cause.component,
                "started_nodes": self.started,
                "cause": cause.to_dict(),
            },
        )


class ClusterStopError(ZeebeContainersError):
    """Raised after all nodes were stopped if one or more of them failed."""

    def __init__(self, message: str, failures: Dict[str, Exception],
                 component: str = "cluster"):
        self.failures = dict(failures)
        super().__init__(
            message,
            component=component,
            context={name: str(exc) for name, exc in self.failures.items()},
        )


# ============================================================================
# Error Classification & Logging
# ============================================================================

class ErrorSeverity(Enum):
    """Severity levels for errors."""
    HIGH = "high"              # Runtime failure, resources may be leaked
    MEDIUM = "medium"          # Misuse of the API, nothing was provisioned
    LOW = "low"                # Best-effort operation failed


@dataclass
class ErrorContext:
    """Structured representation of an error occurrence."""
    error_type: str
    component: str
    message: str
    severity: ErrorSeverity
    original_exception: Optional[Exception] = None
    context_data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to structured log format."""
        return {
            "error_type": self.error_type,
            "component": self.component,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context_data,
            "timestamp": self.timestamp.isoformat(),
        }


def classify_error(exc: Exception, component: str,
                   context: Optional[Dict[str, Any]] = None) -> ErrorContext:
    """
    Classify an exception and return structured error context.

    Args:
        exc: The exception to classify
        component: Name of the component where error occurred
        context: Optional context data about the error

    Returns:
        ErrorContext with classification and metadata
    """
    context = dict(context or {})
    if isinstance(exc, ZeebeContainersError):
        context = {**exc.context, **context}

    severity_map = {
        ProvisioningError: ErrorSeverity.HIGH,
        ClusterStartError: ErrorSeverity.HIGH,
        ClusterStopError: ErrorSeverity.HIGH,
        InvalidTopologyError: ErrorSeverity.MEDIUM,
        ConfigurationError: ErrorSeverity.MEDIUM,
        NotReadyError: ErrorSeverity.MEDIUM,
        IllegalStateError: ErrorSeverity.MEDIUM,
    }

    severity = ErrorSeverity.HIGH
    for exc_type, sev in severity_map.items():
        if isinstance(exc, exc_type):
            severity = sev
            break

    return ErrorContext(
        error_type=exc.__class__.__name__,
        component=component,
        message=str(exc),
        severity=severity,
        original_exception=exc,
        context_data=context,
    )


def log_error(error_ctx: ErrorContext, logger_obj: Optional[logging.Logger] = None):
    """
    Log an error with structured format.

    Args:
        error_ctx: ErrorContext to log
        logger_obj: Logger instance (defaults to module logger)
    """
    if logger_obj is None:
        logger_obj = logger

    log_data = error_ctx.to_dict()
    # 'message' is reserved by LogRecord
    log_data_extra = {k: v for k, v in log_data.items() if k != 'message'}

    if error_ctx.severity == ErrorSeverity.HIGH:
        logger_obj.error(f"ERROR in {error_ctx.component}: {error_ctx.message}",
                         extra=log_data_extra)
    elif error_ctx.severity == ErrorSeverity.MEDIUM:
        logger_obj.warning(f"WARNING in {error_ctx.component}: {error_ctx.message}",
                           extra=log_data_extra)
    else:
        logger_obj.info(f"INFO from {error_ctx.component}: {error_ctx.message}",
                        extra=log_data_extra)
