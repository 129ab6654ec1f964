"""
Default paths, ports and image used by Zeebe containers.

The defaults are resolved once from constants and ``ZEEBE_CONTAINERS_*``
environment variables, then passed explicitly to builders and nodes.

Environment Variables:
    ZEEBE_CONTAINERS_IMAGE: Docker image repository (default: camunda/zeebe)
    ZEEBE_CONTAINERS_VERSION: Docker image tag (default: 8.6.0)
    ZEEBE_CONTAINERS_HOST: Host used to reach published ports (default: localhost)
    ZEEBE_CONTAINERS_STARTUP_TIMEOUT: Readiness timeout in seconds (default: 120)
    ZEEBE_CONTAINERS_FORCE_CLEANUP: Allow DockerRuntime.force_cleanup (default: false)
"""

import os
import logging
import threading
from dataclasses import dataclass, asdict, replace as _replace
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_IMAGE = "camunda/zeebe"
DEFAULT_VERSION = "8.6.0"
DEFAULT_DATA_PATH = "/usr/local/zeebe/data"
DEFAULT_LOGS_PATH = "/usr/local/zeebe/logs"

GATEWAY_PORT = 26500
COMMAND_PORT = 26501
INTERNAL_PORT = 26502
MONITORING_PORT = 9600
REST_PORT = 8080


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class ZeebeDefaults:
    """Immutable defaults for Zeebe node containers."""
    image: str = DEFAULT_IMAGE
    version: str = DEFAULT_VERSION
    data_path: str = DEFAULT_DATA_PATH
    logs_path: str = DEFAULT_LOGS_PATH
    gateway_port: int = GATEWAY_PORT
    command_port: int = COMMAND_PORT
    internal_port: int = INTERNAL_PORT
    monitoring_port: int = MONITORING_PORT
    rest_port: int = REST_PORT
    host: str = "localhost"
    startup_timeout: float = 120.0
    force_cleanup_enabled: bool = False

    def __post_init__(self):
        """Validate port and timeout values."""
        for name in ("gateway_port", "command_port", "internal_port",
                     "monitoring_port", "rest_port"):
            port = getattr(self, name)
            if not (0 < port < 65536):
                raise ValueError(f"{name} must be in (0, 65536), got {port}")
        if self.startup_timeout <= 0:
            raise ValueError(
                f"startup_timeout must be positive, got {self.startup_timeout}"
            )

    @property
    def image_name(self) -> str:
        """Full image reference, e.g. camunda/zeebe:8.6.0."""
        return f"{self.image}:{self.version}"

    @classmethod
    def from_env(cls) -> "ZeebeDefaults":
        """
        Load defaults from environment variables.

        Returns:
            ZeebeDefaults instance with current settings
        """
        return cls(
            image=os.getenv("ZEEBE_CONTAINERS_IMAGE", DEFAULT_IMAGE),
            version=os.getenv("ZEEBE_CONTAINERS_VERSION", DEFAULT_VERSION),
            host=os.getenv("ZEEBE_CONTAINERS_HOST", "localhost"),
            startup_timeout=float(os.getenv("ZEEBE_CONTAINERS_STARTUP_TIMEOUT", "120")),
            force_cleanup_enabled=_env_bool("ZEEBE_CONTAINERS_FORCE_CLEANUP", "false"),
        )

    @classmethod
    def get_instance(cls) -> "ZeebeDefaults":
        """Return the process-wide defaults, resolving them on first access."""
        global _instance
        if _instance is None:
            with _instance_lock:
                if _instance is None:
                    _instance = cls.from_env()
                    logger.debug(f"Resolved Zeebe defaults: {_instance.dump()}")
        return _instance

    def replace(self, **overrides: Any) -> "ZeebeDefaults":
        """Derive a new defaults value with the given fields overridden."""
        return _replace(self, **overrides)

    def dump(self) -> Dict[str, Any]:
        """Dump the defaults as a dictionary."""
        return asdict(self)


_instance: Optional[ZeebeDefaults] = None
_instance_lock = threading.Lock()
