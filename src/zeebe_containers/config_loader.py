"""
Topology file loading with environment variable substitution.

A topology file is a YAML or JSON mapping whose keys are ClusterTopology
fields. String values may contain ${VAR_NAME} or ${VAR_NAME:default}
placeholders; a value made of a single placeholder is converted to int,
float or bool when possible, so counts can come from the CI environment.

Example topology file:

    brokers_count: ${ZEEBE_BROKERS:3}
    gateways_count: 1
    partitions_count: 3
    replication_factor: 3
    embedded_gateway: false
    node_env:
      ZEEBE_LOG_LEVEL: ${ZEEBE_LOG_LEVEL:info}
"""

import os
import re
import logging
import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Union

import yaml

from zeebe_containers.errors import InvalidTopologyError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ConfigLoader:
    """Reads topology files and resolves ${VAR} placeholders."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

    # ==================== FILE FORMATS ====================

    @classmethod
    def load_yaml(cls, path: PathLike) -> Dict[str, Any]:
        """
        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file is empty, not a mapping, or references an unset variable
            yaml.YAMLError: If YAML parsing fails
        """
        return cls._read(path, yaml.safe_load)

    @classmethod
    def load_json(cls, path: PathLike) -> Dict[str, Any]:
        """
        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file is not an object, or references an unset variable
            json.JSONDecodeError: If JSON parsing fails
        """
        return cls._read(path, json.load)

    @classmethod
    def load_config(cls, path: PathLike) -> Dict[str, Any]:
        """Load a .yaml/.yml or .json file, chosen by extension."""
        suffix = Path(path).suffix.lower()
        if suffix in ('.yaml', '.yml'):
            return cls.load_yaml(path)
        if suffix == '.json':
            return cls.load_json(path)
        raise ValueError(f"Unsupported topology file format: {suffix}")

    @classmethod
    def _read(cls, path: PathLike, parse: Callable[[Any], Any]) -> Dict[str, Any]:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Topology file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = parse(f)

        if data is None:
            raise ValueError(f"Topology file is empty: {path}")
        if not isinstance(data, dict):
            raise ValueError(f"Topology file must contain a mapping: {path}")

        logger.debug(f"Loaded topology file {path}")
        return cls._process_env_vars(data)

    # ==================== TOPOLOGY ====================

    @classmethod
    def load_topology(cls, path: PathLike, allowed_keys: Iterable[str]) -> Dict[str, Any]:
        """
        Load a topology file and check it only sets known fields.

        ``node_env`` values are turned into strings, as container
        environments require.

        Raises:
            InvalidTopologyError: If the file contains unknown keys or a malformed node_env
        """
        data = cls.load_config(path)

        unknown = sorted(set(data) - set(allowed_keys))
        if unknown:
            raise InvalidTopologyError(
                f"Unknown topology keys in {path}: {', '.join(unknown)}",
                component="topology",
                context={"keys": unknown, "path": str(path)},
            )

        node_env = data.get("node_env")
        if node_env is not None:
            if not isinstance(node_env, dict):
                raise InvalidTopologyError(
                    f"node_env must be a mapping in {path}",
                    component="topology",
                    context={"path": str(path)},
                )
            data["node_env"] = {str(k): str(v) for k, v in node_env.items()}
        return data

    # ==================== SUBSTITUTION ====================

    @classmethod
    def _process_env_vars(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: cls._process_env_vars(value) for key, value in data.items()}
        if isinstance(data, list):
            return [cls._process_env_vars(item) for item in data]
        if isinstance(data, str):
            return cls._substitute_env_var(data)
        return data

    @classmethod
    def _substitute_env_var(cls, value: str) -> Union[str, int, float, bool]:
        """
        Raises:
            ValueError: If a placeholder without default names an unset variable
        """
        def resolve(match):
            name, sep, default = match.group(1).partition(':')
            env_value = os.getenv(name.strip())
            if env_value is not None:
                return env_value
            if not sep:
                raise ValueError(f"Required environment variable not set: {name.strip()}")
            return default.strip()

        result = cls.ENV_VAR_PATTERN.sub(resolve, value)

        # only a standalone placeholder gets a typed value
        if cls.ENV_VAR_PATTERN.fullmatch(value):
            return cls._convert_value(result)
        return result

    @staticmethod
    def _convert_value(value: str) -> Union[str, int, float, bool]:
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value
