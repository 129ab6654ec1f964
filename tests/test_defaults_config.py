"""
Unit tests for zeebe_containers/defaults.py and config_loader.py
"""

import json

import pytest

from zeebe_containers import defaults as defaults_module
from zeebe_containers.config_loader import ConfigLoader
from zeebe_containers.defaults import ZeebeDefaults
from zeebe_containers.errors import InvalidTopologyError


class TestZeebeDefaults:
    """Test ZeebeDefaults"""

    def test_documented_defaults(self):
        defaults = ZeebeDefaults()

        assert defaults.image_name == "camunda/zeebe:8.6.0"
        assert defaults.data_path == "/usr/local/zeebe/data"
        assert defaults.logs_path == "/usr/local/zeebe/logs"
        assert (defaults.gateway_port, defaults.command_port, defaults.internal_port) == (
            26500, 26501, 26502
        )
        assert defaults.monitoring_port == 9600
        assert defaults.force_cleanup_enabled is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ZEEBE_CONTAINERS_IMAGE", "ghcr.io/camunda/zeebe")
        monkeypatch.setenv("ZEEBE_CONTAINERS_VERSION", "SNAPSHOT")
        monkeypatch.setenv("ZEEBE_CONTAINERS_HOST", "docker")
        monkeypatch.setenv("ZEEBE_CONTAINERS_STARTUP_TIMEOUT", "30")
        monkeypatch.setenv("ZEEBE_CONTAINERS_FORCE_CLEANUP", "TRUE")

        defaults = ZeebeDefaults.from_env()

        assert defaults.image_name == "ghcr.io/camunda/zeebe:SNAPSHOT"
        assert defaults.host == "docker"
        assert defaults.startup_timeout == 30.0
        assert defaults.force_cleanup_enabled is True

    def test_replace_returns_new_value(self):
        original = ZeebeDefaults()

        changed = original.replace(version="8.5.0")

        assert changed.image_name == "camunda/zeebe:8.5.0"
        assert original.version == "8.6.0"

    @pytest.mark.parametrize("overrides", [
        {"gateway_port": 0},
        {"rest_port": 70000},
        {"startup_timeout": 0},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            ZeebeDefaults(**overrides)

    def test_frozen(self):
        defaults = ZeebeDefaults()

        with pytest.raises(AttributeError):
            defaults.version = "latest"

    def test_get_instance_is_cached(self, monkeypatch):
        monkeypatch.setattr(defaults_module, "_instance", None)
        monkeypatch.setenv("ZEEBE_CONTAINERS_VERSION", "8.4.0")

        first = ZeebeDefaults.get_instance()
        monkeypatch.setenv("ZEEBE_CONTAINERS_VERSION", "8.5.0")
        second = ZeebeDefaults.get_instance()

        assert first is second
        assert second.version == "8.4.0"

    def test_dump(self):
        dumped = ZeebeDefaults().dump()

        assert dumped["image"] == "camunda/zeebe"
        assert dumped["internal_port"] == 26502


class TestConfigLoader:
    """Test ConfigLoader"""

    def test_yaml_substitution_and_conversion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BROKERS", "3")
        monkeypatch.delenv("EMBEDDED", raising=False)
        path = tmp_path / "cluster.yml"
        path.write_text(
            "brokers_count: ${BROKERS}\n"
            "embedded_gateway: ${EMBEDDED:false}\n"
            "name: zeebe-${BROKERS}\n"
        )

        config = ConfigLoader.load_config(path)

        assert config == {"brokers_count": 3, "embedded_gateway": False, "name": "zeebe-3"}

    def test_missing_required_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        path = tmp_path / "cluster.yaml"
        path.write_text("brokers_count: ${NOT_SET_ANYWHERE}\n")

        with pytest.raises(ValueError):
            ConfigLoader.load_yaml(path)

    def test_json_nested_values(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LEVEL", "debug")
        path = tmp_path / "cluster.json"
        path.write_text(json.dumps({"node_env": {"ZEEBE_LOG_LEVEL": "${LEVEL}"}}))

        assert ConfigLoader.load_config(path) == {"node_env": {"ZEEBE_LOG_LEVEL": "debug"}}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "cluster.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ValueError):
            ConfigLoader.load_yaml(path)

    def test_empty_file_rejected(self, tmp_path):
        path = tmp_path / "cluster.yaml"
        path.write_text("")

        with pytest.raises(ValueError):
            ConfigLoader.load_yaml(path)

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "cluster.toml"
        path.write_text("brokers_count = 1\n")

        with pytest.raises(ValueError):
            ConfigLoader.load_config(path)

    def test_topology_keys_checked_against_allowed(self, tmp_path):
        path = tmp_path / "cluster.yaml"
        path.write_text("brokers_count: 1\nregion: eu\n")

        with pytest.raises(InvalidTopologyError) as exc_info:
            ConfigLoader.load_topology(path, ["brokers_count"])

        assert exc_info.value.context == {"keys": ["region"], "path": str(path)}

    def test_topology_node_env_stringified(self, tmp_path, monkeypatch):
        monkeypatch.setenv("THREADS", "4")
        path = tmp_path / "cluster.yaml"
        path.write_text("node_env:\n  ZEEBE_BROKER_THREADS_CPUTHREADCOUNT: ${THREADS}\n")

        data = ConfigLoader.load_topology(path, ["node_env"])

        assert data == {"node_env": {"ZEEBE_BROKER_THREADS_CPUTHREADCOUNT": "4"}}
