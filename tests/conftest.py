"""Pytest configuration and fixtures for the zeebe-containers test suite."""
import itertools
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from docker.errors import APIError, NotFound

# Ensure project modules are importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zeebe_containers.defaults import ZeebeDefaults  # noqa: E402
from zeebe_containers.runtime import DockerRuntime, SESSION_LABEL  # noqa: E402


# ============================================================================
# IN-MEMORY DOCKER DOUBLE
# ============================================================================

def _matches(labels: Dict[str, str], filters: Optional[dict]) -> bool:
    if not filters or "label" not in filters:
        return True
    key, _, value = filters["label"].partition("=")
    return labels.get(key) == value


class FakeVolume:
    def __init__(self, daemon, name, labels):
        self.daemon = daemon
        self.name = name
        self.attrs = {"Name": name, "Labels": dict(labels or {})}

    def remove(self, force=False):
        self.daemon.calls.append(("volume.remove", self.name))
        self.daemon.volumes_by_name.pop(self.name, None)


class FakeNetwork:
    def __init__(self, daemon, name, labels):
        self.daemon = daemon
        self.name = name
        self.labels = dict(labels or {})
        self.connected: List[tuple] = []

    def connect(self, container, aliases=None):
        self.daemon.calls.append(("network.connect", self.name, container.id))
        if self.daemon.fail_connect:
            raise APIError("endpoint with name already exists in network")
        self.connected.append((container.id, list(aliases or [])))
        container.networks[self.name] = list(aliases or [])

    def remove(self):
        self.daemon.calls.append(("network.remove", self.name))
        self.daemon.networks_by_name.pop(self.name, None)


class FakeContainer:
    def __init__(self, daemon, container_id, image, **kwargs):
        self.daemon = daemon
        self.id = container_id
        self.image = image
        self.kwargs = kwargs
        self.labels = dict(kwargs.get("labels") or {})
        self.networks: Dict[str, List[str]] = {}
        self.status = "created"
        self.attrs = {"NetworkSettings": {"Ports": {}}}

    def start(self):
        self.daemon.calls.append(("container.start", self.id))
        if self.daemon.fail_start_for and self.kwargs.get("hostname") in self.daemon.fail_start_for:
            raise APIError("port is already allocated")
        self.status = "running"
        self.attrs["NetworkSettings"]["Ports"] = {
            key: [{"HostIp": "0.0.0.0", "HostPort": str(next(self.daemon.host_ports))}]
            for key in (self.kwargs.get("ports") or {})
        }

    def reload(self):
        pass

    def stop(self, timeout=10):
        self.daemon.calls.append(("container.stop", self.id))
        if self.daemon.fail_stop_for and self.kwargs.get("hostname") in self.daemon.fail_stop_for:
            raise APIError("cannot stop container")
        self.status = "exited"

    def remove(self, v=False, force=False):
        self.daemon.calls.append(("container.remove", self.id))
        self.daemon.containers_by_id.pop(self.id, None)

    def logs(self, tail=200):
        return b"Broker is ready!\n"

    @property
    def binds(self) -> List[str]:
        return list(self.kwargs.get("volumes") or [])


class _Volumes:
    def __init__(self, daemon):
        self.daemon = daemon

    def get(self, name):
        try:
            return self.daemon.volumes_by_name[name]
        except KeyError:
            raise NotFound(f"volume {name} not found")

    def create(self, name=None, labels=None, **kwargs):
        self.daemon.calls.append(("volume.create", name))
        volume = FakeVolume(self.daemon, name, labels)
        self.daemon.volumes_by_name[name] = volume
        return volume

    def list(self, filters=None):
        return [v for v in self.daemon.volumes_by_name.values()
                if _matches(v.attrs["Labels"], filters)]


class _Networks:
    def __init__(self, daemon):
        self.daemon = daemon

    def get(self, name):
        try:
            return self.daemon.networks_by_name[name]
        except KeyError:
            raise NotFound(f"network {name} not found")

    def create(self, name, driver=None, labels=None, **kwargs):
        self.daemon.calls.append(("network.create", name))
        network = FakeNetwork(self.daemon, name, labels)
        self.daemon.networks_by_name[name] = network
        return network

    def list(self, filters=None):
        return [n for n in self.daemon.networks_by_name.values()
                if _matches(n.labels, filters)]


class _Containers:
    def __init__(self, daemon):
        self.daemon = daemon

    def create(self, image, **kwargs):
        if self.daemon.fail_create_with is not None:
            raise self.daemon.fail_create_with
        container_id = f"c{next(self.daemon.container_ids):04d}"
        self.daemon.calls.append(("container.create", container_id))
        container = FakeContainer(self.daemon, container_id, image, **kwargs)
        self.daemon.containers_by_id[container_id] = container
        self.daemon.created.append(container)
        return container

    def get(self, container_id):
        try:
            return self.daemon.containers_by_id[container_id]
        except KeyError:
            raise NotFound(f"container {container_id} not found")

    def list(self, all=False, filters=None):
        return [c for c in self.daemon.containers_by_id.values()
                if _matches(c.labels, filters)]


class FakeDockerClient:
    """Records every call; behaves like docker.DockerClient for the calls we make."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.volumes_by_name: Dict[str, FakeVolume] = {}
        self.networks_by_name: Dict[str, FakeNetwork] = {}
        self.containers_by_id: Dict[str, FakeContainer] = {}
        self.created: List[FakeContainer] = []
        self.host_ports = itertools.count(32768)
        self.container_ids = itertools.count(1)
        self.fail_start_for: set = set()
        self.fail_stop_for: set = set()
        self.fail_connect = False
        self.fail_create_with: Optional[Exception] = None
        self.volumes = _Volumes(self)
        self.networks = _Networks(self)
        self.containers = _Containers(self)

    def ping(self):
        return True

    def container_by_alias(self, alias: str) -> FakeContainer:
        return next(c for c in self.created if c.kwargs.get("hostname") == alias)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def fake_docker():
    """In-memory Docker client double."""
    return FakeDockerClient()


@pytest.fixture
def defaults():
    """Defaults with force cleanup allowed and a short startup timeout."""
    return ZeebeDefaults(startup_timeout=5.0, force_cleanup_enabled=True)


@pytest.fixture
def runtime(fake_docker, defaults):
    """Runtime bound to the fake Docker client and a test-only session id."""
    return DockerRuntime(fake_docker, defaults=defaults, session_id="test-session")


@pytest.fixture
def foreign_volume(fake_docker):
    """A volume created by some other session."""
    return fake_docker.volumes.create(
        name="shared", labels={SESSION_LABEL: "another-session"}
    )


@pytest.fixture
def docker_client():
    """Real Docker client for integration tests."""
    try:
        import docker
        client = docker.from_env()
        client.ping()
    except Exception as e:
        pytest.skip(f"Docker not available: {e}")
    yield client
    client.close()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that need a Docker daemon"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests that pull images and boot Zeebe"
    )
