"""
Docker runtime binding for Zeebe containers.

Thin layer over the Docker SDK: every container, network and volume created
through it is labelled with the current session id so that it can be found
and reclaimed later by ``force_cleanup``.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING
from uuid import uuid4

import docker
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException

from zeebe_containers.defaults import ZeebeDefaults
from zeebe_containers.errors import ConfigurationError, ProvisioningError

if TYPE_CHECKING:
    from docker.client import DockerClient
    from zeebe_containers.container_spec import ContainerSpec

logger = logging.getLogger(__name__)

BASE_LABEL = "io.zeebe.containers"
SESSION_LABEL = "io.zeebe.containers.sessionId"
SESSION_ID = uuid4().hex


def session_labels(session_id: str = SESSION_ID) -> Dict[str, str]:
    """Labels attached to every resource created in the given session."""
    return {BASE_LABEL: "true", SESSION_LABEL: session_id}


class DockerRuntime:
    """Issues container, network and volume requests to the Docker daemon."""

    def __init__(
        self,
        docker_client: Optional["DockerClient"] = None,
        defaults: Optional[ZeebeDefaults] = None,
        session_id: str = SESSION_ID,
    ):
        """Initialize runtime; the Docker client is created lazily from the environment."""
        self._client = docker_client
        self.defaults = defaults or ZeebeDefaults.get_instance()
        self.session_id = session_id

    @property
    def client(self) -> "DockerClient":
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    @property
    def labels(self) -> Dict[str, str]:
        return session_labels(self.session_id)

    def ping(self) -> bool:
        """Check whether the Docker daemon is reachable."""
        return bool(self.client.ping())

    # ==================== VOLUMES ====================

    def create_volume(self, name: str,
                      labels: Optional[Dict[str, str]] = None) -> Tuple[Dict[str, str], bool]:
        """
        Create a named volume, or reuse it if this session already owns it.

        Returns:
            The labels carried by the volume, and whether an existing volume was reused

        Raises:
            ProvisioningError: if the volume exists and belongs to another session
        """
        try:
            existing = self.client.volumes.get(name)
        except NotFound:
            existing = None

        if existing is not None:
            existing_labels = existing.attrs.get("Labels") or {}
            owner = existing_labels.get(SESSION_LABEL)
            if owner != self.session_id:
                raise ProvisioningError(
                    f"Volume '{name}' already exists and is owned by session {owner}",
                    component="volume",
                    context={"volume": name, "owner": owner},
                )
            logger.debug(f"Reusing volume {name} owned by this session")
            return existing_labels, True

        volume_labels = {**(labels or {}), **self.labels}
        volume = self.client.volumes.create(name=name, labels=volume_labels)
        logger.info(f"Created volume {volume.name}")
        return volume.attrs.get("Labels") or volume_labels, False

    def remove_volume(self, name: str) -> bool:
        """Remove a volume; returns False if it did not exist."""
        try:
            self.client.volumes.get(name).remove(force=True)
        except NotFound:
            return False
        logger.info(f"Removed volume {name}")
        return True

    # ==================== NETWORKS ====================

    def create_network(self, name: Optional[str] = None) -> str:
        """Create a bridge network labelled with this session; returns its name."""
        name = name or f"zeebe-network-{uuid4().hex[:12]}"
        self.client.networks.create(name, driver="bridge", labels=self.labels)
        logger.info(f"Created network {name}")
        return name

    def remove_network(self, name: str) -> bool:
        """Remove a network; returns False if it did not exist."""
        try:
            self.client.networks.get(name).remove()
        except NotFound:
            return False
        logger.info(f"Removed network {name}")
        return True

    # ==================== CONTAINERS ====================

    def create_container(self, spec: "ContainerSpec") -> str:
        """
        Create (but do not start) a container from the given spec.

        The container joins ``spec.network`` under ``spec.alias`` before it
        is started, so that siblings can reach it by alias.

        Returns:
            The container id
        """
        container = self.client.containers.create(
            spec.image,
            hostname=spec.alias,
            environment=dict(spec.env),
            ports={f"{port}/tcp": None for port in spec.exposed_ports},
            volumes=spec.volume_binds(),
            labels={**spec.labels, **self.labels},
            detach=True,
        )
        if spec.network:
            try:
                network = self.client.networks.get(spec.network)
                network.connect(container, aliases=[spec.alias])
            except (DockerException, RequestException):
                logger.warning(
                    f"Removing container {container.id}: could not join network {spec.network}"
                )
                container.remove(v=False, force=True)
                raise
        return container.id

    def start_container(self, container_id: str) -> None:
        self.client.containers.get(container_id).start()

    def published_ports(self, container_id: str) -> Dict[int, int]:
        """Map of container port -> published host port."""
        container = self.client.containers.get(container_id)
        container.reload()
        ports = container.attrs.get("NetworkSettings", {}).get("Ports") or {}
        published = {}
        for key, bindings in ports.items():
            if not bindings:
                continue
            port = int(key.split("/")[0])
            published[port] = int(bindings[0]["HostPort"])
        return published

    def stop_container(self, container_id: str, timeout: int = 10) -> bool:
        """Stop and remove a container; returns False if it no longer exists."""
        try:
            container = self.client.containers.get(container_id)
        except NotFound:
            return False
        container.stop(timeout=timeout)
        container.remove(v=False, force=True)
        return True

    def inspect_container(self, container_id: str) -> Dict[str, Any]:
        container = self.client.containers.get(container_id)
        container.reload()
        return container.attrs

    def logs(self, container_id: str, tail: int = 200) -> str:
        return self.client.containers.get(container_id).logs(tail=tail).decode(
            "utf-8", errors="replace"
        )

    # ==================== CLEANUP ====================

    def force_cleanup(self) -> Dict[str, List[str]]:
        """
        Remove every container, network and volume labelled with this session.

        Only available when ``ZeebeDefaults.force_cleanup_enabled`` is set,
        which test suites opt into via ZEEBE_CONTAINERS_FORCE_CLEANUP=true.

        Returns:
            Names/ids of the removed resources per kind
        """
        if not self.defaults.force_cleanup_enabled:
            raise ConfigurationError(
                "force_cleanup is disabled; set ZEEBE_CONTAINERS_FORCE_CLEANUP=true",
                component="runtime",
            )

        label_filter = {"label": f"{SESSION_LABEL}={self.session_id}"}
        removed = {"containers": [], "networks": [], "volumes": []}

        for container in self.client.containers.list(all=True, filters=label_filter):
            container.remove(v=False, force=True)
            removed["containers"].append(container.id)
        for network in self.client.networks.list(filters=label_filter):
            network.remove()
            removed["networks"].append(network.name)
        for volume in self.client.volumes.list(filters=label_filter):
            volume.remove(force=True)
            removed["volumes"].append(volume.name)

        logger.warning(
            f"Force cleanup of session {self.session_id} removed "
            f"{len(removed['containers'])} containers, {len(removed['networks'])} networks, "
            f"{len(removed['volumes'])} volumes"
        )
        return removed


_default_runtime: Optional[DockerRuntime] = None
_default_runtime_lock = threading.Lock()


def get_default_runtime() -> DockerRuntime:
    """Return the shared runtime bound to ``docker.from_env()``."""
    global _default_runtime
    if _default_runtime is None:
        with _default_runtime_lock:
            if _default_runtime is None:
                _default_runtime = DockerRuntime()
    return _default_runtime
