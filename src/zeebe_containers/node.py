"""
Zeebe node containers: brokers, standalone gateways and brokers with an
embedded gateway.

Every node derives its network alias, and therefore its internal addresses,
from its role and node id before anything is started. Sibling nodes use
these aliases as contact points; the published host ports are only known
after ``start()``.
"""

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING

import httpx
from docker.errors import DockerException
from requests.exceptions import RequestException

from zeebe_containers.container_spec import ContainerSpec
from zeebe_containers.defaults import ZeebeDefaults
from zeebe_containers.errors import (
    ConfigurationError,
    IllegalStateError,
    NotReadyError,
    ProvisioningError,
)
from zeebe_containers.logging_config import get_logger, log_container_event
from zeebe_containers.metrics import record_start, record_stop
from zeebe_containers.runtime import DockerRuntime, get_default_runtime
from zeebe_containers.volume import ZeebeVolume
from zeebe_containers.wait import wait_for_http_ready

if TYPE_CHECKING:
    from zeebe_containers.cluster.topology import ClusterTopology

logger = logging.getLogger(__name__)
event_logger = get_logger(__name__)

ROLE_LABEL = "io.zeebe.containers.role"
NODE_ID_LABEL = "io.zeebe.containers.nodeId"


class NodeRole(str, Enum):
    """Role a node plays in the cluster."""
    BROKER = "broker"
    GATEWAY = "gateway"
    BROKER_WITH_EMBEDDED_GATEWAY = "broker_with_embedded_gateway"

    @property
    def is_broker(self) -> bool:
        return self is not NodeRole.GATEWAY

    @property
    def has_gateway(self) -> bool:
        return self is not NodeRole.BROKER


class NodeState(str, Enum):
    """Lifecycle of a node container. FAILED is terminal."""
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"
    FAILED = "failed"


class ZeebeNode(ABC):
    """
    A single Zeebe container definition bound to a runtime.

    Use ``ZeebeNode.configure`` to create a node for a topology; the
    subclasses fill in the role-specific environment.
    """

    ready_path = "/ready"

    def __init__(
        self,
        role: NodeRole,
        node_id: int,
        alias: str,
        env: Optional[Dict[str, str]] = None,
        network: Optional[str] = None,
        image: Optional[str] = None,
        runtime: Optional[DockerRuntime] = None,
        defaults: Optional[ZeebeDefaults] = None,
        wait_for_ready: bool = True,
    ):
        if node_id < 0:
            raise ValueError(f"node_id must be non-negative, got {node_id}")
        self.role = role
        self.node_id = node_id
        self.runtime = runtime or get_default_runtime()
        self.defaults = defaults or self.runtime.defaults
        self.wait_for_ready = wait_for_ready
        self.state = NodeState.CREATED
        self.container_id: Optional[str] = None
        self._published: Dict[int, int] = {}
        self.spec = ContainerSpec(
            image=image or self.defaults.image_name,
            alias=alias,
            env=dict(env or {}),
            exposed_ports=self._exposed_ports(),
            labels={ROLE_LABEL: role.value, NODE_ID_LABEL: str(node_id)},
            network=network,
        )

    @classmethod
    def configure(
        cls,
        role: NodeRole,
        node_id: int,
        topology: "ClusterTopology",
        runtime: Optional[DockerRuntime] = None,
        defaults: Optional[ZeebeDefaults] = None,
        wait_for_ready: bool = True,
    ) -> "ZeebeNode":
        """
        Create the node for ``role``/``node_id`` within ``topology``.

        Contact points are computed from the topology's alias scheme, so no
        sibling needs to exist yet.
        """
        defaults = defaults or (runtime.defaults if runtime else ZeebeDefaults.get_instance())
        node_cls = ZeebeGatewayNode if role is NodeRole.GATEWAY else ZeebeBrokerNode
        node = node_cls(
            role=role,
            node_id=node_id,
            alias=topology.alias(role, node_id),
            env=node_cls.cluster_env(role, node_id, topology, defaults),
            network=topology.network,
            image=topology.image,
            runtime=runtime,
            defaults=defaults,
            wait_for_ready=wait_for_ready,
        )
        for key, value in topology.node_env.items():
            node.with_env(key, value)
        return node

    @staticmethod
    @abstractmethod
    def cluster_env(role: NodeRole, node_id: int, topology: "ClusterTopology",
                    defaults: ZeebeDefaults) -> Dict[str, str]:
        """Role-specific environment wiring the node into ``topology``."""

    @abstractmethod
    def _exposed_ports(self) -> List[int]:
        """Container ports to publish."""

    # ==================== CONFIGURATION ====================

    @property
    def name(self) -> str:
        return self.spec.alias

    @property
    def alias(self) -> str:
        return self.spec.alias

    @property
    def env(self) -> Dict[str, str]:
        return dict(self.spec.env)

    def _ensure_configurable(self, what: str) -> None:
        if self.state is not NodeState.CREATED:
            raise ConfigurationError(
                f"Cannot {what} on {self.name}: container is {self.state.value}",
                component=self.name,
                context={"state": self.state.value},
            )

    def with_env(self, key: str, value) -> "ZeebeNode":
        self._ensure_configurable("set environment")
        self.spec.env[key] = str(value)
        return self

    def with_network(self, network: str) -> "ZeebeNode":
        self._ensure_configurable("change network")
        self.spec.network = network
        return self

    def with_volume(self, volume: ZeebeVolume, mount_path: Optional[str] = None) -> "ZeebeNode":
        """Attach a volume at ``mount_path`` (default: the data path)."""
        self._ensure_configurable("attach volume")
        volume.attach(self.spec, mount_path or self.defaults.data_path)
        return self

    def with_data_volume(self, volume: ZeebeVolume) -> "ZeebeNode":
        return self.with_volume(volume, self.defaults.data_path)

    def with_logs_volume(self, volume: ZeebeVolume) -> "ZeebeNode":
        return self.with_volume(volume, self.defaults.logs_path)

    # ==================== LIFECYCLE ====================

    @property
    def is_started(self) -> bool:
        return self.state is NodeState.STARTED

    def start(self) -> "ZeebeNode":
        """
        Create and start the container, then wait until it reports ready.

        Raises:
            IllegalStateError: If the node was already started, stopped or failed
            ProvisioningError: If the runtime failed; the node becomes FAILED
        """
        if self.state is not NodeState.CREATED:
            raise IllegalStateError(
                f"{self.name} cannot be started: container is {self.state.value}",
                component=self.name,
                context={"state": self.state.value},
            )

        start = time.monotonic()
        try:
            self.container_id = self.runtime.create_container(self.spec)
            self.runtime.start_container(self.container_id)
            self._published = self.runtime.published_ports(self.container_id)
            if self.wait_for_ready:
                wait_for_http_ready(
                    f"http://{self._host_address(self.defaults.monitoring_port)}{self.ready_path}",
                    timeout=self.defaults.startup_timeout,
                )
        except (DockerException, RequestException, httpx.HTTPError, TimeoutError, KeyError) as e:
            self.state = NodeState.FAILED
            elapsed = time.monotonic() - start
            record_start(self.role.value, success=False)
            log_container_event(
                event_logger, "failed", self.name, self.role.value,
                duration_ms=elapsed * 1000, error=str(e),
            )
            raise ProvisioningError(
                f"Failed to start {self.role.value} {self.name}: {e}",
                component=self.name,
                context={
                    "role": self.role.value,
                    "node_id": self.node_id,
                    "container_id": self.container_id,
                },
            ) from e

        elapsed = time.monotonic() - start
        self.state = NodeState.STARTED
        record_start(self.role.value, success=True, elapsed=elapsed)
        log_container_event(
            event_logger, "started", self.name, self.role.value,
            duration_ms=elapsed * 1000, container_id=self.container_id,
        )
        return self

    def stop(self) -> None:
        """
        Stop and remove the container. Safe to call any number of times.

        A FAILED node has its leftover container removed once; a node that
        was never started is left untouched.

        Raises:
            ProvisioningError: If the runtime failed to stop the container
        """
        if self.container_id is None or self.state is NodeState.STOPPED:
            return

        try:
            self.runtime.stop_container(self.container_id)
        except (DockerException, RequestException) as e:
            record_stop(self.role.value, success=False)
            raise ProvisioningError(
                f"Failed to stop {self.role.value} {self.name}: {e}",
                component=self.name,
                context={"container_id": self.container_id},
            ) from e

        record_stop(self.role.value, success=True)
        log_container_event(event_logger, "stopped", self.name, self.role.value)
        if self.state is NodeState.FAILED:
            self.container_id = None
        else:
            self.state = NodeState.STOPPED

    def logs(self, tail: int = 200) -> str:
        """Last lines of the container output, for debugging failed tests."""
        if self.container_id is None:
            raise NotReadyError(f"{self.name} has no container yet", component=self.name)
        return self.runtime.logs(self.container_id, tail=tail)

    # ==================== ADDRESSES ====================

    def _ensure_started(self, what: str) -> None:
        if self.state is not NodeState.STARTED:
            raise NotReadyError(
                f"{what} of {self.name} is not available: container is {self.state.value}",
                component=self.name,
                context={"state": self.state.value},
            )

    def _host_address(self, port: int) -> str:
        return f"{self.defaults.host}:{self._published[port]}"

    @property
    def internal_cluster_address(self) -> str:
        """alias:internal_port, used for cluster membership."""
        self._ensure_started("internal cluster address")
        return f"{self.alias}:{self.defaults.internal_port}"

    @property
    def internal_address(self) -> str:
        """Address siblings use to reach this node inside the shared network."""
        return self.internal_cluster_address

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value})"


class _GatewayAddressesMixin:
    """Client-facing addresses, available on nodes that run a gateway."""

    @property
    def external_address(self) -> str:
        """host:port of the published gRPC gateway endpoint."""
        self._ensure_started("external address")
        return self._host_address(self.defaults.gateway_port)

    @property
    def rest_address(self) -> str:
        """host:port of the published REST endpoint."""
        self._ensure_started("REST address")
        return self._host_address(self.defaults.rest_port)


class ZeebeBrokerNode(_GatewayAddressesMixin, ZeebeNode):
    """A broker, optionally running an embedded gateway."""

    ready_path = "/ready"

    @staticmethod
    def cluster_env(role: NodeRole, node_id: int, topology: "ClusterTopology",
                    defaults: ZeebeDefaults) -> Dict[str, str]:
        return {
            "ZEEBE_BROKER_CLUSTER_NODEID": str(node_id),
            "ZEEBE_BROKER_CLUSTER_CLUSTERSIZE": str(topology.brokers_count),
            "ZEEBE_BROKER_CLUSTER_PARTITIONSCOUNT": str(topology.partitions_count),
            "ZEEBE_BROKER_CLUSTER_REPLICATIONFACTOR": str(topology.replication_factor),
            "ZEEBE_BROKER_CLUSTER_CLUSTERNAME": topology.name,
            "ZEEBE_BROKER_CLUSTER_INITIALCONTACTPOINTS": ",".join(
                topology.contact_points(defaults)
            ),
            "ZEEBE_BROKER_NETWORK_HOST": "0.0.0.0",
            "ZEEBE_BROKER_NETWORK_ADVERTISEDHOST": topology.alias(role, node_id),
            "ZEEBE_BROKER_GATEWAY_ENABLE": str(role.has_gateway).lower(),
        }

    def _exposed_ports(self) -> List[int]:
        ports = [self.defaults.command_port, self.defaults.internal_port,
                 self.defaults.monitoring_port]
        if self.role.has_gateway:
            ports += [self.defaults.gateway_port, self.defaults.rest_port]
        return ports

    @property
    def internal_command_address(self) -> str:
        """alias:command_port, the address the broker advertises in the topology."""
        self._ensure_started("internal command address")
        return f"{self.alias}:{self.defaults.command_port}"

    @property
    def internal_address(self) -> str:
        return self.internal_command_address

    @property
    def external_address(self) -> str:
        if not self.role.has_gateway:
            raise NotReadyError(
                f"{self.name} has no embedded gateway", component=self.name
            )
        return super().external_address

    @property
    def rest_address(self) -> str:
        if not self.role.has_gateway:
            raise NotReadyError(
                f"{self.name} has no embedded gateway", component=self.name
            )
        return super().rest_address


class ZeebeGatewayNode(_GatewayAddressesMixin, ZeebeNode):
    """A standalone gateway."""

    ready_path = "/actuator/health/startup"

    @staticmethod
    def cluster_env(role: NodeRole, node_id: int, topology: "ClusterTopology",
                    defaults: ZeebeDefaults) -> Dict[str, str]:
        alias = topology.alias(role, node_id)
        return {
            "ZEEBE_STANDALONE_GATEWAY": "true",
            "ZEEBE_GATEWAY_NETWORK_HOST": "0.0.0.0",
            "ZEEBE_GATEWAY_CLUSTER_HOST": alias,
            "ZEEBE_GATEWAY_CLUSTER_MEMBERID": alias,
            "ZEEBE_GATEWAY_CLUSTER_CLUSTERNAME": topology.name,
            "ZEEBE_GATEWAY_CLUSTER_INITIALCONTACTPOINTS": ",".join(
                topology.contact_points(defaults)
            ),
        }

    def _exposed_ports(self) -> List[int]:
        return [self.defaults.gateway_port, self.defaults.internal_port,
                self.defaults.monitoring_port, self.defaults.rest_port]
