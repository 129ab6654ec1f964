"""
A realized Zeebe cluster: the brokers and gateways built from a topology.

The cluster owns its nodes exclusively. It starts brokers before gateways and
stops them in reverse order. A failed start is not rolled back; call
``stop()`` (or use the cluster as a context manager) to reclaim whatever was
started.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from docker.errors import DockerException
import httpx
from requests.exceptions import RequestException

from zeebe_containers.client import ZeebeClientBuilder
from zeebe_containers.cluster.topology import ClusterTopology
from zeebe_containers.errors import (
    ClusterStartError,
    ClusterStopError,
    IllegalStateError,
    NotReadyError,
    ProvisioningError,
    ZeebeContainersError,
    classify_error,
    log_error,
)
from zeebe_containers.logging_config import LogContext, get_logger
from zeebe_containers.logging_config import log_error as log_event_error
from zeebe_containers.node import ZeebeBrokerNode, ZeebeGatewayNode, ZeebeNode
from zeebe_containers.runtime import DockerRuntime
from zeebe_containers.wait import poll_until

logger = logging.getLogger(__name__)
event_logger = get_logger(__name__)


class ClusterState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    FAILED = "failed"
    STOPPED = "stopped"


class ZeebeCluster:
    """Running aggregate of Zeebe nodes."""

    def __init__(
        self,
        topology: ClusterTopology,
        brokers: Dict[int, ZeebeBrokerNode],
        gateways: Dict[int, ZeebeGatewayNode],
        runtime: DockerRuntime,
    ):
        self.topology = topology
        self._brokers = dict(brokers)
        self._gateways = dict(gateways)
        self.runtime = runtime
        self.state = ClusterState.CREATED
        self.network: Optional[str] = topology.network
        self._owned_network: Optional[str] = None

    @staticmethod
    def builder():
        """Shortcut for ``ZeebeClusterBuilder()``."""
        from zeebe_containers.cluster.builder import ZeebeClusterBuilder
        return ZeebeClusterBuilder()

    # ==================== ACCESSORS ====================

    @property
    def brokers(self) -> Dict[int, ZeebeBrokerNode]:
        return dict(self._brokers)

    @property
    def gateways(self) -> Dict[int, ZeebeGatewayNode]:
        return dict(self._gateways)

    @property
    def nodes(self) -> List[ZeebeNode]:
        """Every node, in start order: brokers then gateways, by node id."""
        return [self._brokers[i] for i in sorted(self._brokers)] + [
            self._gateways[i] for i in sorted(self._gateways)
        ]

    @property
    def is_started(self) -> bool:
        return self.state is ClusterState.STARTED

    def _client_facing_nodes(self) -> List[ZeebeNode]:
        if self._gateways:
            return [self._gateways[i] for i in sorted(self._gateways)]
        return [
            self._brokers[i] for i in sorted(self._brokers)
            if self._brokers[i].role.has_gateway
        ]

    def _ensure_started(self, what: str) -> None:
        if not self.is_started:
            raise NotReadyError(
                f"Cannot get {what}: cluster is {self.state.value}",
                component="cluster",
                context={"state": self.state.value},
            )

    @property
    def gateway_addresses(self) -> List[str]:
        """External gRPC address of every client-facing node."""
        self._ensure_started("gateway addresses")
        return [node.external_address for node in self._client_facing_nodes()]

    def new_client_builder(self) -> ZeebeClientBuilder:
        """
        Client settings targeting the cluster's gateways.

        Raises:
            NotReadyError: If the cluster has not been started
        """
        self._ensure_started("a client builder")
        nodes = self._client_facing_nodes()
        return ZeebeClientBuilder(
            gateway_addresses=[node.external_address for node in nodes],
            rest_addresses=[node.rest_address for node in nodes],
        )

    # ==================== LIFECYCLE ====================

    def start(self) -> "ZeebeCluster":
        """
        Start every broker, then every gateway.

        Raises:
            IllegalStateError: If the cluster was already started, stopped or failed
            ClusterStartError: If a node failed to start; started nodes are left running
        """
        if self.state is not ClusterState.CREATED:
            raise IllegalStateError(
                f"Cluster {self.topology.name} cannot be started: it is {self.state.value}",
                component="cluster",
            )

        started: List[str] = []
        failure: Optional[ClusterStartError] = None
        with LogContext(event_logger, cluster=self.topology.name) as log:
            try:
                self._ensure_network()
                for node in self.nodes:
                    node.start()
                    started.append(node.name)
            except ProvisioningError as e:
                self.state = ClusterState.FAILED
                log_event_error(log, e, "cluster_start_failed", node=e.component,
                                started=started)
                failure = ClusterStartError(
                    f"Cluster {self.topology.name} failed to start at {e.component}: "
                    f"{e.message}",
                    cause=e,
                    started=started,
                )
            else:
                self.state = ClusterState.STARTED
                log.info("cluster_started", nodes=started, network=self.network)

        if failure is not None:
            raise failure from failure.cause
        return self

    def _ensure_network(self) -> None:
        """Create and join a fresh network unless the topology names one."""
        if self.network is not None:
            return
        try:
            self._owned_network = self.runtime.create_network()
        except (DockerException, RequestException) as e:
            raise ProvisioningError(
                f"Failed to create network: {e}", component="network"
            ) from e
        self.network = self._owned_network
        for node in self.nodes:
            node.with_network(self.network)

    def stop(self) -> None:
        """
        Stop every node in reverse start order, then remove the network the
        cluster created. Safe to call any number of times.

        Raises:
            ClusterStopError: After every node was attempted, if any of them failed
        """
        failures: Dict[str, Exception] = {}

        for node in reversed(self.nodes):
            try:
                node.stop()
            except ZeebeContainersError as e:
                log_error(classify_error(e, node.name), logger)
                failures[node.name] = e

        if self._owned_network is not None:
            try:
                self.runtime.remove_network(self._owned_network)
                self._owned_network = None
            except (DockerException, RequestException) as e:
                failures[f"network:{self._owned_network}"] = e

        if failures:
            logger.error(f"Failed to stop {len(failures)} resource(s) of {self.topology.name}")
            raise ClusterStopError(
                f"Cluster {self.topology.name} failed to stop: {', '.join(failures)}",
                failures=failures,
            )
        if self.state is not ClusterState.CREATED:
            self.state = ClusterState.STOPPED

    def await_complete_topology(self, timeout: Optional[float] = None,
                                interval: float = 1.0) -> None:
        """
        Wait until the gateway sees every broker with every partition replicated.

        Raises:
            NotReadyError: If the cluster has not been started
            ProvisioningError: If the topology is still incomplete after ``timeout``
        """
        self._ensure_started("the topology")
        timeout = timeout or self.runtime.defaults.startup_timeout
        topology = self.topology

        with self.new_client_builder().build() as client:
            def check() -> Optional[str]:
                try:
                    current = client.topology()
                except httpx.HTTPError as e:
                    return f"{type(e).__name__}: {e}"
                if current.is_complete(topology.brokers_count, topology.partitions_count,
                                       topology.replication_factor):
                    return None
                return f"{len(current.brokers)}/{topology.brokers_count} brokers reported"

            try:
                poll_until(check, timeout, f"complete topology of {topology.name}",
                           interval=interval, max_interval=interval)
            except TimeoutError as e:
                raise ProvisioningError(str(e), component="cluster") from e

    def __enter__(self) -> "ZeebeCluster":
        try:
            return self.start()
        except IllegalStateError:
            raise
        except BaseException:
            # __exit__ is not called when __enter__ raises
            try:
                self.stop()
            except ClusterStopError as stop_error:
                logger.error(
                    f"Cleanup after failed start of {self.topology.name} failed: {stop_error}"
                )
            raise

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def __repr__(self) -> str:
        return (
            f"ZeebeCluster(name={self.topology.name!r}, brokers={len(self._brokers)}, "
            f"gateways={len(self._gateways)}, state={self.state.value})"
        )
