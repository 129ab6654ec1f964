"""
Fluent builder turning a ClusterTopology into an unstarted ZeebeCluster.

Usage:
    cluster = (
        ZeebeClusterBuilder()
        .with_embedded_gateway(False)
        .with_gateways_count(1)
        .with_brokers_count(2)
        .with_partitions_count(1)
        .with_replication_factor(1)
        .build()
    )
    with cluster:
        client = cluster.new_client_builder().build()
"""

import logging
from dataclasses import replace, fields
from pathlib import Path
from typing import Any, Optional, Union

from zeebe_containers.cluster.cluster import ZeebeCluster
from zeebe_containers.cluster.topology import ClusterTopology
from zeebe_containers.config_loader import ConfigLoader
from zeebe_containers.defaults import ZeebeDefaults
from zeebe_containers.node import NodeRole, ZeebeNode
from zeebe_containers.runtime import DockerRuntime, get_default_runtime

logger = logging.getLogger(__name__)

_TOPOLOGY_FIELDS = {f.name for f in fields(ClusterTopology)}


class ZeebeClusterBuilder:
    """Collects topology settings; validation happens once, in ``build()``."""

    def __init__(
        self,
        topology: Optional[ClusterTopology] = None,
        runtime: Optional[DockerRuntime] = None,
        defaults: Optional[ZeebeDefaults] = None,
    ):
        self._topology = topology or ClusterTopology()
        self._runtime = runtime
        self._defaults = defaults
        self._wait_for_ready = True

    @classmethod
    def from_topology(cls, topology: ClusterTopology, **kwargs) -> "ZeebeClusterBuilder":
        return cls(topology=topology, **kwargs)

    @classmethod
    def from_config(cls, path: Union[str, Path], **kwargs) -> "ZeebeClusterBuilder":
        """
        Create a builder from a YAML or JSON topology file.

        Raises:
            InvalidTopologyError: If the file contains unknown keys
        """
        data = ConfigLoader.load_topology(path, _TOPOLOGY_FIELDS)
        return cls(topology=ClusterTopology(**data), **kwargs)

    def _with(self, **changes: Any) -> "ZeebeClusterBuilder":
        self._topology = replace(self._topology, **changes)
        return self

    # ==================== TOPOLOGY ====================

    def with_brokers_count(self, count: int) -> "ZeebeClusterBuilder":
        return self._with(brokers_count=count)

    def with_gateways_count(self, count: int) -> "ZeebeClusterBuilder":
        return self._with(gateways_count=count)

    def with_partitions_count(self, count: int) -> "ZeebeClusterBuilder":
        return self._with(partitions_count=count)

    def with_replication_factor(self, factor: int) -> "ZeebeClusterBuilder":
        return self._with(replication_factor=factor)

    def with_embedded_gateway(self, embedded: bool) -> "ZeebeClusterBuilder":
        return self._with(embedded_gateway=embedded)

    def with_network(self, network: str) -> "ZeebeClusterBuilder":
        return self._with(network=network)

    def with_name(self, name: str) -> "ZeebeClusterBuilder":
        return self._with(name=name)

    def with_image(self, image: str) -> "ZeebeClusterBuilder":
        return self._with(image=image)

    def with_node_env(self, key: str, value: Any) -> "ZeebeClusterBuilder":
        return self._with(node_env={**self._topology.node_env, key: str(value)})

    # ==================== COLLABORATORS ====================

    def with_runtime(self, runtime: DockerRuntime) -> "ZeebeClusterBuilder":
        self._runtime = runtime
        return self

    def with_defaults(self, defaults: ZeebeDefaults) -> "ZeebeClusterBuilder":
        self._defaults = defaults
        return self

    def with_wait_for_ready(self, wait: bool) -> "ZeebeClusterBuilder":
        self._wait_for_ready = wait
        return self

    @property
    def topology(self) -> ClusterTopology:
        return self._topology

    def build(self) -> ZeebeCluster:
        """
        Validate the topology and create every node, without touching the runtime.

        Raises:
            InvalidTopologyError: If the topology violates an invariant
        """
        topology = self._topology.validate()
        runtime = self._runtime or get_default_runtime()
        defaults = self._defaults or runtime.defaults

        def node(role: NodeRole, node_id: int) -> ZeebeNode:
            return ZeebeNode.configure(
                role, node_id, topology,
                runtime=runtime, defaults=defaults, wait_for_ready=self._wait_for_ready,
            )

        brokers = {i: node(topology.broker_role, i) for i in range(topology.brokers_count)}
        gateways = {i: node(NodeRole.GATEWAY, i) for i in range(topology.gateways_count)}

        logger.info(
            f"Built cluster {topology.name}: {len(brokers)} broker(s), "
            f"{len(gateways)} gateway(s), {topology.partitions_count} partition(s), "
            f"replication factor {topology.replication_factor}"
        )
        return ZeebeCluster(topology, brokers, gateways, runtime)
