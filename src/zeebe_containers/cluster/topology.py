"""Declarative description of a Zeebe cluster's shape."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from zeebe_containers.defaults import ZeebeDefaults
from zeebe_containers.errors import InvalidTopologyError
from zeebe_containers.node import NodeRole

DEFAULT_CLUSTER_NAME = "zeebe-cluster"


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ClusterTopology:
    """
    Desired shape of a cluster, prior to realization.

    Attributes:
        brokers_count: Number of brokers
        gateways_count: Number of standalone gateways (0 when embedded)
        partitions_count: Number of partitions
        replication_factor: Replicas per partition, at most ``brokers_count``
        embedded_gateway: Run a gateway inside every broker instead of standalone ones
        network: Existing network to join; a fresh one is created on start if None
        name: Cluster name, also the prefix of every network alias
        image: Image override for every node
        node_env: Extra environment applied to every node
    """
    brokers_count: int = 1
    gateways_count: int = 0
    partitions_count: int = 1
    replication_factor: int = 1
    embedded_gateway: bool = True
    network: Optional[str] = None
    name: str = DEFAULT_CLUSTER_NAME
    image: Optional[str] = None
    node_env: Dict[str, str] = field(default_factory=dict, hash=False)

    def validate(self) -> "ClusterTopology":
        """
        Check the topology invariants.

        Raises:
            InvalidTopologyError: listing every violated invariant
        """
        problems: List[str] = []

        if not _is_count(self.brokers_count) or self.brokers_count < 1:
            problems.append(f"brokers_count must be at least 1, got {self.brokers_count}")
        if not _is_count(self.gateways_count) or self.gateways_count < 0:
            problems.append(f"gateways_count must be non-negative, got {self.gateways_count}")
        if not _is_count(self.partitions_count) or self.partitions_count < 1:
            problems.append(f"partitions_count must be positive, got {self.partitions_count}")
        if not _is_count(self.replication_factor) or self.replication_factor < 1:
            problems.append(
                f"replication_factor must be positive, got {self.replication_factor}"
            )
        elif _is_count(self.brokers_count) and self.replication_factor > self.brokers_count:
            problems.append(
                f"replication_factor ({self.replication_factor}) must not exceed "
                f"brokers_count ({self.brokers_count})"
            )
        if self.embedded_gateway and self.gateways_count:
            problems.append(
                f"gateways_count must be 0 with an embedded gateway, got {self.gateways_count}"
            )
        if not self.embedded_gateway and not self.gateways_count:
            problems.append("at least one standalone gateway is required without an embedded gateway")
        if not self.name:
            problems.append("name must not be empty")

        if problems:
            raise InvalidTopologyError(
                "; ".join(problems),
                component="topology",
                context={"topology": self.to_dict()},
            )
        return self

    @property
    def broker_role(self) -> NodeRole:
        return NodeRole.BROKER_WITH_EMBEDDED_GATEWAY if self.embedded_gateway else NodeRole.BROKER

    def alias(self, role: NodeRole, node_id: int) -> str:
        """Network alias of a node, e.g. zeebe-cluster-broker-0."""
        if role.is_broker:
            return self.broker_alias(node_id)
        return self.gateway_alias(node_id)

    def broker_alias(self, node_id: int) -> str:
        return f"{self.name}-broker-{node_id}"

    def gateway_alias(self, node_id: int) -> str:
        return f"{self.name}-gateway-{node_id}"

    def contact_points(self, defaults: ZeebeDefaults) -> List[str]:
        """Internal cluster address of every broker, in node id order."""
        return [
            f"{self.broker_alias(node_id)}:{defaults.internal_port}"
            for node_id in range(self.brokers_count)
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return asdict(self)
