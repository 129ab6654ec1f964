"""
Zeebe Containers - Docker-backed Zeebe clusters for integration tests

Provides named volumes, broker and gateway containers, and a cluster
builder that wires them together on a shared network.
"""

from zeebe_containers.errors import (
    ZeebeContainersError,
    InvalidTopologyError,
    ConfigurationError,
    ProvisioningError,
    ClusterStartError,
    ClusterStopError,
    NotReadyError,
    IllegalStateError,
)
from zeebe_containers.defaults import ZeebeDefaults
from zeebe_containers.runtime import DockerRuntime, get_default_runtime, session_labels
from zeebe_containers.container_spec import ContainerSpec, VolumeBind
from zeebe_containers.volume import ZeebeVolume
from zeebe_containers.node import (
    NodeRole,
    NodeState,
    ZeebeNode,
    ZeebeBrokerNode,
    ZeebeGatewayNode,
)
from zeebe_containers.client import (
    ZeebeClientBuilder,
    TopologyClient,
    Topology,
    BrokerInfo,
    PartitionInfo,
)
from zeebe_containers.cluster import (
    ClusterTopology,
    ZeebeCluster,
    ZeebeClusterBuilder,
)

__version__ = "1.0.0"

__all__ = [
    # Errors
    "ZeebeContainersError",
    "InvalidTopologyError",
    "ConfigurationError",
    "ProvisioningError",
    "ClusterStartError",
    "ClusterStopError",
    "NotReadyError",
    "IllegalStateError",
    # Defaults & runtime
    "ZeebeDefaults",
    "DockerRuntime",
    "get_default_runtime",
    "session_labels",
    # Containers
    "ContainerSpec",
    "VolumeBind",
    "ZeebeVolume",
    "NodeRole",
    "NodeState",
    "ZeebeNode",
    "ZeebeBrokerNode",
    "ZeebeGatewayNode",
    # Client
    "ZeebeClientBuilder",
    "TopologyClient",
    "Topology",
    "BrokerInfo",
    "PartitionInfo",
    # Cluster
    "ClusterTopology",
    "ZeebeCluster",
    "ZeebeClusterBuilder",
]
