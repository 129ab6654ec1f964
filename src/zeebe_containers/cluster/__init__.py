"""
Zeebe cluster composition: topology description, builder and running cluster.
"""

from zeebe_containers.cluster.topology import ClusterTopology, DEFAULT_CLUSTER_NAME
from zeebe_containers.cluster.cluster import ZeebeCluster, ClusterState
from zeebe_containers.cluster.builder import ZeebeClusterBuilder

__all__ = [
    "ClusterTopology",
    "DEFAULT_CLUSTER_NAME",
    "ZeebeCluster",
    "ClusterState",
    "ZeebeClusterBuilder",
]
