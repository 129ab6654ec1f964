"""
Client configuration handed to tests by a started cluster.

``ZeebeClientBuilder`` carries the reachable gateway endpoints. Its gRPC
address can be passed to any Zeebe client library; ``build()`` returns a
small REST client able to query the cluster topology.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

TOPOLOGY_PATH = "/v2/topology"


class PartitionInfo(BaseModel):
    """A partition replica hosted by a broker."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    partition_id: int = Field(..., alias="partitionId", ge=1)
    role: str
    health: str = "healthy"

    @property
    def is_leader(self) -> bool:
        return self.role.lower() == "leader"


class BrokerInfo(BaseModel):
    """A broker as reported by the gateway."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    node_id: int = Field(..., alias="nodeId", ge=0)
    host: str
    port: int
    version: Optional[str] = None
    partitions: List[PartitionInfo] = Field(default_factory=list)

    @property
    def address(self) -> str:
        """Advertised command address, e.g. zeebe-cluster-broker-0:26501."""
        return f"{self.host}:{self.port}"


class Topology(BaseModel):
    """Cluster topology as seen by a gateway."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    brokers: List[BrokerInfo] = Field(default_factory=list)
    cluster_size: int = Field(0, alias="clusterSize")
    partitions_count: int = Field(0, alias="partitionsCount")
    replication_factor: int = Field(0, alias="replicationFactor")
    gateway_version: Optional[str] = Field(None, alias="gatewayVersion")

    def is_complete(self, brokers_count: int, partitions_count: int,
                    replication_factor: int) -> bool:
        """True when every broker is present and every partition has a leader and all replicas."""
        if len(self.brokers) != brokers_count:
            return False
        replicas = {}
        leaders = set()
        for broker in self.brokers:
            for partition in broker.partitions:
                replicas[partition.partition_id] = replicas.get(partition.partition_id, 0) + 1
                if partition.is_leader:
                    leaders.add(partition.partition_id)
        expected = set(range(1, partitions_count + 1))
        return (
            leaders == expected
            and set(replicas) == expected
            and all(count == replication_factor for count in replicas.values())
        )


class TopologyClient:
    """Queries a gateway's REST API for the cluster topology."""

    def __init__(self, rest_address: str, timeout: float = 10.0,
                 http_client: Optional[httpx.Client] = None):
        self.rest_address = rest_address
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(
            base_url=f"http://{rest_address}", timeout=timeout
        )

    def topology(self) -> Topology:
        """
        Fetch the current topology.

        Raises:
            httpx.HTTPError: If the gateway is unreachable or answers with an error
        """
        response = self._http.get(TOPOLOGY_PATH)
        response.raise_for_status()
        return Topology.model_validate(response.json())

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "TopologyClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


@dataclass
class ZeebeClientBuilder:
    """
    Connection settings for a started cluster.

    Attributes:
        gateway_addresses: Reachable gRPC gateway endpoints (host:port)
        rest_addresses: Reachable REST endpoints, in the same order
        use_plaintext: Whether to connect without TLS
        request_timeout: Default request timeout in seconds
    """
    gateway_addresses: List[str]
    rest_addresses: List[str] = field(default_factory=list)
    use_plaintext: bool = True
    request_timeout: float = 10.0

    def __post_init__(self):
        """Validate that at least one gateway endpoint is known."""
        if not self.gateway_addresses:
            raise ValueError("at least one gateway address is required")

    @property
    def gateway_address(self) -> str:
        """The endpoint a single-connection client should target."""
        return self.gateway_addresses[0]

    def with_request_timeout(self, seconds: float) -> "ZeebeClientBuilder":
        self.request_timeout = seconds
        return self

    def with_plaintext(self, use_plaintext: bool = True) -> "ZeebeClientBuilder":
        self.use_plaintext = use_plaintext
        return self

    def build(self) -> TopologyClient:
        """Open a topology client against the first REST endpoint."""
        if not self.rest_addresses:
            raise ValueError("no REST address available to build a client")
        return TopologyClient(self.rest_addresses[0], timeout=self.request_timeout)
