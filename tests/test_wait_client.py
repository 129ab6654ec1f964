"""
Unit tests for zeebe_containers/wait.py and client.py
"""

import httpx
import pytest

from zeebe_containers.client import (
    BrokerInfo,
    Topology,
    TopologyClient,
    ZeebeClientBuilder,
)
from zeebe_containers.wait import poll_until, wait_for_http_ready


class FakeClock:
    """Deterministic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def topology_payload(brokers=3, partitions=3, replication_factor=3):
    """Round-robin partition distribution like a healthy cluster reports."""
    payload = {
        "brokers": [],
        "clusterSize": brokers,
        "partitionsCount": partitions,
        "replicationFactor": replication_factor,
        "gatewayVersion": "8.6.0",
    }
    for node_id in range(brokers):
        payload["brokers"].append({
            "nodeId": node_id,
            "host": f"zeebe-cluster-broker-{node_id}",
            "port": 26501,
            "version": "8.6.0",
            "partitions": [],
        })
    for partition_id in range(1, partitions + 1):
        for replica in range(replication_factor):
            broker = payload["brokers"][(partition_id - 1 + replica) % brokers]
            broker["partitions"].append({
                "partitionId": partition_id,
                "role": "leader" if replica == 0 else "follower",
                "health": "healthy",
            })
    return payload


class TestPollUntil:
    """Test poll_until"""

    def test_returns_when_check_passes(self, clock):
        results = iter(["starting", "starting", None])

        poll_until(lambda: next(results), 10, "broker", sleep=clock.sleep, clock=clock)

        assert clock.sleeps == [0.25, 0.5]

    def test_backoff_is_capped(self, clock):
        results = iter(["no"] * 5 + [None])

        poll_until(lambda: next(results), 60, "broker", interval=1.0, max_interval=2.0,
                   sleep=clock.sleep, clock=clock)

        assert clock.sleeps == [1.0, 2.0, 2.0, 2.0, 2.0]

    def test_timeout_reports_last_reason(self, clock):
        with pytest.raises(TimeoutError) as exc_info:
            poll_until(lambda: "HTTP 503", 1.0, "gateway", sleep=clock.sleep, clock=clock)

        assert "gateway" in str(exc_info.value)
        assert "HTTP 503" in str(exc_info.value)
        assert sum(clock.sleeps) == pytest.approx(1.0)


class TestWaitForHttpReady:
    """Test wait_for_http_ready"""

    def test_ready_after_unavailable(self, clock):
        statuses = iter([503, 503, 204])
        transport = httpx.MockTransport(lambda request: httpx.Response(next(statuses)))

        with httpx.Client(transport=transport) as client:
            wait_for_http_ready("http://localhost:9600/ready", timeout=5, client=client,
                                sleep=clock.sleep, clock=clock)

        assert len(clock.sleeps) == 2

    def test_connection_errors_are_retried_until_timeout(self, clock):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(TimeoutError) as exc_info:
                wait_for_http_ready("http://localhost:9600/ready", timeout=2, client=client,
                                    sleep=clock.sleep, clock=clock)

        assert "ConnectError" in str(exc_info.value)


class TestTopology:
    """Test Topology parsing and completeness"""

    def test_parse_gateway_payload(self):
        topology = Topology.model_validate(topology_payload())

        assert topology.cluster_size == 3
        assert topology.gateway_version == "8.6.0"
        assert [b.address for b in topology.brokers] == [
            "zeebe-cluster-broker-0:26501",
            "zeebe-cluster-broker-1:26501",
            "zeebe-cluster-broker-2:26501",
        ]
        assert topology.brokers[0].partitions[0].is_leader

    def test_complete_topology(self):
        topology = Topology.model_validate(topology_payload())

        assert topology.is_complete(3, 3, 3)

    def test_missing_broker(self):
        payload = topology_payload()
        payload["brokers"].pop()

        assert not Topology.model_validate(payload).is_complete(3, 3, 3)

    def test_missing_leader(self):
        payload = topology_payload(brokers=1, partitions=1, replication_factor=1)
        payload["brokers"][0]["partitions"][0]["role"] = "follower"

        assert not Topology.model_validate(payload).is_complete(1, 1, 1)

    def test_under_replicated(self):
        payload = topology_payload(brokers=2, partitions=1, replication_factor=2)
        payload["brokers"][1]["partitions"] = []

        assert not Topology.model_validate(payload).is_complete(2, 1, 2)

    def test_invalid_broker_rejected(self):
        with pytest.raises(ValueError):
            BrokerInfo.model_validate({"nodeId": -1, "host": "x", "port": 26501})


class TestTopologyClient:
    """Test TopologyClient"""

    def test_fetches_topology(self):
        def handler(request):
            assert request.url.path == "/v2/topology"
            return httpx.Response(200, json=topology_payload(brokers=1, partitions=1,
                                                             replication_factor=1))

        http = httpx.Client(base_url="http://localhost:8080",
                            transport=httpx.MockTransport(handler))
        with TopologyClient("localhost:8080", http_client=http) as client:
            topology = client.topology()

        assert topology.is_complete(1, 1, 1)
        # a borrowed client stays open
        assert not http.is_closed
        http.close()

    def test_error_status_raises(self):
        http = httpx.Client(base_url="http://localhost:8080",
                            transport=httpx.MockTransport(lambda r: httpx.Response(503)))

        with pytest.raises(httpx.HTTPStatusError):
            TopologyClient("localhost:8080", http_client=http).topology()


class TestZeebeClientBuilder:
    """Test ZeebeClientBuilder"""

    def test_requires_a_gateway(self):
        with pytest.raises(ValueError):
            ZeebeClientBuilder(gateway_addresses=[])

    def test_first_gateway_is_default(self):
        builder = ZeebeClientBuilder(["localhost:32768", "localhost:32770"])

        assert builder.gateway_address == "localhost:32768"
        assert builder.use_plaintext is True

    def test_fluent_settings(self):
        builder = ZeebeClientBuilder(["localhost:32768"]).with_request_timeout(3).with_plaintext(False)

        assert builder.request_timeout == 3
        assert builder.use_plaintext is False

    def test_build_requires_rest_address(self):
        with pytest.raises(ValueError):
            ZeebeClientBuilder(["localhost:32768"]).build()

    def test_build_targets_first_rest_address(self):
        client = ZeebeClientBuilder(["localhost:32768"], ["localhost:32769"]).build()

        assert client.rest_address == "localhost:32769"
        client.close()
