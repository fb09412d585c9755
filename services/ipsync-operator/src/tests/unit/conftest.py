"""Shared fakes for the operator unit tests."""

import ipaddress
from typing import Callable, Dict, List, Union

import pytest

from managed_exceptions import ItemNotFoundException
from request_handler import RequestThreadPool
from ipsync.models import IpAddress, NodeAddress, Observer
from ipsync.services.cluster import ClusterNodesApi


class FakeClusterNodesApi(ClusterNodesApi):
    """In-memory node store that records every call."""

    def __init__(self, nodes: Dict[str, List[NodeAddress]]):
        self.nodes = nodes
        self.get_calls: List[str] = []
        self.patch_calls: List[tuple] = []

    def verify_connection(self) -> str:
        return "v1.30.0"

    def get_node_addresses(self, node_name: str) -> List[NodeAddress]:
        self.get_calls.append(node_name)
        if node_name not in self.nodes:
            raise ItemNotFoundException(f"Node {node_name} not found")
        return list(self.nodes[node_name])

    def patch_node_addresses(self, node_name: str, addresses: List[NodeAddress], dry_run: bool) -> List[NodeAddress]:
        self.patch_calls.append((node_name, list(addresses), dry_run))
        if node_name not in self.nodes:
            raise ItemNotFoundException(f"Node {node_name} not found")
        if not dry_run:
            self.nodes[node_name] = list(addresses)
        return list(addresses)


class FakeObserverClient:
    """Answers each observer with a fixed address, or raises the configured exception."""

    def __init__(self, answers: Dict[Observer, Union[str, Exception]]):
        self.answers = answers
        self.calls: List[Observer] = []

    def observe(self, observer: Observer) -> IpAddress:
        self.calls.append(observer)
        answer = self.answers[observer]
        if isinstance(answer, Exception):
            raise answer
        return ipaddress.ip_address(answer)


def external(address: str) -> NodeAddress:
    return NodeAddress(address=address, type="ExternalIP")


@pytest.fixture(autouse=True)
def thread_pool():
    RequestThreadPool.init(max_workers=4)
    yield
    RequestThreadPool.shutdown(wait=True)


@pytest.fixture
def node_addresses() -> List[NodeAddress]:
    return [
        NodeAddress(address="node-1", type="Hostname"),
        NodeAddress(address="10.0.0.5", type="InternalIP"),
        external("8.8.8.8"),
        external("1.1.1.1"),
    ]


@pytest.fixture
def cluster_api(node_addresses) -> FakeClusterNodesApi:
    return FakeClusterNodesApi({"node-1": list(node_addresses)})


@pytest.fixture
def observer_client_factory() -> Callable[[Dict[Observer, Union[str, Exception]]], FakeObserverClient]:
    return FakeObserverClient


@pytest.fixture
def external_address() -> Callable[[str], NodeAddress]:
    return external
