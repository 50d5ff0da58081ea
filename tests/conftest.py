"""
kadroute Test Configuration
===========================

Shared fixtures for the routing table tests:
- local_id / local_node: a fixed identity so bucket indexes are predictable
- make_node: build a NodeInfo from an ID
- node_in_bucket: build a NodeInfo landing in a chosen bucket
- table: a fresh RoutingTable for local_node
"""

import logging
from typing import Callable

import pytest

from kadroute.bucket import NodeInfo
from kadroute.routing import RoutingTable
from kadroute.utils import flip_bit, generate_node_id_from_key


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@pytest.fixture
def local_id() -> bytes:
    return generate_node_id_from_key("local-node")


@pytest.fixture
def local_node(local_id) -> NodeInfo:
    return NodeInfo(node_id=local_id, ip="127.0.0.1", port=8468)


@pytest.fixture
def make_node() -> Callable[..., NodeInfo]:
    counter = {"port": 9000}

    def _make(node_id: bytes) -> NodeInfo:
        counter["port"] += 1
        return NodeInfo(node_id=node_id, ip="10.0.0.1", port=counter["port"])

    return _make


@pytest.fixture
def node_in_bucket(local_id, make_node) -> Callable[..., NodeInfo]:
    """
    Node sharing exactly ``index`` leading bits with local_id.

    ``tail`` flips one extra bit further down so several distinct nodes
    can land in the same bucket.
    """

    def _make(index: int, tail: int = 0) -> NodeInfo:
        node_id = flip_bit(local_id, index)
        if tail:
            node_id = flip_bit(node_id, 160 - tail)
        return make_node(node_id)

    return _make


@pytest.fixture
def table(local_node) -> RoutingTable:
    return RoutingTable(local_node, k=20)
