"""
Contacts and K-Buckets

Design Decision: K-Bucket Parameters
====================================

Options Considered for k (bucket size):
1. k=8  - Smaller, faster lookups, less redundancy
2. k=20 - Standard Kademlia (used in BitTorrent)
3. k=32 - More redundancy, slower operations

Decision: k=20
- Standard value from Kademlia paper
- With k=20, probability of all nodes in bucket failing is negligible

Bucket Replacement Strategy:
- LRU ordering (oldest first)
- But prefer OLD nodes (they're proven reliable)
- Newcomers wait in a replacement cache while the bucket is full
- Only replace when an old node is removed

The routing table talks to buckets through the ``Bucket`` protocol only,
so a different eviction policy can be plugged in via a bucket factory.
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, runtime_checkable
from collections import OrderedDict

from .utils import id_to_hex

logger = logging.getLogger(__name__)


# Kademlia constants
K = 20  # Maximum nodes per bucket
BUCKET_REFRESH_INTERVAL = 3600  # Seconds between bucket refreshes
STALE_TIMEOUT = 900  # Seconds before a silent node counts as stale


@dataclass
class NodeInfo:
    """
    Information about a known node in the network.

    Equality and hashing use node_id only; address and liveness data are
    metadata that may change while the node stays the same peer.
    """
    node_id: bytes
    ip: str = '0.0.0.0'
    port: int = 0
    last_seen: float = field(default_factory=time.time)
    failed_requests: int = 0

    def __hash__(self):
        return hash(self.node_id)

    def __eq__(self, other):
        if isinstance(other, NodeInfo):
            return self.node_id == other.node_id
        return False

    @property
    def node_id_hex(self) -> str:
        return id_to_hex(self.node_id)

    def update_last_seen(self):
        """Mark this node as recently seen."""
        self.last_seen = time.time()
        self.failed_requests = 0

    def mark_failed(self):
        """Record a failed communication attempt."""
        self.failed_requests += 1

    def is_stale(self, timeout: float = STALE_TIMEOUT) -> bool:
        return time.time() - self.last_seen > timeout

    def __str__(self) -> str:
        return f"{self.node_id_hex[:16]}... @ {self.ip}:{self.port}"


@runtime_checkable
class Bucket(Protocol):
    """
    Bounded contact container for one depth of the routing table.

    ``insert`` must be idempotent by node_id. ``nodes`` returns a snapshot
    in the bucket's own order.
    """

    depth: int

    def insert(self, node: NodeInfo) -> Optional[NodeInfo]:
        ...

    def remove(self, node: NodeInfo) -> bool:
        ...

    def contains(self, node: NodeInfo) -> bool:
        ...

    @property
    def nodes(self) -> List[NodeInfo]:
        ...

    def __len__(self) -> int:
        ...


BucketFactory = Callable[[int, int], Bucket]


class KBucket:
    """
    A k-bucket holds up to K nodes sharing one distance-prefix band.

    Key behaviors:
    1. If node already present, move it to the end (most recent)
    2. If bucket not full, add new node
    3. If bucket full, park new node in the replacement cache and
       return the oldest node so the caller can ping it
    4. When a node is removed, promote the oldest replacement

    This "prefer old nodes" policy makes the network resistant to churn
    and attacks that try to inject many new nodes.
    """

    def __init__(self, depth: int, k: int = K):
        self.depth = depth
        self.k = k
        # OrderedDict maintains insertion order (oldest first)
        self._nodes: 'OrderedDict[bytes, NodeInfo]' = OrderedDict()
        self._replacement_cache: 'OrderedDict[bytes, NodeInfo]' = OrderedDict()
        self._lock = threading.Lock()
        self.last_updated = time.time()

    @property
    def nodes(self) -> List[NodeInfo]:
        """Return list of nodes (oldest to newest)."""
        with self._lock:
            return list(self._nodes.values())

    @property
    def replacements(self) -> List[NodeInfo]:
        with self._lock:
            return list(self._replacement_cache.values())

    @property
    def is_full(self) -> bool:
        """Check if bucket has K nodes."""
        return len(self._nodes) >= self.k

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: bytes) -> bool:
        return node_id in self._nodes

    def contains(self, node: NodeInfo) -> bool:
        return node.node_id in self._nodes

    def insert(self, node: NodeInfo) -> Optional[NodeInfo]:
        """
        Add a node to the bucket.

        Returns:
            - None if node was added or updated
            - NodeInfo of oldest node if bucket is full (needs ping check)
        """
        with self._lock:
            # If node already exists, move to end (most recent)
            if node.node_id in self._nodes:
                self._nodes.move_to_end(node.node_id)
                self._nodes[node.node_id].update_last_seen()
                self.last_updated = time.time()
                return None

            if not self.is_full:
                self._nodes[node.node_id] = node
                self._replacement_cache.pop(node.node_id, None)
                self.last_updated = time.time()
                return None

            # Bucket is full - add to replacement cache and return oldest
            self._replacement_cache[node.node_id] = node
            self._replacement_cache.move_to_end(node.node_id)
            while len(self._replacement_cache) > self.k:
                self._replacement_cache.popitem(last=False)

            oldest_id = next(iter(self._nodes))
            logger.debug(f"Bucket {self.depth} full, parked {id_to_hex(node.node_id)[:16]}")
            return self._nodes[oldest_id]

    def remove(self, node: NodeInfo) -> bool:
        """
        Remove a node (usually after failed ping).

        If there are nodes in replacement cache, promote one.
        """
        with self._lock:
            self._replacement_cache.pop(node.node_id, None)
            if node.node_id not in self._nodes:
                return False

            del self._nodes[node.node_id]

            if self._replacement_cache:
                replacement_id, replacement = self._replacement_cache.popitem(last=False)
                self._nodes[replacement_id] = replacement
                logger.debug(f"Bucket {self.depth} promoted {id_to_hex(replacement_id)[:16]}")

            return True

    def discard(self, node: NodeInfo) -> bool:
        """Drop a node from the replacement cache so it is never promoted."""
        with self._lock:
            return self._replacement_cache.pop(node.node_id, None) is not None

    def mark_node_seen(self, node_id: bytes) -> bool:
        """Update a node's last_seen time and move to end."""
        with self._lock:
            if node_id not in self._nodes:
                return False
            self._nodes[node_id].update_last_seen()
            self._nodes.move_to_end(node_id)
            self.last_updated = time.time()
            return True

    def get_node(self, node_id: bytes) -> Optional[NodeInfo]:
        """Get a specific node by ID."""
        return self._nodes.get(node_id)

    def get_stale_nodes(self, max_age_seconds: float = STALE_TIMEOUT) -> List[NodeInfo]:
        """Get nodes that haven't been seen recently (default 15 min)."""
        return [n for n in self.nodes if n.is_stale(max_age_seconds)]

    def needs_refresh(self, interval: float = BUCKET_REFRESH_INTERVAL) -> bool:
        return time.time() - self.last_updated > interval

    def __str__(self) -> str:
        lines = [f"Bucket at depth {self.depth}"]
        lines.extend(f"  {node}" for node in self.nodes)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"KBucket(depth={self.depth}, nodes={len(self)}, k={self.k})"
