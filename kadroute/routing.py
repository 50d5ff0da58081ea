"""
Kademlia Routing Table Implementation

Design Decision: Table Structure
================================

Options Considered:
1. Binary tree of buckets, split on demand
2. Fixed array with one bucket per possible prefix length

Decision: Fixed array of ID_BITS buckets
- Bucket index is computed directly from the distance, no tree walk
- buckets[i].depth == i always holds
- A persistence layer can snapshot and restore the array as a whole

Design Decision: Closest-Node Search
====================================

find_closest works at bucket granularity: it takes the target's own
bucket first and then widens a ring one bucket at a time on both sides
(left before right) until enough contacts are collected. Results are NOT
re-sorted by exact XOR distance; iterative lookups above this layer rely
on the bucket-ordered answer.

Concurrency:
- One re-entrant lock serializes every table operation, including
  wholesale replacement of the bucket array
- Each bucket hands out consistent snapshots of its own contacts
"""

import logging
import threading
from typing import Dict, List, Optional

from .bucket import (
    K, BUCKET_REFRESH_INTERVAL, STALE_TIMEOUT,
    Bucket, BucketFactory, KBucket, NodeInfo,
)
from .metric import DistanceMetric, PrefixDistance
from .utils import id_to_hex

logger = logging.getLogger(__name__)


class RoutingTable:
    """
    Kademlia routing table with one bucket per distance-prefix length.

    The local node is inserted on construction, so the table is never
    empty and looking up our own ID resolves to bucket 0.

    Args:
        local_node: The node owning this table
        k: Bucket capacity handed to the bucket factory
        metric: Identifier metric (PrefixDistance over 160 bits by default)
        bucket_factory: ``factory(depth, k)`` building an empty bucket
        expand_to_bucket_zero: Whether bucket 0 may be reached while
            widening the search ring. False reproduces the older behaviour
            in which index 0 was only ever read as the starting bucket.
    """

    def __init__(
        self,
        local_node: NodeInfo,
        k: int = K,
        metric: Optional[DistanceMetric] = None,
        bucket_factory: Optional[BucketFactory] = None,
        expand_to_bucket_zero: bool = True,
    ):
        self.metric = metric or PrefixDistance()
        self.local_node = local_node
        self.k = k
        self.expand_to_bucket_zero = expand_to_bucket_zero
        self._bucket_factory = bucket_factory or KBucket
        self._lock = threading.RLock()
        self._buckets: List[Bucket] = []

        self.initialize()
        self.insert(local_node)

        logger.debug(
            f"RoutingTable initialized: local_id={id_to_hex(local_node.node_id)[:16]}... "
            f"metric={self.metric!r} k={k}"
        )

    @classmethod
    def from_config(cls, local_node: NodeInfo, config) -> 'RoutingTable':
        """Build a table from a kadroute.config.Config."""
        return cls(
            local_node,
            k=config.bucket_size,
            metric=config.make_metric(),
            expand_to_bucket_zero=config.expand_to_bucket_zero,
        )

    @property
    def local_id(self) -> bytes:
        return self.local_node.node_id

    @property
    def id_bits(self) -> int:
        return self.metric.id_bits

    def initialize(self):
        """Reset to the default state: id_bits empty buckets, depth == index."""
        with self._lock:
            self._buckets = [self._bucket_factory(i, self.k) for i in range(self.id_bits)]

    def get_bucket_index(self, node_id: bytes) -> int:
        """
        Bucket in which node_id belongs, based on its distance from us.

        Our own ID has distance 0; the resulting -1 is clamped to bucket 0.
        """
        index = self.metric.distance(self.local_id, node_id) - 1
        return index if index > 0 else 0

    def insert(self, node: NodeInfo) -> Optional[NodeInfo]:
        """
        Add a node to the bucket matching its distance.

        Capacity and recency are the bucket's business; whatever the bucket
        returns (e.g. a ping candidate when full) is passed through.
        """
        index = self.get_bucket_index(node.node_id)
        with self._lock:
            result = self._buckets[index].insert(node)
        logger.debug(f"Inserted {id_to_hex(node.node_id)[:16]} into bucket {index}")
        return result

    def remove(self, node: NodeInfo):
        """Remove a node from its bucket. Absent nodes are ignored."""
        index = self.get_bucket_index(node.node_id)
        with self._lock:
            bucket = self._buckets[index]
            if bucket.contains(node):
                bucket.remove(node)
                logger.debug(f"Removed {id_to_hex(node.node_id)[:16]} from bucket {index}")
                return

            # Parked in the replacement cache; drop it so it is never promoted
            discard = getattr(bucket, 'discard', None)
            if discard is not None:
                discard(node)

    def get_node(self, node_id: bytes) -> Optional[NodeInfo]:
        """Get a specific node by ID."""
        index = self.get_bucket_index(node_id)
        with self._lock:
            for node in self._buckets[index].nodes:
                if node.node_id == node_id:
                    return node
        return None

    def __contains__(self, node_id: bytes) -> bool:
        return self.get_node(node_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(len(b) for b in self._buckets)

    def find_closest(self, target_id: bytes, count: int = K) -> List[NodeInfo]:
        """
        Find up to ``count`` nodes believed closest to target_id.

        Starts with the target's own bucket, then expands outward one
        bucket at a time, left side first, until enough nodes are found or
        both sides run off the table.
        """
        closest: List[NodeInfo] = []
        if count <= 0:
            return closest

        start = self.get_bucket_index(target_id)
        lowest = 0 if self.expand_to_bucket_zero else 1

        with self._lock:
            buckets = self._buckets
            total = len(buckets)

            self._collect(buckets[start], closest, count)

            radius = 1
            while len(closest) < count and (start - radius >= 0 or start + radius < total):
                left, right = start - radius, start + radius

                if left >= lowest:
                    self._collect(buckets[left], closest, count)

                if right < total:
                    self._collect(buckets[right], closest, count)

                radius += 1

        return closest

    @staticmethod
    def _collect(bucket: Bucket, closest: List[NodeInfo], count: int):
        for node in bucket.nodes:
            if len(closest) >= count:
                break
            closest.append(node)

    def get_all_nodes(self) -> List[NodeInfo]:
        """Get all known nodes, bucket 0 first."""
        all_nodes = []
        with self._lock:
            for bucket in self._buckets:
                all_nodes.extend(bucket.nodes)
        return all_nodes

    def get_buckets(self) -> List[Bucket]:
        """The backing bucket array, for persistence snapshots."""
        with self._lock:
            return self._buckets

    def set_buckets(self, buckets: List[Bucket]):
        """
        Replace the whole bucket array, e.g. when restoring saved state.

        The caller is responsible for supplying id_bits buckets whose
        depth matches their index; mismatches are logged, not rejected.
        """
        if len(buckets) != self.id_bits:
            logger.warning(f"set_buckets: expected {self.id_bits} buckets, got {len(buckets)}")
        misplaced = [i for i, b in enumerate(buckets) if b.depth != i]
        if misplaced:
            logger.warning(f"set_buckets: depth does not match index at {misplaced[:10]}")

        with self._lock:
            self._buckets = buckets

    def get_stats(self) -> Dict:
        """Get routing table statistics."""
        with self._lock:
            bucket_sizes = [len(b) for b in self._buckets]

        return {
            'local_id': id_to_hex(self.local_id),
            'total_nodes': sum(bucket_sizes),
            'non_empty_buckets': sum(1 for size in bucket_sizes if size > 0),
            'total_buckets': len(bucket_sizes),
            'k': self.k,
            'bucket_sizes': bucket_sizes,
        }

    def get_refresh_targets(self, interval: float = BUCKET_REFRESH_INTERVAL) -> List[bytes]:
        """
        Random IDs for non-empty buckets that haven't been touched recently.

        Looking each one up refreshes the bucket it falls into. Buckets
        that don't track freshness are skipped.
        """
        targets = []
        with self._lock:
            for i, bucket in enumerate(self._buckets):
                needs_refresh = getattr(bucket, 'needs_refresh', None)
                if needs_refresh is None or len(bucket) == 0:
                    continue
                if needs_refresh(interval):
                    targets.append(self.metric.random_id_in_bucket(self.local_id, i))

        if targets:
            logger.debug(f"{len(targets)} buckets due for refresh")
        return targets

    def get_stale_nodes(self, timeout: float = STALE_TIMEOUT) -> List[NodeInfo]:
        """Nodes not seen for ``timeout`` seconds; never includes ourselves."""
        return [
            n for n in self.get_all_nodes()
            if n.node_id != self.local_id and n.is_stale(timeout)
        ]

    def render(self) -> str:
        """Human-readable dump of every non-empty bucket."""
        lines = ["Routing table for " + id_to_hex(self.local_id)]
        with self._lock:
            for bucket in self._buckets:
                if len(bucket) > 0:
                    lines.append(f"# nodes in bucket with depth {bucket.depth}: {len(bucket)}")
                    lines.append(str(bucket))
        lines.append(f"Total nodes: {len(self)}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()
