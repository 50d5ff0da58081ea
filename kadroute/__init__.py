"""
kadroute - Kademlia routing table

This package provides the routing table of a Kademlia DHT node: k-buckets
indexed by XOR distance-prefix length and the expanding-ring closest-node
search that drives iterative lookups.
"""

from .utils import (
    ID_BITS, ID_BYTES, generate_node_id, generate_node_id_from_key, xor_distance,
    bytes_to_int, int_to_bytes, get_shared_prefix_length, flip_bit, id_to_hex, hex_to_id,
)
from .metric import DistanceMetric, PrefixDistance, HighestBitDistance, get_metric
from .bucket import K, Bucket, KBucket, NodeInfo
from .routing import RoutingTable
from .config import Config, load_config

__version__ = '0.1.0'

__all__ = [
    'ID_BITS',
    'ID_BYTES',
    'generate_node_id',
    'generate_node_id_from_key',
    'xor_distance',
    'bytes_to_int',
    'int_to_bytes',
    'get_shared_prefix_length',
    'flip_bit',
    'id_to_hex',
    'hex_to_id',
    'DistanceMetric',
    'PrefixDistance',
    'HighestBitDistance',
    'get_metric',
    'K',
    'Bucket',
    'KBucket',
    'NodeInfo',
    'RoutingTable',
    'Config',
    'load_config',
]
