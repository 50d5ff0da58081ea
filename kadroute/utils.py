"""
Identifier Utilities

Design Decision: Identifier Representation
==========================================

Options Considered:
1. Python int - Cheap XOR, but loses the fixed width
2. bytes - Fixed width is explicit, hashable, easy to hex-encode
3. Custom class - Type safety, but every caller must wrap values

Decision: bytes, big-endian
- Width is checked once, at the metric boundary
- Converted to int only for XOR arithmetic
- Same representation peers exchange on the wire

Default width is 160 bits (SHA-1 sized), one k-bucket per bit.
"""

import os
import hashlib
import random
from typing import Optional

# Constants
ID_BITS = 160  # Number of bits in node ID
ID_BYTES = ID_BITS // 8  # 20 bytes


def id_bytes_for(id_bits: int) -> int:
    """Number of bytes needed for an identifier of ``id_bits`` bits."""
    if id_bits <= 0 or id_bits % 8:
        raise ValueError(f"Identifier width must be a positive multiple of 8, got {id_bits}")
    return id_bits // 8


def check_id(node_id: bytes, id_bits: int = ID_BITS) -> bytes:
    """Reject identifiers that are not exactly ``id_bits`` wide."""
    expected = id_bytes_for(id_bits)
    if not isinstance(node_id, (bytes, bytearray)):
        raise ValueError(f"Node ID must be bytes, got {type(node_id).__name__}")
    if len(node_id) != expected:
        raise ValueError(f"Node ID must be {expected} bytes, got {len(node_id)}")
    return bytes(node_id)


def generate_node_id(id_bits: int = ID_BITS, rng: Optional[random.Random] = None) -> bytes:
    """
    Generate a random node ID.

    Uses cryptographically secure random bytes unless a seeded ``rng``
    is supplied (simulations and tests want reproducible IDs).
    """
    length = id_bytes_for(id_bits)
    if rng is None:
        return os.urandom(length)
    return bytes(rng.getrandbits(8) for _ in range(length))


def generate_node_id_from_key(key: str) -> bytes:
    """
    Generate a deterministic 160-bit node ID from a key string.

    Uses SHA-1, so the result is always ID_BYTES long.
    """
    return hashlib.sha1(key.encode()).digest()


def xor_distance(id1: bytes, id2: bytes) -> int:
    """
    Calculate the XOR distance between two node IDs.

    Args:
        id1: First node ID
        id2: Second node ID (same width as id1)

    Returns:
        Integer representing the XOR distance
    """
    if len(id1) != len(id2):
        raise ValueError(f"ID length mismatch: {len(id1)} vs {len(id2)}")

    return bytes_to_int(bytes(a ^ b for a, b in zip(id1, id2)))


def bytes_to_int(b: bytes) -> int:
    """Convert bytes to integer (big-endian)."""
    return int.from_bytes(b, byteorder='big')


def int_to_bytes(n: int, length: int = ID_BYTES) -> bytes:
    """Convert integer to bytes (big-endian)."""
    return n.to_bytes(length, byteorder='big')


def get_shared_prefix_length(id1: bytes, id2: bytes) -> int:
    """
    Calculate how many leading bits are shared between two IDs.

    Identical IDs share all of their bits.
    """
    distance = xor_distance(id1, id2)
    id_bits = len(id1) * 8
    if distance == 0:
        return id_bits
    return id_bits - distance.bit_length()


def flip_bit(node_id: bytes, position: int) -> bytes:
    """
    Return a copy of node_id with one bit inverted.

    Positions count from the most significant bit (position 0).
    """
    id_bits = len(node_id) * 8
    if not 0 <= position < id_bits:
        raise ValueError(f"Bit position {position} outside 0..{id_bits - 1}")
    value = bytes_to_int(node_id) ^ (1 << (id_bits - 1 - position))
    return int_to_bytes(value, len(node_id))


def id_to_hex(node_id: bytes) -> str:
    """Convert node ID to hexadecimal string for display."""
    return node_id.hex()


def hex_to_id(hex_str: str) -> bytes:
    """Convert hexadecimal string back to node ID."""
    return bytes.fromhex(hex_str)
