"""
Distance Metrics

Design Decision: Bucket Index Orientation
=========================================

Options Considered:
1. Shared prefix length - bucket i holds peers agreeing with us on exactly
   i leading bits (bucket 0 = other half of the ID space)
2. Highest differing bit - bucket i holds peers whose XOR distance has its
   highest set bit at position i counted from the LSB (bucket 0 = nearest)

Decision: both, behind one small protocol
- The routing table only ever computes ``distance(local, other) - 1``
  clamped at 0, so the orientation is a property of the metric
- PrefixDistance is the default
- HighestBitDistance is kept for tables restored from deployments that
  index buckets from the near end

Identical identifiers have distance 0 under both metrics.
"""

import random
from typing import Optional, Protocol, runtime_checkable

from .utils import ID_BITS, bytes_to_int, int_to_bytes, check_id, id_bytes_for, xor_distance


@runtime_checkable
class DistanceMetric(Protocol):
    """Capability the routing table needs from the identifier space."""

    id_bits: int

    def distance(self, id1: bytes, id2: bytes) -> int:
        ...

    def random_id_in_bucket(self, local_id: bytes, index: int) -> bytes:
        ...


class _XorMetric:
    name = ''

    def __init__(self, id_bits: int = ID_BITS, rng: Optional[random.Random] = None):
        self.id_bits = id_bits
        self.id_bytes = id_bytes_for(id_bits)
        self._rng = rng or random.SystemRandom()

    def _xor(self, id1: bytes, id2: bytes) -> int:
        return xor_distance(check_id(id1, self.id_bits), check_id(id2, self.id_bits))

    def _lsb_position(self, index: int) -> int:
        raise NotImplementedError

    def random_id_in_bucket(self, local_id: bytes, index: int) -> bytes:
        """
        Generate a random ID that lands in bucket ``index`` of local_id's table.

        Bits above the bucket's deciding bit are copied from local_id, the
        deciding bit is inverted and the bits below it are random.
        """
        check_id(local_id, self.id_bits)
        if not 0 <= index < self.id_bits:
            raise ValueError(f"Bucket index {index} outside 0..{self.id_bits - 1}")

        bit = self._lsb_position(index)
        low_mask = (1 << bit) - 1
        local = bytes_to_int(local_id)
        value = ((local ^ (1 << bit)) & ~low_mask) | (self._rng.getrandbits(self.id_bits) & low_mask)
        return int_to_bytes(value, self.id_bytes)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id_bits={self.id_bits})"


class PrefixDistance(_XorMetric):
    """
    distance = shared prefix length + 1, or 0 for identical IDs.

    Two 160-bit IDs that first differ at bit 117 (MSB = bit 0) share 117
    bits, so distance is 118 and the bucket index is 117.
    """

    name = 'prefix'

    def distance(self, id1: bytes, id2: bytes) -> int:
        xor = self._xor(id1, id2)
        if xor == 0:
            return 0
        return self.id_bits - xor.bit_length() + 1

    def _lsb_position(self, index: int) -> int:
        return self.id_bits - 1 - index


class HighestBitDistance(_XorMetric):
    """distance = bit length of the XOR distance (0 for identical IDs)."""

    name = 'highest-bit'

    def distance(self, id1: bytes, id2: bytes) -> int:
        return self._xor(id1, id2).bit_length()

    def _lsb_position(self, index: int) -> int:
        return index


METRICS = {
    PrefixDistance.name: PrefixDistance,
    HighestBitDistance.name: HighestBitDistance,
}


def get_metric(name: str, id_bits: int = ID_BITS) -> DistanceMetric:
    """Look up a metric by its config name."""
    try:
        metric_cls = METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown metric {name!r}, expected one of {sorted(METRICS)}") from None
    return metric_cls(id_bits)
