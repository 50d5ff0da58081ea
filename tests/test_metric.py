"""
Identifier and Metric Tests
===========================

Tests for kadroute/utils.py and kadroute/metric.py.
"""

import random

import pytest

from kadroute.metric import DistanceMetric, HighestBitDistance, PrefixDistance, get_metric
from kadroute.utils import (
    ID_BYTES, bytes_to_int, check_id, flip_bit, generate_node_id,
    get_shared_prefix_length, hex_to_id, id_to_hex, int_to_bytes, xor_distance,
)


class TestUtils:
    """Test identifier helpers."""

    def test_generate_node_id_length(self):
        assert len(generate_node_id()) == ID_BYTES
        assert len(generate_node_id(256)) == 32

    def test_generate_node_id_seeded_is_reproducible(self):
        assert generate_node_id(rng=random.Random(7)) == generate_node_id(rng=random.Random(7))

    def test_xor_distance(self):
        a = bytes(ID_BYTES)
        b = int_to_bytes(5)
        assert xor_distance(a, a) == 0
        assert xor_distance(a, b) == 5
        assert xor_distance(b, a) == 5

    def test_xor_distance_length_mismatch(self):
        with pytest.raises(ValueError):
            xor_distance(bytes(20), bytes(19))

    def test_int_round_trip(self):
        assert bytes_to_int(int_to_bytes(123456789)) == 123456789

    def test_hex_helpers(self, local_id):
        assert hex_to_id(id_to_hex(local_id)) == local_id
        with pytest.raises(ValueError):
            hex_to_id("not hex")

    def test_flip_bit_msb_first(self):
        zero = bytes(ID_BYTES)
        assert flip_bit(zero, 0)[0] == 0x80
        assert flip_bit(zero, 159)[-1] == 0x01
        with pytest.raises(ValueError):
            flip_bit(zero, 160)

    def test_shared_prefix_length(self, local_id):
        assert get_shared_prefix_length(local_id, local_id) == 160
        assert get_shared_prefix_length(local_id, flip_bit(local_id, 0)) == 0
        assert get_shared_prefix_length(local_id, flip_bit(local_id, 117)) == 117

    def test_check_id(self):
        assert check_id(bytearray(20)) == bytes(20)
        with pytest.raises(ValueError):
            check_id(bytes(19))
        with pytest.raises(ValueError):
            check_id("00" * 20)


class TestPrefixDistance:
    """Test the default shared-prefix metric."""

    def test_identical_ids_have_zero_distance(self, local_id):
        assert PrefixDistance().distance(local_id, local_id) == 0

    def test_distance_is_prefix_length_plus_one(self, local_id):
        metric = PrefixDistance()
        assert metric.distance(local_id, flip_bit(local_id, 0)) == 1
        assert metric.distance(local_id, flip_bit(local_id, 117)) == 118
        assert metric.distance(local_id, flip_bit(local_id, 159)) == 160

    def test_lower_bits_do_not_matter(self, local_id):
        metric = PrefixDistance()
        near = flip_bit(local_id, 40)
        nearer_tail = flip_bit(flip_bit(near, 100), 150)
        assert metric.distance(local_id, near) == metric.distance(local_id, nearer_tail)

    def test_rejects_wrong_width(self, local_id):
        with pytest.raises(ValueError):
            PrefixDistance().distance(local_id, bytes(10))

    def test_random_id_in_bucket(self, local_id):
        metric = PrefixDistance(rng=random.Random(1))
        for index in (0, 1, 57, 117, 159):
            random_id = metric.random_id_in_bucket(local_id, index)
            assert metric.distance(local_id, random_id) - 1 == index

    def test_random_id_in_bucket_out_of_range(self, local_id):
        with pytest.raises(ValueError):
            PrefixDistance().random_id_in_bucket(local_id, 160)

    def test_satisfies_protocol(self):
        assert isinstance(PrefixDistance(), DistanceMetric)


class TestHighestBitDistance:
    """Test the highest-differing-bit metric."""

    def test_distance_is_bit_length(self, local_id):
        metric = HighestBitDistance()
        assert metric.distance(local_id, local_id) == 0
        assert metric.distance(local_id, flip_bit(local_id, 159)) == 1
        assert metric.distance(local_id, flip_bit(local_id, 117)) == 43
        assert metric.distance(local_id, flip_bit(local_id, 0)) == 160

    def test_random_id_in_bucket(self, local_id):
        metric = HighestBitDistance(rng=random.Random(2))
        for index in (0, 3, 42, 159):
            random_id = metric.random_id_in_bucket(local_id, index)
            assert metric.distance(local_id, random_id) - 1 == index

    def test_wider_identifiers(self):
        metric = HighestBitDistance(id_bits=256)
        a = bytes(32)
        assert metric.distance(a, flip_bit(a, 0)) == 256


class TestGetMetric:
    def test_known_names(self):
        assert isinstance(get_metric("prefix"), PrefixDistance)
        assert isinstance(get_metric("highest-bit", 256), HighestBitDistance)
        assert get_metric("prefix", 256).id_bits == 256

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            get_metric("euclid")

    def test_invalid_width(self):
        with pytest.raises(ValueError):
            get_metric("prefix", 161)
