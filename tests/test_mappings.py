import random

import pytest

from bootstage.mappings import (
    ApiVersion,
    ConfigError,
    FrameBuffer,
    Mapping,
    Mappings,
)
from bootstage.version import CURRENT_VERSION


def _random_mapping(rng):
    if rng.random() < 0.5:
        return Mapping.dynamic()
    return Mapping.fixed(rng.getrandbits(64))


def test_mapping_serde():
    rng = random.Random(1234)
    for _ in range(10000):
        mapping = _random_mapping(rng)
        assert Mapping.deserialize(mapping.serialize()) == mapping


def test_dynamic_serializes_to_zeros():
    assert Mapping.dynamic().serialize() == bytes(9)


def test_fixed_serializes_tag_and_little_endian_address():
    address = 0xF_0000_0000
    data = Mapping.fixed(address).serialize()
    assert data[0] == 1
    assert int.from_bytes(data[1:], "little") == address
    assert len(data) == Mapping.SERIALIZED_LEN


def test_default_mapping_is_dynamic():
    assert Mapping() == Mapping.dynamic()
    assert Mapping.dynamic().is_dynamic
    assert not Mapping.fixed(0).is_dynamic


def test_invalid_variant_raises():
    with pytest.raises(ConfigError, match="invalid mapping value"):
        Mapping.deserialize(b"\x02" + bytes(8))


def test_dynamic_with_nonzero_address_raises():
    with pytest.raises(ConfigError, match="invalid mapping value"):
        Mapping.deserialize(b"\x00\x01" + bytes(7))


def test_wrong_length_raises():
    with pytest.raises(ConfigError, match="invalid mapping format"):
        Mapping.deserialize(bytes(8))


def test_config_error_is_value_error():
    with pytest.raises(ValueError):
        Mapping.deserialize(b"")


def test_address_out_of_range_raises():
    with pytest.raises(ValueError):
        Mapping.fixed(-1)
    with pytest.raises(ValueError):
        Mapping.fixed(1 << 64)


def test_ordering_dynamic_before_fixed():
    ordered = sorted([Mapping.fixed(5), Mapping.dynamic(), Mapping.fixed(1)])
    assert ordered == [Mapping.dynamic(), Mapping.fixed(1), Mapping.fixed(5)]


def test_mappings_are_hashable():
    assert len({Mapping.fixed(3), Mapping.fixed(3), Mapping.dynamic()}) == 2


def test_api_version_current_matches_crate_version():
    version = ApiVersion.current()
    assert version.version_major == CURRENT_VERSION.major
    assert version.version_minor == CURRENT_VERSION.minor
    assert version.version_patch == CURRENT_VERSION.patch
    assert version.pre_release == CURRENT_VERSION.pre_release


def test_mappings_defaults():
    mappings = Mappings()
    assert mappings.kernel_stack == Mapping.dynamic()
    assert mappings.ramdisk_memory == Mapping.dynamic()
    assert mappings.physical_memory is None
    assert mappings.page_table_recursive is None
    assert mappings.aslr is False
    assert mappings.dynamic_range_start is None
    assert mappings.dynamic_range_end is None


def test_frame_buffer_defaults():
    assert FrameBuffer() == FrameBuffer(None, None)