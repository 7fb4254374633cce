import random

import pytest

from bootstage.config import BootloaderConfig
from bootstage.mappings import ApiVersion, ConfigError, FrameBuffer, Mapping, Mappings


def _random_mapping(rng):
    if rng.random() < 0.5:
        return Mapping.dynamic()
    return Mapping.fixed(rng.getrandbits(64))


def _random_optional(rng, make):
    return make() if rng.random() < 0.5 else None


def _random_config(rng):
    return BootloaderConfig(
        version=ApiVersion(
            version_major=rng.getrandbits(16),
            version_minor=rng.getrandbits(16),
            version_patch=rng.getrandbits(16),
            pre_release=rng.random() < 0.5,
        ),
        mappings=Mappings(
            kernel_stack=_random_mapping(rng),
            kernel_base=_random_mapping(rng),
            boot_info=_random_mapping(rng),
            framebuffer=_random_mapping(rng),
            physical_memory=_random_optional(rng, lambda: _random_mapping(rng)),
            page_table_recursive=_random_optional(rng, lambda: _random_mapping(rng)),
            aslr=rng.random() < 0.5,
            dynamic_range_start=_random_optional(rng, lambda: rng.getrandbits(64)),
            dynamic_range_end=_random_optional(rng, lambda: rng.getrandbits(64)),
            ramdisk_memory=_random_mapping(rng),
        ),
        kernel_stack_size=rng.getrandbits(64),
        frame_buffer=FrameBuffer(
            minimum_framebuffer_height=_random_optional(rng, lambda: rng.getrandbits(64)),
            minimum_framebuffer_width=_random_optional(rng, lambda: rng.getrandbits(64)),
        ),
    )


def test_config_serde_round_trip():
    rng = random.Random(1234)
    for _ in range(2000):
        config = _random_config(rng)
        assert BootloaderConfig.deserialize(config.serialize()) == config


def test_mapping_serde_round_trip():
    rng = random.Random(99)
    for _ in range(2000):
        mapping = _random_mapping(rng)
        assert Mapping.deserialize(mapping.serialize()) == mapping


def test_default_values():
    config = BootloaderConfig()
    assert config.kernel_stack_size == 80 * 1024
    assert config.mappings == Mappings()
    assert config.frame_buffer == FrameBuffer()
    assert config.version == ApiVersion.current()


def test_serialized_length_and_uuid():
    data = BootloaderConfig().serialize()
    assert len(data) == BootloaderConfig.SERIALIZED_LEN == 133
    assert data[:16] == BootloaderConfig.UUID


def test_default_version_bytes():
    data = BootloaderConfig().serialize()
    assert data[16:23] == bytes([0, 0, 11, 0, 10, 0, 0])


def test_default_round_trip():
    config = BootloaderConfig()
    assert BootloaderConfig.deserialize(config.serialize()) == config


def test_some_dynamic_physical_memory_is_distinct_from_none():
    config = BootloaderConfig(mappings=Mappings(physical_memory=Mapping.dynamic()))
    data = config.serialize()
    assert data[67] == 1
    assert BootloaderConfig.deserialize(data).mappings.physical_memory == Mapping.dynamic()


def _corrupt(offset, value):
    data = bytearray(BootloaderConfig().serialize())
    data[offset] = value
    return bytes(data)


def test_invalid_length():
    data = BootloaderConfig().serialize()
    with pytest.raises(ConfigError, match="invalid len"):
        BootloaderConfig.deserialize(data[:-1])
    with pytest.raises(ConfigError, match="invalid len"):
        BootloaderConfig.deserialize(data + b"\x00")


def test_invalid_uuid():
    with pytest.raises(ConfigError, match="invalid UUID"):
        BootloaderConfig.deserialize(_corrupt(0, 0x00))


def test_invalid_pre_release():
    with pytest.raises(ConfigError, match="invalid pre version"):
        BootloaderConfig.deserialize(_corrupt(22, 2))


def test_invalid_kernel_stack_mapping():
    with pytest.raises(ConfigError, match="invalid mapping value"):
        BootloaderConfig.deserialize(_corrupt(31, 2))


def test_dynamic_mapping_with_address_rejected():
    with pytest.raises(ConfigError, match="invalid mapping value"):
        BootloaderConfig.deserialize(_corrupt(33, 5))


def test_invalid_physical_memory_tag():
    with pytest.raises(ConfigError, match="invalid phys memory value"):
        BootloaderConfig.deserialize(_corrupt(67, 2))


def test_invalid_recursive_tag():
    with pytest.raises(ConfigError, match="invalid page table recursive value"):
        BootloaderConfig.deserialize(_corrupt(77, 3))


def test_invalid_aslr():
    with pytest.raises(ConfigError, match="invalid aslr value"):
        BootloaderConfig.deserialize(_corrupt(87, 2))


def test_invalid_dynamic_range_start():
    with pytest.raises(ConfigError, match="invalid dynamic range start value"):
        BootloaderConfig.deserialize(_corrupt(90, 1))


def test_invalid_dynamic_range_end():
    with pytest.raises(ConfigError, match="invalid dynamic range end value"):
        BootloaderConfig.deserialize(_corrupt(97, 7))


def test_invalid_framebuffer_height():
    with pytest.raises(ConfigError, match="minimum_framebuffer_height invalid"):
        BootloaderConfig.deserialize(_corrupt(115, 2))


def test_invalid_framebuffer_width():
    with pytest.raises(ConfigError, match="minimum_framebuffer_width invalid"):
        BootloaderConfig.deserialize(_corrupt(130, 1))


def test_stack_size_out_of_range():
    with pytest.raises(ValueError):
        BootloaderConfig(kernel_stack_size=1 << 64).serialize()