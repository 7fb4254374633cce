import pytest

from bootstage.bios_info import (
    BiosFramebufferInfo,
    BiosInfo,
    BiosPixelFormat,
    E820MemoryRegion,
    PixelLayout,
    Region,
)


def _framebuffer(pixel_format=None):
    return BiosFramebufferInfo(
        region=Region(0xFD000000, 1280 * 720 * 4),
        width=1280,
        height=720,
        bytes_per_pixel=4,
        stride=1280,
        pixel_format=pixel_format or BiosPixelFormat.rgb(),
    )


def test_rgb_and_bgr_are_known():
    assert BiosPixelFormat.rgb().is_unknown() is False
    assert BiosPixelFormat.bgr().is_unknown() is False


def test_unknown_format_keeps_positions():
    fmt = BiosPixelFormat.unknown(3, 9, 17)
    assert fmt.is_unknown() is True
    assert (fmt.red_position, fmt.green_position, fmt.blue_position) == (3, 9, 17)
    assert fmt.layout is PixelLayout.UNKNOWN


def test_unknown_format_requires_positions():
    with pytest.raises(ValueError):
        BiosPixelFormat(PixelLayout.UNKNOWN, 1, None, 2)


def test_known_format_rejects_positions():
    with pytest.raises(ValueError):
        BiosPixelFormat(PixelLayout.RGB, 0, 8, 16)


def test_position_must_fit_in_byte():
    with pytest.raises(ValueError):
        BiosPixelFormat.unknown(256, 0, 0)


def test_region_end():
    region = Region(0x1000, 0x2000)
    assert region.end == region.start + region.length


def test_region_rejects_negative():
    with pytest.raises(ValueError):
        Region(-1, 10)


def test_e820_region_end_and_default_attributes():
    region = E820MemoryRegion(start_addr=0x100000, length=0x7EE0000, region_type=1)
    assert region.end == 0x100000 + 0x7EE0000
    assert region.acpi_extended_attributes == 0


def test_e820_region_type_must_fit_in_32_bits():
    with pytest.raises(ValueError):
        E820MemoryRegion(start_addr=0, length=1, region_type=1 << 32)


def test_framebuffer_width_limit():
    with pytest.raises(ValueError):
        BiosFramebufferInfo(
            region=Region(0, 0),
            width=1 << 16,
            height=1,
            bytes_per_pixel=4,
            stride=1,
            pixel_format=BiosPixelFormat.bgr(),
        )


def test_bios_info_holds_regions():
    framebuffer = _framebuffer()
    info = BiosInfo(
        stage_4=Region(0x130000, 0x4000),
        kernel=Region(0x1000000, 0x8000),
        ramdisk=Region(0x1008000, 0),
        config_file=Region(0x1008000, 0),
        last_used_addr=0x1007FFF,
        framebuffer=framebuffer,
        memory_map_addr=0x8000,
        memory_map_len=7,
    )
    assert info.kernel.end == info.ramdisk.start
    assert info.framebuffer.pixel_format.is_unknown() is False
    assert info.memory_map_len == 7


def test_bios_info_memory_map_len_limit():
    with pytest.raises(ValueError):
        BiosInfo(
            stage_4=Region(0, 0),
            kernel=Region(0, 0),
            ramdisk=Region(0, 0),
            config_file=Region(0, 0),
            last_used_addr=0,
            framebuffer=_framebuffer(),
            memory_map_addr=0,
            memory_map_len=1 << 16,
        )