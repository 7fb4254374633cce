"""The fourth BIOS stage: translating firmware information for the kernel."""

from __future__ import annotations

from collections.abc import Iterable

from bootstage.bios_info import BiosFramebufferInfo, E820MemoryRegion, PixelLayout
from bootstage.info import FrameBufferInfo, MemoryRegionKind, PixelFormat

GIGABYTE = 4096 * 512 * 512
E820_USABLE = 1


def memory_region_kind(region: E820MemoryRegion) -> MemoryRegionKind:
    """The kind of an E820 region: type 1 is usable, any other type is kept as is."""
    if region.region_type == E820_USABLE:
        return MemoryRegionKind.usable()
    return MemoryRegionKind.unknown_bios(region.region_type)


def usable_after_bootloader_exit(region: E820MemoryRegion) -> bool:
    """Whether the kernel may use the region once the bootloader is done."""
    return memory_region_kind(region).is_usable


def to_framebuffer_info(info: BiosFramebufferInfo) -> FrameBufferInfo:
    """Describe the VESA framebuffer in the form the kernel receives."""
    fmt = info.pixel_format
    if fmt.layout is PixelLayout.RGB:
        pixel_format = PixelFormat.rgb()
    elif fmt.layout is PixelLayout.BGR:
        pixel_format = PixelFormat.bgr()
    else:
        pixel_format = PixelFormat.unknown(
            fmt.red_position, fmt.green_position, fmt.blue_position
        )
    return FrameBufferInfo(
        byte_len=info.region.length,
        width=info.width,
        height=info.height,
        pixel_format=pixel_format,
        bytes_per_pixel=info.bytes_per_pixel,
        stride=info.stride,
    )


def max_physical_address(regions: Iterable[E820MemoryRegion]) -> int:
    """The end of the highest memory region, capped at 4 GiB.

    Addresses above 4 GiB cannot be reached from protected mode, so they are
    not considered. Raises ``ValueError`` if there are no regions.
    """
    ends = [region.start_addr + region.length for region in regions]
    if not ends:
        raise ValueError("no physical memory regions found")
    return min(max(ends), 4 * GIGABYTE)