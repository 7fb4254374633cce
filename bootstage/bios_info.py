"""Information that the BIOS stages hand to one another."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


def _check_uint(value: int, bits: int, name: str) -> None:
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} {value} does not fit in {bits} bits")


@dataclass(frozen=True)
class Region:
    """A physical memory region given by start address and length."""

    start: int
    length: int

    def __post_init__(self) -> None:
        _check_uint(self.start, 64, "start")
        _check_uint(self.length, 64, "length")

    @property
    def end(self) -> int:
        """The exclusive end address."""
        return self.start + self.length


class PixelLayout(Enum):
    RGB = "rgb"
    BGR = "bgr"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BiosPixelFormat:
    """Colour layout of a framebuffer pixel as reported by VESA."""

    layout: PixelLayout
    red_position: int | None = None
    green_position: int | None = None
    blue_position: int | None = None

    def __post_init__(self) -> None:
        positions = (self.red_position, self.green_position, self.blue_position)
        if self.layout is PixelLayout.UNKNOWN:
            if any(p is None for p in positions):
                raise ValueError("an unknown pixel format needs all three bit positions")
            for name, value in zip(("red", "green", "blue"), positions):
                _check_uint(value, 8, f"{name} position")
        elif any(p is not None for p in positions):
            raise ValueError("bit positions are only stored for unknown pixel formats")

    @classmethod
    def rgb(cls) -> BiosPixelFormat:
        return cls(PixelLayout.RGB)

    @classmethod
    def bgr(cls) -> BiosPixelFormat:
        return cls(PixelLayout.BGR)

    @classmethod
    def unknown(cls, red_position: int, green_position: int, blue_position: int) -> BiosPixelFormat:
        return cls(PixelLayout.UNKNOWN, red_position, green_position, blue_position)

    def is_unknown(self) -> bool:
        """Whether the format is neither RGB nor BGR."""
        return self.layout is PixelLayout.UNKNOWN


@dataclass(frozen=True)
class BiosFramebufferInfo:
    """The framebuffer set up through VESA."""

    region: Region
    width: int
    height: int
    bytes_per_pixel: int
    stride: int
    pixel_format: BiosPixelFormat

    def __post_init__(self) -> None:
        _check_uint(self.width, 16, "width")
        _check_uint(self.height, 16, "height")
        _check_uint(self.bytes_per_pixel, 8, "bytes per pixel")
        _check_uint(self.stride, 16, "stride")


@dataclass(frozen=True)
class E820MemoryRegion:
    """A physical memory region reported by the E820 BIOS call."""

    start_addr: int
    length: int
    region_type: int
    acpi_extended_attributes: int = 0

    def __post_init__(self) -> None:
        _check_uint(self.start_addr, 64, "start address")
        _check_uint(self.length, 64, "length")
        _check_uint(self.region_type, 32, "region type")
        _check_uint(self.acpi_extended_attributes, 32, "ACPI extended attributes")

    @property
    def end(self) -> int:
        """The exclusive end address."""
        return self.start_addr + self.length


@dataclass
class BiosInfo:
    """Everything the later boot stages need to know about what was loaded where."""

    stage_4: Region
    kernel: Region
    ramdisk: Region
    config_file: Region
    last_used_addr: int
    framebuffer: BiosFramebufferInfo
    memory_map_addr: int
    memory_map_len: int

    def __post_init__(self) -> None:
        _check_uint(self.last_used_addr, 64, "last used address")
        _check_uint(self.memory_map_addr, 32, "memory map address")
        _check_uint(self.memory_map_len, 16, "memory map length")