"""Selection of a VESA video mode from the information the video BIOS reports."""

from __future__ import annotations

import struct
from collections.abc import Iterable
from dataclasses import dataclass

from bootstage.bios_info import BiosPixelFormat

MODE_INFO_SIZE = 256
MODE_LIST_END = 0xFFFF
GRAPHICS_WITH_LINEAR_FRAMEBUFFER = 0x90
SUPPORTED_MEMORY_MODELS = (
    4,  # packed pixel graphics
    6,  # direct colour
)

# Fields of the mode information block up to the off-screen memory size.
_MODE_INFO_FORMAT = struct.Struct("<HBBHHHHIHHH18BIIH")


def pixel_format_from_positions(red: int, green: int, blue: int) -> BiosPixelFormat:
    """Classify a pixel format by the bit positions of its colour channels."""
    if (red, green, blue) == (0, 8, 16):
        return BiosPixelFormat.rgb()
    if (red, green, blue) == (16, 8, 0):
        return BiosPixelFormat.bgr()
    return BiosPixelFormat.unknown(red, green, blue)


@dataclass(frozen=True)
class VesaModeInfo:
    """The properties of one VESA video mode."""

    mode: int
    width: int
    height: int
    framebuffer_start: int
    bytes_per_scanline: int
    bytes_per_pixel: int
    pixel_format: BiosPixelFormat
    memory_model: int
    attributes: int

    @classmethod
    def parse(cls, mode: int, block: bytes) -> VesaModeInfo:
        """Decode the 256-byte mode information block returned for ``mode``."""
        block = bytes(block)
        if len(block) < MODE_INFO_SIZE:
            raise ValueError(
                f"mode information block needs {MODE_INFO_SIZE} bytes, got {len(block)}"
            )
        fields = _MODE_INFO_FORMAT.unpack_from(block)
        (
            attributes,
            _window_a,
            _window_b,
            _granularity,
            _window_size,
            _segment_a,
            _segment_b,
            _window_function_ptr,
            bytes_per_scanline,
            width,
            height,
        ) = fields[:11]
        small = fields[11:29]
        framebuffer = fields[29]
        bits_per_pixel = small[3]
        memory_model = small[5]
        red_position = small[10]
        green_position = small[12]
        blue_position = small[14]
        return cls(
            mode=mode,
            width=width,
            height=height,
            framebuffer_start=framebuffer,
            bytes_per_scanline=bytes_per_scanline,
            bytes_per_pixel=bits_per_pixel // 8,
            pixel_format=pixel_format_from_positions(red_position, green_position, blue_position),
            memory_model=memory_model,
            attributes=attributes,
        )

    @property
    def is_usable(self) -> bool:
        """Whether this is a supported graphics mode with a linear framebuffer."""
        return (
            self.attributes & GRAPHICS_WITH_LINEAR_FRAMEBUFFER == GRAPHICS_WITH_LINEAR_FRAMEBUFFER
            and self.memory_model in SUPPORTED_MEMORY_MODELS
        )


def read_mode_list(memory: bytes, video_mode_ptr: int) -> list[int]:
    """Read the mode numbers at the real-mode pointer ``video_mode_ptr``.

    The pointer holds a segment in its upper and an offset in its lower 16
    bits; ``memory`` is the address space starting at address zero. The list
    ends at the first ``0xFFFF``.
    """
    segment = (video_mode_ptr >> 16) & 0xFFFF
    offset = video_mode_ptr & 0xFFFF
    address = (segment << 4) + offset
    modes = []
    while True:
        if address + 2 > len(memory):
            raise ValueError("video mode list is not terminated within memory")
        mode = int.from_bytes(memory[address : address + 2], "little")
        if mode == MODE_LIST_END:
            return modes
        modes.append(mode)
        address += 2


def select_best_mode(
    modes: Iterable[VesaModeInfo], max_width: int, max_height: int
) -> VesaModeInfo | None:
    """Pick the widest, then tallest, usable mode within the given limits.

    A mode with a known pixel format is replaced by any later suitable mode
    only if that one is larger; a mode with an unknown format is always
    replaced.
    """
    best: VesaModeInfo | None = None
    for mode in modes:
        if not mode.is_usable:
            continue
        if mode.width > max_width or mode.height > max_height:
            continue
        if (
            best is None
            or best.pixel_format.is_unknown()
            or best.width < mode.width
            or (best.width == mode.width and best.height < mode.height)
        ):
            best = mode
    return best