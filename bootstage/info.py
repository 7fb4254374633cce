"""The boot information the bootloader passes to the kernel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from bootstage.mappings import ApiVersion

_U8_MAX = 0xFF
_U16_MAX = 0xFFFF
_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1


def _check_range(value: int, maximum: int, name: str) -> None:
    if not 0 <= value <= maximum:
        raise ValueError(f"{name} {value} is out of range")


class RegionType(Enum):
    """The broad categories of physical memory."""

    USABLE = "usable"
    BOOTLOADER = "bootloader"
    UNKNOWN_UEFI = "unknown_uefi"
    UNKNOWN_BIOS = "unknown_bios"


@dataclass(frozen=True)
class MemoryRegionKind:
    """The memory type of a region.

    Unknown firmware types carry the firmware's own type tag in ``code``.
    """

    type: RegionType
    code: int | None = None

    def __post_init__(self) -> None:
        if self.type in (RegionType.UNKNOWN_UEFI, RegionType.UNKNOWN_BIOS):
            if self.code is None:
                raise ValueError("unknown memory kinds need a firmware type code")
            _check_range(self.code, _U32_MAX, "firmware type code")
        elif self.code is not None:
            raise ValueError("only unknown memory kinds carry a type code")

    @classmethod
    def usable(cls) -> MemoryRegionKind:
        """Unused conventional memory that the kernel may use."""
        return cls(RegionType.USABLE)

    @classmethod
    def bootloader(cls) -> MemoryRegionKind:
        """Memory used by the bootloader, including page tables and boot info."""
        return cls(RegionType.BOOTLOADER)

    @classmethod
    def unknown_uefi(cls, code: int) -> MemoryRegionKind:
        """A region with a UEFI memory type tag the bootloader does not know."""
        return cls(RegionType.UNKNOWN_UEFI, code)

    @classmethod
    def unknown_bios(cls, code: int) -> MemoryRegionKind:
        """A region with an E820 memory type the bootloader does not know."""
        return cls(RegionType.UNKNOWN_BIOS, code)

    @property
    def is_usable(self) -> bool:
        return self.type is RegionType.USABLE


@dataclass(frozen=True)
class MemoryRegion:
    """A physical memory region; ``end`` is exclusive."""

    start: int
    end: int
    kind: MemoryRegionKind

    def __post_init__(self) -> None:
        _check_range(self.start, _U64_MAX, "start")
        _check_range(self.end, _U64_MAX, "end")

    @classmethod
    def empty(cls) -> MemoryRegion:
        """A region of length zero."""
        return cls(start=0, end=0, kind=MemoryRegionKind.bootloader())

    @property
    def length(self) -> int:
        return max(self.end - self.start, 0)


class PixelKind(Enum):
    RGB = "rgb"
    BGR = "bgr"
    U8 = "u8"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PixelFormat:
    """Colour format of pixels in the framebuffer."""

    kind: PixelKind
    red_position: int | None = None
    green_position: int | None = None
    blue_position: int | None = None

    def __post_init__(self) -> None:
        positions = (self.red_position, self.green_position, self.blue_position)
        if self.kind is PixelKind.UNKNOWN:
            if any(p is None for p in positions):
                raise ValueError("an unknown pixel format needs all three bit positions")
            for name, value in zip(("red", "green", "blue"), positions):
                _check_range(value, _U8_MAX, f"{name} position")
        elif any(p is not None for p in positions):
            raise ValueError("bit positions are only stored for unknown pixel formats")

    @classmethod
    def rgb(cls) -> PixelFormat:
        return cls(PixelKind.RGB)

    @classmethod
    def bgr(cls) -> PixelFormat:
        return cls(PixelKind.BGR)

    @classmethod
    def u8(cls) -> PixelFormat:
        return cls(PixelKind.U8)

    @classmethod
    def unknown(cls, red_position: int, green_position: int, blue_position: int) -> PixelFormat:
        return cls(PixelKind.UNKNOWN, red_position, green_position, blue_position)


@dataclass(frozen=True)
class FrameBufferInfo:
    """Layout and pixel format of a framebuffer."""

    byte_len: int
    width: int
    height: int
    pixel_format: PixelFormat
    bytes_per_pixel: int
    stride: int

    def __post_init__(self) -> None:
        for name in ("byte_len", "width", "height", "bytes_per_pixel", "stride"):
            _check_range(getattr(self, name), _U64_MAX, name)


class FrameBuffer:
    """A pixel framebuffer starting at physical address ``buffer_start``.

    ``memory`` holds the framebuffer's bytes; a zeroed buffer of
    ``info.byte_len`` bytes is used when none is given.
    """

    def __init__(
        self,
        buffer_start: int,
        info: FrameBufferInfo,
        memory: bytearray | None = None,
    ) -> None:
        _check_range(buffer_start, _U64_MAX, "buffer start")
        if memory is None:
            memory = bytearray(info.byte_len)
        if len(memory) < info.byte_len:
            raise ValueError(
                f"framebuffer memory holds {len(memory)} bytes, {info.byte_len} needed"
            )
        self.buffer_start = buffer_start
        self.info = info
        self._memory = memory

    def buffer(self) -> memoryview:
        """Return the framebuffer's raw bytes as a writable view."""
        return memoryview(self._memory)[: self.info.byte_len]

    def __repr__(self) -> str:
        return f"FrameBuffer(buffer_start={self.buffer_start:#x}, info={self.info!r})"


@dataclass(frozen=True)
class TlsTemplate:
    """The thread-local storage template of the kernel executable."""

    start_addr: int
    file_size: int
    mem_size: int

    def __post_init__(self) -> None:
        for name in ("start_addr", "file_size", "mem_size"):
            _check_range(getattr(self, name), _U64_MAX, name)


@dataclass
class BootInfo:
    """Everything the bootloader tells the kernel on startup."""

    memory_regions: list[MemoryRegion]
    api_version: ApiVersion = field(default_factory=ApiVersion.current)
    framebuffer: FrameBuffer | None = None
    physical_memory_offset: int | None = None
    recursive_index: int | None = None
    rsdp_addr: int | None = None
    tls_template: TlsTemplate | None = None
    ramdisk_addr: int | None = None
    ramdisk_len: int = 0
    kernel_addr: int = 0
    kernel_len: int = 0
    kernel_image_offset: int = 0

    def __post_init__(self) -> None:
        self.memory_regions = list(self.memory_regions)
        if self.recursive_index is not None:
            _check_range(self.recursive_index, _U16_MAX, "recursive index")
        for name in ("physical_memory_offset", "rsdp_addr", "ramdisk_addr"):
            value = getattr(self, name)
            if value is not None:
                _check_range(value, _U64_MAX, name)
        for name in ("ramdisk_len", "kernel_addr", "kernel_len", "kernel_image_offset"):
            _check_range(getattr(self, name), _U64_MAX, name)