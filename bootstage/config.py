"""The bootloader configuration embedded in a kernel and its byte format."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar

from bootstage.mappings import ApiVersion, ConfigError, FrameBuffer, Mapping, Mappings

_U16_MAX = 0xFFFF
_U64_MAX = (1 << 64) - 1
_VERSION_FORMAT = struct.Struct("<HHHB")


def _u64_bytes(value: int, name: str) -> bytes:
    if not 0 <= value <= _U64_MAX:
        raise ValueError(f"{name} {value:#x} does not fit in 64 bits")
    return value.to_bytes(8, "little")


def _optional_mapping_bytes(mapping: Mapping | None) -> bytes:
    if mapping is None:
        return bytes(1 + Mapping.SERIALIZED_LEN)
    return b"\x01" + mapping.serialize()


def _optional_u64_bytes(value: int | None, name: str) -> bytes:
    if value is None:
        return bytes(9)
    return b"\x01" + _u64_bytes(value, name)


def _decode_optional_mapping(tag: int, payload: bytes, error: str) -> Mapping | None:
    if tag == 0 and payload == bytes(Mapping.SERIALIZED_LEN):
        return None
    if tag == 1:
        return Mapping.deserialize(payload)
    raise ConfigError(error)


def _decode_optional_u64(tag: int, payload: bytes, error: str) -> int | None:
    if tag == 0 and payload == bytes(8):
        return None
    if tag == 1:
        return int.from_bytes(payload, "little")
    raise ConfigError(error)


class _Reader:
    """Hands out consecutive chunks of a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def take(self, size: int) -> bytes:
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def u64(self) -> int:
        return int.from_bytes(self.take(8), "little")

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._data)


@dataclass
class BootloaderConfig:
    """Settings the kernel passes to the bootloader.

    Stored in the kernel executable as a fixed-size byte string produced by
    :meth:`serialize`.
    """

    UUID: ClassVar[bytes] = bytes(
        [0x74, 0x3C, 0xA9, 0x61, 0x09, 0x36, 0x46, 0xA0,
         0xBB, 0x55, 0x5C, 0x15, 0x89, 0x15, 0x25, 0x3D]
    )
    SERIALIZED_LEN: ClassVar[int] = 133

    mappings: Mappings = field(default_factory=Mappings)
    kernel_stack_size: int = 80 * 1024
    frame_buffer: FrameBuffer = field(default_factory=FrameBuffer)
    version: ApiVersion = field(default_factory=ApiVersion.current)

    def serialize(self) -> bytes:
        """Encode the configuration as exactly :attr:`SERIALIZED_LEN` bytes."""
        version = self.version
        for name in ("version_major", "version_minor", "version_patch"):
            value = getattr(version, name)
            if not 0 <= value <= _U16_MAX:
                raise ValueError(f"{name} {value} does not fit in 16 bits")
        mappings = self.mappings
        parts = [
            self.UUID,
            _VERSION_FORMAT.pack(
                version.version_major,
                version.version_minor,
                version.version_patch,
                int(bool(version.pre_release)),
            ),
            _u64_bytes(self.kernel_stack_size, "kernel stack size"),
            mappings.kernel_stack.serialize(),
            mappings.kernel_base.serialize(),
            mappings.boot_info.serialize(),
            mappings.framebuffer.serialize(),
            _optional_mapping_bytes(mappings.physical_memory),
            _optional_mapping_bytes(mappings.page_table_recursive),
            bytes([int(bool(mappings.aslr))]),
            _optional_u64_bytes(mappings.dynamic_range_start, "dynamic range start"),
            _optional_u64_bytes(mappings.dynamic_range_end, "dynamic range end"),
            mappings.ramdisk_memory.serialize(),
            _optional_u64_bytes(
                self.frame_buffer.minimum_framebuffer_height, "minimum framebuffer height"
            ),
            _optional_u64_bytes(
                self.frame_buffer.minimum_framebuffer_width, "minimum framebuffer width"
            ),
        ]
        return b"".join(parts)

    @classmethod
    def deserialize(cls, data: bytes) -> BootloaderConfig:
        """Decode bytes produced by :meth:`serialize`, raising :class:`ConfigError`."""
        data = bytes(data)
        if len(data) != cls.SERIALIZED_LEN:
            raise ConfigError("invalid len")
        reader = _Reader(data)

        if reader.take(16) != cls.UUID:
            raise ConfigError("invalid UUID")

        major, minor, patch, pre = _VERSION_FORMAT.unpack(reader.take(_VERSION_FORMAT.size))
        if pre not in (0, 1):
            raise ConfigError("invalid pre version")
        version = ApiVersion(
            version_major=major,
            version_minor=minor,
            version_patch=patch,
            pre_release=bool(pre),
        )

        kernel_stack_size = reader.u64()

        kernel_stack = reader.take(9)
        kernel_base = reader.take(9)
        boot_info = reader.take(9)
        framebuffer = reader.take(9)
        physical_memory_tag, physical_memory = reader.byte(), reader.take(9)
        recursive_tag, recursive = reader.byte(), reader.take(9)
        aslr = reader.byte()
        range_start_tag, range_start = reader.byte(), reader.take(8)
        range_end_tag, range_end = reader.byte(), reader.take(8)
        ramdisk_memory = reader.take(9)

        mappings_kernel_stack = Mapping.deserialize(kernel_stack)
        mappings_kernel_base = Mapping.deserialize(kernel_base)
        mappings_boot_info = Mapping.deserialize(boot_info)
        mappings_framebuffer = Mapping.deserialize(framebuffer)
        mappings_physical = _decode_optional_mapping(
            physical_memory_tag, physical_memory, "invalid phys memory value"
        )
        mappings_recursive = _decode_optional_mapping(
            recursive_tag, recursive, "invalid page table recursive value"
        )
        if aslr not in (0, 1):
            raise ConfigError("invalid aslr value")
        mappings = Mappings(
            kernel_stack=mappings_kernel_stack,
            kernel_base=mappings_kernel_base,
            boot_info=mappings_boot_info,
            framebuffer=mappings_framebuffer,
            physical_memory=mappings_physical,
            page_table_recursive=mappings_recursive,
            aslr=bool(aslr),
            dynamic_range_start=_decode_optional_u64(
                range_start_tag, range_start, "invalid dynamic range start value"
            ),
            dynamic_range_end=_decode_optional_u64(
                range_end_tag, range_end, "invalid dynamic range end value"
            ),
            ramdisk_memory=Mapping.deserialize(ramdisk_memory),
        )

        height_tag, height = reader.byte(), reader.take(8)
        width_tag, width = reader.byte(), reader.take(8)
        frame_buffer = FrameBuffer(
            minimum_framebuffer_height=_decode_optional_u64(
                height_tag, height, "minimum_framebuffer_height invalid"
            ),
            minimum_framebuffer_width=_decode_optional_u64(
                width_tag, width, "minimum_framebuffer_width invalid"
            ),
        )

        if not reader.exhausted:
            raise ConfigError("unexpected rest")

        return cls(
            mappings=mappings,
            kernel_stack_size=kernel_stack_size,
            frame_buffer=frame_buffer,
            version=version,
        )