"""Global descriptor tables for the protected-mode and long-mode switches."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1
_TABLE_FORMAT = struct.Struct("<QQQ")
_POINTER_FORMAT = struct.Struct("<HI")

# Descriptor bits shared by both tables.
_PRESENT = 1 << 47
_USER_SEGMENT = 1 << 44
_EXECUTABLE = 1 << 43
_READ_WRITE = 1 << 41
_ACCESSED = 1 << 40
_LONG_MODE = 1 << 53
_PROTECTED_MODE = 1 << 54
_GRANULARITY = 1 << 55
_LIMIT = (0xF << 48) | 0xFFFF


@dataclass(frozen=True)
class Gdt:
    """A three-entry descriptor table: null, code and data segment."""

    zero: int
    code: int
    data: int

    ENTRY_SIZE: ClassVar[int] = 8
    ENTRY_COUNT: ClassVar[int] = 3

    def __post_init__(self) -> None:
        for name in ("zero", "code", "data"):
            value = getattr(self, name)
            if not 0 <= value <= _U64_MAX:
                raise ValueError(f"{name} descriptor {value:#x} does not fit in 64 bits")

    @property
    def limit(self) -> int:
        """The table size in bytes minus one, as stored in the table pointer."""
        return self.ENTRY_COUNT * self.ENTRY_SIZE - 1

    def to_bytes(self) -> bytes:
        """Return the table as it lies in memory."""
        return _TABLE_FORMAT.pack(self.zero, self.code, self.data)

    def pointer(self, base: int) -> bytes:
        """Return the 6-byte pointer that loads this table from address ``base``."""
        if not 0 <= base <= _U32_MAX:
            raise ValueError(f"table base {base:#x} does not fit in 32 bits")
        return _POINTER_FORMAT.pack(self.limit, base)


def protected_mode_gdt() -> Gdt:
    """The flat 4 GiB table used to enter unreal and protected mode."""
    access_common = _PRESENT | _USER_SEGMENT | _READ_WRITE
    base_flags = _PROTECTED_MODE | _GRANULARITY | access_common | _LIMIT
    return Gdt(zero=0, code=base_flags | _EXECUTABLE, data=base_flags)


def long_mode_gdt() -> Gdt:
    """The table loaded before jumping into 64-bit code."""
    common_flags = _USER_SEGMENT | _PRESENT | _READ_WRITE | _ACCESSED
    return Gdt(zero=0, code=common_flags | _EXECUTABLE | _LONG_MODE, data=common_flags)