"""Disk address packets for the BIOS extended read service."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass

PACKET_SIZE = 0x10
SECTOR_SIZE = 512
MAX_SECTORS_PER_LOAD = 32

_PACKET_FORMAT = struct.Struct("<BBHHHQ")
_U16_MAX = 0xFFFF
_U64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class DiskAddressPacket:
    """A request to load sectors starting at a logical block address into memory."""

    start_lba: int
    number_of_sectors: int
    offset: int
    segment: int

    def __post_init__(self) -> None:
        for name in ("number_of_sectors", "offset", "segment"):
            value = getattr(self, name)
            if not 0 <= value <= _U16_MAX:
                raise ValueError(f"{name} {value:#x} does not fit in 16 bits")
        if not 0 <= self.start_lba <= _U64_MAX:
            raise ValueError(f"start LBA {self.start_lba:#x} does not fit in 64 bits")

    @classmethod
    def from_lba(
        cls, start_lba: int, number_of_sectors: int, target_addr: int
    ) -> DiskAddressPacket:
        """Build a packet loading into the real-mode address ``target_addr``.

        The address is split into a segment and a 4-bit offset.
        """
        if target_addr < 0:
            raise ValueError("target address must not be negative")
        return cls(
            start_lba=start_lba,
            number_of_sectors=number_of_sectors,
            offset=target_addr & 0b1111,
            segment=target_addr >> 4,
        )

    @property
    def target_addr(self) -> int:
        return (self.segment << 4) + self.offset

    def pack(self) -> bytes:
        """Return the 16-byte packed wire representation."""
        return _PACKET_FORMAT.pack(
            PACKET_SIZE,
            0,
            self.number_of_sectors,
            self.offset,
            self.segment,
            self.start_lba,
        )


def split_load(
    start_lba: int, sector_count: int, target_addr: int
) -> Iterator[DiskAddressPacket]:
    """Yield the packets needed to load ``sector_count`` sectors.

    Each packet moves at most 32 sectors; the target address advances by the
    bytes loaded. At least one packet is always produced.
    """
    if sector_count < 0:
        raise ValueError("sector count must not be negative")
    remaining = sector_count
    while True:
        sectors = min(remaining, MAX_SECTORS_PER_LOAD)
        yield DiskAddressPacket.from_lba(start_lba, sectors, target_addr)
        start_lba += sectors
        remaining -= sectors
        target_addr += sectors * SECTOR_SIZE
        if remaining == 0:
            break