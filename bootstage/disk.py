"""Sector-based access to a disk image, relative to a partition start."""

from __future__ import annotations

import io
from typing import BinaryIO

from bootstage.dap import SECTOR_SIZE, DiskAddressPacket, split_load

_READ_WINDOW = 2 * SECTOR_SIZE


class DiskAccess:
    """Reads sectors of a disk image, with offsets relative to ``base_offset``."""

    def __init__(
        self,
        image: BinaryIO | bytes | bytearray | memoryview,
        *,
        disk_number: int = 0x80,
        base_offset: int = 0,
    ) -> None:
        if isinstance(image, (bytes, bytearray, memoryview)):
            image = io.BytesIO(bytes(image))
        if base_offset < 0 or base_offset % SECTOR_SIZE:
            raise ValueError("base offset must be a non-negative multiple of the sector size")
        self.image = image
        self.disk_number = disk_number
        self.base_offset = base_offset
        self.current_offset = 0

    def seek(self, offset: int) -> int:
        """Move to ``offset`` bytes from the partition start and return it."""
        if offset < 0:
            raise ValueError("offset must not be negative")
        self.current_offset = offset
        return self.current_offset

    def read_sectors(self, length: int) -> bytes:
        """Read ``length`` bytes of whole sectors, starting at the sector holding the position.

        ``length`` must be a positive multiple of the sector size.
        """
        if length <= 0 or length % SECTOR_SIZE:
            raise ValueError("length must be a positive multiple of the sector size")
        start = self.base_offset + self.current_offset
        end = start + length
        start_lba = start // SECTOR_SIZE
        end_lba = (end - 1) // SECTOR_SIZE
        data = b"".join(
            self._load(packet) for packet in split_load(start_lba, end_lba + 1 - start_lba, 0)
        )
        self.current_offset += length
        return data[:length]

    def read_exact(self, length: int) -> bytes:
        """Read ``length`` bytes at the current position.

        The bytes must lie within the two sectors starting at the current sector.
        """
        if length < 0:
            raise ValueError("length must not be negative")
        sector_offset = self.current_offset % SECTOR_SIZE
        if sector_offset + length > _READ_WINDOW:
            raise ValueError(
                f"cannot read {length} bytes at sector offset {sector_offset}: "
                f"exceeds the {_READ_WINDOW}-byte read window"
            )
        if length == 0:
            return b""
        position = self.current_offset
        sectors = -(-(sector_offset + length) // SECTOR_SIZE)
        self.current_offset = position - sector_offset
        window = self.read_sectors(sectors * SECTOR_SIZE)
        self.current_offset = position + length
        return window[sector_offset : sector_offset + length]

    def _load(self, packet: DiskAddressPacket) -> bytes:
        size = packet.number_of_sectors * SECTOR_SIZE
        self.image.seek(packet.start_lba * SECTOR_SIZE)
        data = self.image.read(size)
        if len(data) != size:
            raise EOFError(
                f"sectors {packet.start_lba}..{packet.start_lba + packet.number_of_sectors} "
                "extend beyond the end of the disk"
            )
        return data